"""错误体系：流订阅客户端的结构化错误类型。

Error hierarchy for bluesky-firehose.

Soft errors (DecodeError, FetchError) are reported and skipped; every other
error ends a subscription.
"""

from bluesky_firehose.errors.base import (
    AuthError,
    ConnectionClosedError,
    DecodeError,
    ErrorContext,
    FetchError,
    FirehoseError,
    HandlerError,
    RemoteError,
    StreamCancelledError,
    StreamConnectionError,
    TransportError,
)

__all__ = [
    "AuthError",
    "ConnectionClosedError",
    "DecodeError",
    "ErrorContext",
    "FetchError",
    "FirehoseError",
    "HandlerError",
    "RemoteError",
    "StreamCancelledError",
    "StreamConnectionError",
    "TransportError",
]
