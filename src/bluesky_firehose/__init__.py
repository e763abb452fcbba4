"""Bluesky 实时数据流客户端：订阅 firehose 与 Jetstream 并分发帖子事件。

bluesky-firehose: asyncio client for the Bluesky firehose and Jetstream.

Subscribes to a real-time change feed, decodes each frame, optionally
enriches it with an authenticated post lookup, and delivers events to a
handler in arrival order.
"""
from __future__ import annotations

from bluesky_firehose.client import (
    CancelHandle,
    CancelReason,
    CancelToken,
    FirehoseClient,
    FirehoseClientBuilder,
    SubscriptionState,
    SubscriptionStats,
    create_cancel_pair,
)
from bluesky_firehose.config import FirehoseConfig
from bluesky_firehose.errors import (
    AuthError,
    ConnectionClosedError,
    DecodeError,
    FetchError,
    FirehoseError,
    HandlerError,
    StreamCancelledError,
    StreamConnectionError,
)
from bluesky_firehose.transport import Credential
from bluesky_firehose.types import PostEvent, ResourceIdentifier

__version__ = "0.3.0"

__all__ = [
    # Errors
    "AuthError",
    # Client
    "CancelHandle",
    "CancelReason",
    "CancelToken",
    "ConnectionClosedError",
    "Credential",
    "DecodeError",
    "FetchError",
    "FirehoseClient",
    "FirehoseClientBuilder",
    "FirehoseConfig",
    "FirehoseError",
    "HandlerError",
    # Types
    "PostEvent",
    "ResourceIdentifier",
    "StreamCancelledError",
    "StreamConnectionError",
    "SubscriptionState",
    "SubscriptionStats",
    "create_cancel_pair",
    # Version
    "__version__",
]
