"""错误基类：提供分层错误体系和结构化错误上下文。

Base error classes for bluesky-firehose.

Provides a layered error hierarchy:
- FirehoseError: Base class for all library errors
- StreamConnectionError: Websocket open/read/close failures (fatal)
- AuthError: Session creation failures (fatal at startup)
- DecodeError: Malformed frames (skipped)
- FetchError: Enrichment lookup failures (skipped)
- HandlerError: Caller handler failures (fatal)
- StreamCancelledError: Subscription ended by cancellation or close
- TransportError / RemoteError: HTTP layer errors
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bluesky_firehose.client.cancel import CancelReason


@dataclass
class ErrorContext:
    """Structured error context for diagnostics."""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'connection', 'decode', 'fetch')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class FirehoseError(Exception):
    """Base class for all bluesky-firehose errors.

    Attributes:
        message: Human-readable error message
        context: Structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    @property
    def is_fatal(self) -> bool:
        """Whether this error ends a subscription."""
        return True

    def with_hint(self, hint: str) -> FirehoseError:
        """Add a hint to this error."""
        self.context.hint = hint
        self.args = (self._format_message(),)
        return self


class StreamConnectionError(FirehoseError):
    """Error on the streaming connection.

    Raised when:
    - The websocket handshake fails
    - A read fails at the transport level
    - The server sends an error frame
    - Too many consecutive frames fail to decode
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        url: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="connection")
        if url:
            ctx.details["url"] = url
        super().__init__(message, ctx)
        self.url = url
        self.__cause__ = cause


class ConnectionClosedError(StreamConnectionError):
    """Read attempted on a connection that is closed or closing."""

    def __init__(
        self,
        message: str = "Connection is closed",
        *,
        url: str | None = None,
        close_code: int | None = None,
    ) -> None:
        ctx = ErrorContext(source="connection")
        if close_code is not None:
            ctx.details["close_code"] = close_code
        super().__init__(message, ctx, url=url)
        self.close_code = close_code


class AuthError(FirehoseError):
    """Error creating an authenticated session."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="auth")
        if status_code is not None:
            ctx.details["status_code"] = status_code
        super().__init__(message, ctx)
        self.status_code = status_code
        self.__cause__ = cause


class DecodeError(FirehoseError):
    """A single frame could not be decoded.

    Raised when:
    - CBOR or JSON is truncated or invalid
    - A header or body has the wrong shape
    - A payload fails model validation
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        decoder: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="decode")
        if decoder:
            ctx.details["decoder"] = decoder
        super().__init__(message, ctx)
        self.decoder = decoder
        self.__cause__ = cause

    @property
    def is_fatal(self) -> bool:
        return False


class FetchError(FirehoseError):
    """Enrichment lookup for one record failed."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        uri: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="fetch")
        if uri:
            ctx.details["uri"] = uri
        if status_code is not None:
            ctx.details["status_code"] = status_code
        super().__init__(message, ctx)
        self.uri = uri
        self.status_code = status_code
        self.__cause__ = cause

    @property
    def is_fatal(self) -> bool:
        return False


class HandlerError(FirehoseError):
    """The caller's handler raised while processing an event."""

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        uri: str | None = None,
    ) -> None:
        ctx = ErrorContext(source="handler")
        if uri:
            ctx.details["uri"] = uri
        super().__init__(message, ctx)
        self.uri = uri
        self.__cause__ = cause


class StreamCancelledError(FirehoseError):
    """Subscription stopped because it was cancelled or the client closed."""

    def __init__(self, reason: CancelReason | None = None) -> None:
        ctx = ErrorContext(source="cancel")
        if reason is not None:
            ctx.details["reason"] = reason.value
        label = reason.value if reason is not None else "unknown"
        super().__init__(f"Subscription cancelled ({label})", ctx)
        self.reason = reason


class TransportError(FirehoseError):
    """Error during HTTP transport.

    Raised when:
    - Network connection failure
    - Timeout
    - SSL/TLS errors
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        url: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="transport")
        if url:
            ctx.details["url"] = url
        super().__init__(message, ctx)
        self.url = url
        self.__cause__ = cause


class RemoteError(FirehoseError):
    """Error response from an XRPC endpoint.

    Attributes:
        status_code: HTTP status code
        error: XRPC error name (e.g., 'AuthenticationRequired')
        raw_error: Raw error body
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        error: str | None = None,
        raw_error: dict[str, Any] | None = None,
    ) -> None:
        ctx = ErrorContext(source="remote")
        ctx.details["status_code"] = status_code
        if error:
            ctx.details["error"] = error
        super().__init__(message, ctx)
        self.status_code = status_code
        self.error = error
        self.raw_error = raw_error or {}

    @classmethod
    def from_response(
        cls,
        status_code: int,
        body: dict[str, Any] | None = None,
    ) -> RemoteError:
        """Create RemoteError from an XRPC error body.

        XRPC errors look like ``{"error": "InvalidToken", "message": "..."}``.
        """
        error = None
        message = f"HTTP {status_code}"
        if isinstance(body, dict):
            error = body.get("error") if isinstance(body.get("error"), str) else None
            if isinstance(body.get("message"), str):
                message = f"{message}: {body['message']}"
            elif error:
                message = f"{message}: {error}"
        return cls(
            message,
            status_code=status_code,
            error=error,
            raw_error=body if isinstance(body, dict) else None,
        )
