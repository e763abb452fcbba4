"""
Subscription cancellation control.

Provides cancellation tokens and handles for stopping a running subscription
from another task.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from bluesky_firehose.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger("bluesky_firehose.client.cancel")


class CancelReason(str, Enum):
    """Reasons for cancellation."""

    USER_REQUEST = "user_request"
    TIMEOUT = "timeout"
    ERROR = "error"
    SHUTDOWN = "shutdown"


@dataclass
class CancelState:
    """State of a cancellation token.

    Attributes:
        cancelled: Whether cancellation was requested
        reason: Reason for cancellation
        timestamp: Time of cancellation
    """

    cancelled: bool = False
    reason: CancelReason | None = None
    timestamp: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class CancelToken:
    """Cancellation token for a subscription.

    The subscription loop checks the token between frames and registers an
    ``on_cancel`` callback that closes its connection, so a read blocked on
    the network returns as soon as ``cancel`` is called.

    Example:
        >>> token = CancelToken()
        >>> task = asyncio.create_task(client.subscribe(print, cancel_token=token))
        >>> # Later, from another task
        >>> token.cancel(CancelReason.USER_REQUEST)
    """

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize cancellation token.

        Args:
            timeout: Optional timeout in seconds
        """
        self._state = CancelState()
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[CancelReason], Any]] = []
        self._timeout = timeout
        self._timeout_task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Future[Any]] = set()

        if timeout:
            self._start_timeout()

    def _start_timeout(self) -> None:
        """Start the timeout task."""
        async def timeout_handler() -> None:
            await asyncio.sleep(self._timeout)  # type: ignore[arg-type]
            if not self._state.cancelled:
                self.cancel(CancelReason.TIMEOUT)

        try:
            loop = asyncio.get_running_loop()
            self._timeout_task = loop.create_task(timeout_handler())
        except RuntimeError:
            # No running loop; the timeout is armed by ensure_timeout()
            pass

    def ensure_timeout(self) -> None:
        """Arm the timeout if the token was created outside an event loop."""
        if self._timeout and self._timeout_task is None and not self._state.cancelled:
            self._start_timeout()

    def cancel(
        self,
        reason: CancelReason = CancelReason.USER_REQUEST,
        **metadata: Any,
    ) -> bool:
        """Request cancellation.

        Args:
            reason: Reason for cancellation
            **metadata: Additional metadata

        Returns:
            True if cancellation was newly requested, False if already cancelled
        """
        if self._state.cancelled:
            return False

        self._state.cancelled = True
        self._state.reason = reason
        self._state.timestamp = time.time()
        self._state.metadata.update(metadata)

        self._event.set()

        if self._timeout_task and not self._timeout_task.done():
            self._timeout_task.cancel()

        for callback in self._callbacks:
            self._invoke(callback, reason)

        return True

    def _invoke(self, callback: Callable[[CancelReason], Any], reason: CancelReason) -> None:
        """Run a callback, scheduling it if it returns a coroutine."""
        try:
            result = callback(reason)
            if asyncio.iscoroutine(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._callback_done)
        except Exception:
            logger.exception("Cancel callback failed", reason=reason.value)

    def _callback_done(self, task: asyncio.Future[Any]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Cancel callback failed",
                reason=self._state.reason.value if self._state.reason else None,
                error=str(task.exception()),
            )

    @property
    def pending_callbacks(self) -> int:
        """Number of scheduled coroutine callbacks still running."""
        return len(self._pending)

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._state.cancelled

    @property
    def reason(self) -> CancelReason | None:
        """Get cancellation reason."""
        return self._state.reason

    @property
    def state(self) -> CancelState:
        """Get full cancellation state."""
        return self._state

    async def wait(self) -> CancelReason:
        """Wait until cancellation is requested.

        Returns:
            Cancellation reason
        """
        await self._event.wait()
        return self._state.reason or CancelReason.USER_REQUEST

    def on_cancel(self, callback: Callable[[CancelReason], Any]) -> CancelToken:
        """Register a callback to be called on cancellation.

        The callback runs immediately if the token is already cancelled.

        Args:
            callback: Callback function; may return a coroutine

        Returns:
            Self for chaining
        """
        self._callbacks.append(callback)
        if self._state.cancelled and self._state.reason:
            self._invoke(callback, self._state.reason)
        return self

    def remove_callback(self, callback: Callable[[CancelReason], Any]) -> None:
        """Unregister a callback added with on_cancel."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)


class CancelHandle:
    """Handle for cancelling a subscription.

    Gives callers a cancel-only view, while the token is handed to the
    subscription itself.
    """

    def __init__(self, token: CancelToken) -> None:
        self._token = token

    def cancel(
        self,
        reason: CancelReason = CancelReason.USER_REQUEST,
        **metadata: Any,
    ) -> bool:
        """Request cancellation.

        Returns:
            True if cancellation was newly requested
        """
        return self._token.cancel(reason, **metadata)

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._token.is_cancelled

    @property
    def reason(self) -> CancelReason | None:
        """Get cancellation reason."""
        return self._token.reason


def create_cancel_pair(
    timeout: float | None = None,
) -> tuple[CancelHandle, CancelToken]:
    """Create a cancel handle and token pair.

    Args:
        timeout: Optional timeout in seconds

    Returns:
        Tuple of (CancelHandle, CancelToken)
    """
    token = CancelToken(timeout=timeout)
    handle = CancelHandle(token)
    return handle, token
