"""
Event dispatch to caller handlers.
"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any

from bluesky_firehose.errors import HandlerError
from bluesky_firehose.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from bluesky_firehose.errors import FirehoseError
    from bluesky_firehose.types.events import PostEvent

    Handler = Callable[[Any], Awaitable[Any] | Any]
    ErrorCallback = Callable[[FirehoseError], Awaitable[Any] | Any]

logger = get_logger("bluesky_firehose.pipeline.dispatch")


def post_text(event: PostEvent) -> str:
    """Handler argument for text subscriptions."""
    return event.text or ""


def whole_event(event: PostEvent) -> PostEvent:
    """Handler argument for event subscriptions."""
    return event


class Dispatcher:
    """Invokes a handler once per event, in order.

    Handlers may be plain functions or coroutine functions. Any exception
    they raise becomes a HandlerError, which ends the subscription.

    Example:
        >>> dispatcher = Dispatcher(handler, on_error=log_error)
        >>> await dispatcher.dispatch(event)
        >>> await dispatcher.report(DecodeError("bad frame"))
    """

    def __init__(
        self,
        handler: Handler,
        on_error: ErrorCallback | None = None,
        *,
        argument: Callable[[PostEvent], Any] = post_text,
    ) -> None:
        """Initialize dispatcher.

        Args:
            handler: Caller handler
            on_error: Optional callback for every soft and fatal error
            argument: Maps an event to the value passed to the handler
        """
        self._handler = handler
        self._on_error = on_error
        self._argument = argument
        self.dispatched = 0

    async def dispatch(self, event: PostEvent) -> None:
        """Deliver one event.

        Raises:
            HandlerError: If the handler raises
        """
        try:
            result = self._handler(self._argument(event))
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            uri = event.uri.uri if event.uri else None
            raise HandlerError(f"Handler failed: {e}", cause=e, uri=uri) from e
        self.dispatched += 1

    async def report(self, error: FirehoseError) -> None:
        """Pass an error to the error callback, if one was given.

        A failing callback is logged and does not affect the stream.
        """
        if self._on_error is None:
            return
        try:
            result = self._on_error(error)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Error callback failed", error=type(error).__name__)
