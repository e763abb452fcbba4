"""
Websocket stream connection.

Defines the StreamConnection protocol the subscription loop reads from, and
an aiohttp-backed implementation.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import aiohttp

from bluesky_firehose.errors import ConnectionClosedError, StreamConnectionError
from bluesky_firehose.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger("bluesky_firehose.transport.websocket")

_CLOSED_TYPES = (
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.CLOSED,
)


@runtime_checkable
class StreamConnection(Protocol):
    """A persistent, ordered source of frames.

    ``close`` must be idempotent and must make a concurrently blocked
    ``read_frame`` raise ConnectionClosedError.
    """

    @property
    def closed(self) -> bool: ...

    async def read_frame(self) -> bytes: ...

    async def close(self) -> None: ...


class WebSocketConnection:
    """StreamConnection over an aiohttp client websocket.

    Example:
        >>> conn = await WebSocketConnection.open(
        ...     "wss://jetstream2.us-east.bsky.network/subscribe",
        ...     params=[("wantedCollections", "app.bsky.feed.post")],
        ... )
        >>> frame = await conn.read_frame()
        >>> await conn.close()
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        *,
        url: str,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Wrap an open websocket (use ``open`` for normal construction).

        Args:
            ws: Open client websocket
            url: Endpoint URL, for diagnostics
            session: Session to close together with the socket, if owned
        """
        self._ws = ws
        self._url = url
        self._session = session
        self._closing: asyncio.Future[None] | None = None

    @classmethod
    async def open(
        cls,
        url: str,
        *,
        params: Sequence[tuple[str, str]] | None = None,
        session: aiohttp.ClientSession | None = None,
        heartbeat: float | None = 30.0,
        connect_timeout: float | None = 10.0,
        max_frame_size: int = 16 * 1024 * 1024,
    ) -> WebSocketConnection:
        """Open a websocket to ``url``.

        Args:
            url: ws:// or wss:// endpoint
            params: Query parameters (repeated keys allowed)
            session: Existing aiohttp session; a private one is created otherwise
            heartbeat: Ping interval in seconds
            connect_timeout: Handshake timeout in seconds
            max_frame_size: Largest accepted message in bytes (0 = unlimited)

        Raises:
            StreamConnectionError: If the handshake fails
        """
        owned = session is None
        client_session = session or aiohttp.ClientSession()
        kwargs: dict[str, Any] = {
            "heartbeat": heartbeat,
            "max_msg_size": max_frame_size,
        }
        if params:
            kwargs["params"] = list(params)

        try:
            ws = await asyncio.wait_for(
                client_session.ws_connect(url, **kwargs), timeout=connect_timeout
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            if owned:
                await client_session.close()
            raise StreamConnectionError(
                f"Websocket connect failed: {e}", url=url, cause=e
            ) from e
        except BaseException:
            if owned:
                await client_session.close()
            raise

        logger.info("Websocket connected", url=url)
        return cls(ws, url=url, session=client_session if owned else None)

    @property
    def closed(self) -> bool:
        return self._closing is not None

    @property
    def url(self) -> str:
        return self._url

    async def read_frame(self) -> bytes:
        """Read the next message.

        Returns:
            Message payload; text messages are UTF-8 encoded

        Raises:
            ConnectionClosedError: If the connection is or becomes closed
            StreamConnectionError: On transport errors
        """
        if self.closed:
            raise ConnectionClosedError(url=self._url)

        try:
            msg = await self._ws.receive()
        except (aiohttp.ClientError, OSError) as e:
            raise StreamConnectionError(f"Websocket read failed: {e}", url=self._url, cause=e) from e

        if msg.type == aiohttp.WSMsgType.BINARY:
            return msg.data
        if msg.type == aiohttp.WSMsgType.TEXT:
            return msg.data.encode("utf-8")
        if msg.type in _CLOSED_TYPES:
            raise ConnectionClosedError(
                "Connection closed" if self.closed else "Connection closed by server",
                url=self._url,
                close_code=self._ws.close_code,
            )
        if msg.type == aiohttp.WSMsgType.ERROR:
            cause = self._ws.exception()
            raise StreamConnectionError(
                f"Websocket error: {cause}", url=self._url, cause=cause
            )
        raise StreamConnectionError(f"Unexpected websocket message type: {msg.type!r}", url=self._url)

    async def close(self) -> None:
        """Close the websocket and any owned session. Idempotent.

        Every caller, including concurrent ones, returns only once the
        socket and owned session are closed.
        """
        if self._closing is None:
            self._closing = asyncio.ensure_future(self._close())
        await asyncio.shield(self._closing)

    async def _close(self) -> None:
        try:
            await self._ws.close()
        finally:
            if self._session is not None:
                await self._session.close()
                self._session = None
        logger.info("Websocket closed", url=self._url, close_code=self._ws.close_code)

    async def __aenter__(self) -> WebSocketConnection:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
