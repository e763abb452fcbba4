"""
Integration test helper utilities.

Runs a local aiohttp websocket server that replays frames, so the real
WebSocketConnection and client loop can be exercised end to end.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest_asyncio
from aiohttp import WSMsgType, test_utils, web

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@dataclass
class StreamServerState:
    """Frames to replay and what the server saw."""

    frames: list[bytes | str] = field(default_factory=list)
    close_after: bool = False
    close_code: int = 1000
    queries: list[dict[str, list[str]]] = field(default_factory=list)
    client_closed: asyncio.Event = field(default_factory=asyncio.Event)


class StreamServer:
    """Local websocket endpoint at ``/subscribe``."""

    def __init__(self) -> None:
        self.state = StreamServerState()
        app = web.Application()
        app.router.add_get("/subscribe", self._subscribe)
        self._server = test_utils.TestServer(app)

    @property
    def url(self) -> str:
        return str(self._server.make_url("/subscribe")).replace("http://", "ws://", 1)

    @property
    def missing_url(self) -> str:
        return str(self._server.make_url("/missing")).replace("http://", "ws://", 1)

    async def start(self) -> None:
        await self._server.start_server()

    async def close(self) -> None:
        await self._server.close()

    def replay(self, *frames: bytes | str, close_after: bool = False, close_code: int = 1000) -> None:
        self.state.frames = list(frames)
        self.state.close_after = close_after
        self.state.close_code = close_code

    async def _subscribe(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.state.queries.append({key: request.query.getall(key) for key in request.query})

        for frame in self.state.frames:
            if isinstance(frame, bytes):
                await ws.send_bytes(frame)
            else:
                await ws.send_str(frame)

        if self.state.close_after:
            await ws.close(code=self.state.close_code)
            return ws

        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                break
        self.state.client_closed.set()
        return ws


@pytest_asyncio.fixture
async def stream_server() -> AsyncIterator[StreamServer]:
    server = StreamServer()
    await server.start()
    try:
        yield server
    finally:
        await server.close()
