"""Root pytest fixtures and fakes for bluesky-firehose tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import cbor2
import pytest

from bluesky_firehose.errors import ConnectionClosedError, FetchError
from bluesky_firehose.pipeline import Enricher
from bluesky_firehose.types import PostEvent

POST = "app.bsky.feed.post"

_END = object()


class FakeConnection:
    """In-memory StreamConnection.

    Frames are served in order; once they run out, read_frame blocks until
    more are fed, end() is called, or the connection is closed.
    """

    def __init__(self, frames: list[bytes] | None = None, *, end: bool = False) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        for frame in frames or []:
            self._queue.put_nowait(frame)
        if end:
            self._queue.put_nowait(_END)
        self._closed = False
        self.close_calls = 0
        self.reads = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, frame: bytes) -> None:
        self._queue.put_nowait(frame)

    def end(self) -> None:
        """Simulate the server closing the stream."""
        self._queue.put_nowait(_END)

    async def read_frame(self) -> bytes:
        if self._closed:
            raise ConnectionClosedError()
        item = await self._queue.get()
        if self._closed:
            raise ConnectionClosedError()
        if item is _END:
            raise ConnectionClosedError("Connection closed by server", close_code=1000)
        self.reads += 1
        return item

    async def close(self) -> None:
        self.close_calls += 1
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_END)


class StubFetcher(Enricher):
    """Enricher answering from a dict of uri -> text (or exception)."""

    def __init__(self, answers: dict[str, str | Exception] | None = None) -> None:
        self.answers = answers or {}
        self.calls: list[str] = []

    async def enrich(self, event: PostEvent) -> PostEvent:
        assert event.uri is not None
        uri = event.uri.uri
        self.calls.append(uri)
        answer = self.answers.get(uri, FetchError("not found", uri=uri, status_code=400))
        if isinstance(answer, Exception):
            raise answer
        return event.model_copy(update={"text": answer})


def commit_frame(
    repo: str,
    ops: list[tuple[str, str]],
    seq: int = 1,
) -> bytes:
    """Build a firehose #commit frame from (action, path) pairs."""
    header = {"op": 1, "t": "#commit"}
    body = {
        "seq": seq,
        "rebase": False,
        "tooBig": False,
        "repo": repo,
        "commit": None,
        "rev": "3kabc",
        "since": None,
        "blocks": b"",
        "ops": [{"action": action, "path": path, "cid": None} for action, path in ops],
        "blobs": [],
        "time": "2024-09-09T19:46:02.102Z",
    }
    return cbor2.dumps(header) + cbor2.dumps(body)


def message_frame(kind: str, body: dict[str, Any]) -> bytes:
    """Build a firehose frame of an arbitrary message type."""
    return cbor2.dumps({"op": 1, "t": kind}) + cbor2.dumps(body)


def error_frame(error: str, message: str | None = None) -> bytes:
    body: dict[str, Any] = {"error": error}
    if message:
        body["message"] = message
    return cbor2.dumps({"op": -1}) + cbor2.dumps(body)


def jetstream_frame(
    text: str | None,
    did: str = "did:x",
    *,
    operation: str | None = "create",
    collection: str | None = POST,
    rkey: str | None = "3l3qo2vutsw2b",
    kind: str | None = "commit",
) -> bytes:
    """Build a Jetstream JSON frame."""
    commit: dict[str, Any] = {"rev": "3l3qo2vuowo2b"}
    if operation is not None:
        commit["operation"] = operation
    if collection is not None:
        commit["collection"] = collection
    if rkey is not None:
        commit["rkey"] = rkey
    if text is not None:
        commit["record"] = {"$type": POST, "text": text, "createdAt": "2024-09-09T19:46:02.102Z"}
    event: dict[str, Any] = {"did": did, "time_us": 1725911162329308, "commit": commit}
    if kind is not None:
        event["kind"] = kind
    return json.dumps(event).encode()


def thread_body(text: str) -> dict[str, Any]:
    """A getPostThread response carrying ``text``."""
    return {
        "thread": {
            "$type": "app.bsky.feed.defs#threadViewPost",
            "post": {"uri": "at://did:x/app.bsky.feed.post/abc123", "record": {"text": text}},
        }
    }


@pytest.fixture
def no_login_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove login variables so tests never pick up real credentials."""
    for name in ("BSKY_IDENTIFIER", "BSKY_EMAIL", "BSKY_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("bluesky_firehose.transport.auth._try_keyring", lambda identifier: None)
