"""Tests for pipeline module."""

import cbor2
import pytest

from bluesky_firehose.errors import DecodeError, FetchError, HandlerError, StreamConnectionError
from bluesky_firehose.pipeline import (
    Dispatcher,
    FirehoseDecoder,
    JetstreamDecoder,
    Pipeline,
    split_frame,
    whole_event,
)
from bluesky_firehose.types import EventSource, PostEvent, ResourceIdentifier
from tests.conftest import (
    POST,
    StubFetcher,
    commit_frame,
    error_frame,
    jetstream_frame,
    message_frame,
)


class TestSplitFrame:
    """Tests for CBOR frame splitting."""

    def test_split(self) -> None:
        header, body = split_frame(cbor2.dumps({"op": 1, "t": "#commit"}) + cbor2.dumps({"seq": 5}))
        assert header == {"op": 1, "t": "#commit"}
        assert body == {"seq": 5}

    def test_invalid_cbor(self) -> None:
        with pytest.raises(DecodeError):
            split_frame(b"\xa2\x61")

    def test_missing_body(self) -> None:
        with pytest.raises(DecodeError):
            split_frame(cbor2.dumps({"op": 1, "t": "#commit"}))

    def test_header_not_a_map(self) -> None:
        with pytest.raises(DecodeError):
            split_frame(cbor2.dumps([1, 2]) + cbor2.dumps({}))


class TestFirehoseDecoder:
    """Tests for FirehoseDecoder."""

    def test_create_post(self) -> None:
        decoder = FirehoseDecoder(POST)
        events = decoder.decode(
            commit_frame("did:x", [("create", "app.bsky.feed.post/abc123")], seq=9)
        )

        assert len(events) == 1
        event = events[0]
        assert event.uri == ResourceIdentifier("did:x", POST, "abc123")
        assert event.uri.uri == "at://did:x/app.bsky.feed.post/abc123"
        assert event.did == "did:x"
        assert event.seq == 9
        assert event.text is None
        assert event.source is EventSource.FIREHOSE

    def test_non_create_ops_ignored(self) -> None:
        decoder = FirehoseDecoder(POST)
        frame = commit_frame(
            "did:x",
            [("update", "app.bsky.feed.post/a"), ("delete", "app.bsky.feed.post/b")],
        )
        assert decoder.decode(frame) == []

    def test_other_collections_ignored(self) -> None:
        decoder = FirehoseDecoder(POST)
        frame = commit_frame(
            "did:x",
            [("create", "app.bsky.feed.like/a"), ("create", "app.bsky.graph.follow/b")],
        )
        assert decoder.decode(frame) == []

    def test_malformed_paths_ignored(self) -> None:
        decoder = FirehoseDecoder(POST)
        frame = commit_frame(
            "did:x",
            [
                ("create", "app.bsky.feed.post/"),
                ("create", "app.bsky.feed.post"),
                ("create", "app.bsky.feed.post/a/b"),
            ],
        )
        assert decoder.decode(frame) == []

    def test_keeps_operation_order(self) -> None:
        decoder = FirehoseDecoder(POST)
        frame = commit_frame(
            "did:x",
            [
                ("create", "app.bsky.feed.post/1"),
                ("create", "app.bsky.feed.like/x"),
                ("create", "app.bsky.feed.post/2"),
            ],
        )
        assert [e.uri.rkey for e in decoder.decode(frame)] == ["1", "2"]

    def test_custom_collection(self) -> None:
        decoder = FirehoseDecoder("app.bsky.feed.like")
        events = decoder.decode(commit_frame("did:x", [("create", "app.bsky.feed.like/l1")]))
        assert events[0].uri == ResourceIdentifier("did:x", "app.bsky.feed.like", "l1")

    def test_non_commit_frames_yield_nothing(self) -> None:
        decoder = FirehoseDecoder(POST)
        assert decoder.decode(message_frame("#identity", {"did": "did:x", "seq": 3})) == []
        assert decoder.decode(message_frame("#info", {"name": "OutdatedCursor"})) == []

    def test_invalid_cbor(self) -> None:
        with pytest.raises(DecodeError):
            FirehoseDecoder(POST).decode(b"\xa2\x61")

    def test_commit_without_repo(self) -> None:
        frame = message_frame("#commit", {"seq": 1, "ops": []})
        with pytest.raises(DecodeError):
            FirehoseDecoder(POST).decode(frame)

    def test_commit_body_not_a_map(self) -> None:
        frame = cbor2.dumps({"op": 1, "t": "#commit"}) + cbor2.dumps("text")
        with pytest.raises(DecodeError):
            FirehoseDecoder(POST).decode(frame)

    def test_unknown_op(self) -> None:
        frame = cbor2.dumps({"op": 7, "t": "#commit"}) + cbor2.dumps({})
        with pytest.raises(DecodeError):
            FirehoseDecoder(POST).decode(frame)

    def test_error_frame_is_fatal(self) -> None:
        with pytest.raises(StreamConnectionError, match="FutureCursor"):
            FirehoseDecoder(POST).decode(error_frame("FutureCursor", "Cursor in the future"))


class TestJetstreamDecoder:
    """Tests for JetstreamDecoder."""

    def test_minimal_message(self) -> None:
        decoder = JetstreamDecoder([POST])
        events = decoder.decode(b'{"did":"did:x","commit":{"record":{"text":"hello"}}}')

        assert len(events) == 1
        assert events[0].text == "hello"
        assert events[0].did == "did:x"
        assert events[0].uri is None
        assert events[0].source is EventSource.JETSTREAM

    def test_full_message(self) -> None:
        events = JetstreamDecoder([POST]).decode(jetstream_frame("gm", rkey="r1"))
        assert events[0].text == "gm"
        assert events[0].uri == ResourceIdentifier("did:x", POST, "r1")
        assert events[0].time_us == 1725911162329308

    def test_no_text(self) -> None:
        assert JetstreamDecoder([POST]).decode(jetstream_frame(None)) == []
        assert JetstreamDecoder([POST]).decode(b'{"did":"did:x"}') == []

    def test_other_kinds_dropped(self) -> None:
        assert JetstreamDecoder([POST]).decode(jetstream_frame("x", kind="identity")) == []

    def test_non_create_dropped(self) -> None:
        decoder = JetstreamDecoder([POST])
        assert decoder.decode(jetstream_frame("x", operation="update")) == []
        assert decoder.decode(jetstream_frame("x", operation="delete")) == []

    def test_unwanted_collection_dropped(self) -> None:
        decoder = JetstreamDecoder([POST])
        assert decoder.decode(jetstream_frame("x", collection="app.bsky.feed.like")) == []

    def test_no_collection_filter(self) -> None:
        decoder = JetstreamDecoder()
        assert len(decoder.decode(jetstream_frame("x", collection="app.bsky.feed.like"))) == 1

    @pytest.mark.parametrize(
        "frame",
        [
            b"{not json",
            b"[1, 2]",
            b"\x80abc",
            b'{"did": 5}',
            b"[" * 200000 + b"]" * 200000,
        ],
        ids=["truncated", "array", "not-utf8", "bad-field", "deep-nesting"],
    )
    def test_malformed(self, frame: bytes) -> None:
        with pytest.raises(DecodeError):
            JetstreamDecoder([POST]).decode(frame)


class TestPipeline:
    """Tests for Pipeline.resolve."""

    @pytest.mark.asyncio
    async def test_complete_event_passes_through(self) -> None:
        fetcher = StubFetcher()
        pipeline = Pipeline(JetstreamDecoder([POST]), enricher=fetcher)
        event = PostEvent(text="hi", source=EventSource.JETSTREAM)

        assert await pipeline.resolve(event) is event
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_incomplete_event_without_enricher(self) -> None:
        pipeline = Pipeline(FirehoseDecoder(POST))
        event = PostEvent(did="did:x", source=EventSource.FIREHOSE)
        assert await pipeline.resolve(event) is None

    @pytest.mark.asyncio
    async def test_enrichment(self) -> None:
        uri = "at://did:x/app.bsky.feed.post/abc123"
        pipeline = Pipeline(FirehoseDecoder(POST), enricher=StubFetcher({uri: "hello"}))
        [event] = pipeline.decode(commit_frame("did:x", [("create", "app.bsky.feed.post/abc123")]))

        resolved = await pipeline.resolve(event)

        assert resolved is not None
        assert resolved.text == "hello"
        assert resolved.uri == event.uri

    @pytest.mark.asyncio
    async def test_enrichment_failure_propagates(self) -> None:
        pipeline = Pipeline(FirehoseDecoder(POST), enricher=StubFetcher())
        [event] = pipeline.decode(commit_frame("did:x", [("create", "app.bsky.feed.post/gone")]))

        with pytest.raises(FetchError):
            await pipeline.resolve(event)

    def test_source(self) -> None:
        assert Pipeline(JetstreamDecoder()).source is EventSource.JETSTREAM


class TestDispatcher:
    """Tests for Dispatcher."""

    @pytest.mark.asyncio
    async def test_sync_handler_gets_text(self) -> None:
        received = []
        dispatcher = Dispatcher(received.append)

        await dispatcher.dispatch(PostEvent(text="a", source=EventSource.JETSTREAM))
        await dispatcher.dispatch(PostEvent(text="b", source=EventSource.JETSTREAM))

        assert received == ["a", "b"]
        assert dispatcher.dispatched == 2

    @pytest.mark.asyncio
    async def test_async_handler(self) -> None:
        received = []

        async def handler(text: str) -> None:
            received.append(text)

        await Dispatcher(handler).dispatch(PostEvent(text="a", source=EventSource.JETSTREAM))
        assert received == ["a"]

    @pytest.mark.asyncio
    async def test_whole_event(self) -> None:
        received = []
        event = PostEvent(text="a", source=EventSource.JETSTREAM)

        await Dispatcher(received.append, argument=whole_event).dispatch(event)

        assert received == [event]

    @pytest.mark.asyncio
    async def test_handler_failure(self) -> None:
        def handler(text: str) -> None:
            raise ValueError("bad post")

        dispatcher = Dispatcher(handler)
        event = PostEvent(
            uri=ResourceIdentifier("did:x", POST, "k"), text="a", source=EventSource.FIREHOSE
        )

        with pytest.raises(HandlerError) as exc_info:
            await dispatcher.dispatch(event)

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert exc_info.value.uri == "at://did:x/app.bsky.feed.post/k"
        assert dispatcher.dispatched == 0

    @pytest.mark.asyncio
    async def test_report(self) -> None:
        errors = []
        dispatcher = Dispatcher(print, on_error=errors.append)
        error = DecodeError("bad frame")

        await dispatcher.report(error)

        assert errors == [error]

    @pytest.mark.asyncio
    async def test_report_without_callback(self) -> None:
        await Dispatcher(print).report(DecodeError("bad frame"))

    @pytest.mark.asyncio
    async def test_failing_error_callback_is_contained(self) -> None:
        async def on_error(error: Exception) -> None:
            raise RuntimeError("callback broke")

        await Dispatcher(print, on_error=on_error).report(DecodeError("bad frame"))
