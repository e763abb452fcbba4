"""
Firehose (``com.atproto.sync.subscribeRepos``) frame decoder.

Each websocket message is two concatenated DAG-CBOR items:

```
header: {"op": 1, "t": "#commit"}      # op -1 marks an error frame
body:   {"repo": "did:plc:...", "seq": 123, "ops": [{"action": "create",
         "path": "app.bsky.feed.post/3k...", "cid": ...}], ...}
```
"""

from __future__ import annotations

import io
from typing import Any

import cbor2
from pydantic import ValidationError

from bluesky_firehose.config import DEFAULT_COLLECTION
from bluesky_firehose.errors import DecodeError, StreamConnectionError
from bluesky_firehose.pipeline.base import FrameDecoder
from bluesky_firehose.telemetry.logger import get_logger
from bluesky_firehose.types.events import ChangeRecord, EventSource, PostEvent
from bluesky_firehose.types.identifiers import ResourceIdentifier

logger = get_logger("bluesky_firehose.pipeline.firehose")

OP_MESSAGE = 1
OP_ERROR = -1
COMMIT_TYPE = "#commit"
INFO_TYPE = "#info"


def split_frame(frame: bytes) -> tuple[dict[str, Any], Any]:
    """Split a frame into its header and body items.

    Raises:
        DecodeError: If either item is missing or not valid CBOR
    """
    decoder = cbor2.CBORDecoder(io.BytesIO(frame))
    try:
        header = decoder.decode()
        body = decoder.decode()
    except cbor2.CBORDecodeError as e:
        raise DecodeError(f"Invalid CBOR frame: {e}", decoder="firehose", cause=e) from e

    if not isinstance(header, dict):
        raise DecodeError("Frame header is not a map", decoder="firehose")
    return header, body


class FirehoseDecoder(FrameDecoder):
    """Decodes commit frames and selects record creations in one collection.

    Attributes:
        collection: Target collection NSID; only ``create`` operations whose
            path is ``<collection>/<rkey>`` produce events
    """

    source = EventSource.FIREHOSE

    def __init__(self, collection: str = DEFAULT_COLLECTION) -> None:
        self.collection = collection

    def decode_record(self, frame: bytes) -> ChangeRecord | None:
        """Decode a frame into a ChangeRecord.

        Returns:
            The commit, or None for non-commit message types

        Raises:
            DecodeError: If the frame is malformed
            StreamConnectionError: If the server sent an error frame
        """
        header, body = split_frame(frame)
        op = header.get("op")

        if op == OP_ERROR:
            error = body.get("error") if isinstance(body, dict) else None
            message = body.get("message") if isinstance(body, dict) else None
            detail = f"{error}: {message}" if message else str(error)
            raise StreamConnectionError(f"Server error frame: {detail}")
        if op != OP_MESSAGE:
            raise DecodeError(f"Unknown frame op: {op!r}", decoder="firehose")

        kind = header.get("t")
        if kind != COMMIT_TYPE:
            if kind == INFO_TYPE and isinstance(body, dict):
                logger.info("Info frame", name=body.get("name"), detail=body.get("message"))
            return None

        if not isinstance(body, dict):
            raise DecodeError("Commit body is not a map", decoder="firehose")
        try:
            return ChangeRecord.model_validate(body)
        except ValidationError as e:
            raise DecodeError(
                f"Invalid commit body: {e.error_count()} validation error(s)",
                decoder="firehose",
                cause=e,
            ) from e

    def decode(self, frame: bytes) -> list[PostEvent]:
        record = self.decode_record(frame)
        if record is None:
            return []
        return [
            PostEvent(did=record.repo, uri=uri, seq=record.seq, source=self.source)
            for uri in self.select(record)
        ]

    def select(self, record: ChangeRecord) -> list[ResourceIdentifier]:
        """Identifiers of the records created under the target collection."""
        identifiers = []
        for op in record.ops:
            if not op.is_create:
                continue
            uri = ResourceIdentifier.from_path(record.repo, op.path, self.collection)
            if uri is None:
                if op.path.startswith(f"{self.collection}/"):
                    logger.debug("Skipping malformed path", repo=record.repo, path=op.path)
                continue
            identifiers.append(uri)
        return identifiers
