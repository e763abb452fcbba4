"""
Jetstream frame decoder.

Jetstream messages are self-contained JSON, so no enrichment is needed.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from pydantic import ValidationError

from bluesky_firehose.errors import DecodeError
from bluesky_firehose.pipeline.base import FrameDecoder
from bluesky_firehose.types.events import EventSource, JetstreamEvent, PostEvent

if TYPE_CHECKING:
    from collections.abc import Iterable

COMMIT_KIND = "commit"


class JetstreamDecoder(FrameDecoder):
    """Decodes Jetstream messages into post events.

    A message yields an event only if it carries a string ``record.text``.
    Messages whose kind, operation or collection is present and does not
    match (``commit``, ``create``, ``collections``) are dropped.
    """

    source = EventSource.JETSTREAM

    def __init__(self, collections: Iterable[str] | None = None) -> None:
        self.collections = frozenset(collections) if collections else None

    def parse(self, frame: bytes) -> JetstreamEvent:
        """Parse a frame into a JetstreamEvent.

        Raises:
            DecodeError: If the frame is not a valid Jetstream JSON object
        """
        try:
            data = json.loads(frame)
        except UnicodeDecodeError as e:
            raise DecodeError("Frame is not valid UTF-8", decoder="jetstream", cause=e) from e
        except json.JSONDecodeError as e:
            raise DecodeError(f"Invalid JSON: {e.msg}", decoder="jetstream", cause=e) from e
        except RecursionError as e:
            raise DecodeError("JSON nested too deeply", decoder="jetstream", cause=e) from e

        if not isinstance(data, dict):
            raise DecodeError("Frame is not a JSON object", decoder="jetstream")

        try:
            return JetstreamEvent.model_validate(data)
        except ValidationError as e:
            raise DecodeError(
                f"Invalid Jetstream event: {e.error_count()} validation error(s)",
                decoder="jetstream",
                cause=e,
            ) from e

    def decode(self, frame: bytes) -> list[PostEvent]:
        event = self.parse(frame)
        commit = event.commit

        if event.kind is not None and event.kind != COMMIT_KIND:
            return []
        if commit is None:
            return []
        if commit.operation is not None and commit.operation != "create":
            return []
        if (
            self.collections is not None
            and commit.collection is not None
            and commit.collection not in self.collections
        ):
            return []

        text = event.text
        if text is None:
            return []

        return [
            PostEvent(
                did=event.did,
                uri=event.identifier,
                text=text,
                time_us=event.time_us,
                source=self.source,
            )
        ]
