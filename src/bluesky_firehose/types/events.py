"""
Stream event models.

Covers both wire protocols:
- ChangeRecord / Operation: body of a firehose ``#commit`` frame
- JetstreamEvent / JetstreamCommit: one Jetstream JSON message
- PostEvent: the unified event handed to subscription handlers
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from bluesky_firehose.types.identifiers import ResourceIdentifier


class EventSource(str, Enum):
    """Pipeline an event came from."""

    FIREHOSE = "firehose"
    JETSTREAM = "jetstream"


class Operation(BaseModel):
    """One repository operation inside a commit."""

    model_config = ConfigDict(extra="ignore")

    action: str = Field(description="create, update or delete")
    path: str = Field(description="Record path as <collection>/<rkey>")

    @property
    def is_create(self) -> bool:
        return self.action == "create"


class ChangeRecord(BaseModel):
    """Decoded body of a ``#commit`` frame.

    Only the fields this client acts on are modelled; CIDs and the CAR
    block payload are dropped.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    repo: str = Field(min_length=1, description="Repository DID")
    ops: list[Operation] = Field(default_factory=list, description="Ordered operations")
    seq: int | None = Field(default=None, description="Stream sequence number")
    rev: str | None = Field(default=None, description="Repository revision")
    time: str | None = Field(default=None, description="Commit timestamp")
    too_big: bool = Field(default=False, alias="tooBig")


class JetstreamCommit(BaseModel):
    """Commit section of a Jetstream message."""

    model_config = ConfigDict(extra="allow")

    rev: str | None = None
    operation: str | None = None
    collection: str | None = None
    rkey: str | None = None
    cid: str | None = None
    record: dict[str, Any] | None = None


class JetstreamEvent(BaseModel):
    """One Jetstream message.

    Example wire shape:
        {"did": "did:plc:x", "time_us": 1725911162329308, "kind": "commit",
         "commit": {"operation": "create", "collection": "app.bsky.feed.post",
                    "rkey": "3l3qo2vutsw2b", "record": {"text": "hello"}}}
    """

    model_config = ConfigDict(extra="allow")

    did: str | None = None
    time_us: int | None = None
    type: str | None = None
    kind: str | None = None
    commit: JetstreamCommit | None = None

    @property
    def text(self) -> str | None:
        """Record text, if the commit carries one."""
        if self.commit is None or not self.commit.record:
            return None
        text = self.commit.record.get("text")
        return text if isinstance(text, str) else None

    @property
    def identifier(self) -> ResourceIdentifier | None:
        """AT-URI of the record, when did, collection and rkey are all present."""
        if not (self.did and self.commit and self.commit.collection and self.commit.rkey):
            return None
        return ResourceIdentifier(self.did, self.commit.collection, self.commit.rkey)


class PostEvent(BaseModel):
    """A post ready for dispatch.

    Firehose decoding produces it with ``text=None``; enrichment fills the
    text in. Jetstream decoding produces it complete.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    did: str | None = Field(default=None, description="Author DID")
    uri: ResourceIdentifier | None = Field(default=None, description="Record address")
    text: str | None = Field(default=None, description="Record text")
    time_us: int | None = Field(default=None, description="Capture time (Jetstream)")
    seq: int | None = Field(default=None, description="Sequence number (firehose)")
    source: EventSource = Field(description="Originating pipeline")

    @property
    def is_complete(self) -> bool:
        """Whether the event carries its text."""
        return self.text is not None
