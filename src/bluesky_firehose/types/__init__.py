"""
Type definitions for bluesky-firehose.
"""

from bluesky_firehose.types.events import (
    ChangeRecord,
    EventSource,
    JetstreamCommit,
    JetstreamEvent,
    Operation,
    PostEvent,
)
from bluesky_firehose.types.identifiers import ResourceIdentifier

__all__ = [
    "ChangeRecord",
    "EventSource",
    "JetstreamCommit",
    "JetstreamEvent",
    "Operation",
    "PostEvent",
    "ResourceIdentifier",
]
