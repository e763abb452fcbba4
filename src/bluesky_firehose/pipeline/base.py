"""
Base abstractions for the pipeline layer.

Defines the interfaces each protocol pipeline is built from.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bluesky_firehose.types.events import EventSource, PostEvent


class FrameDecoder(ABC):
    """Converts one raw frame into zero or more post events.

    Decoders are synchronous and stateless per frame: the same bytes always
    produce the same events.
    """

    source: EventSource

    @abstractmethod
    def decode(self, frame: bytes) -> list[PostEvent]:
        """Decode a frame.

        Args:
            frame: Raw message bytes

        Returns:
            Matching events in wire order (possibly empty)

        Raises:
            DecodeError: If the frame is malformed
        """
        ...


class Enricher(ABC):
    """Completes events that were decoded without their record content."""

    @abstractmethod
    async def enrich(self, event: PostEvent) -> PostEvent:
        """Return ``event`` with its text filled in.

        Raises:
            FetchError: If the record cannot be resolved
        """
        ...


class Pipeline:
    """A decoder plus an optional enricher.

    Example:
        >>> pipeline = Pipeline(FirehoseDecoder(), enricher=PostFetcher(transport))
        >>> for event in pipeline.decode(frame):
        ...     event = await pipeline.resolve(event)
    """

    def __init__(self, decoder: FrameDecoder, enricher: Enricher | None = None) -> None:
        self._decoder = decoder
        self._enricher = enricher

    @property
    def decoder(self) -> FrameDecoder:
        return self._decoder

    @property
    def enricher(self) -> Enricher | None:
        return self._enricher

    @property
    def source(self) -> EventSource:
        return self._decoder.source

    def decode(self, frame: bytes) -> list[PostEvent]:
        """Decode a frame into events."""
        return self._decoder.decode(frame)

    async def resolve(self, event: PostEvent) -> PostEvent | None:
        """Complete an event if needed.

        Returns:
            The complete event, or None when it lacks content and there is
            no enricher to supply it
        """
        if event.is_complete:
            return event
        if self._enricher is None:
            return None
        return await self._enricher.enrich(event)
