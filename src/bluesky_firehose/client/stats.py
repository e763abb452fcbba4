"""
Statistics for a subscription run.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass
class SubscriptionStats:
    """Counters and timings for one subscription.

    Attributes:
        subscription_id: Client-generated ID, also used as log context
        frames_read: Frames read from the connection
        events_decoded: Matching events produced by the decoder
        events_dispatched: Events delivered to the handler
        decode_errors: Frames skipped as malformed
        fetch_errors: Events skipped because enrichment failed
        time_to_first_event_ms: Time from start to the first dispatch
        duration_ms: Total run time
    """

    subscription_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    frames_read: int = 0
    events_decoded: int = 0
    events_dispatched: int = 0
    decode_errors: int = 0
    fetch_errors: int = 0
    time_to_first_event_ms: float | None = None
    duration_ms: float = 0.0

    _start_time: float = field(default_factory=time.monotonic, repr=False)
    _first_event_time: float | None = field(default=None, repr=False)

    def record_start(self) -> None:
        """Record the start time."""
        self._start_time = time.monotonic()

    def record_dispatch(self) -> None:
        """Count a delivered event."""
        self.events_dispatched += 1
        if self._first_event_time is None:
            self._first_event_time = time.monotonic()
            self.time_to_first_event_ms = (self._first_event_time - self._start_time) * 1000

    def record_end(self) -> None:
        """Record the end time and calculate duration."""
        self.duration_ms = (time.monotonic() - self._start_time) * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscription_id": self.subscription_id,
            "frames_read": self.frames_read,
            "events_decoded": self.events_decoded,
            "events_dispatched": self.events_dispatched,
            "decode_errors": self.decode_errors,
            "fetch_errors": self.fetch_errors,
            "time_to_first_event_ms": self.time_to_first_event_ms,
            "duration_ms": self.duration_ms,
        }
