"""
Client layer - User-facing API.

This module provides:
- FirehoseClient: Stream subscription with connection lifecycle
- FirehoseClientBuilder: Fluent construction
- Cancellation: Tokens and handles for stopping a subscription
- SubscriptionStats: Per-run counters
"""

from bluesky_firehose.client.builder import FirehoseClientBuilder
from bluesky_firehose.client.cancel import (
    CancelHandle,
    CancelReason,
    CancelState,
    CancelToken,
    create_cancel_pair,
)
from bluesky_firehose.client.core import FirehoseClient, SubscriptionState
from bluesky_firehose.client.stats import SubscriptionStats

__all__ = [
    "CancelHandle",
    "CancelReason",
    "CancelState",
    "CancelToken",
    "FirehoseClient",
    "FirehoseClientBuilder",
    "SubscriptionState",
    "SubscriptionStats",
    "create_cancel_pair",
]
