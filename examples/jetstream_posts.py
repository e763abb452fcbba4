#!/usr/bin/env python3
"""
Jetstream example.

Jetstream messages already carry the post record, so no login is needed.
This example prints posts for ten seconds, then prints subscription stats.

Usage:
    python examples/jetstream_posts.py
"""

import asyncio

from bluesky_firehose import CancelToken, FirehoseClient, PostEvent, StreamCancelledError


async def main() -> None:
    """Run Jetstream example."""
    client = FirehoseClient.jetstream(collections=["app.bsky.feed.post"])

    async def show(event: PostEvent) -> None:
        author = event.did or "unknown"
        print(f"{author}: {event.text}")

    try:
        # Stop after ten seconds
        await client.subscribe_events(show, cancel_token=CancelToken(timeout=10))
    except StreamCancelledError as e:
        print(f"\n[{e.message}]")

    stats = client.stats
    if stats is not None:
        print(f"Posts: {stats.events_dispatched}")
        if stats.time_to_first_event_ms is not None:
            print(f"Time to first post: {stats.time_to_first_event_ms:.0f}ms")


if __name__ == "__main__":
    asyncio.run(main())
