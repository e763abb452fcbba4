#!/usr/bin/env python3
"""
Firehose example.

This example subscribes to the raw relay firehose, looks up each new post
through an authenticated session, and prints its text until Ctrl+C.

Usage:
    export BSKY_EMAIL="you@example.com"
    export BSKY_PASSWORD="your-app-password"
    python examples/firehose_posts.py
"""

import asyncio
import contextlib
import signal

from bluesky_firehose import (
    CancelReason,
    FirehoseClient,
    FirehoseError,
    StreamCancelledError,
    create_cancel_pair,
)
from bluesky_firehose.telemetry import LogLevel, StreamLogger


async def main() -> None:
    """Run firehose example."""
    StreamLogger.configure(level=LogLevel.INFO, format="text")

    client = await FirehoseClient.builder().firehose().login().build()
    handle, token = create_cancel_pair()

    # Ctrl+C stops the subscription cleanly
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, handle.cancel, CancelReason.SHUTDOWN)

    def on_error(error: FirehoseError) -> None:
        print(f"[skipped: {error.message}]")

    try:
        await client.subscribe(
            lambda text: print(f"New post: {text}"),
            on_error=on_error,
            cancel_token=token,
        )
    except StreamCancelledError:
        pass
    finally:
        await client.close()

    stats = client.stats
    if stats is not None:
        print(f"\nDelivered {stats.events_dispatched} posts from {stats.frames_read} frames")


if __name__ == "__main__":
    asyncio.run(main())
