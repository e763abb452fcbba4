"""
Pipeline layer - frame processing.

This module turns stream frames into delivered events:
- FrameDecoder: frame bytes -> PostEvents (FirehoseDecoder, JetstreamDecoder)
- Enricher: fills in record content (PostFetcher)
- Dispatcher: ordered delivery to the caller's handler
"""

from bluesky_firehose.pipeline.base import Enricher, FrameDecoder, Pipeline
from bluesky_firehose.pipeline.dispatch import Dispatcher, post_text, whole_event
from bluesky_firehose.pipeline.enrich import PostFetcher, extract_post_text
from bluesky_firehose.pipeline.firehose import FirehoseDecoder, split_frame
from bluesky_firehose.pipeline.jetstream import JetstreamDecoder

__all__ = [
    "Dispatcher",
    "Enricher",
    "FirehoseDecoder",
    "FrameDecoder",
    "JetstreamDecoder",
    "Pipeline",
    "PostFetcher",
    "extract_post_text",
    "post_text",
    "split_frame",
    "whole_event",
]
