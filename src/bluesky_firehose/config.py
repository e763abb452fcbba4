"""
Client configuration.

Endpoint URLs, timeouts and stream limits, with environment overrides.
"""

from __future__ import annotations

import os
from contextlib import suppress

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_FIREHOSE_URL = "wss://bsky.network/xrpc/com.atproto.sync.subscribeRepos"
DEFAULT_JETSTREAM_URL = "wss://jetstream2.us-east.bsky.network/subscribe"
DEFAULT_SERVICE_URL = "https://bsky.social"
DEFAULT_COLLECTION = "app.bsky.feed.post"

# XRPC methods used by the HTTP side
CREATE_SESSION_PATH = "/xrpc/com.atproto.server.createSession"
GET_POST_THREAD_PATH = "/xrpc/app.bsky.feed.getPostThread"


class FirehoseConfig(BaseModel):
    """Configuration shared by both pipelines.

    Example:
        >>> config = FirehoseConfig.from_env()
        >>> config = FirehoseConfig(collections=["app.bsky.feed.post"], http_timeout=5)
    """

    model_config = ConfigDict(extra="forbid")

    firehose_url: str = Field(default=DEFAULT_FIREHOSE_URL, description="Raw subscribeRepos endpoint")
    jetstream_url: str = Field(default=DEFAULT_JETSTREAM_URL, description="Jetstream endpoint")
    service_url: str = Field(default=DEFAULT_SERVICE_URL, description="PDS/AppView base URL")
    collection: str = Field(default=DEFAULT_COLLECTION, description="Target collection (firehose)")
    collections: list[str] = Field(
        default_factory=lambda: [DEFAULT_COLLECTION],
        description="Wanted collections (Jetstream)",
    )
    http_timeout: float = Field(default=30.0, gt=0, description="HTTP request timeout (s)")
    connect_timeout: float = Field(default=10.0, gt=0, description="Connect timeout (s)")
    heartbeat: float | None = Field(default=30.0, description="Websocket ping interval (s)")
    max_frame_size: int = Field(default=16 * 1024 * 1024, ge=0, description="0 = unlimited")
    max_consecutive_decode_errors: int | None = Field(default=100, ge=1)

    @field_validator("service_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def from_env(cls, **overrides: object) -> FirehoseConfig:
        """Build a config from environment variables.

        Reads FIREHOSE_URL, JETSTREAM_URL, BSKY_SERVICE_URL,
        FIREHOSE_HTTP_TIMEOUT_SECS and FIREHOSE_COLLECTIONS (comma separated).
        Explicit keyword overrides win over the environment.
        """
        values: dict[str, object] = {}
        if url := os.getenv("FIREHOSE_URL"):
            values["firehose_url"] = url
        if url := os.getenv("JETSTREAM_URL"):
            values["jetstream_url"] = url
        if url := os.getenv("BSKY_SERVICE_URL"):
            values["service_url"] = url
        if env_timeout := os.getenv("FIREHOSE_HTTP_TIMEOUT_SECS"):
            with suppress(ValueError):
                values["http_timeout"] = float(env_timeout)
        if env_collections := os.getenv("FIREHOSE_COLLECTIONS"):
            collections = [c.strip() for c in env_collections.split(",") if c.strip()]
            if collections:
                values["collections"] = collections
                values["collection"] = collections[0]
        values.update(overrides)
        return cls.model_validate(values)
