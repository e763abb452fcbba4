"""Tests for configuration."""

import pytest
from pydantic import ValidationError

from bluesky_firehose.config import (
    DEFAULT_COLLECTION,
    DEFAULT_FIREHOSE_URL,
    FirehoseConfig,
)


class TestFirehoseConfig:
    """Tests for FirehoseConfig."""

    def test_defaults(self) -> None:
        config = FirehoseConfig()
        assert config.firehose_url == DEFAULT_FIREHOSE_URL
        assert config.collection == DEFAULT_COLLECTION
        assert config.collections == [DEFAULT_COLLECTION]
        assert config.max_consecutive_decode_errors == 100

    def test_service_url_trailing_slash(self) -> None:
        assert FirehoseConfig(service_url="https://pds.example/").service_url == "https://pds.example"

    def test_rejects_unknown_fields(self) -> None:
        with pytest.raises(ValidationError):
            FirehoseConfig(unknown=1)

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FIREHOSE_URL", "wss://relay.example/xrpc/com.atproto.sync.subscribeRepos")
        monkeypatch.setenv("BSKY_SERVICE_URL", "https://pds.example")
        monkeypatch.setenv("FIREHOSE_HTTP_TIMEOUT_SECS", "5")
        monkeypatch.setenv("FIREHOSE_COLLECTIONS", "app.bsky.feed.post, app.bsky.feed.like")

        config = FirehoseConfig.from_env()

        assert config.firehose_url == "wss://relay.example/xrpc/com.atproto.sync.subscribeRepos"
        assert config.service_url == "https://pds.example"
        assert config.http_timeout == 5.0
        assert config.collections == ["app.bsky.feed.post", "app.bsky.feed.like"]
        assert config.collection == "app.bsky.feed.post"

    def test_from_env_bad_timeout_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FIREHOSE_HTTP_TIMEOUT_SECS", "soon")
        assert FirehoseConfig.from_env().http_timeout == 30.0

    def test_overrides_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BSKY_SERVICE_URL", "https://pds.example")
        config = FirehoseConfig.from_env(service_url="https://other.example")
        assert config.service_url == "https://other.example"
