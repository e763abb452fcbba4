"""
Builder for fluent client construction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from bluesky_firehose.config import FirehoseConfig

if TYPE_CHECKING:
    from bluesky_firehose.client.core import FirehoseClient
    from bluesky_firehose.transport.http import HttpTransport


class FirehoseClientBuilder:
    """Builder for creating FirehoseClient instances with custom configuration.

    Example:
        >>> client = await (
        ...     FirehoseClientBuilder()
        ...     .firehose("wss://bsky.network/xrpc/com.atproto.sync.subscribeRepos")
        ...     .collection("app.bsky.feed.post")
        ...     .login("me@example.com", "app-password")
        ...     .build()
        ... )
    """

    def __init__(self) -> None:
        self._overrides: dict[str, Any] = {}
        self._jetstream = False
        self._identifier: str | None = None
        self._password: str | None = None
        self._authenticate = False
        self._transport: HttpTransport | None = None

    def firehose(self, url: str | None = None) -> FirehoseClientBuilder:
        """Use the raw subscribeRepos pipeline (the default).

        Args:
            url: Endpoint override

        Returns:
            Self for chaining
        """
        self._jetstream = False
        if url:
            self._overrides["firehose_url"] = url
        return self

    def jetstream(self, url: str | None = None) -> FirehoseClientBuilder:
        """Use the Jetstream pipeline.

        Args:
            url: Endpoint override

        Returns:
            Self for chaining
        """
        self._jetstream = True
        if url:
            self._overrides["jetstream_url"] = url
        return self

    def collection(self, nsid: str) -> FirehoseClientBuilder:
        """Set the target collection for both pipelines."""
        self._overrides["collection"] = nsid
        self._overrides["collections"] = [nsid]
        return self

    def collections(self, nsids: list[str]) -> FirehoseClientBuilder:
        """Set the wanted Jetstream collections."""
        self._overrides["collections"] = list(nsids)
        return self

    def service_url(self, url: str) -> FirehoseClientBuilder:
        """Set the service used for sessions and post lookups."""
        self._overrides["service_url"] = url
        return self

    def timeout(self, seconds: float) -> FirehoseClientBuilder:
        """Set the HTTP request timeout."""
        self._overrides["http_timeout"] = seconds
        return self

    def max_consecutive_decode_errors(self, n: int | None) -> FirehoseClientBuilder:
        """Set how many bad frames in a row end the subscription (None = never)."""
        self._overrides["max_consecutive_decode_errors"] = n
        return self

    def transport(self, transport: HttpTransport) -> FirehoseClientBuilder:
        """Use an externally owned HTTP transport."""
        self._transport = transport
        return self

    def login(
        self,
        identifier: str | None = None,
        password: str | None = None,
    ) -> FirehoseClientBuilder:
        """Authenticate during build().

        Missing values are resolved from the environment or keyring.
        """
        self._identifier = identifier
        self._password = password
        self._authenticate = True
        return self

    def config(self) -> FirehoseConfig:
        """Resolve the configuration this builder would use."""
        return FirehoseConfig.from_env(**self._overrides)

    async def build(self) -> FirehoseClient:
        """Build the client, authenticating if login() was called.

        Raises:
            AuthError: If authentication fails
        """
        from bluesky_firehose.client.core import FirehoseClient

        config = self.config()
        if self._jetstream:
            client = FirehoseClient.jetstream(config, transport=self._transport)
        else:
            client = FirehoseClient.firehose(config, transport=self._transport)

        if self._authenticate:
            try:
                await client.authenticate(self._identifier, self._password)
            except BaseException:
                await client.close()
                raise
        return client
