"""核心客户端实现：连接生命周期、取消与事件消费循环。

Core FirehoseClient implementation.
"""

from __future__ import annotations

from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Any

from bluesky_firehose.client.cancel import CancelReason, CancelToken
from bluesky_firehose.client.stats import SubscriptionStats
from bluesky_firehose.config import FirehoseConfig
from bluesky_firehose.errors import (
    FirehoseError,
    StreamCancelledError,
    StreamConnectionError,
)
from bluesky_firehose.pipeline import (
    Dispatcher,
    FirehoseDecoder,
    JetstreamDecoder,
    Pipeline,
    PostFetcher,
    post_text,
    whole_event,
)
from bluesky_firehose.telemetry.logger import (
    LogContext,
    clear_log_context,
    get_logger,
    set_log_context,
)
from bluesky_firehose.transport import (
    HttpTransport,
    SessionAuthenticator,
    WebSocketConnection,
    resolve_login,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from bluesky_firehose.client.builder import FirehoseClientBuilder
    from bluesky_firehose.pipeline.dispatch import ErrorCallback, Handler
    from bluesky_firehose.transport import Credential, StreamConnection
    from bluesky_firehose.types.identifiers import ResourceIdentifier

    ConnectionFactory = Callable[[], Awaitable[StreamConnection]]

logger = get_logger("bluesky_firehose.client")


class SubscriptionState(str, Enum):
    """Lifecycle of a client instance.

    IDLE -> CONNECTING -> STREAMING -> {CLOSING, FAILED} -> CLOSED
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSING = "closing"
    FAILED = "failed"
    CLOSED = "closed"


class FirehoseClient:
    """Client for one Bluesky stream subscription.

    A client runs at most one subscription. Once it ends, whether by
    cancellation, close() or a fatal error, the instance is closed for good;
    build a new client to reconnect.

    Example:
        >>> client = FirehoseClient.firehose()
        >>> await client.authenticate("me@example.com", "app-password")
        >>> await client.subscribe(print)

        >>> # Jetstream needs no authentication
        >>> client = FirehoseClient.jetstream(collections=["app.bsky.feed.post"])
        >>> handle, token = create_cancel_pair()
        >>> task = asyncio.create_task(client.subscribe(print, cancel_token=token))
        >>> handle.cancel()
    """

    def __init__(
        self,
        pipeline: Pipeline,
        *,
        connect: ConnectionFactory | None = None,
        connection: StreamConnection | None = None,
        transport: HttpTransport | None = None,
        fetcher: PostFetcher | None = None,
        config: FirehoseConfig | None = None,
        endpoint: str | None = None,
        owns_transport: bool = True,
    ) -> None:
        """Initialize the client (internal use).

        Use FirehoseClient.firehose(), FirehoseClient.jetstream() or the
        builder for public construction.

        Args:
            pipeline: Decoder and optional enricher for this stream
            connect: Factory opening the stream connection on subscribe
            connection: Already-open connection (takes precedence over connect)
            transport: HTTP transport for authentication and lookups
            fetcher: Post fetcher sharing the stored credential
            config: Configuration in effect
            endpoint: Stream URL, for logs
            owns_transport: Close the transport together with the client
        """
        if connect is None and connection is None:
            raise ValueError("Either connect or connection is required")

        self._pipeline = pipeline
        self._connect = connect
        self._connection = connection
        self._config = config or FirehoseConfig()
        self._transport = transport
        self._owns_transport = owns_transport
        self._fetcher = fetcher
        if self._fetcher is None and isinstance(pipeline.enricher, PostFetcher):
            self._fetcher = pipeline.enricher
        self._endpoint = endpoint

        self._state = SubscriptionState.IDLE
        self._close_requested = False
        self._stats: SubscriptionStats | None = None

    @classmethod
    def firehose(
        cls,
        config: FirehoseConfig | None = None,
        *,
        collection: str | None = None,
        transport: HttpTransport | None = None,
    ) -> FirehoseClient:
        """Create a client for the raw subscribeRepos firehose.

        Matching creations are enriched through getPostThread, so call
        authenticate() before subscribing.

        Args:
            config: Configuration (default: FirehoseConfig.from_env())
            collection: Target collection override
            transport: Externally owned HTTP transport
        """
        config = config or FirehoseConfig.from_env()
        owns_transport = transport is None
        transport = transport or HttpTransport(
            config.service_url,
            timeout=config.http_timeout,
            connect_timeout=config.connect_timeout,
        )
        fetcher = PostFetcher(transport)
        pipeline = Pipeline(FirehoseDecoder(collection or config.collection), enricher=fetcher)
        connect = partial(
            WebSocketConnection.open,
            config.firehose_url,
            heartbeat=config.heartbeat,
            connect_timeout=config.connect_timeout,
            max_frame_size=config.max_frame_size,
        )
        return cls(
            pipeline,
            connect=connect,
            transport=transport,
            fetcher=fetcher,
            config=config,
            endpoint=config.firehose_url,
            owns_transport=owns_transport,
        )

    @classmethod
    def jetstream(
        cls,
        config: FirehoseConfig | None = None,
        *,
        collections: list[str] | None = None,
        transport: HttpTransport | None = None,
    ) -> FirehoseClient:
        """Create a client for a Jetstream endpoint.

        Args:
            config: Configuration (default: FirehoseConfig.from_env())
            collections: Wanted collections override
            transport: Externally owned HTTP transport (used by fetch_post)
        """
        config = config or FirehoseConfig.from_env()
        wanted = collections or config.collections
        owns_transport = transport is None
        transport = transport or HttpTransport(
            config.service_url,
            timeout=config.http_timeout,
            connect_timeout=config.connect_timeout,
        )
        connect = partial(
            WebSocketConnection.open,
            config.jetstream_url,
            params=[("wantedCollections", c) for c in wanted],
            heartbeat=config.heartbeat,
            connect_timeout=config.connect_timeout,
            max_frame_size=config.max_frame_size,
        )
        return cls(
            Pipeline(JetstreamDecoder(wanted)),
            connect=connect,
            transport=transport,
            fetcher=PostFetcher(transport),
            config=config,
            endpoint=config.jetstream_url,
            owns_transport=owns_transport,
        )

    @classmethod
    def builder(cls) -> FirehoseClientBuilder:
        """Get a builder for advanced configuration."""
        from bluesky_firehose.client.builder import FirehoseClientBuilder

        return FirehoseClientBuilder()

    @property
    def state(self) -> SubscriptionState:
        """Current lifecycle state."""
        return self._state

    @property
    def stats(self) -> SubscriptionStats | None:
        """Statistics of the current or last subscription."""
        return self._stats

    @property
    def credential(self) -> Credential | None:
        """Stored session credential, if authenticated."""
        return self._fetcher.credential if self._fetcher else None

    @property
    def pipeline(self) -> Pipeline:
        return self._pipeline

    def _ensure_usable(self) -> None:
        if self._state is SubscriptionState.CLOSED or self._close_requested:
            raise FirehoseError("Client is closed")

    async def authenticate(
        self,
        identifier: str | None = None,
        password: str | None = None,
    ) -> Credential:
        """Create a session and keep its credential for enrichment.

        Missing arguments are resolved from BSKY_IDENTIFIER / BSKY_EMAIL,
        BSKY_PASSWORD and the keyring.

        Raises:
            AuthError: If the session cannot be created
            FirehoseError: If called on a closed or streaming client
        """
        self._ensure_usable()
        if self._state is not SubscriptionState.IDLE:
            raise FirehoseError("authenticate() must be called before subscribing")
        if self._transport is None or self._fetcher is None:
            raise FirehoseError("Client has no HTTP transport")

        identifier, password = resolve_login(identifier, password)
        credential = await SessionAuthenticator(self._transport).authenticate(
            identifier or "", password or ""
        )
        self._fetcher.credential = credential
        return credential

    async def fetch_post(self, uri: ResourceIdentifier | str) -> str:
        """Fetch the text of one post.

        Raises:
            FetchError: If the lookup fails
        """
        self._ensure_usable()
        if self._fetcher is None:
            raise FirehoseError("Client has no HTTP transport")
        return await self._fetcher.fetch(uri)

    async def subscribe(
        self,
        handler: Handler,
        *,
        on_error: ErrorCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> None:
        """Consume the stream, calling ``handler(text)`` for each new post.

        Runs until cancelled or a fatal error occurs. Malformed frames and
        failed lookups are reported to ``on_error`` and skipped.

        Args:
            handler: Called with the post text; sync or async
            on_error: Optional callback for every soft and fatal error
            cancel_token: Token that stops the subscription when cancelled

        Raises:
            StreamCancelledError: When cancelled or the client is closed
            HandlerError: When the handler raises
            StreamConnectionError: When the connection fails
        """
        await self._run(Dispatcher(handler, on_error, argument=post_text), cancel_token)

    async def subscribe_events(
        self,
        handler: Handler,
        *,
        on_error: ErrorCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> None:
        """Like subscribe(), but the handler receives the whole PostEvent."""
        await self._run(Dispatcher(handler, on_error, argument=whole_event), cancel_token)

    async def _run(self, dispatcher: Dispatcher, token: CancelToken | None) -> None:
        if self._state is SubscriptionState.CLOSED or self._close_requested:
            raise StreamConnectionError("Client is closed", url=self._endpoint)
        if self._state is not SubscriptionState.IDLE:
            raise StreamConnectionError("A subscription is already running", url=self._endpoint)

        token = token or CancelToken()
        token.ensure_timeout()
        stats = SubscriptionStats()
        self._stats = stats
        set_log_context(
            LogContext(
                subscription_id=stats.subscription_id,
                endpoint=self._endpoint,
                source=self._pipeline.source.value,
            )
        )

        def on_cancel(reason: CancelReason) -> Awaitable[None] | None:
            if self._connection is not None:
                return self._connection.close()
            return None

        self._state = SubscriptionState.CONNECTING
        stats.record_start()
        token.on_cancel(on_cancel)
        try:
            self._check_cancelled(token)
            if self._connection is None:
                assert self._connect is not None
                self._connection = await self._connect()
            self._check_cancelled(token)

            self._state = SubscriptionState.STREAMING
            logger.info("Subscription started")
            await self._consume(dispatcher, token, stats)
        except StreamCancelledError as e:
            self._state = SubscriptionState.CLOSING
            logger.info("Subscription cancelled", reason=e.reason.value if e.reason else None)
            raise
        except FirehoseError as e:
            self._state = SubscriptionState.FAILED
            logger.error("Subscription failed", error=str(e))
            await dispatcher.report(e)
            raise
        finally:
            token.remove_callback(on_cancel)
            await self._release()
            self._state = SubscriptionState.CLOSED
            stats.record_end()
            logger.info("Subscription ended", **stats.to_dict())
            clear_log_context()

    async def _consume(
        self,
        dispatcher: Dispatcher,
        token: CancelToken,
        stats: SubscriptionStats,
    ) -> None:
        """Read-decode-enrich-dispatch loop. Only returns by raising."""
        assert self._connection is not None
        limit = self._config.max_consecutive_decode_errors
        consecutive_errors = 0

        while True:
            self._check_cancelled(token)
            try:
                frame = await self._connection.read_frame()
            except StreamConnectionError:
                # A close issued by cancel() or close() surfaces here
                self._check_cancelled(token)
                raise
            stats.frames_read += 1

            try:
                events = self._pipeline.decode(frame)
            except FirehoseError as e:
                if e.is_fatal:
                    raise
                stats.decode_errors += 1
                consecutive_errors += 1
                logger.warning("Skipping undecodable frame", error=str(e))
                await dispatcher.report(e)
                if limit is not None and consecutive_errors >= limit:
                    raise StreamConnectionError(
                        f"{consecutive_errors} consecutive frames failed to decode",
                        url=self._endpoint,
                        cause=e,
                    ).with_hint("Check that the endpoint URL matches the stream kind") from e
                continue
            consecutive_errors = 0
            stats.events_decoded += len(events)

            for event in events:
                self._check_cancelled(token)
                try:
                    resolved = await self._pipeline.resolve(event)
                except FirehoseError as e:
                    if e.is_fatal:
                        raise
                    stats.fetch_errors += 1
                    logger.warning("Skipping event after failed lookup", error=str(e))
                    await dispatcher.report(e)
                    continue
                if resolved is None:
                    continue

                await dispatcher.dispatch(resolved)
                stats.record_dispatch()

    def _check_cancelled(self, token: CancelToken) -> None:
        if token.is_cancelled:
            raise StreamCancelledError(token.reason)
        if self._close_requested:
            raise StreamCancelledError(CancelReason.SHUTDOWN)

    async def _release(self) -> None:
        """Close the connection and the owned HTTP transport."""
        if self._connection is not None:
            try:
                await self._connection.close()
            except Exception:
                logger.exception("Error closing connection")
        if self._transport is not None and self._owns_transport:
            await self._transport.close()

    async def close(self) -> None:
        """Close the client. Idempotent.

        A running subscription ends with StreamCancelledError (SHUTDOWN).
        """
        if self._state is SubscriptionState.CLOSED:
            return
        self._close_requested = True
        running = self._state in (SubscriptionState.CONNECTING, SubscriptionState.STREAMING)
        if running:
            self._state = SubscriptionState.CLOSING
        await self._release()
        if not running:
            self._state = SubscriptionState.CLOSED

    async def __aenter__(self) -> FirehoseClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
