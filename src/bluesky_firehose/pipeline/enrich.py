"""
Post enrichment via ``app.bsky.feed.getPostThread``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from bluesky_firehose.config import GET_POST_THREAD_PATH
from bluesky_firehose.errors import FetchError, FirehoseError, RemoteError
from bluesky_firehose.pipeline.base import Enricher
from bluesky_firehose.types.identifiers import ResourceIdentifier

if TYPE_CHECKING:
    from bluesky_firehose.transport.auth import Credential
    from bluesky_firehose.transport.http import HttpTransport
    from bluesky_firehose.types.events import PostEvent


def extract_post_text(body: Any) -> str | None:
    """Read ``thread.post.record.text`` from a getPostThread response."""
    node = body
    for key in ("thread", "post", "record", "text"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node if isinstance(node, str) else None


class PostFetcher(Enricher):
    """Resolves post URIs to their text.

    The credential is set once after authentication and only read here.
    Without one, requests go out unauthenticated.

    Example:
        >>> fetcher = PostFetcher(transport)
        >>> fetcher.credential = await authenticator.authenticate(email, password)
        >>> text = await fetcher.fetch("at://did:plc:x/app.bsky.feed.post/3k...")
    """

    def __init__(
        self,
        transport: HttpTransport,
        credential: Credential | None = None,
    ) -> None:
        self._transport = transport
        self.credential = credential

    async def fetch(self, uri: ResourceIdentifier | str) -> str:
        """Fetch the text of a post.

        Args:
            uri: Post identifier or AT-URI string

        Returns:
            Post text

        Raises:
            FetchError: On transport failure, error status, or a body without
                ``thread.post.record.text``
        """
        uri_str = uri.uri if isinstance(uri, ResourceIdentifier) else uri
        token = self.credential.access_jwt if self.credential else None

        try:
            response = await self._transport.get(
                GET_POST_THREAD_PATH,
                params={"uri": uri_str},
                token=token,
            )
        except RemoteError as e:
            raise FetchError(
                f"Post lookup failed: {e.message}",
                uri=uri_str,
                status_code=e.status_code,
                cause=e,
            ) from e
        except FirehoseError as e:
            raise FetchError(f"Post lookup failed: {e.message}", uri=uri_str, cause=e) from e

        if not response.is_success:
            raise FetchError(
                f"Post lookup failed with status: {response.status_code}",
                uri=uri_str,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise FetchError(
                "Post lookup returned invalid JSON",
                uri=uri_str,
                status_code=response.status_code,
                cause=e,
            ) from e

        text = extract_post_text(body)
        if text is None:
            raise FetchError(
                "Post lookup response has no thread.post.record.text",
                uri=uri_str,
                status_code=response.status_code,
            )
        return text

    async def enrich(self, event: PostEvent) -> PostEvent:
        if event.uri is None:
            raise FetchError("Event has no record identifier to fetch")
        text = await self.fetch(event.uri)
        return event.model_copy(update={"text": text})
