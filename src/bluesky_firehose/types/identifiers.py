"""
AT-URI resource identifiers.

A record is addressed as ``at://{repo}/{collection}/{rkey}``.
"""

from __future__ import annotations

from dataclasses import dataclass

AT_URI_SCHEME = "at://"


@dataclass(frozen=True)
class ResourceIdentifier:
    """Canonical address of one repository record.

    Attributes:
        repo: Repository DID (e.g., 'did:plc:abc')
        collection: Record collection NSID (e.g., 'app.bsky.feed.post')
        rkey: Record key within the collection
    """

    repo: str
    collection: str
    rkey: str

    @property
    def uri(self) -> str:
        """Render as an AT-URI."""
        return f"{AT_URI_SCHEME}{self.repo}/{self.collection}/{self.rkey}"

    @property
    def path(self) -> str:
        """Repository path (``collection/rkey``)."""
        return f"{self.collection}/{self.rkey}"

    def __str__(self) -> str:
        return self.uri

    @classmethod
    def from_path(
        cls, repo: str, path: str, collection: str
    ) -> ResourceIdentifier | None:
        """Derive an identifier from a commit operation path.

        Args:
            repo: Repository DID from the commit
            path: Operation path, expected as ``<collection>/<rkey>``
            collection: Target collection

        Returns:
            The identifier, or None if the path is not a record in
            ``collection``
        """
        if not repo:
            return None
        prefix = f"{collection}/"
        if not path.startswith(prefix):
            return None
        rkey = path[len(prefix):]
        if not rkey or "/" in rkey:
            return None
        return cls(repo=repo, collection=collection, rkey=rkey)

    @classmethod
    def parse(cls, uri: str) -> ResourceIdentifier:
        """Parse an AT-URI.

        Raises:
            ValueError: If the URI is not ``at://repo/collection/rkey``
        """
        if not uri.startswith(AT_URI_SCHEME):
            raise ValueError(f"Not an AT-URI: {uri!r}")
        parts = uri[len(AT_URI_SCHEME):].split("/")
        if len(parts) != 3 or not all(parts):
            raise ValueError(f"Expected at://repo/collection/rkey, got {uri!r}")
        return cls(repo=parts[0], collection=parts[1], rkey=parts[2])
