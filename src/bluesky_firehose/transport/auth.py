"""
Session authentication.

Exchanges an identifier and app password for a bearer credential via
``com.atproto.server.createSession``, and resolves login details from:
1. Explicit values
2. Environment variables
3. System keyring (optional)
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from bluesky_firehose.config import CREATE_SESSION_PATH
from bluesky_firehose.errors import AuthError, FirehoseError
from bluesky_firehose.telemetry.logger import get_logger

if TYPE_CHECKING:
    from bluesky_firehose.transport.http import HttpTransport

logger = get_logger("bluesky_firehose.transport.auth")

KEYRING_SERVICE = "bluesky"


@dataclass(frozen=True)
class Credential:
    """Bearer credential returned by createSession.

    Expiry is not tracked; a stale token shows up as fetch failures.
    """

    access_jwt: str
    refresh_jwt: str | None = None
    did: str | None = None
    handle: str | None = None
    issued_at: float = field(default_factory=time.time)

    def __repr__(self) -> str:
        return f"Credential(did={self.did!r}, handle={self.handle!r})"


def resolve_login(
    identifier: str | None = None,
    password: str | None = None,
) -> tuple[str | None, str | None]:
    """Resolve login details.

    Resolution order for each value:
    1. Explicit argument
    2. BSKY_IDENTIFIER (or BSKY_EMAIL) / BSKY_PASSWORD
    3. System keyring, service "bluesky", keyed by identifier (password only)

    Returns:
        (identifier, password); either may be None if not found
    """
    identifier = identifier or os.getenv("BSKY_IDENTIFIER") or os.getenv("BSKY_EMAIL")
    if not password:
        password = os.getenv("BSKY_PASSWORD")
    if not password and identifier:
        password = _try_keyring(identifier)
    return identifier, password


def _try_keyring(identifier: str) -> str | None:
    """Try to get the app password from the system keyring."""
    try:
        import keyring
    except ImportError:
        return None

    try:
        return keyring.get_password(KEYRING_SERVICE, identifier)
    except Exception:
        # Keyring backends fail in containers and headless sessions
        logger.debug("Keyring lookup failed", identifier=identifier)
        return None


def _find_access_jwt(body: dict[str, Any]) -> str | None:
    """Find accessJwt, matching the key case-insensitively."""
    for key, value in body.items():
        if key.lower() == "accessjwt" and isinstance(value, str) and value:
            return value
    return None


class SessionAuthenticator:
    """Creates a session against the configured service.

    Example:
        >>> authenticator = SessionAuthenticator(transport)
        >>> credential = await authenticator.authenticate("me@example.com", "app-pw")
    """

    def __init__(self, transport: HttpTransport) -> None:
        self._transport = transport

    async def authenticate(self, identifier: str, password: str) -> Credential:
        """Create a session and return its credential.

        Args:
            identifier: Handle, DID or account email
            password: Account or app password

        Returns:
            Credential holding the access JWT

        Raises:
            AuthError: On empty input, transport failure, non-200 status,
                or a response without an access token
        """
        if not identifier or not password:
            raise AuthError("identifier and password required")

        try:
            response = await self._transport.post(
                CREATE_SESSION_PATH,
                json={"identifier": identifier, "password": password},
                raise_for_status=False,
            )
        except FirehoseError as e:
            raise AuthError(f"Session request failed: {e.message}", cause=e) from e

        if response.status_code != 200:
            error = AuthError(
                f"authentication failed with status: {response.status_code}",
                status_code=response.status_code,
            )
            if response.status_code == 401:
                error.with_hint("Check the identifier and use an app password")
            raise error

        try:
            body = response.json()
        except ValueError as e:
            raise AuthError("Session response is not JSON", cause=e) from e

        if not isinstance(body, dict):
            raise AuthError("Session response is not a JSON object")

        access_jwt = _find_access_jwt(body)
        if not access_jwt:
            raise AuthError("no access token received")

        credential = Credential(
            access_jwt=access_jwt,
            refresh_jwt=body.get("refreshJwt"),
            did=body.get("did"),
            handle=body.get("handle"),
        )
        logger.info("Session created", did=credential.did, handle=credential.handle)
        return credential
