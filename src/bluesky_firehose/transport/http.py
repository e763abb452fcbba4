"""HTTP 传输层：基于 httpx 的异步 XRPC 客户端。

HTTP transport using httpx for XRPC requests.

Provides:
- Configurable timeouts
- Bearer token headers
- Conversion of httpx failures to TransportError / RemoteError
"""

from __future__ import annotations

import os
from contextlib import suppress
from typing import Any

import httpx

from bluesky_firehose.errors import RemoteError, TransportError

_DEFAULT_TIMEOUT = 30.0
_DEFAULT_CONNECT_TIMEOUT = 10.0

_UA_VERSION: str | None = None


def _trust_env_enabled() -> bool:
    """Use env proxy settings only when explicitly enabled."""
    return os.getenv("FIREHOSE_HTTP_TRUST_ENV", "0") == "1"


def _get_ua_version() -> str:
    """Get package version for User-Agent (cached)."""
    global _UA_VERSION
    if _UA_VERSION is None:
        try:
            from importlib.metadata import version

            _UA_VERSION = version("bluesky-firehose")
        except Exception:
            _UA_VERSION = "0.3.0"
    return _UA_VERSION


class HttpTransport:
    """HTTP transport for XRPC calls.

    Example:
        >>> transport = HttpTransport("https://bsky.social")
        >>> response = await transport.get(
        ...     "/xrpc/app.bsky.feed.getPostThread",
        ...     params={"uri": uri},
        ...     token=credential.access_jwt,
        ... )
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = None,
        connect_timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize HTTP transport.

        Args:
            base_url: Service base URL (e.g., 'https://bsky.social')
            timeout: Request timeout in seconds
            connect_timeout: Connect timeout in seconds
            client: Externally owned httpx client (not closed by close())
        """
        self._base_url = base_url.rstrip("/")

        self._timeout = timeout
        if self._timeout is None:
            env_timeout = os.getenv("FIREHOSE_HTTP_TIMEOUT_SECS")
            if env_timeout:
                with suppress(ValueError):
                    self._timeout = float(env_timeout)
        if self._timeout is None:
            self._timeout = _DEFAULT_TIMEOUT
        self._connect_timeout = connect_timeout or _DEFAULT_CONNECT_TIMEOUT

        self._client = client
        self._owns_client = client is None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout, connect=self._connect_timeout),
                trust_env=_trust_env_enabled(),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    def _build_headers(self, token: str | None = None) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": f"bluesky-firehose/{_get_ua_version()}",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        token: str | None = None,
        raise_for_status: bool = True,
    ) -> httpx.Response:
        """Make an HTTP request.

        Args:
            method: HTTP method
            path: Request path (relative to base URL)
            json: JSON body
            params: Query parameters
            token: Bearer token
            raise_for_status: Raise RemoteError on 4xx/5xx

        Returns:
            HTTP response

        Raises:
            TransportError: On network/connection errors
            RemoteError: On XRPC error responses
        """
        client = self._get_client()
        url = f"{self._base_url}{path}"

        try:
            response = await client.request(
                method=method,
                url=url,
                json=json,
                params=params,
                headers=self._build_headers(token),
            )
        except httpx.ConnectError as e:
            raise TransportError(f"Connection failed: {e}", url=url, cause=e) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {e}", url=url, cause=e) from e
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error: {e}", url=url, cause=e) from e

        if raise_for_status and response.status_code >= 400:
            body = None
            with suppress(ValueError):
                body = response.json()
            raise RemoteError.from_response(response.status_code, body)

        return response

    async def post(
        self,
        path: str,
        json: dict[str, Any],
        *,
        token: str | None = None,
        raise_for_status: bool = True,
    ) -> httpx.Response:
        """Make a POST request."""
        return await self.request(
            "POST", path, json=json, token=token, raise_for_status=raise_for_status
        )

    async def get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> httpx.Response:
        """Make a GET request."""
        return await self.request("GET", path, params=params, token=token)

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
