"""
Transport layer - network access for the client.

Provides:
- StreamConnection / WebSocketConnection: aiohttp websocket frames
- HttpTransport: httpx-based XRPC requests
- SessionAuthenticator: createSession credential exchange
"""

from bluesky_firehose.transport.auth import (
    Credential,
    SessionAuthenticator,
    resolve_login,
)
from bluesky_firehose.transport.http import HttpTransport
from bluesky_firehose.transport.websocket import StreamConnection, WebSocketConnection

__all__ = [
    "Credential",
    "HttpTransport",
    "SessionAuthenticator",
    "StreamConnection",
    "WebSocketConnection",
    "resolve_login",
]
