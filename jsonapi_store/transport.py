"""
Transport collaborator for the store.

The store never talks to the network directly. It hands a url, method,
body and headers to a Transport and interprets the Response it gets back:
- Transport / Response: the protocol any collaborator must satisfy
- TransportResponse: a buffered response value
- HttpxTransport: the default implementation on httpx.AsyncClient

No retry or timeout policy lives in the store; a transport that wants
retries implements them itself.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from .config import StoreSettings
from .errors import TransportError

logger = logging.getLogger(__name__)


@runtime_checkable
class Response(Protocol):
    """What the store reads from a transport's answer."""

    status: int

    async def json(self) -> Any:
        """Decoded body, None when empty. Raises ValueError if it is not JSON."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Issue a request and return its response.

    Implementations raise on network failure; any status code, including
    4xx/5xx, is a normal response.
    """

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        body: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> Response:
        ...


@dataclass
class TransportResponse:
    """Fully buffered response.

    Attributes:
        status: HTTP status code
        body: Raw response body
        headers: Response headers
    """

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    async def json(self) -> Any:
        if not self.body.strip():
            return None
        return json.loads(self.body)


class HttpxTransport:
    """Transport backed by an httpx.AsyncClient.

    Example:
        >>> transport = HttpxTransport(StoreSettings(base_url="https://api.example.com"))
        >>> response = await transport.fetch("https://api.example.com/todos")
        >>> response.status
        200
    """

    def __init__(
        self,
        settings: StoreSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize transport.

        Args:
            settings: Timeout and default headers
            client: Pre-built client (e.g. with a MockTransport in tests)
        """
        settings = settings or StoreSettings()
        self._client = client or httpx.AsyncClient(
            timeout=settings.timeout,
            headers=settings.default_headers,
        )

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        body: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> TransportResponse:
        """Send one request.

        Raises:
            TransportError: If httpx fails before a response arrives
        """
        try:
            response = await self._client.request(method, url, content=body, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}", url=url) from e

        logger.debug(f"{method} {url} -> {response.status_code}")
        return TransportResponse(
            status=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        """Close the underlying client."""
        await self._client.aclose()
