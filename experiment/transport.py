"""
HTTP transport used by the fetcher.

The fetcher only needs "send this body, give me a response or an error
within the deadline". `HttpxTransport` is the default implementation; any
object with a compatible ``send`` coroutine can be injected instead.
"""

import asyncio
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

import httpx

from experiment.errors import FetchTimeoutError, NetworkError


@dataclass
class TransportResponse:
    """An HTTP response of any status."""

    status_code: int
    body: bytes


class Transport(Protocol):
    """Sends one POST request with a hard deadline."""

    async def send(
        self,
        url: str,
        payload: bytes,
        headers: Mapping[str, str],
        timeout_millis: float,
    ) -> TransportResponse:
        """
        Raises:
            FetchTimeoutError: No response before the deadline
            NetworkError: Connection-level failure
        """
        ...

    async def aclose(self) -> None:
        ...


class HttpxTransport:
    """
    Transport backed by ``httpx.AsyncClient``.

    Example:
        ```python
        transport = HttpxTransport()
        response = await transport.send(url, b"{}", headers, timeout_millis=1000)
        await transport.aclose()
        ```
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the transport.

        Args:
            http_client: Client to send requests with. When omitted the
                transport creates one and closes it in aclose().
        """
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient()

    async def send(
        self,
        url: str,
        payload: bytes,
        headers: Mapping[str, str],
        timeout_millis: float,
    ) -> TransportResponse:
        timeout = timeout_millis / 1000

        try:
            # httpx timeouts apply per phase; wait_for bounds the whole request
            response = await asyncio.wait_for(
                self._http_client.post(
                    url,
                    content=payload,
                    headers=dict(headers),
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            raise FetchTimeoutError(f"No response from {url} within {timeout_millis} ms") from None
        except httpx.TransportError as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

        return TransportResponse(status_code=response.status_code, body=response.content)

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._http_client.aclose()
