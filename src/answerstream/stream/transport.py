"""
Stream Transport
================

Abortable chunked byte-stream collaborator used by the retrier.

A transport opens one HTTP exchange and exposes the response status plus an
async iterator of body chunks, decoded from any content-encoding.
``aclose()`` releases the underlying connection; the retrier guarantees it
is called exactly once per opened response, on every exit path.

Non-streaming side requests (follow-up shuffling) go through ``fetch_json``
on the same client.

Implementations:
    - HttpxTransport: ``httpx.AsyncClient`` streaming request

Example:
    async with HttpxTransport() as transport:
        response = await transport.open("POST", url, {"message": "Hi"})
        try:
            async for chunk in response.chunks():
                ...
        finally:
            await response.aclose()
"""

import logging
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Protocol

import httpx

from answerstream.models.faults import NetworkFault, ParseFault, ServerFault


logger = logging.getLogger(__name__)


class TransportResponse(Protocol):
    """One open streaming response."""

    status: int
    reason: str
    headers: Mapping[str, str]

    def chunks(self) -> AsyncIterator[bytes]:
        """Iterate decoded body chunks as they arrive."""
        ...

    async def aclose(self) -> None:
        """Release the connection."""
        ...


class Transport(Protocol):
    """Opens streaming HTTP exchanges."""

    async def open(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> TransportResponse:
        """
        Send the request and return once response headers arrive.

        Raises:
            httpx.TransportError / OSError: Connection-level failures
        """
        ...

    async def fetch_json(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send a plain request and return its decoded JSON body.

        Raises:
            NetworkFault: Connection-level failure
            ServerFault: Non-2xx status
            ParseFault: Body is not JSON
        """
        ...


class HttpxResponse:
    """TransportResponse backed by a streamed ``httpx.Response``."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self.status = response.status_code
        self.reason = response.reason_phrase
        self.headers = response.headers

    def chunks(self) -> AsyncIterator[bytes]:
        return self._response.aiter_bytes()

    async def aclose(self) -> None:
        await self._response.aclose()


class HttpxTransport:
    """
    Transport on top of ``httpx.AsyncClient``.

    Timeouts are enforced by the retrier, so the client is created without
    a read timeout of its own.

    Attributes:
        headers: Extra headers sent with every request
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Dict[str, str]] = None,
        connect_timeout: float = 10.0,
    ) -> None:
        """
        Initialize transport.

        Args:
            client: Client to use; one is created (and owned) if omitted
            headers: Extra headers sent with every request
            connect_timeout: Seconds allowed to establish a connection
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(None, connect=connect_timeout),
        )
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            **(headers or {}),
        }

    async def open(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> HttpxResponse:
        request = self._client.build_request(
            method,
            url,
            json=body,
            headers=self.headers,
        )
        logger.debug(f"Opening {method} {url}")
        response = await self._client.send(request, stream=True)
        return HttpxResponse(response)

    async def fetch_json(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        logger.debug(f"Fetching {method} {url}")
        try:
            response = await self._client.request(
                method,
                url,
                json=body,
                headers={**self.headers, "Accept": "application/json"},
            )
        except (httpx.TransportError, OSError) as e:
            raise NetworkFault(str(e) or type(e).__name__) from e

        if not response.is_success:
            raise ServerFault(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ParseFault(f"Invalid JSON response: {e}") from e

    async def aclose(self) -> None:
        """Close the client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args) -> None:
        """Async context manager exit."""
        await self.aclose()
