import logging

import httpx

from discovery.cancellation import CancellationToken
from discovery.errors import TransportError
from discovery.repository_interface import Transport

logger = logging.getLogger(__name__)


class HttpxTransport(Transport):
    """
    HTTP transport backed by a single httpx.AsyncClient that follows redirects.
    One instance is created and owned by each RepositoryClient.

    Args:
        timeout (float): Request timeout in seconds.
        http_transport (httpx.AsyncBaseTransport, optional): Low-level transport
            handed to httpx, e.g. httpx.MockTransport or httpx.ASGITransport.
            Defaults to the regular network transport.
    """
    def __init__(self, timeout: float = 30.0, http_transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self._client = httpx.AsyncClient(timeout=timeout, transport=http_transport, follow_redirects=True,
                                         headers={"Accept": "application/json"})
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def get(self, url: str, cancellation: CancellationToken) -> httpx.Response:
        """
        GET an absolute URL.
        Network failures are raised as TransportError;
        the status code is left for the caller to interpret.
        """
        cancellation.raise_if_cancelled()
        logger.debug("GET %s", url)
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {url} failed: {exc}", url=url) from exc
        logger.debug("GET %s -> %s", url, response.status_code)
        return response

    async def aclose(self) -> None:
        """Close the underlying httpx client. Only the first call has an effect."""
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()
