"""
repository_client.py
--------------------
Client for a single service repository.

A repository publishes a description document at its root URL listing the
services it offers. RepositoryClient fetches that document, looks services up
by name and hands out ServiceClient objects bound to them.

Each public operation creates its own ServiceInvocationContext and passes it
down to the internal steps, so one logical operation shares one context.
The description is fetched again on every call; nothing is cached.

Example:
    async with RepositoryClient("https://repo.example.com", LoggingTraceSink()) as repo:
        search = await repo.create_client("search")
        response = await search.get("query?q=httpx")
"""

from __future__ import annotations

import logging

import httpx

from catalog.models import RepositoryDescription, ServiceDescriptor
from discovery.cancellation import CancellationToken
from discovery.context import ServiceInvocationContext
from discovery.errors import (
    InvalidArgumentError,
    ObjectDisposedError,
    ParseError,
    ServiceNotFoundError,
    TransportError,
)
from discovery.repository_interface import TraceSink
from discovery.service_client import ServiceClient
from discovery.trace_sinks import NULL_TRACE_SINK
from discovery.transport import HttpxTransport

logger = logging.getLogger(__name__)

DESCRIPTION_PATH = "/"


def _check_service_name(service_name: str) -> None:
    if not isinstance(service_name, str) or not service_name.strip():
        raise InvalidArgumentError(f"service_name must be a non-blank string, got {service_name!r}")


class RepositoryClient:
    """
    Connection to one repository.

    Args:
        url (str): Absolute root URL of the repository, e.g. "https://repo.example.com".
        trace (TraceSink): Sink for diagnostic events. Defaults to a sink that discards them.
        timeout (float): Request timeout in seconds.
        http_transport (httpx.AsyncBaseTransport, optional): Low-level httpx transport,
            for tests or in-process servers.

    The client owns one HttpxTransport for its whole lifetime; close it with
    ``await client.aclose()`` or use the client as an async context manager.
    """

    def __init__(self, url: str | httpx.URL, trace: TraceSink = NULL_TRACE_SINK, *,
                 timeout: float = 30.0, http_transport: httpx.AsyncBaseTransport | None = None):
        if url is None or not str(url).strip():
            raise InvalidArgumentError("url is required")
        if trace is None:
            raise InvalidArgumentError("trace is required")
        try:
            parsed = httpx.URL(str(url).strip())
        except httpx.InvalidURL as exc:
            raise InvalidArgumentError(f"Invalid repository url: {url!r}") from exc
        if not parsed.is_absolute_url or not parsed.host:
            raise InvalidArgumentError(f"Repository url must be absolute: {url!r}")

        self.url = parsed
        self._trace = trace
        self._transport = HttpxTransport(timeout=timeout, http_transport=http_transport)
        self._closed = False

    async def __aenter__(self) -> RepositoryClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"RepositoryClient(url={str(self.url)!r}, closed={self._closed})"

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        """Release the transport. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._transport.aclose()
        logger.debug("Closed repository client for %s", self.url)

    ######################### public operations #########################

    async def get_repository_description(self, cancellation: CancellationToken | None = None) -> RepositoryDescription:
        """Fetch and parse the repository's description document."""
        with self.create_context(cancellation) as context:
            return await self._get_repository_description(context)

    async def get_service(self, service_name: str,
                          cancellation: CancellationToken | None = None) -> ServiceDescriptor | None:
        """Return the descriptor of the named service (case-insensitive), or None if there is none."""
        _check_service_name(service_name)
        with self.create_context(cancellation) as context:
            return await self._get_service(service_name, context)

    async def create_client(self, service_name: str,
                            cancellation: CancellationToken | None = None) -> ServiceClient:
        """Return a ServiceClient for the named service; ServiceNotFoundError if there is none."""
        _check_service_name(service_name)
        with self.create_context(cancellation) as context:
            return await self._create_client(service_name, context)

    def create_context(self, cancellation: CancellationToken | None = None,
                       base_url: str | httpx.URL | None = None) -> ServiceInvocationContext:
        """Create the invocation context for one operation. Fails once the client is closed."""
        if self._closed:
            raise ObjectDisposedError()
        return ServiceInvocationContext(self._transport, self._trace,
                                        base_url if base_url is not None else self.url,
                                        cancellation or CancellationToken())

    ######################### internal steps #########################

    async def _get_repository_description(self, context: ServiceInvocationContext) -> RepositoryDescription:
        with context.trace.enter_exit("get_repository_description"):
            try:
                response = await context.get(DESCRIPTION_PATH)
                context.cancellation.raise_if_cancelled()
                if not response.is_success:
                    raise TransportError(
                        f"Repository returned {response.status_code} {response.reason_phrase} for {response.url}",
                        url=str(response.url), status_code=response.status_code)
                try:
                    document = response.json()
                except ValueError as exc:
                    raise ParseError(f"Repository description at {response.url} is not valid JSON") from exc
                return RepositoryDescription.from_document(document, context.trace,
                                                           context.resolve_url(DESCRIPTION_PATH))
            except Exception as exc:
                context.trace.error(exc)
                raise

    async def _get_service(self, service_name: str, context: ServiceInvocationContext) -> ServiceDescriptor | None:
        with context.trace.enter_exit("get_service"):
            # no caching, every lookup fetches the description again
            description = await self._get_repository_description(context)
            context.cancellation.raise_if_cancelled()
            return description.find_service(service_name)

    async def _create_client(self, service_name: str, context: ServiceInvocationContext) -> ServiceClient:
        with context.trace.enter_exit("create_client"):
            service = await self._get_service(service_name, context)
            if service is None:
                exc = ServiceNotFoundError(service_name)
                context.trace.error(exc)
                raise exc
            return ServiceClient(service, self)
