from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

import httpx

from catalog.models import ServiceDescriptor
from discovery.cancellation import CancellationToken
from discovery.errors import InvalidArgumentError

if TYPE_CHECKING:
    from discovery.repository_client import RepositoryClient


class ServiceClient:
    """ A handle on one resolved service.
    References its repository client to reuse the shared transport;
    it owns nothing itself and needs no closing.

    Args:
        descriptor (ServiceDescriptor): The resolved service.
        repository (RepositoryClient): The client the service was resolved through.
    """

    def __init__(self, descriptor: ServiceDescriptor, repository: RepositoryClient):
        if descriptor is None:
            raise InvalidArgumentError("descriptor is required")
        if repository is None:
            raise InvalidArgumentError("repository is required")
        self.descriptor = descriptor
        self.repository = repository

    def __repr__(self) -> str:
        return f"ServiceClient(name={self.name!r}, url={self.url!r})"

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def url(self) -> str:
        return self.descriptor.url

    @property
    def urls(self) -> tuple[str, ...]:
        return self.descriptor.urls

    @property
    def version(self) -> Any:
        return self.descriptor.version

    @property
    def metadata(self) -> Mapping[str, Any]:
        return self.descriptor.metadata

    async def get(self, url: str | httpx.URL = "", cancellation: CancellationToken | None = None) -> httpx.Response:
        """
        GET a URL relative to the service URL through the repository's transport.
        Returns the raw response; the status code is not checked.
        """
        with self.repository.create_context(cancellation, base_url=self.url) as context:
            with context.trace.enter_exit("ServiceClient.get"):
                try:
                    response = await context.get(url)
                    context.cancellation.raise_if_cancelled()
                    return response
                except Exception as exc:
                    context.trace.error(exc)
                    raise
