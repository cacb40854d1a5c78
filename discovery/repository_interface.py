from typing import ContextManager, Protocol

import httpx

from discovery.cancellation import CancellationToken


class TraceSink(Protocol):
    """Interface Protocol for diagnostic trace sinks.

    A sink receives a scoped span per operation and every error raised in
    the discovery chain. A sink that does nothing is a valid implementation.
    """
    def enter_exit(self, operation: str) -> ContextManager[None]: ...
    def error(self, exc: BaseException) -> None: ...


class Transport(Protocol):
    """
    Protocol for the HTTP transport shared by a repository client.
    Implementations must be safe for concurrent use by several in-flight
    operations, and are closed exactly once by their owner.
    """
    async def get(self, url: str, cancellation: CancellationToken) -> httpx.Response:
        """
        Issue a GET for an absolute URL and return the raw response.
        Status codes are not interpreted here.
        """
        ...

    async def aclose(self) -> None: ...
