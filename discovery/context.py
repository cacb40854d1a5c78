"""
context.py
----------
Per-operation invocation context.

A ServiceInvocationContext bundles what one logical operation needs to talk
to the repository: the shared transport and trace sink (both borrowed from the
RepositoryClient), the base URL that relative URLs resolve against, and the
operation's cancellation token.

Contexts are scoped: the operation that creates one enters it with ``with``
and the scope is left exactly once, whether the operation succeeds, fails or
is cancelled. Internal calls made on behalf of the same operation receive the
same context instead of creating their own.
"""

from __future__ import annotations

import httpx

from discovery.cancellation import CancellationToken
from discovery.repository_interface import TraceSink, Transport


class ServiceInvocationContext:

    def __init__(self, transport: Transport, trace: TraceSink, base_url: str | httpx.URL,
                 cancellation: CancellationToken):
        self.transport = transport
        self.trace = trace
        self.base_url = httpx.URL(str(base_url))
        self.cancellation = cancellation
        self._entered = False
        self._exited = False

    def __enter__(self) -> ServiceInvocationContext:
        if self._entered:
            raise RuntimeError("An invocation context can only be entered once")
        self._entered = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._exited = True

    @property
    def active(self) -> bool:
        return self._entered and not self._exited

    def resolve_url(self, url: str | httpx.URL) -> str:
        """Resolve ``url`` against the base URL. Absolute URLs pass through unchanged."""
        return str(self.base_url.join(str(url)))

    async def get(self, url: str | httpx.URL, cancellation: CancellationToken | None = None) -> httpx.Response:
        """
        Issue a GET through the borrowed transport and return the raw response.
        A non-success status is not an error at this level.
        """
        if not self.active:
            raise RuntimeError("Invocation context used outside of its scope")
        token = cancellation or self.cancellation
        token.raise_if_cancelled()
        return await self.transport.get(self.resolve_url(url), token)
