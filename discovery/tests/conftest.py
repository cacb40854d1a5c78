"""Shared fixtures for the discovery tests."""

import contextlib

import httpx
import pytest

from discovery.repository_client import RepositoryClient

ROOT = "http://repo.test"


class RecordingTraceSink:
    """Trace sink that keeps every span and error it receives."""

    def __init__(self):
        self.spans: list[tuple[str, str]] = []
        self.errors: list[BaseException] = []

    @contextlib.contextmanager
    def enter_exit(self, operation):
        self.spans.append(("enter", operation))
        try:
            yield
        finally:
            self.spans.append(("exit", operation))

    def error(self, exc):
        self.errors.append(exc)


class FakeRepository:
    """Serves a discovery document at / plus canned routes, and records every request."""

    def __init__(self):
        self.status_code = 200
        self.document = {"services": [{"name": "Search", "url": "/search"}]}
        self.content: bytes | None = None
        self.routes: dict[str, httpx.Response] = {}
        self.requests: list[httpx.Request] = []
        self.on_request = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)
        if request.url.path in self.routes:
            return self.routes[request.url.path]
        if request.url.path != "/":
            return httpx.Response(404, json={"detail": "Not Found"})
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.document)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def trace():
    return RecordingTraceSink()


@pytest.fixture
def fake_repo():
    return FakeRepository()


@pytest.fixture
async def client(fake_repo, trace):
    repo = RepositoryClient(ROOT, trace, http_transport=fake_repo.transport())
    yield repo
    await repo.aclose()
