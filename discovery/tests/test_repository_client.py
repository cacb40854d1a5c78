import httpx
import pytest

from catalog.models import RepositoryDescription
from discovery.cancellation import CancellationToken
from discovery.errors import (
    InvalidArgumentError,
    ObjectDisposedError,
    OperationCancelledError,
    ParseError,
    ServiceNotFoundError,
    TransportError,
)
from discovery.repository_client import RepositoryClient
from discovery.service_client import ServiceClient
from discovery.trace_sinks import NullTraceSink

ROOT = "http://repo.test"


######################### construction #########################

@pytest.mark.parametrize("url", [None, "", "   "])
def test_missing_url_is_rejected(url):
    with pytest.raises(InvalidArgumentError):
        RepositoryClient(url)


@pytest.mark.parametrize("url", ["/relative/path", "repo.test", "mailto:someone@example.com"])
def test_url_must_be_absolute(url):
    with pytest.raises(InvalidArgumentError):
        RepositoryClient(url)


def test_missing_trace_sink_is_rejected():
    with pytest.raises(InvalidArgumentError):
        RepositoryClient(ROOT, None)


async def test_default_trace_sink_is_null():
    repo = RepositoryClient(ROOT)
    try:
        assert isinstance(repo._trace, NullTraceSink)
        assert str(repo.url) == ROOT
    finally:
        await repo.aclose()


######################### discovery #########################

async def test_description_lists_services_in_document_order(client, fake_repo):
    fake_repo.document = {
        "version": "3.0",
        "services": [
            {"name": "Search", "url": "/search"},
            {"name": "Packages", "url": "http://cdn.test/packages/"},
            {"name": "Stats", "urls": ["/stats", "http://mirror.test/stats"], "version": "2"},
        ],
    }
    description = await client.get_repository_description()

    assert isinstance(description, RepositoryDescription)
    assert description.url == "http://repo.test/"
    assert description.version == "3.0"
    assert [s.name for s in description.services] == ["Search", "Packages", "Stats"]
    assert description.services[0].url == "http://repo.test/search"
    assert description.services[1].url == "http://cdn.test/packages/"
    assert description.services[2].urls == ("http://repo.test/stats", "http://mirror.test/stats")
    assert str(fake_repo.requests[0].url) == "http://repo.test/"


async def test_non_success_status_is_transport_error_traced_once(client, fake_repo, trace):
    fake_repo.status_code = 500

    with pytest.raises(TransportError) as excinfo:
        await client.get_repository_description()

    assert excinfo.value.status_code == 500
    assert len(trace.errors) == 1
    assert trace.errors[0] is excinfo.value


async def test_network_failure_is_transport_error(trace):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with RepositoryClient(ROOT, trace, http_transport=httpx.MockTransport(refuse)) as repo:
        with pytest.raises(TransportError):
            await repo.get_repository_description()
    assert len(trace.errors) == 1


async def test_invalid_json_is_parse_error(client, fake_repo, trace):
    fake_repo.content = b"<html>not json</html>"

    with pytest.raises(ParseError):
        await client.get_repository_description()
    assert len(trace.errors) == 1


async def test_malformed_document_is_parse_error(client, fake_repo, trace):
    fake_repo.document = {"services": [{"name": "Search", "url": "/search"}, {"name": "Broken"}]}

    with pytest.raises(ParseError):
        await client.get_repository_description()
    assert isinstance(trace.errors[0], ParseError)


async def test_redirected_root_is_followed(client, fake_repo, trace):
    fake_repo.routes = {
        "/": httpx.Response(301, headers={"Location": "/v3/index.json"}),
        "/v3/index.json": httpx.Response(200, json={"services": [{"name": "Search", "url": "/search"}]}),
    }
    description = await client.get_repository_description()

    assert [s.name for s in description.services] == ["Search"]
    assert description.services[0].url == "http://repo.test/search"
    assert [str(r.url) for r in fake_repo.requests] == ["http://repo.test/", "http://repo.test/v3/index.json"]
    assert trace.errors == []


async def test_trace_spans_wrap_the_operation(client, trace):
    await client.get_repository_description()

    assert trace.spans[0] == ("enter", "get_repository_description")
    assert trace.spans[-1] == ("exit", "get_repository_description")
    assert trace.errors == []


######################### lookup #########################

@pytest.mark.parametrize("name", ["search", "SEARCH", "Search", "sEaRcH"])
async def test_get_service_ignores_case(client, name):
    service = await client.get_service(name)

    assert service is not None
    assert service.name == "Search"
    assert service.url == "http://repo.test/search"


async def test_get_service_returns_none_when_missing(client, trace):
    assert await client.get_service("nuget") is None
    assert trace.errors == []


async def test_get_service_picks_first_match(client, fake_repo):
    fake_repo.document = {"services": [
        {"name": "search", "url": "/first"},
        {"name": "SEARCH", "url": "/second"},
    ]}
    service = await client.get_service("Search")
    assert service.url == "http://repo.test/first"


async def test_every_lookup_fetches_the_description_again(client, fake_repo):
    await client.get_service("search")
    fake_repo.document = {"services": [{"name": "Search", "url": "/search-v2"}]}
    service = await client.get_service("search")

    assert len(fake_repo.requests) == 2
    assert service.url == "http://repo.test/search-v2"


@pytest.mark.parametrize("name", [None, "", "   ", 42])
async def test_invalid_service_name_is_rejected_before_fetching(client, fake_repo, trace, name):
    with pytest.raises(InvalidArgumentError):
        await client.get_service(name)
    with pytest.raises(InvalidArgumentError):
        await client.create_client(name)
    assert fake_repo.requests == []
    assert trace.spans == []


async def test_get_service_propagates_transport_errors(client, fake_repo, trace):
    fake_repo.status_code = 503
    with pytest.raises(TransportError):
        await client.get_service("search")
    assert len(trace.errors) == 1


######################### client creation #########################

async def test_create_client_binds_descriptor_and_repository(client):
    service_client = await client.create_client("search")

    assert isinstance(service_client, ServiceClient)
    assert service_client.name == "Search"
    assert service_client.url == "http://repo.test/search"
    assert service_client.repository is client


async def test_create_client_for_unknown_service(client, fake_repo, trace):
    fake_repo.document = {"services": []}

    with pytest.raises(ServiceNotFoundError) as excinfo:
        await client.create_client("Search")

    assert excinfo.value.service_name == "Search"
    assert isinstance(excinfo.value, LookupError)
    assert trace.errors == [excinfo.value]


######################### cancellation #########################

async def test_cancelled_before_start_sends_no_request(client, fake_repo):
    token = CancellationToken(cancelled=True)

    with pytest.raises(OperationCancelledError):
        await client.get_repository_description(token)
    with pytest.raises(OperationCancelledError):
        await client.get_service("search", token)
    with pytest.raises(OperationCancelledError):
        await client.create_client("search", token)

    assert fake_repo.requests == []


async def test_cancelled_while_request_in_flight_discards_response(client, fake_repo):
    token = CancellationToken()
    fake_repo.on_request = lambda request: token.cancel()

    with pytest.raises(OperationCancelledError):
        await client.get_service("search", token)
    assert len(fake_repo.requests) == 1


######################### disposal #########################

async def test_aclose_is_idempotent(fake_repo):
    repo = RepositoryClient(ROOT, http_transport=fake_repo.transport())
    await repo.aclose()
    await repo.aclose()
    assert repo.closed


async def test_operations_after_close_fail(fake_repo):
    repo = RepositoryClient(ROOT, http_transport=fake_repo.transport())
    await repo.aclose()

    with pytest.raises(ObjectDisposedError):
        await repo.get_repository_description()
    with pytest.raises(ObjectDisposedError):
        await repo.get_service("search")
    with pytest.raises(ObjectDisposedError):
        await repo.create_client("search")
    assert fake_repo.requests == []


async def test_async_context_manager_closes_transport(fake_repo):
    async with RepositoryClient(ROOT, http_transport=fake_repo.transport()) as repo:
        assert not repo.closed
    assert repo.closed
    assert repo._transport.closed
