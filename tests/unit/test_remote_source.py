from __future__ import annotations

import httpx
import pytest

from directory_sync.domain.errors import FormatError, NetworkError
from directory_sync.infrastructure.remote_source import HttpRemoteSource, RemoteSource


@pytest.mark.asyncio
async def test_fetch_all_issues_single_get_and_validates_items(alice_bob):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=alice_bob)

    remote = HttpRemoteSource(
        base_url="https://directory.test/api/", users_path="/users", transport=httpx.MockTransport(handler)
    )
    try:
        records = await remote.fetch_all()
    finally:
        await remote.aclose()

    assert [r.name for r in records] == ["Alice", "Bob"]
    assert len(requests) == 1
    assert requests[0].method == "GET"
    assert str(requests[0].url) == "https://directory.test/api/users"
    assert requests[0].url.query == b""


@pytest.mark.asyncio
async def test_malformed_items_are_skipped(remote_factory, json_transport, alice_bob):
    payload = [alice_bob[0], {"id": "nope", "name": "Broken"}, {"id": 9}, alice_bob[1]]
    remote = remote_factory(json_transport(payload))

    records = await remote.fetch_all()

    assert [r.id for r in records] == [1, 2]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["{not json", '{"users": []}', '"just a string"', "null"])
async def test_unparsable_or_non_array_payload_raises_format_error(remote_factory, json_transport, body):
    remote = remote_factory(json_transport(body))

    with pytest.raises(FormatError):
        await remote.fetch_all()


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [404, 500, 503])
async def test_non_2xx_status_raises_network_error(remote_factory, json_transport, status_code):
    remote = remote_factory(json_transport({"error": "down"}, status_code=status_code))

    with pytest.raises(NetworkError) as excinfo:
        await remote.fetch_all()

    assert excinfo.value.details["status_code"] == status_code


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exc_factory",
    [
        lambda request: httpx.ConnectError("Connection refused", request=request),
        lambda request: httpx.ReadTimeout("timed out", request=request),
    ],
    ids=["connect", "timeout"],
)
async def test_transport_failures_raise_network_error(remote_factory, failing_transport, exc_factory):
    remote = remote_factory(failing_transport(exc_factory))

    with pytest.raises(NetworkError):
        await remote.fetch_all()


@pytest.mark.asyncio
async def test_client_is_recreated_after_close(remote_factory, json_transport, alice_bob):
    remote = remote_factory(json_transport(alice_bob))

    await remote.fetch_all()
    await remote.aclose()
    records = await remote.fetch_all()
    await remote.aclose()

    assert len(records) == 2


def test_http_remote_source_satisfies_protocol(remote_factory, json_transport):
    assert isinstance(remote_factory(json_transport([])), RemoteSource)


def test_defaults_come_from_settings(monkeypatch):
    from directory_sync.config import get_settings

    monkeypatch.setenv("REMOTE_BASE_URL", "https://people.example")
    monkeypatch.setenv("REMOTE_USERS_PATH", "v2/people")
    get_settings.cache_clear()

    remote = HttpRemoteSource()

    assert remote.url == "https://people.example/v2/people"
    assert remote.timeout == 30.0
