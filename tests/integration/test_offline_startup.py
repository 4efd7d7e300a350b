"""End-to-end session behaviour: stale-while-revalidate on startup."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from directory_sync.config import Settings
from directory_sync.domain.models import Record, RemoteRecord
from directory_sync.query_stream import QueryStream
from directory_sync.session import DirectorySession, build_session
from directory_sync.synchronizer import Synchronizer

TIMEOUT = 2.0


class GatedRemote:
    """Remote that only answers once `release` is set."""

    def __init__(self, payload) -> None:
        self.payload = payload
        self.release = asyncio.Event()
        self.calls = 0

    async def fetch_all(self):
        self.calls += 1
        await self.release.wait()
        return [RemoteRecord.model_validate(item) for item in self.payload]


def _session(store, remote) -> DirectorySession:
    return DirectorySession(
        store,
        Synchronizer(remote, store),
        QueryStream(store, debounce_seconds=0.02, stop_timeout_seconds=0),
    )


@pytest.mark.asyncio
async def test_stored_data_is_served_before_refresh_completes(store, alice_bob):
    store.upsert_all([Record(id=7, name="Cached Carl", email="carl@cache.local", phone="7")])
    remote = GatedRemote(alice_bob)

    async with _session(store, remote) as session:
        observer = session.observe()
        first = await observer.get(timeout=TIMEOUT)
        assert [r.name for r in first] == ["Cached Carl"]
        assert not session.refresh_task.done()

        remote.release.set()
        result = await session.wait_for_refresh()
        refreshed = await observer.get(timeout=TIMEOUT)

    assert result["ok"] is True
    assert [r.name for r in refreshed] == ["Alice", "Bob", "Cached Carl"]
    assert remote.calls == 1


@pytest.mark.asyncio
async def test_offline_startup_keeps_serving_local_data(store, offline_remote):
    store.upsert_all([Record(id=7, name="Cached Carl", email="carl@cache.local", phone="7")])

    async with _session(store, offline_remote) as session:
        observer = session.observe()
        result = await session.wait_for_refresh()
        session.set_filter("carl")
        records = await observer.get(timeout=TIMEOUT)
        await asyncio.sleep(0.1)
        if observer.has_pending:
            records = await observer.get(timeout=TIMEOUT)

    assert result["ok"] is False
    assert [r.name for r in records] == ["Cached Carl"]


@pytest.mark.asyncio
async def test_start_refreshes_only_once(store, scripted_remote, alice_bob):
    remote = scripted_remote(alice_bob)
    session = _session(store, remote)

    session.start()
    session.start()
    await session.wait_for_refresh()
    await session.aclose()

    assert remote.calls == 1


@pytest.mark.asyncio
async def test_aclose_cancels_pending_refresh_and_releases_store(store, alice_bob):
    remote = GatedRemote(alice_bob)
    session = _session(store, remote)
    session.start()
    observer = session.observe()
    await observer.get(timeout=TIMEOUT)

    await session.aclose()

    assert session.refresh_task.cancelled()
    assert store.listener_count == 0
    assert store.count() == 0


@pytest.mark.asyncio
async def test_build_session_wires_collaborators_from_settings(tmp_path, alice_bob):
    settings = Settings(
        sqlite_path=tmp_path / "app" / "users.db",
        remote_base_url="https://directory.test",
        search_debounce_ms=10,
        stream_stop_timeout_ms=0,
    )
    session = build_session(settings)
    session._remote._transport = httpx.MockTransport(lambda request: httpx.Response(200, json=alice_bob))

    async with session:
        result = await session.wait_for_refresh()
        observer = session.observe()
        records = await observer.get(timeout=TIMEOUT)

    assert result["ok"] is True
    assert [r.name for r in records] == ["Alice", "Bob"]
    assert session.stream.debounce_seconds == pytest.approx(0.01)
    assert (tmp_path / "app" / "users.db").exists()
