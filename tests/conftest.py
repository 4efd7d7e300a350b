"""
Pytest configuration for Directory Sync.

Provides fixtures for:
- Temporary SQLite record stores
- Remote sources backed by `httpx.MockTransport`
- Settings override and PostgreSQL availability for integration tests
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Generator, List

import httpx
import psycopg
import pytest

from directory_sync.config import Settings, get_settings
from directory_sync.domain.errors import NetworkError
from directory_sync.domain.models import Record, RemoteRecord
from directory_sync.infrastructure.remote_source import HttpRemoteSource
from directory_sync.stores.sqlite_store import SqliteRecordStore

ALICE = {"id": 1, "name": "Alice", "email": "a@x.com", "phone": "1"}
BOB = {"id": 2, "name": "Bob", "email": "b@x.com", "phone": "2"}

TEST_BASE_URL = "https://directory.test/"


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Point the default SQLite path at tmp and reset the settings cache."""
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "settings-users.db"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store(tmp_path: Path) -> Generator[SqliteRecordStore, None, None]:
    """Empty SQLite store in a temporary directory."""
    instance = SqliteRecordStore(tmp_path / "users.db")
    try:
        yield instance
    finally:
        instance.close()


@pytest.fixture
def make_records() -> Callable[..., List[Record]]:
    def _make(*items: dict) -> List[Record]:
        return [Record(**item) for item in items]

    return _make


def _json_transport(payload: Any, status_code: int = 200) -> httpx.MockTransport:
    """Transport answering every request with `payload` serialized as JSON."""
    body = payload if isinstance(payload, (bytes, str)) else json.dumps(payload)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=body, headers={"Content-Type": "application/json"})

    return httpx.MockTransport(handler)


def _failing_transport(exc_factory: Callable[[httpx.Request], Exception]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_factory(request)

    return httpx.MockTransport(handler)


@pytest.fixture
def json_transport() -> Callable[..., httpx.MockTransport]:
    return _json_transport


@pytest.fixture
def failing_transport() -> Callable[..., httpx.MockTransport]:
    return _failing_transport


@pytest.fixture
def remote_factory() -> Callable[[httpx.MockTransport], HttpRemoteSource]:
    def _make(transport: httpx.MockTransport) -> HttpRemoteSource:
        return HttpRemoteSource(base_url=TEST_BASE_URL, users_path="users", timeout=5.0, transport=transport)

    return _make


class ScriptedRemote:
    """
    In-process `RemoteSource` returning queued outcomes in order.

    Each outcome is a list of raw dicts (validated into RemoteRecords) or an
    exception instance to raise. The last outcome repeats once exhausted.
    """

    def __init__(self, *outcomes: Any) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0

    async def fetch_all(self) -> List[RemoteRecord]:
        self.calls += 1
        outcome = self._outcomes[0] if len(self._outcomes) == 1 else self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return [RemoteRecord.model_validate(item) for item in outcome]


@pytest.fixture
def scripted_remote() -> Callable[..., ScriptedRemote]:
    return ScriptedRemote


@pytest.fixture
def offline_remote() -> ScriptedRemote:
    return ScriptedRemote(NetworkError("Remote unreachable: ConnectError"))


@pytest.fixture
def alice_bob() -> List[dict]:
    return [dict(ALICE), dict(BOB)]


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides for PostgreSQL.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_backend="postgres",
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "directory_sync"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    return test_settings.postgres_dsn


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if PostgreSQL is reachable.

    Used to conditionally skip integration tests when the database is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False
