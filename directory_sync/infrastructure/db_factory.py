"""
Database connection factory utilities for Directory Sync.

Provides connection helpers for both supported local store backends:

- SQLite: one application-private database file, one short-lived connection
  per operation (WAL journaling so readers never block on a writer).
- PostgreSQL: a `PoolManager` owning a psycopg `ConnectionPool`. Each store
  instance owns its own manager; there is no process-wide singleton.

Includes retry logic for transient PostgreSQL connection failures using tenacity.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Generator, Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from directory_sync.config import get_settings
from directory_sync.utils.logging import get_logger

log = get_logger(__name__)

SQLITE_BUSY_TIMEOUT_MS = 5_000


def build_dsn() -> str:
    """Compose a PostgreSQL DSN string from settings."""
    return get_settings().postgres_dsn


def open_sqlite_connection(
    path: Path | str,
    functions: Optional[dict[str, Callable[..., object]]] = None,
) -> sqlite3.Connection:
    """
    Open a SQLite connection configured for the record store.

    Parameters
    ----------
    path : Path | str
        Database file. Parent directories are created on demand.
    functions : dict, optional
        Deterministic single-argument SQL functions to register by name.

    Returns
    -------
    sqlite3.Connection
        Connection in autocommit mode (`isolation_level=None`) so that callers
        control transactions with explicit BEGIN/COMMIT/ROLLBACK.
    """
    db_path = Path(path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    conn.execute("PRAGMA journal_mode=WAL")
    for name, func in (functions or {}).items():
        conn.create_function(name, 1, func, deterministic=True)
    return conn


class PoolManager:
    """
    Owner of a lazily created psycopg connection pool.

    Thread-safe; `close` is idempotent.
    """

    def __init__(self, dsn: Optional[str] = None, min_size: int = 1, max_size: int = 4) -> None:
        self._dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[ConnectionPool] = None
        self._lock = threading.Lock()

    @property
    def dsn(self) -> str:
        return self._dsn or build_dsn()

    def get_pool(self) -> ConnectionPool:
        """
        Get or create the synchronous connection pool.

        Returns
        -------
        ConnectionPool
            The managed pool instance, opened on first use.
        """
        with self._lock:
            if self._pool is None:
                self._pool = ConnectionPool(
                    conninfo=self.dsn,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    open=True,
                )
            return self._pool

    @contextmanager
    def connection(self) -> Generator[Connection, None, None]:
        """
        Context manager for obtaining a connection from the pool.

        Example
        -------
            manager = PoolManager(dsn)
            with manager.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        """
        pool = self.get_pool()
        with pool.connection() as conn:
            yield conn

    def close(self) -> None:
        """
        Close the managed pool and release resources.
        """
        with self._lock:
            if self._pool is not None:
                try:
                    self._pool.close()
                except psycopg.Error:
                    log.warning("[POOL CLOSE FAILED]", exc_info=True)
                finally:
                    self._pool = None


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Used for one-off operations such as schema bootstrap. Prefer the pool for
    repeated use.

    Returns
    -------
    Connection
        A new psycopg connection instance.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


__all__ = [
    "PoolManager",
    "build_dsn",
    "get_sync_connection",
    "open_sqlite_connection",
]
