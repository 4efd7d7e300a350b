"""
Infrastructure package for Directory Sync.

Centralizes I/O concerns: local database connectivity (SQLite connections,
PostgreSQL pooling) and the remote HTTP source. Keep this layer focused on
I/O and resource management, decoupled from synchronization and streaming.
"""

from directory_sync.infrastructure.db_factory import (
    PoolManager,
    build_dsn,
    get_sync_connection,
    open_sqlite_connection,
)
from directory_sync.infrastructure.remote_source import HttpRemoteSource, RemoteSource

__all__ = [
    "PoolManager",
    "build_dsn",
    "get_sync_connection",
    "open_sqlite_connection",
    "HttpRemoteSource",
    "RemoteSource",
]
