"""
Directory Sync - offline-first local copy of a remote user directory.

This package keeps a locally persisted, queryable copy of a remote record set
synchronized with its source and serves reads even when the remote is
unreachable:

- Record stores (SQLite by default, PostgreSQL optional) with atomic batch upserts
- An HTTP remote source
- A synchronizer that refreshes the store and never breaks the read path
- A debounced, self-refreshing query stream over the store
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from directory_sync.config import Settings, get_settings
from directory_sync.domain import (
    DirectorySyncError,
    FormatError,
    NetworkError,
    Record,
    RemoteRecord,
    StorageError,
)
from directory_sync.infrastructure.remote_source import HttpRemoteSource, RemoteSource
from directory_sync.query_stream import QueryStream, StreamObserver, StreamState
from directory_sync.session import DirectorySession, build_session
from directory_sync.stores import (
    AbstractRecordStore,
    RecordStore,
    SqliteRecordStore,
    StoreChange,
    create_store,
)
from directory_sync.synchronizer import SyncResult, SyncStatus, Synchronizer
from directory_sync.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Record",
    "RemoteRecord",
    "DirectorySyncError",
    "FormatError",
    "NetworkError",
    "StorageError",
    # Stores
    "AbstractRecordStore",
    "RecordStore",
    "SqliteRecordStore",
    "StoreChange",
    "create_store",
    # Remote + sync
    "HttpRemoteSource",
    "RemoteSource",
    "Synchronizer",
    "SyncResult",
    "SyncStatus",
    # Streaming
    "QueryStream",
    "StreamObserver",
    "StreamState",
    "DirectorySession",
    "build_session",
    # Logging
    "configure_logging",
    "get_logger",
]
