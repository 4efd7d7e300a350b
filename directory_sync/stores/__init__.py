"""
Record store package for Directory Sync.

Re-exports the store interfaces and concrete backends, plus `create_store`,
which builds the configured backend explicitly (no process-wide instance).
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from directory_sync.config import Settings, get_settings
from directory_sync.stores.abstract import (
    AbstractRecordStore,
    RecordStore,
    StoreChange,
    StoreListener,
)
from directory_sync.stores.postgres_store import PostgresRecordStore
from directory_sync.stores.sqlite_store import SqliteRecordStore


def _postgres_store(settings: Settings) -> AbstractRecordStore:
    return PostgresRecordStore(
        dsn=settings.postgres_dsn,
        pool_min_size=settings.db_pool_min_size,
        pool_max_size=settings.db_pool_max_size,
    )


def _store_factories() -> Dict[str, Callable[[Settings], AbstractRecordStore]]:
    """Registry of available store backends."""
    return {
        "sqlite": lambda settings: SqliteRecordStore(settings.sqlite_path),
        "postgres": _postgres_store,
    }


def available_backends() -> List[str]:
    """List available store backend names."""
    return sorted(_store_factories().keys())


def create_store(settings: Optional[Settings] = None) -> AbstractRecordStore:
    """
    Build the record store selected by `settings.db_backend`.

    Raises
    ------
    ValueError
        If the backend name is unknown.
    StorageError
        If the store cannot be opened or its schema created.
    """
    settings = settings or get_settings()
    factories = _store_factories()
    if settings.db_backend not in factories:
        raise ValueError(
            f"Unknown store backend '{settings.db_backend}'. Available: {', '.join(factories)}"
        )
    return factories[settings.db_backend](settings)


__all__ = [
    "AbstractRecordStore",
    "PostgresRecordStore",
    "RecordStore",
    "SqliteRecordStore",
    "StoreChange",
    "StoreListener",
    "available_backends",
    "create_store",
]
