"""
Domain package for Directory Sync.

Exports the record models and the error taxonomy shared by the store,
remote source, synchronizer, and query stream.
"""

from directory_sync.domain.errors import (
    DirectorySyncError,
    FormatError,
    NetworkError,
    StorageError,
)
from directory_sync.domain.models import Record, RemoteRecord, parse_remote_records

__all__ = [
    "Record",
    "RemoteRecord",
    "parse_remote_records",
    "DirectorySyncError",
    "FormatError",
    "NetworkError",
    "StorageError",
]
