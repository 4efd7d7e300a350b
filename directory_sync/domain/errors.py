"""
Error taxonomy for Directory Sync.

Remote-side failures (`NetworkError`, `FormatError`) are recoverable: the
synchronizer catches them and the local store keeps serving last-known-good
data. `StorageError` signals a failed local read or write; the store rolls back
and raises it to the direct caller of the failing operation.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DirectorySyncError(Exception):
    """
    Base exception for all Directory Sync errors.

    Attributes
    ----------
    message : str
        Human-readable error message.
    details : dict
        Additional context (URL, status code, batch size, ...).
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NetworkError(DirectorySyncError):
    """The remote source could not be reached, timed out, or answered non-2xx."""


class FormatError(DirectorySyncError):
    """The remote payload could not be parsed as a JSON array of records."""


class StorageError(DirectorySyncError):
    """A local store operation failed; no partial write is observable."""


__all__ = [
    "DirectorySyncError",
    "NetworkError",
    "FormatError",
    "StorageError",
]
