"""
Utilities package for Directory Sync.

Exports shared helpers for logging and timing.
Keep this package lightweight and free of domain-specific logic.
"""

from directory_sync.utils.logging import configure_logging, get_logger
from directory_sync.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
