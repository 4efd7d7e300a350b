"""
Timing utilities for Directory Sync.

`profile_block` measures the wall-clock duration of a block (refreshes, store
writes) so callers can report it in results and structured logs.

Usage example:
    from directory_sync.utils.profiler import profile_block

    with profile_block("refresh") as stats:
        await synchronizer.refresh()

    print(stats.duration_seconds)
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from typing import Any, Generator


@dataclass
class ProfileStats:
    """
    Container for timing measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    extra: dict[str, Any] = field(default_factory=dict)


@contextlib.contextmanager
def profile_block(label: str) -> Generator[ProfileStats, None, None]:
    """
    Context manager that times a block of code with `time.perf_counter`.

    The stats are filled in even when the block raises, so failure paths can
    still report how long they took.

    Parameters
    ----------
    label : str
        Human-friendly label for the timed block.
    """
    stats = ProfileStats(label=label)
    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts


__all__ = ["ProfileStats", "profile_block"]
