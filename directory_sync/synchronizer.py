"""
Synchronizer: one-shot refresh of the local store from the remote source.

Usage:
    from directory_sync.synchronizer import Synchronizer

    synchronizer = Synchronizer(remote=HttpRemoteSource(), store=store)
    result = await synchronizer.refresh()
    print(result["ok"], result.get("rows"))

`refresh()` is offline-tolerant: remote and storage failures are logged and
returned in the `SyncResult`, never raised, so the read path keeps serving
last-known-good data.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, TypedDict

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from directory_sync.domain.errors import FormatError, NetworkError, StorageError
from directory_sync.domain.models import Record, RemoteRecord
from directory_sync.infrastructure.remote_source import RemoteSource
from directory_sync.stores.abstract import RecordStore
from directory_sync.utils.logging import get_logger
from directory_sync.utils.profiler import profile_block

log = get_logger(__name__)


class SyncResult(TypedDict, total=False):
    """
    Outcome of one `refresh()` call.

    `ok` is always present; the remaining fields depend on how far the
    refresh got.
    """

    ok: bool
    fetched: int
    rows: int
    generation: int
    attempts: int
    duration_seconds: float
    error: Optional[str]
    error_type: Optional[str]


@dataclass
class SyncStatus:
    """
    In-memory staleness information for consumers that want to surface it.

    Attributes
    ----------
    last_attempt_at : datetime | None
        When the most recent refresh started (UTC).
    last_success_at : datetime | None
        When the store was last updated from the remote (UTC).
    last_error : str | None
        Message of the most recent failure, cleared on success.
    consecutive_failures : int
        Failed refreshes since the last success.
    """

    last_attempt_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_error: Optional[str] = None
    consecutive_failures: int = 0

    @property
    def is_stale(self) -> bool:
        return self.last_success_at is None or self.consecutive_failures > 0


class Synchronizer:
    """
    Fetch the remote snapshot and upsert it into the record store.

    Parameters
    ----------
    remote : RemoteSource
        Source of the full remote record set.
    store : RecordStore
        Local store receiving the upsert.
    retry_attempts : int
        Total fetch attempts for `NetworkError` (1 disables retrying).
        `FormatError` is never retried.
    retry_backoff_seconds : float
        Multiplier for the exponential backoff between attempts.
    """

    def __init__(
        self,
        remote: RemoteSource,
        store: RecordStore,
        retry_attempts: int = 1,
        retry_backoff_seconds: float = 1.0,
    ) -> None:
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        self._remote = remote
        self._store = store
        self.retry_attempts = retry_attempts
        self.retry_backoff_seconds = retry_backoff_seconds
        self.status = SyncStatus()

    async def _fetch(self) -> tuple[List[RemoteRecord], int]:
        attempts = 0
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_backoff_seconds, max=10),
            retry=retry_if_exception_type(NetworkError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                attempts += 1
                if attempts > 1:
                    log.info("[SYNC RETRY]", extra={"attempt": attempts})
                remote_records = await self._remote.fetch_all()
        return remote_records, attempts

    async def refresh(self) -> SyncResult:
        """
        Run one refresh. Never raises except on cancellation.

        Returns
        -------
        SyncResult
            `ok=True` with row counts on success; `ok=False` with `error` and
            `error_type` on any failure. The store is untouched on failure.
        """
        self.status.last_attempt_at = datetime.now(timezone.utc)
        result = SyncResult(ok=False)
        log.info("[SYNC START]")

        with profile_block("refresh") as stats:
            try:
                remote_records, attempts = await self._fetch()
                result["attempts"] = attempts
                result["fetched"] = len(remote_records)
                records: List[Record] = [item.to_record() for item in remote_records]
                change = await asyncio.to_thread(self._store.upsert_all, records)
                result.update(ok=True, rows=change.count, generation=change.generation)
            except (NetworkError, FormatError) as exc:
                log.warning(
                    f"[SYNC FAILED] remote unavailable, serving local data: {exc}",
                    extra={"error_type": type(exc).__name__, **exc.details},
                )
                result.update(error=str(exc), error_type=type(exc).__name__)
            except StorageError as exc:
                log.exception(
                    "[SYNC FAILED] local write rolled back",
                    extra={"error_type": type(exc).__name__, **exc.details},
                )
                result.update(error=str(exc), error_type=type(exc).__name__)
            except Exception as exc:  # noqa: BLE001 - refresh must never break the read path
                log.exception("[SYNC FAILED] unexpected error")
                result.update(error=str(exc), error_type=type(exc).__name__)

        result["duration_seconds"] = round(stats.duration_seconds, 3)
        self._record_outcome(result)
        return result

    def _record_outcome(self, result: SyncResult) -> None:
        if result["ok"]:
            self.status.last_success_at = datetime.now(timezone.utc)
            self.status.last_error = None
            self.status.consecutive_failures = 0
            log.info(
                "[SYNC SUCCESS]",
                extra={
                    "rows": result.get("rows"),
                    "fetched": result.get("fetched"),
                    "duration": result.get("duration_seconds"),
                },
            )
        else:
            self.status.last_error = result.get("error")
            self.status.consecutive_failures += 1


__all__ = ["Synchronizer", "SyncResult", "SyncStatus"]
