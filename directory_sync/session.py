"""
Consumer-side session: wires store, synchronizer and query stream together.

`build_session` constructs every collaborator explicitly from `Settings`; the
session owns them and releases them in `aclose`. `start()` launches the single
startup refresh in the background so observers see stored data immediately.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from directory_sync.config import Settings, get_settings
from directory_sync.infrastructure.remote_source import HttpRemoteSource
from directory_sync.query_stream import QueryStream, StreamObserver
from directory_sync.stores import create_store
from directory_sync.stores.abstract import RecordStore
from directory_sync.synchronizer import Synchronizer, SyncResult
from directory_sync.utils.logging import get_logger

log = get_logger(__name__)


class DirectorySession:
    """
    What a UI holds: a filter setter, an observable result list, and the
    startup refresh.
    """

    def __init__(
        self,
        store: RecordStore,
        synchronizer: Synchronizer,
        stream: QueryStream,
        remote: Optional[HttpRemoteSource] = None,
    ) -> None:
        self.store = store
        self.synchronizer = synchronizer
        self.stream = stream
        self._remote = remote
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def refresh_task(self) -> Optional["asyncio.Task[SyncResult]"]:
        return self._refresh_task

    def start(self) -> None:
        """Launch the startup refresh (once per session) without waiting for it."""
        if self._refresh_task is not None:
            return
        self._refresh_task = asyncio.get_running_loop().create_task(self.synchronizer.refresh())
        log.debug("[SESSION START] background refresh scheduled")

    async def wait_for_refresh(self) -> Optional[SyncResult]:
        if self._refresh_task is None:
            return None
        return await self._refresh_task

    def set_filter(self, text: str) -> None:
        self.stream.set_filter(text)

    def observe(self) -> StreamObserver:
        return self.stream.observe()

    async def aclose(self) -> None:
        task = self._refresh_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self.stream.aclose()
        if self._remote is not None:
            await self._remote.aclose()
        self.store.close()

    async def __aenter__(self) -> "DirectorySession":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        await self.aclose()


def build_session(settings: Optional[Settings] = None) -> DirectorySession:
    """
    Construct a session with explicitly created collaborators.

    Raises
    ------
    StorageError
        If the configured store cannot be opened.
    """
    settings = settings or get_settings()
    store = create_store(settings)
    remote = HttpRemoteSource(
        base_url=settings.remote_base_url,
        users_path=settings.remote_users_path,
        timeout=settings.remote_timeout_seconds,
    )
    synchronizer = Synchronizer(remote, store, retry_attempts=settings.sync_retry_attempts)
    stream = QueryStream(
        store,
        debounce_seconds=settings.search_debounce_ms / 1000.0,
        stop_timeout_seconds=settings.stream_stop_timeout_ms / 1000.0,
    )
    return DirectorySession(store, synchronizer, stream, remote=remote)


__all__ = ["DirectorySession", "build_session"]
