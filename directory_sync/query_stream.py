"""
Live, filterable, debounced read stream over a record store.

Usage:
    stream = QueryStream(store, debounce_seconds=0.2)
    async with stream.observe() as observer:
        stream.set_filter("ali")
        async for records in observer:
            render(records)

Filter changes restart a single debounce timer; only the value present when
the timer elapses is queried. Store commits trigger an immediate re-query with
the last applied filter. Every query carries a generation token and a result
is delivered only if its token is still current, so a superseded query can
never overwrite a newer result.
"""

from __future__ import annotations

import asyncio
import enum
from typing import Callable, List, Optional

from directory_sync.domain.models import Record
from directory_sync.stores.abstract import RecordStore, StoreChange
from directory_sync.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.2
DEFAULT_STOP_TIMEOUT_SECONDS = 5.0


class StreamState(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    QUERYING = "querying"
    DELIVERING = "delivering"


class StreamClosed(Exception):
    """Raised when reading from an observer whose stream or subscription is closed."""


class StreamObserver:
    """
    One subscription to a `QueryStream`.

    Values are conflated: if several results are delivered before the
    observer reads, only the newest is returned.
    """

    def __init__(self, stream: "QueryStream") -> None:
        self._stream = stream
        self._latest: List[Record] = []
        self._has_value = False
        self._event = asyncio.Event()
        self._closed = False
        self.received = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def has_pending(self) -> bool:
        """Whether a delivered value is waiting to be read."""
        return self._has_value

    def _push(self, records: List[Record]) -> None:
        if self._closed:
            return
        self._latest = records
        self._has_value = True
        self.received += 1
        self._event.set()

    def _mark_closed(self) -> None:
        self._closed = True
        self._event.set()

    async def get(self, timeout: Optional[float] = None) -> List[Record]:
        """
        Wait for the next delivered result list.

        Raises
        ------
        asyncio.TimeoutError
            If nothing is delivered within `timeout` seconds.
        StreamClosed
            If the observer is closed and no value is pending.
        """
        if not self._has_value:
            if self._closed:
                raise StreamClosed("observer is closed")
            await asyncio.wait_for(self._event.wait(), timeout)
            if not self._has_value:
                raise StreamClosed("observer is closed")
        value = self._latest
        self._latest = []
        self._has_value = False
        self._event.clear()
        return value

    def close(self) -> None:
        if self._closed:
            return
        self._mark_closed()
        self._stream._detach(self)

    def __aiter__(self) -> "StreamObserver":
        return self

    async def __anext__(self) -> List[Record]:
        try:
            return await self.get()
        except StreamClosed:
            raise StopAsyncIteration from None

    async def __aenter__(self) -> "StreamObserver":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        self.close()


class QueryStream:
    """
    Debounced, self-refreshing view of `store.query(filter)`.

    Parameters
    ----------
    store : RecordStore
        Store to read from and subscribe to.
    debounce_seconds : float
        Quiet period after the last `set_filter` before querying.
    stop_timeout_seconds : float
        Grace period after the last observer leaves before the stream releases
        its timer and store subscription. 0 stops immediately.
    initial_filter : str
        Filter applied on first activation.
    """

    def __init__(
        self,
        store: RecordStore,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        stop_timeout_seconds: float = DEFAULT_STOP_TIMEOUT_SECONDS,
        initial_filter: str = "",
    ) -> None:
        self._store = store
        self.debounce_seconds = debounce_seconds
        self.stop_timeout_seconds = stop_timeout_seconds
        self._filter = initial_filter
        self._applied_filter = initial_filter
        self._state = StreamState.IDLE
        self._value: List[Record] = []
        self._has_delivered = False
        self._observers: List[StreamObserver] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._stop_handle: Optional[asyncio.TimerHandle] = None
        self._query_task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._generation = 0
        self._closed = False
        self.queries_started = 0
        self.deliveries = 0

    # Introspection

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def value(self) -> List[Record]:
        """Last delivered result (empty before the first delivery)."""
        return list(self._value)

    @property
    def filter_text(self) -> str:
        return self._filter

    @property
    def applied_filter(self) -> str:
        return self._applied_filter

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    # Consumer API

    def set_filter(self, text: str) -> None:
        """
        Record a new filter value. Must be called on the event-loop thread.

        While active, (re)starts the debounce timer; the query runs only once
        input has been quiet for `debounce_seconds`.
        """
        self._filter = text
        if not self.active or self._loop is None:
            return
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._state = StreamState.PENDING
        self._debounce_handle = self._loop.call_later(
            self.debounce_seconds, self._on_debounce_elapsed
        )

    def observe(self) -> StreamObserver:
        """
        Subscribe to result lists. Must be called from a running event loop.

        The first observer activates the stream and triggers an immediate
        query for the current filter; later observers immediately receive the
        latest delivered result.
        """
        if self._closed:
            raise StreamClosed("stream is closed")
        loop = asyncio.get_running_loop()
        observer = StreamObserver(self)
        self._observers.append(observer)
        self._cancel_stop()
        if not self.active:
            self._activate(loop)
        elif self._has_delivered:
            observer._push(list(self._value))
        return observer

    async def aclose(self) -> None:
        """Stop the stream and close every observer."""
        if self._closed:
            return
        self._closed = True
        for observer in list(self._observers):
            observer._mark_closed()
        self._observers.clear()
        self._cancel_stop()
        task = self._query_task
        if self.active:
            self._stop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    # Lifecycle

    def _activate(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._unsubscribe = self._store.add_listener(self._on_store_change)
        self._applied_filter = self._filter
        log.debug("[STREAM START]", extra={"filter": self._filter})
        self._start_query(self._applied_filter)

    def _detach(self, observer: StreamObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)
        if self._observers or not self.active or self._closed or self._loop is None:
            return
        if self.stop_timeout_seconds <= 0:
            self._stop()
        else:
            self._stop_handle = self._loop.call_later(self.stop_timeout_seconds, self._stop)

    def _cancel_stop(self) -> None:
        if self._stop_handle is not None:
            self._stop_handle.cancel()
            self._stop_handle = None

    def _stop(self) -> None:
        self._stop_handle = None
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        # Invalidate whatever is in flight.
        self._generation += 1
        if self._query_task is not None and not self._query_task.done():
            self._query_task.cancel()
        self._query_task = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._state = StreamState.IDLE
        log.debug("[STREAM STOP]", extra={"filter": self._filter})

    # Triggers

    def _on_debounce_elapsed(self) -> None:
        self._debounce_handle = None
        self._applied_filter = self._filter
        self._start_query(self._applied_filter)

    def _on_store_change(self, change: StoreChange) -> None:
        # Runs on the committing thread.
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._handle_store_change, change)

    def _handle_store_change(self, change: StoreChange) -> None:
        if not self.active:
            return
        log.debug(
            "[STREAM INVALIDATED] store changed",
            extra={"generation": change.generation, "filter": self._applied_filter},
        )
        self._start_query(self._applied_filter)

    # Querying

    def _start_query(self, filter_text: str) -> None:
        assert self._loop is not None
        self._generation += 1
        token = self._generation
        if self._query_task is not None and not self._query_task.done():
            self._query_task.cancel()
        self._state = StreamState.QUERYING
        self.queries_started += 1
        self._query_task = self._loop.create_task(self._run_query(token, filter_text))

    async def _run_query(self, token: int, filter_text: str) -> None:
        try:
            records = await asyncio.to_thread(self._store.query, filter_text)
        except Exception as exc:
            # Any failure settles the state and keeps the last delivered value.
            log.exception(
                "[STREAM QUERY FAILED]",
                extra={"filter": filter_text, "error_type": type(exc).__name__},
            )
            if token == self._generation:
                self._state = self._settled_state()
            return

        if token != self._generation:
            log.debug("[STREAM RESULT DISCARDED] superseded", extra={"filter": filter_text})
            return

        self._state = StreamState.DELIVERING
        self._value = records
        self._has_delivered = True
        self.deliveries += 1
        for observer in list(self._observers):
            observer._push(list(records))
        self._state = self._settled_state()

    def _settled_state(self) -> StreamState:
        return StreamState.PENDING if self._debounce_handle is not None else StreamState.IDLE


__all__ = [
    "QueryStream",
    "StreamClosed",
    "StreamObserver",
    "StreamState",
]
