"""
Record store interfaces and the change-notification channel.

Concrete stores (SQLite, PostgreSQL) implement the `RecordStore` protocol,
usually by subclassing `AbstractRecordStore`, which provides the listener
registry and the query dispatch shared by every backend.

Ordering contract for both query operations: `name` ascending with a binary,
case-sensitive collation, then `id` ascending as tie-breaker.
"""

from __future__ import annotations

import abc
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from directory_sync.domain.models import Record
from directory_sync.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class StoreChange:
    """
    Notification payload describing one committed upsert.

    Attributes
    ----------
    generation : int
        Monotonic per-store counter, incremented on every successful commit.
    count : int
        Number of distinct records written by the batch.
    """

    generation: int
    count: int


StoreListener = Callable[[StoreChange], None]


def is_blank(text: Optional[str]) -> bool:
    return text is None or not text.strip()


def dedupe_last_wins(records: Iterable[Record]) -> List[Record]:
    """Collapse repeated ids in a batch, keeping the last occurrence."""
    by_id: Dict[int, Record] = {}
    for record in records:
        by_id.pop(record.id, None)
        by_id[record.id] = record
    return list(by_id.values())


@runtime_checkable
class RecordStore(Protocol):
    """
    Persistent, indexed table of records keyed by `id`.
    """

    def upsert_all(self, records: Iterable[Record]) -> StoreChange:
        """
        Insert-or-replace every record as one atomic batch.

        Raises
        ------
        StorageError
            On I/O failure; the store is left exactly as before the call.
        """
        ...

    def query_all(self) -> List[Record]:
        ...

    def query_substring(self, text: str) -> List[Record]:
        ...

    def query(self, filter_text: str) -> List[Record]:
        ...

    def add_listener(self, listener: StoreListener) -> Callable[[], None]:
        ...

    def close(self) -> None:
        ...


class AbstractRecordStore(abc.ABC):
    """
    Base class for concrete stores.

    Subclasses implement `_write_batch`, `query_all`, `_search`, `get` and
    `count`. `upsert_all` wraps `_write_batch` with batch de-duplication and
    listener fan-out after the commit.
    """

    name: str

    def __init__(self) -> None:
        self._listeners: List[StoreListener] = []
        self._listeners_lock = threading.Lock()
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    # Writes

    @abc.abstractmethod
    def _write_batch(self, records: List[Record]) -> None:  # pragma: no cover - interface only
        """Write the batch in a single transaction or raise StorageError after rollback."""
        raise NotImplementedError

    def upsert_all(self, records: Iterable[Record]) -> StoreChange:
        batch = dedupe_last_wins(records)
        if not batch:
            return StoreChange(generation=self._generation, count=0)

        self._write_batch(batch)

        with self._listeners_lock:
            self._generation += 1
            change = StoreChange(generation=self._generation, count=len(batch))
            listeners = list(self._listeners)
        log.debug(
            "[STORE COMMIT]",
            extra={"store": self.name, "generation": change.generation, "count": change.count},
        )
        self._notify(listeners, change)
        return change

    # Reads

    @abc.abstractmethod
    def query_all(self) -> List[Record]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def _search(self, text: str) -> List[Record]:  # pragma: no cover - interface only
        """Name-or-email substring match, case-insensitive, store ordering."""
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, record_id: int) -> Optional[Record]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def count(self) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    def query_substring(self, text: str) -> List[Record]:
        if is_blank(text):
            return self.query_all()
        return self._search(text)

    def query(self, filter_text: str) -> List[Record]:
        """Blank filter returns everything; anything else is a substring search."""
        return self.query_substring(filter_text)

    # Change channel

    def add_listener(self, listener: StoreListener) -> Callable[[], None]:
        """
        Register a callback invoked after every successful commit.

        Returns
        -------
        Callable[[], None]
            Idempotent function that removes the listener.
        """
        with self._listeners_lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    @property
    def listener_count(self) -> int:
        with self._listeners_lock:
            return len(self._listeners)

    def _notify(self, listeners: List[StoreListener], change: StoreChange) -> None:
        for listener in listeners:
            try:
                listener(change)
            except Exception:  # noqa: BLE001 - commit already succeeded; isolate listeners
                log.exception(
                    "[STORE LISTENER FAILED]",
                    extra={"store": self.name, "generation": change.generation},
                )

    def close(self) -> None:
        with self._listeners_lock:
            self._listeners.clear()


__all__ = [
    "AbstractRecordStore",
    "RecordStore",
    "StoreChange",
    "StoreListener",
    "dedupe_last_wins",
    "is_blank",
]
