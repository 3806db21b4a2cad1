"""Bounded, newest-first in-memory history of proxy exchanges."""

import logging
import threading
from typing import Iterable, Optional

from config import LOG_STORE_CAPACITY
from models.request_log import LogRecord

log = logging.getLogger(__name__)


class LogStore:
    """Thread-safe, capacity-bounded list of log records, newest first.

    Records are never mutated in place. Re-inserting an id that is already
    stored replaces the stale copy and moves the record to the front.
    """

    def __init__(self, capacity: int = LOG_STORE_CAPACITY) -> None:
        self.capacity = max(1, int(capacity))
        self._lock = threading.Lock()
        self._records: list[LogRecord] = []
        self._ids: set[str] = set()

    def insert(self, record: LogRecord) -> Optional[LogRecord]:
        """Prepend a record. Returns the stale copy it displaced, or None for a new id."""
        with self._lock:
            displaced = None
            if record.id in self._ids:
                kept = []
                for r in self._records:
                    if r.id == record.id:
                        displaced = r
                    else:
                        kept.append(r)
                self._records = kept
            self._records.insert(0, record)
            self._ids.add(record.id)
            while len(self._records) > self.capacity:
                dropped = self._records.pop()
                self._ids.discard(dropped.id)
            return displaced

    def replace_all(self, records: Iterable[LogRecord]) -> None:
        """Swap in a whole snapshot (already newest-first)."""
        fresh: list[LogRecord] = []
        seen: set[str] = set()
        for record in records:
            if record.id in seen:
                continue
            seen.add(record.id)
            fresh.append(record)
            if len(fresh) >= self.capacity:
                break
        with self._lock:
            self._records = fresh
            self._ids = seen
        log.debug("log store replaced with %d records", len(fresh))

    def clear(self) -> None:
        with self._lock:
            self._records = []
            self._ids = set()

    def records(self) -> list[LogRecord]:
        """Newest-first copy of the current contents."""
        with self._lock:
            return list(self._records)

    def get(self, record_id: str) -> Optional[LogRecord]:
        with self._lock:
            if record_id not in self._ids:
                return None
            for record in self._records:
                if record.id == record_id:
                    return record
        return None

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return record_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
