"""Running success/error counters derived from the log feed."""

import logging
import threading
from typing import Iterable

from models.request_log import LogRecord, Stats, is_success
from monitor.errors import StatsInvariantError

log = logging.getLogger(__name__)


class StatsAggregator:
    """Holds ``total``, ``success`` and ``error`` with ``total == success + error``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = 0
        self._success = 0
        self._error = 0

    def set_snapshot(self, stats: Stats) -> None:
        """Replace the counters wholesale (bulk stats fetch)."""
        with self._lock:
            self._total = stats.total
            self._success = stats.success
            self._error = stats.error
        self.check()

    def apply_insert(self, record: LogRecord) -> None:
        with self._lock:
            self._total += 1
            if is_success(record.status):
                self._success += 1
            else:
                self._error += 1
        self.check()

    def apply_replace(self, old: LogRecord, new: LogRecord) -> None:
        """Reclassify a record whose stored copy was replaced; ``total`` is unchanged."""
        was_success, now_success = is_success(old.status), is_success(new.status)
        if was_success == now_success:
            return
        with self._lock:
            # a counter already at zero leaves the totals out of balance for check()
            if now_success:
                self._error = max(0, self._error - 1)
                self._success += 1
            else:
                self._success = max(0, self._success - 1)
                self._error += 1
        self.check()

    def reset(self) -> None:
        with self._lock:
            self._total = self._success = self._error = 0

    def recompute(self, records: Iterable[LogRecord]) -> None:
        """Rebuild the counters from store contents."""
        success = error = 0
        for record in records:
            if is_success(record.status):
                success += 1
            else:
                error += 1
        with self._lock:
            self._total = success + error
            self._success = success
            self._error = error

    def check(self) -> None:
        with self._lock:
            total, success, error = self._total, self._success, self._error
        if total != success + error:
            raise StatsInvariantError(
                f"stats out of balance: total={total} success={success} error={error}"
            )

    def snapshot(self) -> Stats:
        with self._lock:
            return Stats(total=self._total, success=self._success, error=self._error)
