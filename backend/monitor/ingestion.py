"""Bootstrap + live ingestion of proxy request logs.

On activation the controller loads the recording flag, the log history and
the stats snapshot once, then applies live events until deactivated. Store
and stats are mutated together under one lock, store first, so a reader never
sees stats that are ahead of the records they count.
"""

import logging
import threading
from typing import Callable, Optional

from config import HISTORY_FETCH_LIMIT, LOG_STORE_CAPACITY, STRICT_INVARIANTS
from models.request_log import FeedView, LogRecord, Stats
from monitor.backend import MonitorBackend, Subscription
from monitor.confirm import Confirmer, ask, auto_confirm
from monitor.errors import BackendError, CommandError, StatsInvariantError
from monitor.filters import filter_records
from monitor.log_store import LogStore
from monitor.recording import RecordingToggle
from monitor.stats import StatsAggregator

log = logging.getLogger(__name__)

CLEAR_CONFIRM_MESSAGE = "Clear all proxy request logs? This cannot be undone."

FeedListener = Callable[[LogRecord, Stats], None]


class IngestionController:
    """Owns the log store, the stats and the recording toggle for one session."""

    def __init__(
        self,
        backend: MonitorBackend,
        confirm: Confirmer = auto_confirm,
        capacity: int = LOG_STORE_CAPACITY,
        history_limit: int = HISTORY_FETCH_LIMIT,
        strict: bool = STRICT_INVARIANTS,
    ) -> None:
        self.backend = backend
        self.store = LogStore(capacity)
        self.stats = StatsAggregator()
        self.recording = RecordingToggle(backend)
        self._confirm = confirm
        self._history_limit = history_limit
        self._strict = strict
        self._lock = threading.RLock()
        self._subscription: Optional[Subscription] = None
        self._active = False
        self._activated_before = False
        self._listeners: list[FeedListener] = []

    @property
    def active(self) -> bool:
        return self._active

    # ── Lifecycle ─────────────────────────────────────────────────

    async def activate(self) -> None:
        """Bootstrap from the proxy engine, then go live.

        Each step that fails is logged and skipped; the view comes up with
        whatever is already in memory.
        """
        if self._active:
            log.warning("monitor already active, ignoring activate()")
            return
        if self._activated_before:
            # a fresh session starts from scratch
            with self._lock:
                self.store.clear()
                self.stats.reset()
            self.recording.reset()
        self._activated_before = True

        await self.recording.initialize()

        try:
            history = await self.backend.fetch_log_history(self._history_limit)
        except BackendError as e:
            log.warning("failed to load log history: %s", e)
        else:
            if _is_record_list(history):
                with self._lock:
                    self.store.replace_all(history)
                log.info("loaded %d historical log records", len(history))
            else:
                log.warning("ignoring malformed log history payload (%s)", type(history).__name__)

        snapshot = None
        try:
            snapshot = await self.backend.fetch_stats_snapshot()
        except BackendError as e:
            log.warning("failed to load stats snapshot: %s", e)
        else:
            if not isinstance(snapshot, Stats):
                log.warning("ignoring malformed stats payload (%s)", type(snapshot).__name__)
                snapshot = None
        if snapshot is not None:
            with self._lock:
                try:
                    self.stats.set_snapshot(snapshot)
                except StatsInvariantError as e:
                    self._heal(e)

        self._active = True
        try:
            self._subscription = self.backend.subscribe_live_events(self.handle_event)
        except BackendError as e:
            log.error("failed to subscribe to live events: %s", e)
        else:
            log.info("monitor live (recording %s)", self.recording.state.value)

    def deactivate(self) -> None:
        """Stop applying events. Safe to call any number of times."""
        self._active = False
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()
            log.info("monitor deactivated")

    # ── Live events ───────────────────────────────────────────────

    def handle_event(self, record: LogRecord) -> None:
        """Apply one live record: store first, then stats."""
        if not self._active:
            return
        with self._lock:
            displaced = self.store.insert(record)
            try:
                if displaced is None:
                    self.stats.apply_insert(record)
                else:
                    log.debug("replaced duplicate log record %s", record.id)
                    self.stats.apply_replace(displaced, record)
            except StatsInvariantError as e:
                self._heal(e)
            stats = self.stats.snapshot()
        for listener in list(self._listeners):
            try:
                listener(record, stats)
            except Exception:
                log.exception("feed listener failed")

    def add_listener(self, listener: FeedListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: FeedListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ── Commands ──────────────────────────────────────────────────

    async def clear_logs(self, confirm: Optional[Confirmer] = None) -> bool:
        """Clear durable history, then local state.

        Returns False if the confirmation gate said no. Raises CommandError
        if the proxy engine could not clear; local state is then untouched.
        """
        if not await ask(confirm or self._confirm, CLEAR_CONFIRM_MESSAGE):
            log.info("log clear cancelled")
            return False
        try:
            await self.backend.clear_history()
        except BackendError as e:
            log.error("failed to clear proxy logs: %s", e)
            raise CommandError(f"could not clear proxy logs: {e}") from e
        with self._lock:
            self.store.clear()
            self.stats.reset()
        log.info("proxy logs cleared")
        return True

    # ── Queries ───────────────────────────────────────────────────

    def view(self, query: str = "", limit: Optional[int] = None) -> FeedView:
        """Consistent snapshot of the filtered feed."""
        with self._lock:
            records = self.store.records()
            stats = self.stats.snapshot()
        matched = filter_records(records, query)
        if limit is not None:
            matched = matched[:max(0, limit)]
        return FeedView(
            query=query,
            recording=self.recording.enabled,
            stats=stats,
            total_records=len(records),
            records=matched,
        )

    def get(self, record_id: str) -> Optional[LogRecord]:
        return self.store.get(record_id)

    # ── Internals ─────────────────────────────────────────────────

    def _heal(self, error: StatsInvariantError) -> None:
        if self._strict:
            raise error
        log.critical("%s; recomputing from %d stored records", error, len(self.store))
        self.stats.recompute(self.store.records())


def _is_record_list(payload) -> bool:
    return isinstance(payload, (list, tuple)) and all(isinstance(r, LogRecord) for r in payload)
