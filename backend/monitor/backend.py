"""The monitor's view of its collaborators: proxy engine and config store.

Implementations raise ``BackendError`` (or ``MalformedPayloadError``) when a
call fails; they never return partial results.
"""

import logging
from typing import Callable, Optional, Protocol

from models.app_config import AppConfig
from models.request_log import LogRecord, Stats

log = logging.getLogger(__name__)

EventHandler = Callable[[LogRecord], None]


class Subscription:
    """Cancel handle for a live event subscription.

    ``cancel()`` runs the underlying teardown at most once and never raises,
    so it is safe to call repeatedly or on a subscription that never got off
    the ground.
    """

    def __init__(self, teardown: Optional[Callable[[], None]] = None) -> None:
        self._teardown = teardown
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        teardown, self._teardown = self._teardown, None
        if teardown is None:
            return
        try:
            teardown()
        except Exception:
            log.exception("error cancelling live event subscription")


class MonitorBackend(Protocol):
    async def fetch_config(self) -> AppConfig: ...

    async def persist_config(self, config: AppConfig) -> None: ...

    async def sync_backend_recording(self, enabled: bool) -> None: ...

    async def fetch_log_history(self, limit: int) -> list[LogRecord]: ...

    async def fetch_stats_snapshot(self) -> Stats: ...

    async def clear_history(self) -> None: ...

    def subscribe_live_events(self, handler: EventHandler) -> Subscription: ...
