from __future__ import annotations

import itertools

import pytest

from models.app_config import AppConfig
from models.request_log import LogRecord, Stats
from monitor.backend import Subscription
from monitor.errors import BackendError

_ids = itertools.count(1)


def make_record(status: int = 200, url: str = "/v1/chat/completions", **kwargs) -> LogRecord:
    fields = {
        "id": f"req-{next(_ids)}",
        "timestamp": 1_700_000_000_000,
        "method": "POST",
        "url": url,
        "status": status,
        "duration": 120,
    }
    fields.update(kwargs)
    return LogRecord(**fields)


class FakeBackend:
    """In-memory stand-in for the proxy engine and config store.

    ``fail`` names the calls that should raise BackendError; ``calls``
    records every boundary call in order.
    """

    def __init__(self, history=None, stats=None, enable_logging: bool = False) -> None:
        self.config = AppConfig.model_validate(
            {"proxy": {"enable_logging": enable_logging, "port": 8045}, "language": "en"}
        )
        self.history = list(history or [])
        self.stats = stats or Stats()
        self.backend_recording: bool | None = None
        self.fail: set[str] = set()
        self.calls: list[str] = []
        self.handler = None
        self.subscriptions: list[Subscription] = []
        self.teardowns = 0

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise BackendError(f"{name} unavailable")

    async def fetch_config(self) -> AppConfig:
        self._call("fetch_config")
        return self.config.model_copy(deep=True)

    async def persist_config(self, config: AppConfig) -> None:
        self._call("persist_config")
        self.config = config.model_copy(deep=True)

    async def sync_backend_recording(self, enabled: bool) -> None:
        self._call("sync_backend_recording")
        self.backend_recording = enabled

    async def fetch_log_history(self, limit: int):
        self._call("fetch_log_history")
        return self.history[:limit]

    async def fetch_stats_snapshot(self):
        self._call("fetch_stats_snapshot")
        return self.stats

    async def clear_history(self) -> None:
        self._call("clear_history")
        self.history = []

    def subscribe_live_events(self, handler) -> Subscription:
        self._call("subscribe_live_events")
        self.handler = handler

        def teardown() -> None:
            self.teardowns += 1
            self.handler = None

        sub = Subscription(teardown)
        self.subscriptions.append(sub)
        return sub

    def emit(self, record: LogRecord) -> None:
        if self.handler is not None:
            self.handler(record)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
