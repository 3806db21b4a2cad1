"""Recording on/off switch.

The persisted config (``proxy.enable_logging``) is authoritative. The proxy
engine's live flag and the local state here are caches, updated only by the
explicit sync steps in ``initialize`` and ``set_enabled``.
"""

import asyncio
import enum
import logging

from models.app_config import ProxyConfig
from monitor.backend import MonitorBackend
from monitor.errors import BackendError, CommandError

log = logging.getLogger(__name__)


class RecordingState(enum.Enum):
    DISABLED = "disabled"
    ENABLED = "enabled"

    @classmethod
    def from_flag(cls, enabled: bool) -> "RecordingState":
        return cls.ENABLED if enabled else cls.DISABLED


class RecordingToggle:
    def __init__(self, backend: MonitorBackend) -> None:
        self._backend = backend
        self._state = RecordingState.DISABLED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._state is RecordingState.ENABLED

    def reset(self) -> None:
        self._state = RecordingState.DISABLED

    async def initialize(self) -> None:
        """Load the persisted flag and push it to the proxy engine.

        Failures are logged; the toggle then keeps whatever it had
        (disabled on a fresh session).
        """
        async with self._lock:
            try:
                config = await self._backend.fetch_config()
            except BackendError as e:
                log.warning("failed to load config, recording stays %s: %s", self._state.value, e)
                return

            if config.proxy is None:
                log.warning("config has no proxy section, recording stays %s", self._state.value)
                return

            enabled = config.proxy.enable_logging
            self._state = RecordingState.from_flag(enabled)
            try:
                await self._backend.sync_backend_recording(enabled)
            except BackendError as e:
                log.warning("failed to sync recording flag to proxy: %s", e)

    async def set_enabled(self, enabled: bool) -> RecordingState:
        """Persist, sync, then reflect locally. Raises CommandError on failure."""
        async with self._lock:
            return await self._transition(enabled)

    async def enable(self) -> RecordingState:
        return await self.set_enabled(True)

    async def disable(self) -> RecordingState:
        return await self.set_enabled(False)

    async def toggle(self) -> RecordingState:
        async with self._lock:
            return await self._transition(not self.enabled)

    async def _transition(self, enabled: bool) -> RecordingState:
        try:
            config = await self._backend.fetch_config()
            if config.proxy is None:
                config.proxy = ProxyConfig()
            config.proxy.enable_logging = enabled
            await self._backend.persist_config(config)
        except BackendError as e:
            log.error("failed to persist recording=%s: %s", enabled, e)
            raise CommandError(f"could not save recording setting: {e}") from e

        try:
            await self._backend.sync_backend_recording(enabled)
        except BackendError as e:
            log.error("saved recording=%s but proxy sync failed: %s", enabled, e)
            raise CommandError(f"could not sync recording flag to proxy: {e}") from e

        self._state = RecordingState.from_flag(enabled)
        log.info("recording %s", self._state.value)
        return self._state
