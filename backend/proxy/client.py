"""HTTP client for the proxy engine's command API and live event stream.

Commands are invoked as ``POST {PROXY_API_URL}/{command}`` with a JSON
argument object, mirroring the engine's own command names. Live request logs
arrive as server-sent events on ``GET {PROXY_API_URL}/events``.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Optional

import httpx
from pydantic import ValidationError

from config import (
    EVENT_RECONNECT_DELAY,
    PROXY_API_TIMEOUT,
    PROXY_API_URL,
    PROXY_EVENT_CHANNEL,
)
from models.app_config import AppConfig
from models.request_log import LogRecord, Stats
from monitor.backend import EventHandler, Subscription
from monitor.errors import BackendError, MalformedPayloadError

log = logging.getLogger(__name__)


class ProxyClient:
    """``MonitorBackend`` implementation backed by httpx."""

    def __init__(
        self,
        base_url: str = PROXY_API_URL,
        timeout: float = PROXY_API_TIMEOUT,
        channel: str = PROXY_EVENT_CHANNEL,
        reconnect_delay: float = EVENT_RECONNECT_DELAY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.channel = channel
        self._timeout = timeout
        self._reconnect_delay = reconnect_delay
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "ProxyClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Commands ──────────────────────────────────────────────────

    async def fetch_config(self) -> AppConfig:
        data = await self._invoke("load_config")
        try:
            return AppConfig.model_validate(data)
        except ValidationError as e:
            raise MalformedPayloadError(f"load_config returned an invalid config: {e}") from e

    async def persist_config(self, config: AppConfig) -> None:
        await self._invoke("save_config", {"config": config.model_dump()})

    async def sync_backend_recording(self, enabled: bool) -> None:
        await self._invoke("set_proxy_monitor_enabled", {"enabled": enabled})

    async def fetch_log_history(self, limit: int) -> list[LogRecord]:
        data = await self._invoke("get_proxy_logs", {"limit": limit})
        if not isinstance(data, list):
            raise MalformedPayloadError(
                f"get_proxy_logs returned {type(data).__name__}, expected a list"
            )
        try:
            records = [LogRecord.model_validate(item) for item in data]
        except ValidationError as e:
            raise MalformedPayloadError(f"get_proxy_logs returned an invalid record: {e}") from e
        return records[:limit]

    async def fetch_stats_snapshot(self) -> Stats:
        data = await self._invoke("get_proxy_stats")
        try:
            return Stats.model_validate(data)
        except ValidationError as e:
            raise MalformedPayloadError(f"get_proxy_stats returned invalid stats: {e}") from e

    async def clear_history(self) -> None:
        await self._invoke("clear_proxy_logs")

    async def _invoke(self, command: str, args: Optional[dict] = None):
        try:
            resp = await self._client.post(f"/{command}", json=args or {})
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise BackendError(f"{command} failed: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise BackendError(f"{command} failed: {e}") from e
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedPayloadError(f"{command} returned non-JSON body") from e

    # ── Live events ───────────────────────────────────────────────

    def subscribe_live_events(self, handler: EventHandler) -> Subscription:
        """Start streaming events into ``handler`` on the running loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise BackendError("live events need a running event loop") from e
        task = loop.create_task(self._stream_events(handler), name="proxy-events")
        task.add_done_callback(_log_stream_exit)
        return Subscription(task.cancel)

    async def _stream_events(self, handler: EventHandler) -> None:
        # No read timeout: the stream stays open until cancelled.
        timeout = httpx.Timeout(self._timeout, read=None)
        while True:
            try:
                async with self._client.stream(
                    "GET", "/events", params={"channel": self.channel}, timeout=timeout
                ) as resp:
                    resp.raise_for_status()
                    log.info("subscribed to %s", self.channel)
                    async for data in _iter_sse_data(resp, self.channel):
                        record = _parse_event(data)
                        if record is not None:
                            handler(record)
                log.info("event stream closed by proxy, reconnecting")
            except httpx.HTTPError as e:
                log.warning("event stream error: %s", e)
            await asyncio.sleep(self._reconnect_delay)


async def _iter_sse_data(resp: httpx.Response, channel: str) -> AsyncIterator[str]:
    """Yield the data of each server-sent event addressed to ``channel``."""
    event_name = ""
    data_lines: list[str] = []
    async for line in resp.aiter_lines():
        if not line:
            if data_lines and event_name in ("", "message", channel):
                yield "\n".join(data_lines)
            event_name = ""
            data_lines = []
            continue
        if line.startswith(":"):
            continue  # keep-alive comment
        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "data":
            data_lines.append(value)
        elif field == "event":
            event_name = value
    if data_lines and event_name in ("", "message", channel):
        yield "\n".join(data_lines)


def _parse_event(data: str) -> Optional[LogRecord]:
    try:
        return LogRecord.model_validate(json.loads(data))
    except (json.JSONDecodeError, ValidationError) as e:
        log.warning("dropping malformed log event: %s", e)
        return None


def _log_stream_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        log.debug("event stream cancelled")
        return
    exc = task.exception()
    if exc is not None:
        log.error("event stream stopped: %r", exc)
