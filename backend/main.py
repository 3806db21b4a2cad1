import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import FEED_ERROR_DELAY, MONITOR_HOST, MONITOR_PORT
from api.routes import router, set_controller
from api.websocket import ws_router, manager
from models.request_log import LogRecord, Stats
from monitor.ingestion import IngestionController
from proxy.client import ProxyClient

# ── Logging ────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)


def create_app(controller: Optional[IngestionController] = None) -> FastAPI:
    """Build the monitor service. Without a controller one is wired to ProxyClient."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Bootstrap the monitor + feed pump on boot, tear down on shutdown."""
        client = None
        ctl = controller
        if ctl is None:
            client = ProxyClient()
            ctl = IngestionController(client)

        feed: asyncio.Queue = asyncio.Queue()
        loop = asyncio.get_running_loop()

        def enqueue(record: LogRecord, stats: Stats) -> None:
            # listeners may fire off the loop thread
            loop.call_soon_threadsafe(feed.put_nowait, (record, stats))

        ctl.add_listener(enqueue)
        set_controller(ctl)
        await ctl.activate()
        log.info("monitor activated")

        pump_task = asyncio.create_task(_pump_feed(feed))
        yield
        ctl.deactivate()
        ctl.remove_listener(enqueue)
        set_controller(None)
        pump_task.cancel()
        try:
            await pump_task
        except asyncio.CancelledError:
            pass
        if client is not None:
            await client.aclose()

    app = FastAPI(title="Proxy Monitor", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")
    app.include_router(ws_router)
    return app


async def _pump_feed(feed: asyncio.Queue) -> None:
    """Move applied records from the controller to WebSocket subscribers."""
    while True:
        try:
            record, stats = await feed.get()
            await manager.broadcast_record(record, stats)
        except asyncio.CancelledError:
            break
        except Exception as e:
            log.error("feed pump error: %s", e)
            await asyncio.sleep(FEED_ERROR_DELAY)


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=MONITOR_HOST, port=MONITOR_PORT)
