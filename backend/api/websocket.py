import json
import logging

from fastapi import WebSocket, WebSocketDisconnect, APIRouter

from models.request_log import LogRecord, Stats
from monitor.filters import matches

log = logging.getLogger(__name__)
ws_router = APIRouter()


class ConnectionManager:
    """Tracks feed subscribers and pushes matching records to each of them."""

    def __init__(self) -> None:
        # connection -> that client's filter query
        self.active_connections: dict[WebSocket, str] = {}

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections[websocket] = ""
        log.info("ws client connected (%d total)", len(self.active_connections))

    def disconnect(self, websocket: WebSocket) -> None:
        self.active_connections.pop(websocket, None)
        log.info("ws client disconnected (%d total)", len(self.active_connections))

    def set_query(self, websocket: WebSocket, query: str) -> None:
        if websocket in self.active_connections:
            self.active_connections[websocket] = query

    async def broadcast_record(self, record: LogRecord, stats: Stats) -> None:
        message = {
            "type": "request_log",
            "data": record.model_dump(),
            "stats": stats.model_dump(),
        }
        disconnected: list[WebSocket] = []
        for conn, query in list(self.active_connections.items()):
            if not matches(record, query):
                continue
            try:
                await conn.send_json(message)
            except Exception:
                disconnected.append(conn)
        for conn in disconnected:
            self.disconnect(conn)


manager = ConnectionManager()


@ws_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await manager.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
                if msg.get("type") == "set_filter":
                    query = str(msg.get("query") or "")
                    manager.set_query(websocket, query)
                    await websocket.send_json({"type": "filter_set", "query": query})
            except json.JSONDecodeError:
                pass  # keep-alive or malformed
            except Exception:
                log.exception("error handling WS message")
    except WebSocketDisconnect:
        manager.disconnect(websocket)
