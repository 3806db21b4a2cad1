"""Tests for the monitor HTTP API and WebSocket fan-out."""

import pytest
from fastapi.testclient import TestClient

from api.websocket import ConnectionManager
from conftest import FakeBackend, make_record
from main import create_app
from models.request_log import Stats
from monitor.ingestion import IngestionController


@pytest.fixture
def backend():
    return FakeBackend(
        history=[
            make_record(status=200, url="/v1/chat/completions", model="gpt-4o",
                        request_body='{"model":"gpt-4o","stream":false}', input_tokens=5),
            make_record(status=404, url="/v1beta/models/gemini-pro:generateContent"),
            make_record(status=500, url="/v1/messages", model="claude-3-opus"),
        ],
        stats=Stats(total=3, success=1, error=2),
    )


@pytest.fixture
def client(backend):
    app = create_app(IngestionController(backend))
    with TestClient(app) as client:
        yield client


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok", "monitor_active": True}


def test_list_logs(client):
    data = client.get("/api/monitor/logs").json()
    assert data["total_records"] == 3
    assert len(data["records"]) == 3
    assert data["stats"] == {"total": 3, "success": 1, "error": 2}
    assert data["recording"] is False


def test_list_logs_with_query_and_quick_filter(client):
    assert len(client.get("/api/monitor/logs", params={"q": "CLAUDE"}).json()["records"]) == 1
    data = client.get("/api/monitor/logs", params={"filter": "error"}).json()
    assert data["query"] == "40"
    assert [r["status"] for r in data["records"]] == [404]


def test_unknown_quick_filter(client):
    assert client.get("/api/monitor/logs", params={"filter": "bogus"}).status_code == 400


def test_get_log_details(client, backend):
    record = backend.history[0]
    data = client.get(f"/api/monitor/logs/{record.id}").json()
    assert data["request_body_pretty"] == '{\n  "model": "gpt-4o",\n  "stream": false\n}'
    assert data["response_body_pretty"] == "Empty"
    assert data["token_usage"] == {"input": 5, "output": 0}


def test_get_log_missing(client):
    assert client.get("/api/monitor/logs/nope").status_code == 404


def test_filters(client):
    names = [f["name"] for f in client.get("/api/monitor/filters").json()]
    assert names == ["all", "error", "chat", "gemini", "claude", "images"]


def test_recording_toggle(client, backend):
    assert client.get("/api/monitor/recording").json() == {"enabled": False}
    assert client.post("/api/monitor/recording", json={"enabled": True}).json() == {"enabled": True}
    assert backend.backend_recording is True
    assert client.post("/api/monitor/recording").json() == {"enabled": False}


def test_recording_toggle_failure(client, backend):
    backend.fail.add("persist_config")
    resp = client.post("/api/monitor/recording", json={"enabled": True})
    assert resp.status_code == 502
    assert resp.json()["enabled"] is False


def test_recording_rejects_non_boolean(client, backend):
    resp = client.post("/api/monitor/recording", json={"enabled": "false"})
    assert resp.status_code == 400
    assert "persist_config" not in backend.calls
    assert client.get("/api/monitor/recording").json() == {"enabled": False}


def test_clear_requires_confirmation(client, backend):
    assert client.delete("/api/monitor/logs").status_code == 409
    assert "clear_history" not in backend.calls
    assert client.delete("/api/monitor/logs", params={"confirm": "true"}).json() == {"status": "cleared"}
    assert client.get("/api/monitor/stats").json() == {"total": 0, "success": 0, "error": 0}


def test_clear_failure(client, backend):
    backend.fail.add("clear_history")
    assert client.delete("/api/monitor/logs", params={"confirm": "true"}).status_code == 502
    assert client.get("/api/monitor/stats").json()["total"] == 3


def test_websocket_set_filter(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "set_filter", "query": "gemini"})
        assert ws.receive_json() == {"type": "filter_set", "query": "gemini"}


def test_live_event_reaches_filtered_websocket(client, backend):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "set_filter", "query": "gemini"})
        assert ws.receive_json()["type"] == "filter_set"

        backend.emit(make_record(status=200, url="/v1/chat/completions"))
        live = make_record(status=503, url="/v1beta/models/gemini-pro:streamGenerateContent")
        backend.emit(live)

        message = ws.receive_json()
        assert message["type"] == "request_log"
        assert message["data"]["id"] == live.id
        assert message["stats"] == {"total": 5, "success": 2, "error": 3}


def test_lifespan_deactivates(backend):
    controller = IngestionController(backend)
    with TestClient(create_app(controller)):
        assert controller.active
    assert not controller.active
    assert backend.teardowns == 1


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def accept(self):
        pass

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("closed")
        self.sent.append(data)


@pytest.mark.asyncio
async def test_broadcast_respects_per_connection_filter():
    manager = ConnectionManager()
    everything, gemini_only, broken = FakeSocket(), FakeSocket(), FakeSocket(fail=True)
    for ws in (everything, gemini_only, broken):
        await manager.connect(ws)
    manager.set_query(gemini_only, "gemini")

    record = make_record(status=500, url="/v1/chat/completions")
    await manager.broadcast_record(record, Stats(total=1, success=0, error=1))

    assert len(everything.sent) == 1
    assert everything.sent[0]["type"] == "request_log"
    assert everything.sent[0]["data"]["id"] == record.id
    assert everything.sent[0]["stats"] == {"total": 1, "success": 0, "error": 1}
    assert gemini_only.sent == []
    assert broken not in manager.active_connections
