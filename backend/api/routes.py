import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from config import LOG_BODY_PREVIEW_CAP
from monitor.confirm import auto_confirm, deny
from monitor.errors import CommandError
from monitor.filters import QUICK_FILTERS, quick_filter
from monitor.formatting import format_body, token_usage
from monitor.ingestion import IngestionController

log = logging.getLogger(__name__)
router = APIRouter()

# Controller reference, set by main.py once the app is wired
_controller: Optional[IngestionController] = None


def set_controller(controller: Optional[IngestionController]) -> None:
    global _controller
    _controller = controller


def _unavailable() -> JSONResponse:
    return JSONResponse(status_code=503, content={"error": "Monitor not available"})


# ──────────────────────────── Health ────────────────────────────────


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "monitor_active": bool(_controller and _controller.active),
    }


# ──────────────────────────── Request Logs ────────────────────────────


@router.get("/monitor/logs")
async def list_logs(q: str = "", filter: str = None, limit: int = None):
    if not _controller:
        return _unavailable()
    query = q
    if filter:
        try:
            query = quick_filter(filter).query
        except KeyError:
            return JSONResponse(status_code=400, content={"error": f"Unknown quick filter: {filter}"})
    return _controller.view(query, limit=limit).model_dump()


@router.get("/monitor/logs/{log_id}")
async def get_log(log_id: str):
    if not _controller:
        return _unavailable()
    record = _controller.get(log_id)
    if not record:
        return JSONResponse(status_code=404, content={"error": "Log not found"})
    data = record.model_dump()
    data["request_body_pretty"] = format_body(record.request_body)[:LOG_BODY_PREVIEW_CAP]
    data["response_body_pretty"] = format_body(record.response_body)[:LOG_BODY_PREVIEW_CAP]
    usage = token_usage(record)
    data["token_usage"] = {"input": usage[0], "output": usage[1]} if usage else None
    return data


@router.delete("/monitor/logs")
async def delete_logs(confirm: bool = False):
    if not _controller:
        return _unavailable()
    try:
        cleared = await _controller.clear_logs(confirm=auto_confirm if confirm else deny)
    except CommandError as e:
        return JSONResponse(status_code=502, content={"error": str(e)})
    if not cleared:
        return JSONResponse(status_code=409, content={"error": "Clearing logs requires confirm=true"})
    return {"status": "cleared"}


@router.get("/monitor/stats")
async def get_stats():
    if not _controller:
        return _unavailable()
    return _controller.stats.snapshot().model_dump()


@router.get("/monitor/filters")
async def list_filters():
    return [
        {"name": f.name, "label": f.label, "query": f.query, "highlight": f.highlight}
        for f in QUICK_FILTERS
    ]


# ──────────────────────────── Recording ────────────────────────────


@router.get("/monitor/recording")
async def recording_status():
    if not _controller:
        return _unavailable()
    return {"enabled": _controller.recording.enabled}


@router.post("/monitor/recording")
async def recording_toggle(data: dict = None):
    if not _controller:
        return _unavailable()
    toggle = _controller.recording
    if data and "enabled" in data and not isinstance(data["enabled"], bool):
        return JSONResponse(status_code=400, content={"error": "enabled must be true or false"})
    try:
        if data and "enabled" in data:
            await toggle.set_enabled(data["enabled"])
        else:
            await toggle.toggle()
    except CommandError as e:
        return JSONResponse(status_code=502, content={"error": str(e), "enabled": toggle.enabled})
    return {"enabled": toggle.enabled}
