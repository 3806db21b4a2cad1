"""Free-text and quick-filter matching over log records."""

from dataclasses import dataclass
from typing import Iterable

from models.request_log import LogRecord


@dataclass(frozen=True)
class QuickFilter:
    """A named shortcut onto a fixed query string."""

    name: str
    label: str
    query: str
    highlight: str = ""


QUICK_FILTERS: tuple[QuickFilter, ...] = (
    QuickFilter("all", "All", ""),
    QuickFilter("error", "Errors", "40", highlight="error"),
    QuickFilter("chat", "Chat", "completions"),
    QuickFilter("gemini", "Gemini", "gemini"),
    QuickFilter("claude", "Claude", "claude"),
    QuickFilter("images", "Images", "images"),
)

_BY_NAME = {q.name: q for q in QUICK_FILTERS}


def quick_filter(name: str) -> QuickFilter:
    """Look up a preset by name. Raises KeyError for unknown names."""
    return _BY_NAME[name.lower()]


def matches(record: LogRecord, query: str) -> bool:
    """Case-insensitive substring match on url, method, model and status."""
    if not query:
        return True
    needle = query.lower()
    if needle in record.url.lower():
        return True
    if needle in record.method.lower():
        return True
    if record.model and needle in record.model.lower():
        return True
    return query in str(record.status)


def filter_records(records: Iterable[LogRecord], query: str) -> list[LogRecord]:
    """Order-preserving filter."""
    return [r for r in records if matches(r, query)]
