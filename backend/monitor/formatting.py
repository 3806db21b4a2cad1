"""Display helpers for log records."""

import json
from datetime import datetime
from typing import Optional

from models.request_log import LogRecord

EMPTY_BODY = "Empty"


def format_body(body: Optional[str]) -> str:
    """Pretty-print a JSON payload, or return it untouched if it isn't JSON."""
    if not body:
        return EMPTY_BODY
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body
    return json.dumps(parsed, indent=2, ensure_ascii=False)


def token_usage(record: LogRecord) -> Optional[tuple[int, int]]:
    """(input, output) token counts, or None when the exchange reported none."""
    if record.input_tokens is None and record.output_tokens is None:
        return None
    return (record.input_tokens or 0, record.output_tokens or 0)


def format_timestamp(ms: int, with_date: bool = False) -> str:
    ts = datetime.fromtimestamp(ms / 1000)
    return ts.strftime("%Y-%m-%d %H:%M:%S" if with_date else "%H:%M:%S")
