"""
Centralised configuration: all tunables in one place.
Override via environment variables where noted.
"""

import os

# ── Network ────────────────────────────────────────────────────────
MONITOR_HOST = os.getenv("MONITOR_HOST", "127.0.0.1")
MONITOR_PORT = int(os.getenv("MONITOR_PORT", "8001"))

# ── Proxy engine API ──────────────────────────────────────────────
PROXY_API_URL = os.getenv("PROXY_API_URL", "http://127.0.0.1:8045/api").rstrip("/")
PROXY_API_TIMEOUT = float(os.getenv("PROXY_API_TIMEOUT", "10.0"))   # seconds per bootstrap call
PROXY_EVENT_CHANNEL = "proxy://request"
EVENT_RECONNECT_DELAY = 2.0    # seconds before re-opening a dropped event stream

# ── Log store ─────────────────────────────────────────────────────
LOG_STORE_CAPACITY = 1000
HISTORY_FETCH_LIMIT = 1000

# Raise on a stats invariant violation instead of recomputing from the store.
STRICT_INVARIANTS = os.getenv("MONITOR_STRICT_INVARIANTS", "0") == "1"

# ── Feed fan-out ──────────────────────────────────────────────────
FEED_ERROR_DELAY = 0.1        # seconds to back off after a failed broadcast
LOG_BODY_PREVIEW_CAP = 50_000  # max chars of a pretty-printed body returned by the API
