"""Process-local TTL cache for GitHub API responses.

A single ``find_unresolved_comments`` call followed by paging through the
result re-requests the same comment lists within seconds. Caching them keeps
the pages of one listing consistent with each other and spares the rate limit.

- Entries expire after ``ttl`` seconds (30 by default, see ``[cache]`` config)
- Any write (REST non-GET or GraphQL mutation) clears everything
- ``ttl = 0`` disables caching entirely
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from typing import Any

logger = logging.getLogger(__name__)

MISS = object()

_entries: dict[str, tuple[float, Any]] = {}
_lock = threading.Lock()
_ttl: float = 30.0
_hits = 0
_misses = 0


def configure(ttl: float) -> None:
    """Set the time-to-live for new and existing entries."""
    global _ttl  # noqa: PLW0603
    _ttl = max(0.0, ttl)
    if _ttl == 0:
        clear()


def make_key(*args: Any, **kwargs: Any) -> str:
    """Build a stable key from arbitrary JSON-ish arguments."""
    raw = json.dumps({"a": args, "k": kwargs}, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


def get(key: str) -> Any:
    """Return the cached value, or :data:`MISS` if absent or expired."""
    global _hits, _misses  # noqa: PLW0603
    with _lock:
        entry = _entries.get(key)
        if entry is not None:
            expires_at, value = entry
            if time.monotonic() < expires_at:
                _hits += 1
                logger.debug("Cache hit: %s", key)
                return value
            del _entries[key]
            logger.debug("Cache expired: %s", key)
        _misses += 1
        return MISS


def put(key: str, value: Any) -> None:
    """Store *value* until the configured TTL elapses."""
    if _ttl <= 0:
        return
    now = time.monotonic()
    with _lock:
        expired = [k for k, (expires_at, _) in _entries.items() if expires_at <= now]
        for stale in expired:
            del _entries[stale]
        _entries[key] = (now + _ttl, value)
    logger.debug("Cache put: %s", key)


def clear() -> None:
    """Drop every entry."""
    with _lock:
        if _entries:
            logger.debug("Cache cleared (%d entries)", len(_entries))
        _entries.clear()


def stats() -> dict[str, float | int]:
    """Entry count, hit/miss counters and the active TTL."""
    with _lock:
        return {"entries": len(_entries), "hits": _hits, "misses": _misses, "ttl": _ttl}


def reset() -> None:
    """Clear entries and counters and restore the default TTL."""
    global _hits, _misses, _ttl  # noqa: PLW0603
    clear()
    _hits = 0
    _misses = 0
    _ttl = 30.0
