"""In-process cache for the read views.

Entries live until the next invalidation; writes go through ViewInvalidator.
"""

import logging
import time
from typing import Any

logger = logging.getLogger(__name__)

# Safety net in case an invalidation is missed
MAX_AGE_SECONDS = 600

_cache: dict[tuple, tuple[float, Any]] = {}


def get_cached(key: tuple) -> Any | None:
    entry = _cache.get(key)
    if entry is None:
        return None
    stored_at, value = entry
    if time.monotonic() - stored_at > MAX_AGE_SECONDS:
        _cache.pop(key, None)
        return None
    return value


def set_cached(key: tuple, value: Any) -> None:
    _cache[key] = (time.monotonic(), value)


def clear_cache() -> int:
    count = len(_cache)
    _cache.clear()
    logger.debug("Cleared %d cached views", count)
    return count
