"""
In-process TTL cache for hot read paths (project list, recordings, tags)

Entries carry their own TTL; cachetools' TLRUCache evicts them once the
time-to-use computed at insertion has passed.
"""
import time
from typing import Any, Dict, Optional, Tuple

from cachetools import TLRUCache

from .logging_config import get_logger

logger = get_logger(__name__)


class CACHE_TTL:
    """TTL presets in seconds"""
    SHORT = 60
    MEDIUM = 300
    LONG = 600
    VERY_LONG = 1800
    EXTRA_LONG = 3600


MAX_ENTRIES = 1024


def _time_to_use(_key: str, value: Tuple[float, Any], now: float) -> float:
    ttl, _ = value
    return now + ttl


_cache: TLRUCache = TLRUCache(maxsize=MAX_ENTRIES, ttu=_time_to_use, timer=time.monotonic)
_stats: Dict[str, int] = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0, "clears": 0}


def get_cached(key: str) -> Optional[Any]:
    """Return the cached value or None when missing or expired"""
    entry = _cache.get(key)
    if entry is None:
        _stats["misses"] += 1
        return None
    _stats["hits"] += 1
    return entry[1]


def set_cached(key: str, value: Any, ttl: int = CACHE_TTL.MEDIUM) -> None:
    _cache[key] = (ttl, value)
    _stats["sets"] += 1


def invalidate_cache(key: str) -> None:
    if _cache.pop(key, None) is not None:
        _stats["deletes"] += 1


def clear_cache(pattern: Optional[str] = None) -> int:
    """
    Drop every entry whose key contains pattern, or everything when no pattern is given

    Returns:
        Number of entries removed
    """
    _stats["clears"] += 1
    if pattern is None:
        removed = len(_cache)
        _cache.clear()
        return removed

    keys = [key for key in list(_cache.keys()) if pattern in key]
    for key in keys:
        _cache.pop(key, None)
    if keys:
        logger.debug(f"Cleared {len(keys)} cache entries matching '{pattern}'")
    return len(keys)


def clear_expired_entries() -> int:
    expired = _cache.expire()
    return len(list(expired))


def get_cache_stats() -> Dict[str, Any]:
    total = _stats["hits"] + _stats["misses"]
    return {
        **_stats,
        "size": len(_cache),
        "hit_rate": round(_stats["hits"] / total, 3) if total else 0.0,
    }


def reset_cache() -> None:
    """Empty the cache and zero the counters"""
    _cache.clear()
    for key in _stats:
        _stats[key] = 0
