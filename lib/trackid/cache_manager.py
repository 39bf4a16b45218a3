"""Centralized cache utilities (TTLCache settings & key builders)."""
from __future__ import annotations

from cachetools import TTLCache

from lib.trackid.config import (
    JOB_HISTORY_MAXSIZE,
    JOB_HISTORY_TTL_S,
    LIBRARY_CACHE_MAXSIZE,
    LIBRARY_CACHE_TTL_S,
    LIBRARY_CACHE_VERSION,
)

# Lazy-initialized caches
_library_cache: TTLCache | None = None


def get_library_cache() -> TTLCache:
    global _library_cache
    if _library_cache is None:
        _library_cache = TTLCache(maxsize=LIBRARY_CACHE_MAXSIZE, ttl=LIBRARY_CACHE_TTL_S)
    return _library_cache


def clear_library_cache() -> None:
    if _library_cache is not None:
        _library_cache.clear()


def build_library_cache_key(file_hash: str) -> str:
    return f"lib:{LIBRARY_CACHE_VERSION}:{file_hash}"


def new_job_history_cache(ttl_s: float | None = None) -> TTLCache:
    """One per JobRegistry; finished jobs expire after the TTL."""
    ttl = JOB_HISTORY_TTL_S if ttl_s is None else ttl_s
    return TTLCache(maxsize=JOB_HISTORY_MAXSIZE, ttl=ttl)
