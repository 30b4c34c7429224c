"""
Process-wide, time-boxed memo caches (cachetools.TTLCache).

Named caches are shared per (name, ttl): two callers asking for the same name
with different TTLs get separate caches, so a short-lived cache never inherits
a longer TTL from whoever created it first.
"""
from __future__ import annotations

import time
from typing import Callable, Dict, Tuple

from cachetools import TTLCache


def new_cache(
    *,
    ttl_s: float,
    max_entries: int = 256,
    timer: Callable[[], float] = time.monotonic,
) -> TTLCache:
    if ttl_s <= 0:
        raise ValueError("ttl_s must be positive")
    if max_entries <= 0:
        raise ValueError("max_entries must be positive")
    return TTLCache(maxsize=int(max_entries), ttl=float(ttl_s), timer=timer)


_CACHES: Dict[Tuple[str, float], TTLCache] = {}


def get_cache(name: str, *, ttl_s: float, max_entries: int = 256) -> TTLCache:
    key = (name, float(ttl_s))
    cache = _CACHES.get(key)
    if cache is None:
        cache = new_cache(ttl_s=ttl_s, max_entries=max_entries)
        _CACHES[key] = cache
    return cache


def clear_all_caches() -> None:
    for cache in _CACHES.values():
        cache.clear()
