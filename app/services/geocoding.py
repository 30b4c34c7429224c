"""
Nominatim location search for the report form's address box.

Docs: https://nominatim.org/release-docs/develop/api/Search/

Keystrokes arrive much faster than Nominatim's usage policy allows, so every
lookup goes through a Debouncer: a query only hits the network if no newer
query arrived during the debounce window, and a response is only applied if
no newer query started while it was in flight. Results are memoised in the
process-wide TTL cache.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import httpx
from cachetools import TTLCache

from app.core.cache import get_cache
from app.core.contracts import GeocodeItem, GeocodeResponse
from app.core.keying import geocode_key
from app.core.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer:
    """Latest-wins gate for async lookups."""

    def __init__(self, delay_s: float) -> None:
        self.delay_s = float(delay_s)
        self._seq = 0

    def supersede(self) -> None:
        """Invalidate everything pending without starting a new call."""
        self._seq += 1

    async def run(self, fn: Callable[[], Awaitable[T]]) -> Optional[T]:
        self._seq += 1
        mine = self._seq

        await asyncio.sleep(self.delay_s)
        if mine != self._seq:
            return None

        try:
            result = await fn()
        except Exception as exc:
            # a failure of a superseded lookup is as stale as its result
            if mine != self._seq:
                logger.debug("[geocode] discarding out-of-date failure seq=%d latest=%d: %s", mine, self._seq, exc)
                return None
            raise
        if mine != self._seq:
            logger.debug("[geocode] discarding out-of-date result seq=%d latest=%d", mine, self._seq)
            return None
        return result


def _item_from_result(res: Any) -> Optional[GeocodeItem]:
    if not isinstance(res, dict):
        return None
    try:
        lat = float(res.get("lat"))
        lng = float(res.get("lon"))
    except (TypeError, ValueError):
        return None
    if lat != lat or lng != lng:  # NaN
        return None
    return GeocodeItem(
        display_name=str(res.get("display_name") or ""),
        lat=lat,
        lng=lng,
        type=res.get("type"),
    )


class NominatimGeocoder:
    """Thin wrapper around Nominatim forward search."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self.base_url = base_url or settings.nominatim_url
        self.country = settings.geocode_country
        self.limit = settings.geocode_limit
        self._transport = transport
        if cache is None and settings.geocode_cache_seconds > 0:
            cache = get_cache("geocode", ttl_s=settings.geocode_cache_seconds, max_entries=512)
        self._cache: Optional[TTLCache] = cache

    async def search(self, query: str) -> List[GeocodeItem]:
        query = query.strip()
        if not query:
            return []

        key = geocode_key(query, self.country, self.limit)
        cached = self._cache.get(key) if self._cache is not None else None
        if cached is not None:
            return list(cached)

        params = {
            "format": "json",
            "limit": str(self.limit),
            "countrycodes": self.country,
            "q": f"{query}, Portugal",
        }

        logger.info("nominatim_search query=%r", query)

        try:
            async with httpx.AsyncClient(timeout=settings.geocode_timeout_s, transport=self._transport) as client:
                resp = await client.get(
                    self.base_url,
                    params=params,
                    headers={"User-Agent": settings.geocode_user_agent},
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "nominatim_http_error status=%d body=%s",
                exc.response.status_code,
                exc.response.text[:500],
            )
            raise RuntimeError(f"Nominatim search failed: HTTP {exc.response.status_code}") from exc
        except httpx.TimeoutException as exc:
            logger.error("nominatim_timeout query=%r", query)
            raise RuntimeError("Nominatim search timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("nominatim_transport_error query=%r err=%s", query, exc)
            raise RuntimeError(f"Nominatim unreachable: {exc}") from exc

        items: List[GeocodeItem] = []
        for res in data if isinstance(data, list) else []:
            item = _item_from_result(res)
            if item:
                items.append(item)

        if self._cache is not None:
            self._cache[key] = items
        logger.info("nominatim_search results=%d", len(items))
        return items


class LocationSearch:
    """One per search box: debounced, latest-wins suggestions."""

    def __init__(self, geocoder: NominatimGeocoder, *, debounce_ms: Optional[int] = None) -> None:
        ms = settings.geocode_debounce_ms if debounce_ms is None else debounce_ms
        self.geocoder = geocoder
        self.debouncer = Debouncer(ms / 1000.0)

    async def suggest(self, query: str) -> GeocodeResponse:
        q = query.strip()
        if not q:
            # clearing the box cancels whatever was pending
            self.debouncer.supersede()
            return GeocodeResponse(query=query, items=[])

        items = await self.debouncer.run(lambda: self.geocoder.search(q))
        if items is None:
            return GeocodeResponse(query=query, items=[], superseded=True)
        return GeocodeResponse(query=query, items=items)
