from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header

from app.core.cache import get_cache
from app.core.contracts import GeocodeResponse
from app.core.errors import bad_gateway
from app.services.geocoding import LocationSearch, NominatimGeocoder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/geocode")

# One debounced search box per client session, forgotten after 10 idle minutes
_sessions = get_cache("geocode_sessions", ttl_s=600, max_entries=1024)


def get_geocoder() -> NominatimGeocoder:
    raise RuntimeError("NominatimGeocoder must be provided by app dependency override")


def _search_for(session: str, geocoder: NominatimGeocoder) -> LocationSearch:
    search = _sessions.get(session)
    if search is None or search.geocoder is not geocoder:
        search = LocationSearch(geocoder)
    # re-put on every use so active sessions stay alive
    _sessions[session] = search
    return search


@router.get("", response_model=GeocodeResponse)
async def geocode(
    q: str = "",
    x_session_id: str = Header(default="anon"),
    geocoder: NominatimGeocoder = Depends(get_geocoder),
) -> GeocodeResponse:
    search = _search_for(x_session_id, geocoder)
    try:
        return await search.suggest(q)
    except RuntimeError as exc:
        logger.error("geocode_failed: %s", exc)
        bad_gateway("geocode_failed", str(exc))
