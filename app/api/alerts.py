from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, Query

from app.core.cache import get_cache
from app.core.contracts import (
    AlertCard,
    AlertsResponse,
    AlertsView,
    FilterState,
    LevelFilter,
    ViewError,
    ZoneFilter,
)
from app.core.errors import IngestionError, raise_http_for_ingestion
from app.core.time import format_date_range, utc_now_iso
from app.core.zones import area_display
from app.services.alerts import level_label
from app.services.ingestion import IngestionGate
from app.services.ranking import AlertPager, view, zone_counts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts")


def get_ingestion_gate() -> IngestionGate:
    raise RuntimeError("IngestionGate must be provided by app dependency override")


# ──────────────────────────────────────────────────────────────
# /alerts: full normalized list
# ──────────────────────────────────────────────────────────────

@router.get("", response_model=AlertsResponse)
async def alerts_list(gate: IngestionGate = Depends(get_ingestion_gate)) -> AlertsResponse:
    try:
        alerts = await gate.fetch_alerts()
    except IngestionError as e:
        logger.warning("alerts_list failed: %s", e)
        raise_http_for_ingestion(e)
    return AlertsResponse(alerts=alerts)


# ──────────────────────────────────────────────────────────────
# /alerts/view: one page of the ranked list, errors become a banner
# ──────────────────────────────────────────────────────────────

# "Ver mais" cursor per client session, forgotten after 10 idle minutes
_pagers = get_cache("alert_pagers", ttl_s=600, max_entries=1024)


def _pager_for(session: str) -> AlertPager:
    pager = _pagers.get(session)
    if pager is None:
        pager = AlertPager()
    _pagers[session] = pager
    return pager


@router.get("/view", response_model=AlertsView)
async def alerts_view(
    zone: ZoneFilter = "all",
    level: LevelFilter = "all",
    q: str = "",
    step: Optional[Literal["more", "less"]] = None,
    visible: int | None = Query(default=None, ge=0),
    x_session_id: str = Header(default="anon"),
    gate: IngestionGate = Depends(get_ingestion_gate),
) -> AlertsView:
    filters = FilterState(zone=zone, level=level, query=q)

    # a filter change resets the cursor before any step is applied
    pager = _pager_for(x_session_id)
    pager.set_filters(filters)
    if step == "more":
        pager.more()
    elif step == "less":
        pager.less()
    if visible is not None:
        pager.visible = visible

    try:
        alerts = await gate.fetch_alerts()
    except IngestionError as e:
        logger.warning("alerts_view showing banner: %s", e)
        return AlertsView(
            filters=filters,
            error=ViewError(code=e.kind.value, message=e.message),
            created_at=utc_now_iso(),
        )

    ranked = view(alerts, filters)
    page = pager.page(ranked)

    return AlertsView(
        filters=filters,
        items=[
            AlertCard(
                alert=a,
                area_display=area_display(a.area),
                level_label=level_label(a.level),
                date_range=format_date_range(a.startsAt, a.endsAt),
            )
            for a in page
        ],
        total=len(ranked),
        visible=len(page),
        has_more=pager.has_more(ranked),
        zone_counts=zone_counts(alerts),
        created_at=utc_now_iso(),
    )
