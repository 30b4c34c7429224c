from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from app.core.contracts import ClustersResponse, MapLayer, PointsBatch, SelectResponse
from app.core.errors import SurfaceStateError, not_found, service_unavailable
from app.services.clustering import cluster
from app.services.overlay import MapRuntime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/map")


def get_map_runtime() -> MapRuntime:
    raise RuntimeError("MapRuntime must be provided by app dependency override")


@router.post("/points", response_model=MapLayer)
async def map_points(
    batch: PointsBatch,
    runtime: MapRuntime = Depends(get_map_runtime),
) -> MapLayer:
    n = await runtime.replace_points(batch)
    logger.info(
        "map_points: issues=%d help=%d usable=%d",
        len(batch.issues),
        len(batch.help_requests),
        n,
    )
    return runtime.layer()


@router.get("/layer", response_model=MapLayer)
def map_layer(runtime: MapRuntime = Depends(get_map_runtime)) -> MapLayer:
    return runtime.layer()


@router.get("/clusters", response_model=ClustersResponse)
async def map_clusters(
    precision: int | None = Query(default=None, ge=0, le=6),
    top_n: int | None = Query(default=None, ge=1, le=50),
    runtime: MapRuntime = Depends(get_map_runtime),
) -> ClustersResponse:
    points = await runtime.store.read()
    p = runtime.overlay.precision if precision is None else precision
    n = runtime.overlay.top_n if top_n is None else top_n
    return ClustersResponse(
        clusters=cluster(points, p, n),
        total_points=len(points),
        precision=p,
        top_n=n,
    )


@router.post("/markers/{marker_id}/select", response_model=SelectResponse)
def map_select(marker_id: str, runtime: MapRuntime = Depends(get_map_runtime)) -> SelectResponse:
    try:
        popup = runtime.reconciler.select(marker_id)
    except SurfaceStateError as e:
        service_unavailable("map_unavailable", runtime.reconciler.error or str(e))
    except KeyError:
        not_found("marker_not_found", f"no marker {marker_id} on the current layer")
    return SelectResponse(popup=popup, selected=list(runtime.selected))
