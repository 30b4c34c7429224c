# app/services/overlay.py
"""
Live map overlay: point store + "data changed" broadcast + reconciliation.

Any publish on the ChangeBus triggers a full re-read of the point source and a
full re-render. There is no incremental protocol.

Each refresh takes a generation number before it starts; the reconciler drops
a refresh that completes after a newer one has already been drawn.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.core.contracts import Cluster, GeoPoint, MapLayer, PointsBatch
from app.core.errors import RenderSurfaceUnavailable
from app.core.settings import settings
from app.services.clustering import bounds_for, center_of, cluster, points_from_records
from app.services.reconciler import MarkerReconciler
from app.services.surfaces import SurfaceLoader, surface_loader

logger = logging.getLogger(__name__)

Listener = Callable[[str], Awaitable[None]]
PointSource = Callable[[], Awaitable[List[GeoPoint]]]


class ChangeBus:
    """In-process "data changed" signal."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, fn: Listener) -> Callable[[], None]:
        self._listeners.append(fn)

        def unsubscribe() -> None:
            if fn in self._listeners:
                self._listeners.remove(fn)

        return unsubscribe

    async def publish(self, topic: str = "points") -> None:
        for fn in list(self._listeners):
            await fn(topic)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class PointStore:
    """Latest issue/help snapshot. Replaced wholesale on every write."""

    def __init__(self) -> None:
        self._points: List[GeoPoint] = []

    def replace(self, batch: PointsBatch) -> List[GeoPoint]:
        points = points_from_records(batch.issues, "issue")
        points.extend(points_from_records(batch.help_requests, "help"))
        self._points = points
        return list(points)

    async def read(self) -> List[GeoPoint]:
        return list(self._points)

    def __len__(self) -> int:
        return len(self._points)


class MapOverlay:
    def __init__(
        self,
        *,
        reconciler: MarkerReconciler,
        source: PointSource,
        precision: Optional[int] = None,
        top_n: Optional[int] = None,
        zoom: Optional[int] = None,
    ) -> None:
        self.reconciler = reconciler
        self.source = source
        self.precision = settings.cluster_precision if precision is None else precision
        self.top_n = settings.cluster_top_n if top_n is None else top_n
        self.zoom = settings.map_default_zoom if zoom is None else zoom
        self._issued = 0
        self.clusters: List[Cluster] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    def attach(self, bus: ChangeBus) -> None:
        async def on_change(topic: str) -> None:
            await self.refresh()

        self._unsubscribe = bus.subscribe(on_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def refresh(self) -> bool:
        """Re-read the source, recluster, redraw. False if the result was dropped."""
        self._issued += 1
        generation = self._issued

        points = await self.source()

        # the surface may have been torn down while we were reading
        if self.reconciler.state != "ready":
            logger.debug("[overlay] surface %s — dropping generation=%d", self.reconciler.state, generation)
            return False
        if generation < self.reconciler.generation:
            return False

        clusters = cluster(points, self.precision, self.top_n)
        applied = self.reconciler.reconcile(points, clusters, generation=generation)
        if applied:
            self.clusters = clusters
            c = center_of(bounds_for(points))
            self.reconciler.set_view(c.lat, c.lng, self.zoom)
        return applied


class MapRuntime:
    """
    Everything the /map endpoints share: store, bus, reconciler, overlay.

    `start()` always builds a fresh reconciler; a disposed one is never reused.
    """

    def __init__(self, *, backend: Optional[str] = None, loader: Optional[SurfaceLoader] = None) -> None:
        self.backend = backend or settings.map_backend
        self._loader = loader
        self.bus = ChangeBus()
        self.store = PointStore()
        self.reconciler = MarkerReconciler()
        self.overlay = MapOverlay(reconciler=self.reconciler, source=self.store.read)
        self.selected: List[str] = []

    async def start(self) -> None:
        self.overlay.detach()
        self.reconciler.dispose()
        self.reconciler = MarkerReconciler(on_select=self._remember)
        self.overlay = MapOverlay(reconciler=self.reconciler, source=self.store.read)
        self.overlay.attach(self.bus)
        try:
            await self.reconciler.initialize(self._loader or surface_loader(self.backend))
        except RenderSurfaceUnavailable:
            # reconciler.error keeps the user-facing message; the rest of the API stays up
            logger.error("[map] running without a map surface (backend=%s)", self.backend)
            return
        await self.overlay.refresh()

    def stop(self) -> None:
        self.overlay.detach()
        self.reconciler.dispose()

    def _remember(self, point_id: str) -> None:
        self.selected.append(point_id)
        del self.selected[:-20]

    async def replace_points(self, batch: PointsBatch) -> int:
        points = self.store.replace(batch)
        await self.bus.publish("points")
        return len(points)

    def layer(self) -> MapLayer:
        r = self.reconciler
        surface = r.surface
        return MapLayer(
            backend=surface.backend if surface else self.backend,
            state=r.state,
            generation=r.generation,
            marker_count=surface.marker_count if surface else 0,
            overlay_count=surface.overlay_count if surface else 0,
            view=surface.view if surface else None,
            error=r.error,
            features=surface.snapshot() if surface else {},
        )

    def describe(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "state": self.reconciler.state,
            "points": len(self.store),
            "listeners": self.bus.listener_count,
        }
