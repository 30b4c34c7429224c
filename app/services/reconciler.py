# app/services/reconciler.py
"""
Marker reconciler: owns a map surface and keeps it equal to the latest
filtered/clustered data.

Every pass is a full replace (remove everything, redraw everything). Marker
sets here are small (bounded by realistic issue counts), so correctness wins
over redraw cost and stale markers cannot survive a pass.

Surface lifecycle: uninitialized → ready → disposed. Drawing is only allowed
in `ready`; a disposed reconciler never comes back (build a new one).
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from app.core.contracts import Cluster, GeoPoint, MarkerSpec, OverlaySpec, Popup, SurfaceState
from app.core.errors import RenderSurfaceUnavailable, SurfaceStateError
from app.services.surfaces import MapSurface, SurfaceLoader

logger = logging.getLogger(__name__)


STATUS_COLORS: Dict[str, str] = {
    # issues
    "open": "#ef4444",          # red-500
    "in_progress": "#f59e0b",   # amber-500
    "resolved": "#16a34a",      # green-600
    # help requests
    "need": "#dc2626",          # red-600
    "offer": "#059669",         # emerald-600
}
FALLBACK_COLOR = "#3b82f6"      # blue-500, statuses we don't know
CLUSTER_COLOR = "#ff5722"

_STATUS_LABELS: Dict[str, str] = {
    "open": "Aberto",
    "in_progress": "Em progresso",
    "resolved": "Resolvido",
    "need": "Pedido de ajuda",
    "offer": "Oferta de ajuda",
}


def marker_color(status: str) -> str:
    return STATUS_COLORS.get(status, FALLBACK_COLOR)


def cluster_label(count: int) -> str:
    return f"{count} ocorrências"


class CallbackRef:
    """
    Mutable cell holding the host's current callback.

    Marker handlers read `.current` at click time, so swapping the callback
    never requires rebuilding markers.
    """

    def __init__(self, fn: Optional[Callable[..., Any]] = None) -> None:
        self.current = fn

    def set(self, fn: Optional[Callable[..., Any]]) -> None:
        self.current = fn

    def __call__(self, *args: Any) -> Any:
        fn = self.current
        if fn is None:
            return None
        return fn(*args)


class MarkerReconciler:
    def __init__(self, *, on_select: Optional[Callable[[str], Any]] = None) -> None:
        self._state: SurfaceState = "uninitialized"
        self._surface: Optional[MapSurface] = None
        self._on_select = CallbackRef(on_select)
        self._handlers: Dict[str, Callable[[], Popup]] = {}
        self._generation = 0
        self.error: Optional[str] = None

    # ──────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────

    @property
    def state(self) -> SurfaceState:
        return self._state

    @property
    def surface(self) -> Optional[MapSurface]:
        return self._surface

    @property
    def generation(self) -> int:
        return self._generation

    async def initialize(self, loader: SurfaceLoader) -> bool:
        """
        Await the map library. Returns False when the reconciler was disposed
        while loading (the late surface is thrown away).
        """
        if self._state != "uninitialized":
            raise SurfaceStateError(f"cannot initialize from state={self._state}")

        try:
            surface = await loader()
        except Exception as e:
            self.error = f"Não foi possível inicializar o mapa: {e}"
            logger.error("[map] surface init failed: %s", e)
            raise RenderSurfaceUnavailable(str(e)) from e

        if self._state == "disposed":
            logger.info("[map] disposed during init — dropping late %s surface", surface.backend)
            surface.dispose()
            return False

        self._surface = surface
        self._state = "ready"
        self.error = None
        return True

    def dispose(self) -> None:
        if self._state == "disposed":
            return
        if self._surface is not None:
            self._surface.dispose()
        self._handlers.clear()
        self._surface = None
        self._state = "disposed"
        logger.info("[map] surface disposed")

    def _ready_surface(self) -> MapSurface:
        if self._state != "ready" or self._surface is None:
            raise SurfaceStateError(f"surface is {self._state}, markers need ready")
        return self._surface

    # ──────────────────────────────────────────────────────────
    # Selection
    # ──────────────────────────────────────────────────────────

    def set_on_select(self, fn: Optional[Callable[[str], Any]]) -> None:
        self._on_select.set(fn)

    def _make_handler(self, marker_id: str, point: GeoPoint) -> Callable[[], Popup]:
        on_select = self._on_select

        def handle() -> Popup:
            popup = build_popup(marker_id, point)
            if point.id is not None:
                on_select(point.id)
            return popup

        return handle

    def select(self, marker_id: str) -> Popup:
        """Click on a marker: build its popup now and notify the host."""
        self._ready_surface()
        handler = self._handlers.get(marker_id)
        if handler is None:
            raise KeyError(marker_id)
        return handler()

    # ──────────────────────────────────────────────────────────
    # Reconciliation
    # ──────────────────────────────────────────────────────────

    def reconcile(
        self,
        points: Iterable[GeoPoint],
        clusters: Sequence[Cluster] = (),
        *,
        generation: Optional[int] = None,
    ) -> bool:
        """
        Replace everything on the surface. Returns False (and draws nothing)
        when `generation` is older than what is already displayed.
        """
        surface = self._ready_surface()

        if generation is not None:
            if generation < self._generation:
                logger.debug("[map] discarding stale generation=%d (showing %d)", generation, self._generation)
                return False
            self._generation = generation

        surface.remove_all_markers()
        self._handlers.clear()

        for i, c in enumerate(clusters):
            surface.add_overlay(
                OverlaySpec(
                    id=f"cluster:{i}",
                    lat=c.centroid.lat,
                    lng=c.centroid.lng,
                    radius_m=c.radius_m,
                    color=CLUSTER_COLOR,
                    label=cluster_label(c.count),
                )
            )

        for i, p in enumerate(points):
            marker_id = _marker_id(p, i)
            if marker_id in self._handlers:
                marker_id = f"{marker_id}~{i}"
            surface.add_marker(
                MarkerSpec(
                    id=marker_id,
                    lat=p.latitude,
                    lng=p.longitude,
                    color=marker_color(p.status),
                    kind=p.kind,
                    status=p.status,
                    title=p.title,
                )
            )
            self._handlers[marker_id] = self._make_handler(marker_id, p)

        logger.debug(
            "[map] reconciled markers=%d overlays=%d generation=%d",
            surface.marker_count,
            surface.overlay_count,
            self._generation,
        )
        return True

    def set_view(self, lat: float, lng: float, zoom: int) -> None:
        self._ready_surface().set_view(lat, lng, zoom)

    @property
    def marker_ids(self) -> List[str]:
        return list(self._handlers)


def _marker_id(p: GeoPoint, idx: int) -> str:
    if p.id:
        return f"{p.kind}:{p.id}"
    return f"{p.kind}:#{idx}"


def build_popup(marker_id: str, p: GeoPoint) -> Popup:
    default_title = "Ocorrência" if p.kind == "issue" else "Pedido"
    link = f"/issue/{p.id}" if p.kind == "issue" and p.id else None
    return Popup(
        marker_id=marker_id,
        title=p.title or default_title,
        body=_STATUS_LABELS.get(p.status, p.status.replace("_", " ")),
        link=link,
    )
