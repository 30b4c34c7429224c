"""
app/services/surfaces.py

Map surface backends behind one interface.

The reconciler only ever talks to `MapSurface`; any rendering library is an
adapter:
  - GeoJSONSurface — in-memory FeatureCollection served to the web map
  - DeckSurface    — pydeck Deck (Scatterplot + Text layers)

Factory `create_surface()` / `surface_loader()` picks one from MAP_BACKEND.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from app.core.contracts import MapView, LatLng, MarkerSpec, OverlaySpec
from app.core.errors import RenderSurfaceUnavailable, SurfaceStateError

logger = logging.getLogger(__name__)

SurfaceLoader = Callable[[], Awaitable["MapSurface"]]


def hex_to_rgba(color: str, alpha: int = 230) -> List[int]:
    c = color.lstrip("#")
    if len(c) != 6:
        return [59, 130, 246, alpha]
    return [int(c[0:2], 16), int(c[2:4], 16), int(c[4:6], 16), alpha]


# ── Abstract interface ───────────────────────────────────────────────

class MapSurface(ABC):
    """Minimal drawing contract the reconciler needs from a map library."""

    backend: str = "abstract"

    def __init__(self) -> None:
        self._disposed = False
        self.view: Optional[MapView] = None

    def _ensure_open(self) -> None:
        if self._disposed:
            raise SurfaceStateError(f"{self.backend} surface is disposed")

    @abstractmethod
    def add_marker(self, spec: MarkerSpec) -> str:
        ...

    @abstractmethod
    def add_overlay(self, spec: OverlaySpec) -> str:
        ...

    @abstractmethod
    def remove_all_markers(self) -> None:
        """Drop every marker AND every overlay."""
        ...

    @property
    @abstractmethod
    def marker_count(self) -> int:
        ...

    @property
    @abstractmethod
    def overlay_count(self) -> int:
        ...

    @abstractmethod
    def snapshot(self) -> Dict[str, Any]:
        """Serializable picture of what is currently drawn."""
        ...

    def set_view(self, lat: float, lng: float, zoom: int) -> None:
        self._ensure_open()
        self.view = MapView(center=LatLng(lat=lat, lng=lng), zoom=int(zoom))

    def dispose(self) -> None:
        if self._disposed:
            return
        self.remove_all_markers()
        self._disposed = True

    @property
    def disposed(self) -> bool:
        return self._disposed


# ── GeoJSON backend (web map) ────────────────────────────────────────

class GeoJSONSurface(MapSurface):
    backend = "geojson"

    def __init__(self) -> None:
        super().__init__()
        self._markers: Dict[str, Dict[str, Any]] = {}
        self._overlays: Dict[str, Dict[str, Any]] = {}

    def add_marker(self, spec: MarkerSpec) -> str:
        self._ensure_open()
        self._markers[spec.id] = {
            "type": "Feature",
            "id": spec.id,
            "geometry": {"type": "Point", "coordinates": [spec.lng, spec.lat]},
            "properties": {
                "layer": "marker",
                "kind": spec.kind,
                "status": spec.status,
                "color": spec.color,
                "title": spec.title,
            },
        }
        return spec.id

    def add_overlay(self, spec: OverlaySpec) -> str:
        self._ensure_open()
        self._overlays[spec.id] = {
            "type": "Feature",
            "id": spec.id,
            "geometry": {"type": "Point", "coordinates": [spec.lng, spec.lat]},
            "properties": {
                "layer": "cluster",
                "radius_m": spec.radius_m,
                "color": spec.color,
                "label": spec.label,
            },
        }
        return spec.id

    def remove_all_markers(self) -> None:
        self._markers.clear()
        self._overlays.clear()

    @property
    def marker_count(self) -> int:
        return len(self._markers)

    @property
    def overlay_count(self) -> int:
        return len(self._overlays)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": list(self._overlays.values()) + list(self._markers.values()),
        }


# ── pydeck backend ───────────────────────────────────────────────────

class DeckSurface(MapSurface):
    """
    Builds a pydeck Deck on demand from the current markers/overlays.

    Markers → ScatterplotLayer (pixel radius), clusters → ScatterplotLayer in
    metres + TextLayer labels.
    """

    backend = "deck"

    def __init__(self, *, map_style: Optional[str] = None) -> None:
        try:
            import pydeck
        except ImportError as e:
            raise RenderSurfaceUnavailable(
                "pydeck is required for MAP_BACKEND=deck. Install: pip install pydeck"
            ) from e
        super().__init__()
        self._pdk = pydeck
        self._map_style = map_style
        self._markers: List[Dict[str, Any]] = []
        self._overlays: List[Dict[str, Any]] = []

    def add_marker(self, spec: MarkerSpec) -> str:
        self._ensure_open()
        self._markers.append({
            "id": spec.id,
            "lat": spec.lat,
            "lon": spec.lng,
            "title": spec.title or "",
            "status": spec.status,
            "color": hex_to_rgba(spec.color),
        })
        return spec.id

    def add_overlay(self, spec: OverlaySpec) -> str:
        self._ensure_open()
        self._overlays.append({
            "id": spec.id,
            "lat": spec.lat,
            "lon": spec.lng,
            "radius": spec.radius_m,
            "label": spec.label,
            "color": hex_to_rgba(spec.color, alpha=40),
        })
        return spec.id

    def remove_all_markers(self) -> None:
        self._markers = []
        self._overlays = []

    @property
    def marker_count(self) -> int:
        return len(self._markers)

    @property
    def overlay_count(self) -> int:
        return len(self._overlays)

    def deck(self):
        pdk = self._pdk
        layers = []
        if self._overlays:
            layers.append(pdk.Layer("ScatterplotLayer", data=self._overlays, get_position=["lon", "lat"],
                                    get_radius="radius", get_fill_color="color", stroked=True,
                                    get_line_color=[255, 87, 34, 200], line_width_min_pixels=1,
                                    pickable=False))
            layers.append(pdk.Layer("TextLayer", data=self._overlays, get_position=["lon", "lat"],
                                    get_text="label", get_size=14, get_color=[30, 30, 30, 230]))
        if self._markers:
            layers.append(pdk.Layer("ScatterplotLayer", data=self._markers, get_position=["lon", "lat"],
                                    get_radius=6, radius_units="pixels", get_fill_color="color",
                                    stroked=True, get_line_color=[255, 255, 255, 255],
                                    line_width_min_pixels=2, pickable=True))

        if self.view:
            vs = pdk.ViewState(latitude=self.view.center.lat, longitude=self.view.center.lng, zoom=self.view.zoom)
        else:
            vs = pdk.ViewState(latitude=39.5, longitude=-7.8, zoom=6)

        kwargs: Dict[str, Any] = {"layers": layers, "initial_view_state": vs,
                                  "tooltip": {"html": "<b>{title}</b>"} if self._markers else None}
        if self._map_style:
            kwargs["map_style"] = self._map_style
        return pdk.Deck(**kwargs)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "type": "DeckSnapshot",
            "markers": list(self._markers),
            "overlays": list(self._overlays),
        }


# ── Factory ──────────────────────────────────────────────────────────

_BACKENDS: Dict[str, Callable[[], MapSurface]] = {
    "geojson": GeoJSONSurface,
    "deck": DeckSurface,
}


def create_surface(backend: str) -> MapSurface:
    factory = _BACKENDS.get((backend or "").strip().lower())
    if factory is None:
        raise RenderSurfaceUnavailable(
            f"unknown map backend {backend!r} (expected one of: {', '.join(sorted(_BACKENDS))})"
        )
    return factory()


def surface_loader(backend: str) -> SurfaceLoader:
    """Async loader, mirroring how browser map libraries initialize."""

    async def load() -> MapSurface:
        await asyncio.sleep(0)
        surface = create_surface(backend)
        logger.info("[surface] %s backend ready", surface.backend)
        return surface

    return load


def backends() -> Tuple[str, ...]:
    return tuple(sorted(_BACKENDS))
