from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.core.zones import Zone, classify_zone


# ──────────────────────────────────────────────────────────────
# Shared
# ──────────────────────────────────────────────────────────────

class LatLng(BaseModel):
    lat: float
    lng: float


class Bounds(BaseModel):
    south: float
    west: float
    north: float
    east: float


# ──────────────────────────────────────────────────────────────
# Alerts
# ──────────────────────────────────────────────────────────────

AlertLevel = Literal["yellow", "orange", "red", "unknown"]
LevelFilter = Literal["all", "red", "orange", "yellow"]
ZoneFilter = Literal["all", "norte", "centro", "sul", "ilhas", "desconhecida"]


class RawAlertRecord(BaseModel):
    """One upstream record after key-spelling resolution. Still untrusted."""
    area: str = ""
    type_label: str = "Aviso"
    level: str = ""
    start: Optional[str] = None
    end: Optional[str] = None


class Alert(BaseModel):
    id: str
    title: str
    level: AlertLevel
    area: str                       # raw IPMA code ("LRA", "AOC", ...)
    startsAt: Optional[str] = None
    endsAt: Optional[str] = None
    sourceName: str = "IPMA"
    sourceUrl: str = "https://www.ipma.pt/"

    # Derived on every read, never stored
    @computed_field  # type: ignore[misc]
    @property
    def zone(self) -> Zone:
        return classify_zone(self.area)


class AlertsResponse(BaseModel):
    alerts: List[Alert] = Field(default_factory=list)


class FilterState(BaseModel):
    model_config = ConfigDict(frozen=True)

    zone: ZoneFilter = "all"
    level: LevelFilter = "all"
    query: str = ""


class AlertCard(BaseModel):
    """An alert plus its render-time labels."""
    alert: Alert
    area_display: str
    level_label: str
    date_range: Optional[str] = None


class ViewError(BaseModel):
    code: str
    message: str


class AlertsView(BaseModel):
    filters: FilterState
    items: List[AlertCard] = Field(default_factory=list)
    total: int = 0
    visible: int = 0
    has_more: bool = False
    zone_counts: Dict[str, int] = Field(default_factory=dict)
    error: Optional[ViewError] = None
    created_at: str


# ──────────────────────────────────────────────────────────────
# Points + clusters
# ──────────────────────────────────────────────────────────────

PointKind = Literal["issue", "help"]


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    weight: float = 1.0
    kind: PointKind = "issue"
    status: str = "open"            # issue: open|in_progress|resolved, help: need|offer
    id: Optional[str] = None
    title: Optional[str] = None


class Cluster(BaseModel):
    centroid: LatLng
    weight: float
    count: int
    radius_m: float


class ClustersResponse(BaseModel):
    clusters: List[Cluster] = Field(default_factory=list)
    total_points: int = 0
    precision: int
    top_n: int


class PointsBatch(BaseModel):
    issues: List[Dict[str, Any]] = Field(default_factory=list)
    help_requests: List[Dict[str, Any]] = Field(default_factory=list)


# ──────────────────────────────────────────────────────────────
# Map surface
# ──────────────────────────────────────────────────────────────

SurfaceState = Literal["uninitialized", "ready", "disposed"]


class MarkerSpec(BaseModel):
    id: str
    lat: float
    lng: float
    color: str
    kind: PointKind
    status: str
    title: Optional[str] = None


class OverlaySpec(BaseModel):
    """Cluster overlay: a circle plus a text label at the centroid."""
    id: str
    lat: float
    lng: float
    radius_m: float
    color: str
    label: str


class Popup(BaseModel):
    marker_id: str
    title: str
    body: str
    link: Optional[str] = None


class MapView(BaseModel):
    center: LatLng
    zoom: int


class MapLayer(BaseModel):
    backend: str
    state: SurfaceState
    generation: int = 0
    marker_count: int = 0
    overlay_count: int = 0
    view: Optional[MapView] = None
    error: Optional[str] = None
    features: Dict[str, Any] = Field(default_factory=dict)


class SelectResponse(BaseModel):
    popup: Popup
    selected: List[str] = Field(default_factory=list)


# ──────────────────────────────────────────────────────────────
# Location search
# ──────────────────────────────────────────────────────────────

class GeocodeItem(BaseModel):
    display_name: str
    lat: float
    lng: float
    type: Optional[str] = None


class GeocodeResponse(BaseModel):
    query: str
    items: List[GeocodeItem] = Field(default_factory=list)
    superseded: bool = False
