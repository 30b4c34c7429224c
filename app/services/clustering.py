# app/services/clustering.py
"""
Grid clustering of weighted geo-points for the density preview.

Points are bucketed by rounding lat/lng to `precision` decimals (2 → cells of
roughly 1.1 km). Each bucket keeps the sum of weights, the sum of coordinates
and a count. Centroids are the plain mean of member coordinates; weight only
decides ranking and visual size.

Only the heaviest `top_n` buckets are returned: the preview draws one circle
and one label per cluster.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from app.core.contracts import Bounds, Cluster, GeoPoint, LatLng, PointKind
from app.core.errors import InvalidGeometry
from app.core.settings import settings

logger = logging.getLogger(__name__)


# Mainland Portugal, used when there is nothing to fit
PORTUGAL_BOUNDS = Bounds(south=36.8, west=-9.6, north=42.2, east=-6.0)

_ISSUE_WEIGHTS: Dict[str, float] = {
    "open": 2.0,
    "in_progress": 1.0,
    "resolved": 0.6,
}

_HELP_WEIGHTS: Dict[str, float] = {
    "need": 1.5,
    "offer": 0.8,
}


def weight_for(kind: str, status: str) -> float:
    if kind == "help":
        return _HELP_WEIGHTS.get(status, 1.0)
    # unknown issue statuses weigh like resolved ones
    return _ISSUE_WEIGHTS.get(status, 0.6)


def _safe_float(x: Any) -> Optional[float]:
    try:
        f = float(x)
        if math.isfinite(f):
            return f
    except (TypeError, ValueError):
        return None
    return None


def _is_finite_point(p: GeoPoint) -> bool:
    return math.isfinite(p.latitude) and math.isfinite(p.longitude)


# ══════════════════════════════════════════════════════════════
# Records → GeoPoints
# ══════════════════════════════════════════════════════════════

def _coords_of(rec: Mapping[str, Any]) -> Tuple[Any, Any]:
    loc = rec.get("location")
    if isinstance(loc, Mapping):
        return loc.get("latitude", loc.get("lat")), loc.get("longitude", loc.get("lng"))
    if "location_latitude" in rec:
        return rec.get("location_latitude"), rec.get("location_longitude")
    return rec.get("latitude", rec.get("lat")), rec.get("longitude", rec.get("lng"))


def point_from_record(rec: Mapping[str, Any], kind: PointKind) -> GeoPoint:
    """Raises InvalidGeometry when either coordinate is missing or non-finite."""
    raw_lat, raw_lng = _coords_of(rec)
    lat = _safe_float(raw_lat)
    lng = _safe_float(raw_lng)
    if lat is None or lng is None:
        raise InvalidGeometry(f"non-finite coordinates lat={raw_lat!r} lng={raw_lng!r}")

    if kind == "help":
        status = str(rec.get("type") or rec.get("status") or "need")
    else:
        status = str(rec.get("status") or "open")

    rid = rec.get("id")
    return GeoPoint(
        latitude=lat,
        longitude=lng,
        weight=weight_for(kind, status),
        kind=kind,
        status=status,
        id=str(rid) if rid is not None else None,
        title=rec.get("title"),
    )


def points_from_records(records: Iterable[Any], kind: PointKind) -> List[GeoPoint]:
    out: List[GeoPoint] = []
    skipped = 0
    for rec in records:
        if not isinstance(rec, Mapping):
            skipped += 1
            continue
        try:
            out.append(point_from_record(rec, kind))
        except InvalidGeometry as e:
            skipped += 1
            logger.info("[clustering] InvalidGeometry id=%s: %s", rec.get("id"), e)
    if skipped:
        logger.warning("[clustering] skipped %d %s records without usable coordinates", skipped, kind)
    return out


# ══════════════════════════════════════════════════════════════
# Clustering
# ══════════════════════════════════════════════════════════════

@dataclass
class _Bucket:
    sum_lat: float = 0.0
    sum_lng: float = 0.0
    weight: float = 0.0
    count: int = 0


def cluster_radius(
    count: int,
    *,
    base_m: float | None = None,
    step_m: float | None = None,
    cap_m: float | None = None,
) -> float:
    """Monotonic in `count`, never below `base_m`, never above `cap_m`."""
    base = settings.cluster_radius_base_m if base_m is None else base_m
    step = settings.cluster_radius_step_m if step_m is None else step_m
    cap = settings.cluster_radius_cap_m if cap_m is None else cap_m
    return float(min(base + max(0, count) * step, cap))


def _round_half_up(x: float, precision: int) -> float:
    scale = 10 ** precision
    return math.floor(x * scale + 0.5) / scale


def bucket_key(lat: float, lng: float, precision: int) -> Tuple[float, float]:
    # half-cell boundaries go up (39.625 -> 39.63, -8.875 -> -8.87), never to even
    return (_round_half_up(lat, precision), _round_half_up(lng, precision))


def cluster(
    points: Iterable[GeoPoint],
    precision: int | None = None,
    top_n: int | None = None,
) -> List[Cluster]:
    precision = settings.cluster_precision if precision is None else int(precision)
    top_n = settings.cluster_top_n if top_n is None else int(top_n)
    if top_n <= 0:
        return []

    buckets: Dict[Tuple[float, float], _Bucket] = {}
    for p in points:
        if not _is_finite_point(p):
            logger.info("[clustering] InvalidGeometry id=%s skipped", p.id)
            continue
        b = buckets.setdefault(bucket_key(p.latitude, p.longitude, precision), _Bucket())
        b.sum_lat += p.latitude
        b.sum_lng += p.longitude
        b.weight += p.weight
        b.count += 1

    ranked = sorted(
        buckets.items(),
        key=lambda kv: (-kv[1].weight, -kv[1].count, kv[0]),
    )

    out: List[Cluster] = []
    for _, b in ranked[:top_n]:
        out.append(
            Cluster(
                centroid=LatLng(lat=b.sum_lat / b.count, lng=b.sum_lng / b.count),
                weight=b.weight,
                count=b.count,
                radius_m=cluster_radius(b.count),
            )
        )
    return out


def bounds_for(points: Iterable[GeoPoint], *, pad: float = 0.1) -> Bounds:
    """Fit-bounds box around finite points (padded), or mainland Portugal."""
    lats: List[float] = []
    lngs: List[float] = []
    for p in points:
        if _is_finite_point(p):
            lats.append(p.latitude)
            lngs.append(p.longitude)
    if not lats:
        return PORTUGAL_BOUNDS

    south, north = min(lats), max(lats)
    west, east = min(lngs), max(lngs)
    dlat = (north - south) * pad
    dlng = (east - west) * pad
    return Bounds(south=south - dlat, west=west - dlng, north=north + dlat, east=east + dlng)


def center_of(bounds: Bounds) -> LatLng:
    return LatLng(lat=(bounds.south + bounds.north) / 2, lng=(bounds.west + bounds.east) / 2)
