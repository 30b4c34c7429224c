# app/services/alerts.py
"""
IPMA warnings → canonical Alert list.

Pure transform, no I/O (the ingestion gate owns the network).

The IPMA open-data endpoint has changed shape over the years, so every concept
is looked up under several key spellings. Records whose level is not one of
yellow/orange/red (IPMA reports "green" for "no active warning") are dropped
here and never reach the ranker or the UI.

Area codes are carried as opaque strings; labels and zones are resolved at
render time.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from app.core.contracts import Alert, AlertLevel, RawAlertRecord
from app.core.settings import settings

logger = logging.getLogger(__name__)


_AREA_KEYS = ("idAreaAviso", "areaCode", "area", "idArea")
_TYPE_KEYS = ("awarenessTypeName", "awarenessType", "type", "title")
_LEVEL_KEYS = ("awarenessLevelID", "awarenessLevel", "level")
_START_KEYS = ("startTime", "start", "startsAt")
_END_KEYS = ("endTime", "end", "endsAt")

# Envelope keys that may hold the record list, in lookup order
_ENVELOPE_KEYS = ("data", "alerts", "warnings", "features", "entries")

_LEVELS: Dict[str, AlertLevel] = {
    "yellow": "yellow",
    "orange": "orange",
    "red": "red",
}

_LEVEL_LABELS: Dict[str, str] = {
    "yellow": "AMARELO",
    "orange": "LARANJA",
    "red": "VERMELHO",
}


class MalformedEnvelope(ValueError):
    pass


# ══════════════════════════════════════════════════════════════
# Field helpers
# ══════════════════════════════════════════════════════════════

def _first(rec: Dict[str, Any], keys: Sequence[str]) -> Optional[str]:
    for k in keys:
        v = rec.get(k)
        if v is None:
            continue
        s = str(v).strip()
        if s:
            return s
    return None


def map_level(token: Any) -> AlertLevel:
    """Total, case-insensitive. Anything but yellow/orange/red is "unknown"."""
    return _LEVELS.get(str(token or "").strip().lower(), "unknown")


def level_label(level: str) -> str:
    return _LEVEL_LABELS.get(level, "ALERTA")


def alert_id(area: str, type_label: str, start: Optional[str], level: str) -> str:
    """Same upstream snapshot → same ids, so re-ingestion replaces instead of piling up."""
    return f"{area}-{type_label}-{start or ''}-{level}"


# ══════════════════════════════════════════════════════════════
# Envelope + record coercion
# ══════════════════════════════════════════════════════════════

def extract_records(envelope: Any) -> List[Any]:
    """
    Pull the record list out of the upstream JSON.

    IPMA returns a bare list; mirrors and older versions wrap it in an object.
    """
    if isinstance(envelope, list):
        return envelope
    if isinstance(envelope, dict):
        for k in _ENVELOPE_KEYS:
            v = envelope.get(k)
            if isinstance(v, list):
                return v
    raise MalformedEnvelope(f"expected a list of warnings, got {type(envelope).__name__}")


def coerce_record(rec: Any) -> Optional[RawAlertRecord]:
    if not isinstance(rec, dict):
        return None

    # GeoJSON-ish feeds keep the payload under "properties"
    props = rec.get("properties")
    if isinstance(props, dict) and not any(k in rec for k in _LEVEL_KEYS):
        rec = props

    area = _first(rec, _AREA_KEYS) or ""
    level = _first(rec, _LEVEL_KEYS) or ""
    if not area and not level:
        return None

    return RawAlertRecord(
        area=area,
        type_label=_first(rec, _TYPE_KEYS) or "Aviso",
        level=level,
        start=_first(rec, _START_KEYS),
        end=_first(rec, _END_KEYS),
    )


# ══════════════════════════════════════════════════════════════
# Normalizer
# ══════════════════════════════════════════════════════════════

def normalize(
    raw: Iterable[Any],
    *,
    source_name: Optional[str] = None,
    source_url: Optional[str] = None,
) -> List[Alert]:
    source_name = source_name or settings.ipma_source_name
    source_url = source_url or settings.ipma_source_url

    dedup: Dict[str, Alert] = {}
    dropped_level = 0
    dropped_bad = 0

    for item in raw:
        rec = item if isinstance(item, RawAlertRecord) else coerce_record(item)
        if rec is None:
            dropped_bad += 1
            continue

        level = map_level(rec.level)
        if level == "unknown":
            dropped_level += 1
            continue

        aid = alert_id(rec.area, rec.type_label, rec.start, level)
        dedup[aid] = Alert(
            id=aid,
            title=rec.type_label,
            level=level,
            area=rec.area,
            startsAt=rec.start,
            endsAt=rec.end,
            sourceName=source_name,
            sourceUrl=source_url,
        )

    if dropped_bad:
        logger.warning("[alerts] dropped %d malformed records", dropped_bad)
    logger.debug("[alerts] normalized=%d dropped_level=%d", len(dedup), dropped_level)

    return list(dedup.values())


def normalize_envelope(envelope: Any, **kwargs: Any) -> List[Alert]:
    return normalize(extract_records(envelope), **kwargs)
