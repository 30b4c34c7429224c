from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_iso_to_epoch(s: Optional[str]) -> Optional[float]:
    """
    Parse an ISO-8601 timestamp to epoch seconds.

    Naive timestamps (IPMA sends "2024-01-01T10:00:00") are read as UTC.
    Returns None for anything unparseable.
    """
    if not s:
        return None
    try:
        t = str(s).strip()
        if not t:
            return None
        if t.endswith("Z"):
            t = t[:-1] + "+00:00"
        dt = datetime.fromisoformat(t)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.timestamp()
    except (TypeError, ValueError):
        return None


def epoch_or_zero(s: Optional[str]) -> float:
    ts = parse_iso_to_epoch(s)
    return ts if ts is not None else 0.0


def format_date_range(starts_at: Optional[str], ends_at: Optional[str]) -> Optional[str]:
    """ISO → "YYYY-MM-DD HH:MM — YYYY-MM-DD HH:MM" (either side may be missing)."""
    if not starts_at and not ends_at:
        return None
    s = starts_at.replace("T", " ")[:16] if starts_at else ""
    e = ends_at.replace("T", " ")[:16] if ends_at else ""
    if s and e:
        return f"{s} — {e}"
    return s or e
