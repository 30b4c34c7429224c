from __future__ import annotations

import base64
import hashlib
from typing import Any, Dict

import orjson


def _orjson_dumps(obj: Any) -> bytes:
    return orjson.dumps(
        obj,
        option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
    )


def sha256_b64(data: bytes) -> str:
    h = hashlib.sha256(data).digest()
    # URL-safe base64 with no padding for brevity
    return base64.urlsafe_b64encode(h).decode("ascii").rstrip("=")


def content_key(prefix: str, payload: Dict[str, Any]) -> str:
    """Deterministic key for a JSON-able payload (sorted keys, compact)."""
    blob = prefix.encode("utf-8") + b"::" + _orjson_dumps(payload)
    return sha256_b64(blob)


def alerts_key(url: str) -> str:
    return content_key("alerts", {"url": url})


def geocode_key(query: str, country: str, limit: int) -> str:
    payload = {
        "query": query.strip().lower(),
        "country": country,
        "limit": int(limit),
    }
    return content_key("geocode", payload)
