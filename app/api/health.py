from __future__ import annotations

from fastapi import APIRouter

from app.core.settings import settings
from app.core.time import utc_now_iso

router = APIRouter()


@router.get("/health")
def health():
    return {
        "ok": True,
        "map_backend": settings.map_backend,
        "alerts_source": settings.ipma_source_name,
        "time": utc_now_iso(),
    }
