from __future__ import annotations

from fastapi import APIRouter

from .health import router as health_router
from .alerts import router as alerts_router
from .map import router as map_router
from .geocode import router as geocode_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(alerts_router)
api_router.include_router(map_router)
api_router.include_router(geocode_router)
