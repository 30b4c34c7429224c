from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

# Load <repo>/.env (main.py is <repo>/app/main.py)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

from app.core.settings import settings
from app.api import api_router

from app.services.geocoding import NominatimGeocoder
from app.services.ingestion import IngestionGate
from app.services.overlay import MapRuntime

logger = logging.getLogger(__name__)

app = FastAPI(title="Leiria Resolve — Alerts & Map", version="1.0.0")

# ── Compression (must be added before CORS) ──
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        # Local web dev (Vite)
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:8080",
        "http://127.0.0.1:8080",
    ],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# ──────────────────────────────────────────────────────────────
# Shared services
# ──────────────────────────────────────────────────────────────

_map_runtime = MapRuntime(backend=settings.map_backend)
_geocoder: NominatimGeocoder | None = None


# ──────────────────────────────────────────────────────────────
# Dependency providers
# ──────────────────────────────────────────────────────────────

def provide_ingestion_gate() -> IngestionGate:
    return IngestionGate()


def provide_map_runtime() -> MapRuntime:
    return _map_runtime


def provide_geocoder() -> NominatimGeocoder:
    global _geocoder
    if _geocoder is None:
        _geocoder = NominatimGeocoder()
    return _geocoder


# ──────────────────────────────────────────────────────────────
# Dependency overrides
# ──────────────────────────────────────────────────────────────

from app.api import alerts as alerts_api
from app.api import map as map_api
from app.api import geocode as geocode_api

app.dependency_overrides[alerts_api.get_ingestion_gate] = provide_ingestion_gate
app.dependency_overrides[map_api.get_map_runtime] = provide_map_runtime
app.dependency_overrides[geocode_api.get_geocoder] = provide_geocoder

# Routes
app.include_router(api_router)


# ──────────────────────────────────────────────────────────────
# Startup / shutdown
# ──────────────────────────────────────────────────────────────

@app.on_event("startup")
async def startup():
    logger.info("[app] Starting map surface (backend=%s)", settings.map_backend)
    await _map_runtime.start()


@app.on_event("shutdown")
def shutdown():
    logger.info("[app] Shutting down — disposing map surface")
    _map_runtime.stop()
