from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # ──────────────────────────────────────────────────────────────
    # IPMA warnings feed (upstream hazard alerts)
    # ──────────────────────────────────────────────────────────────

    ipma_warnings_url: str = Field(
        default="https://api.ipma.pt/open-data/forecast/warnings/warnings_www.json",
        alias="IPMA_WARNINGS_URL",
    )
    # Hard deadline for the whole fetch (connect + read + parse)
    ipma_timeout_s: float = Field(default=8.0, alias="IPMA_TIMEOUT_S")
    ipma_source_name: str = Field(default="IPMA", alias="IPMA_SOURCE_NAME")
    ipma_source_url: str = Field(default="https://www.ipma.pt/", alias="IPMA_SOURCE_URL")
    ipma_user_agent: str = Field(default="leiria-resolve/alerts", alias="IPMA_USER_AGENT")

    alerts_cache_seconds: int = Field(default=120, alias="ALERTS_CACHE_SECONDS")

    # Alert list pagination ("ver mais" adds a step, filter change resets)
    alerts_page_size: int = Field(default=6, alias="ALERTS_PAGE_SIZE")
    alerts_page_step: int = Field(default=10, alias="ALERTS_PAGE_STEP")

    # ──────────────────────────────────────────────────────────────
    # Clustering (heatmap preview overlays)
    # ──────────────────────────────────────────────────────────────

    cluster_precision: int = Field(default=2, alias="CLUSTER_PRECISION")  # ~1.1 km cells
    cluster_top_n: int = Field(default=5, alias="CLUSTER_TOP_N")
    cluster_radius_base_m: float = Field(default=8000.0, alias="CLUSTER_RADIUS_BASE_M")
    cluster_radius_step_m: float = Field(default=2000.0, alias="CLUSTER_RADIUS_STEP_M")
    cluster_radius_cap_m: float = Field(default=30000.0, alias="CLUSTER_RADIUS_CAP_M")

    # ──────────────────────────────────────────────────────────────
    # Map surface
    # ──────────────────────────────────────────────────────────────

    # "geojson" (served to the web map) or "deck" (pydeck)
    map_backend: str = Field(default="geojson", alias="MAP_BACKEND")
    map_default_zoom: int = Field(default=6, alias="MAP_DEFAULT_ZOOM")

    # ──────────────────────────────────────────────────────────────
    # Location search (Nominatim)
    # ──────────────────────────────────────────────────────────────

    nominatim_url: str = Field(
        default="https://nominatim.openstreetmap.org/search",
        alias="NOMINATIM_URL",
    )
    geocode_country: str = Field(default="pt", alias="GEOCODE_COUNTRY")
    geocode_limit: int = Field(default=5, alias="GEOCODE_LIMIT")
    geocode_debounce_ms: int = Field(default=300, alias="GEOCODE_DEBOUNCE_MS")
    geocode_timeout_s: float = Field(default=10.0, alias="GEOCODE_TIMEOUT_S")
    geocode_cache_seconds: int = Field(default=300, alias="GEOCODE_CACHE_SECONDS")
    geocode_user_agent: str = Field(default="leiria-resolve-app", alias="GEOCODE_USER_AGENT")


settings = Settings()
