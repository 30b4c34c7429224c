from __future__ import annotations

import pytest

from app.core.cache import clear_all_caches


# Shape of IPMA warnings_www.json entries
IPMA_SNAPSHOT = [
    {
        "idAreaAviso": "LRA",
        "awarenessTypeName": "Vento",
        "awarenessLevelID": "orange",
        "startTime": "2024-01-01T10:00:00",
        "endTime": "2024-01-01T21:00:00",
        "text": "Rajadas até 90 km/h",
    },
    {
        "idAreaAviso": "LIS",
        "awarenessTypeName": "Chuva",
        "awarenessLevelID": "yellow",
        "startTime": "2024-01-01T09:00:00",
        "endTime": "2024-01-01T18:00:00",
    },
    {
        "idAreaAviso": "PRT",
        "awarenessTypeName": "Agitação Marítima",
        "awarenessLevelID": "green",
        "startTime": "2024-01-01T00:00:00",
        "endTime": "2024-01-02T00:00:00",
    },
    {
        "idAreaAviso": "AOC",
        "awarenessTypeName": "Trovoada",
        "awarenessLevelID": "red",
        "startTime": "2024-01-01T06:00:00",
        "endTime": "2024-01-01T12:00:00",
    },
]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _fresh_caches():
    clear_all_caches()
    yield
    clear_all_caches()


@pytest.fixture
def ipma_snapshot():
    return [dict(r) for r in IPMA_SNAPSHOT]
