from __future__ import annotations

from enum import Enum
from typing import Optional

from fastapi import HTTPException


# ──────────────────────────────────────────────────────────────
# HTTP helpers (raise, never return)
# ──────────────────────────────────────────────────────────────

def bad_request(code: str, message: str):
    raise HTTPException(status_code=400, detail={"code": code, "message": message})


def not_found(code: str, message: str):
    raise HTTPException(status_code=404, detail={"code": code, "message": message})


def bad_gateway(code: str, message: str):
    raise HTTPException(status_code=502, detail={"code": code, "message": message})


def service_unavailable(code: str, message: str):
    raise HTTPException(status_code=503, detail={"code": code, "message": message})


def gateway_timeout(code: str, message: str):
    raise HTTPException(status_code=504, detail={"code": code, "message": message})


# ──────────────────────────────────────────────────────────────
# Ingestion
# ──────────────────────────────────────────────────────────────

class IngestionErrorKind(str, Enum):
    CONFIG_MISSING = "ConfigMissing"
    UPSTREAM_HTTP_ERROR = "UpstreamHttpError"
    UPSTREAM_TIMEOUT = "UpstreamTimeout"
    MALFORMED_RESPONSE = "MalformedResponse"


class IngestionError(Exception):
    """Systemic failure of an alert fetch. Callers never get a partial list."""

    def __init__(
        self,
        kind: IngestionErrorKind,
        message: str,
        *,
        status: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status
        self.body = body

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.kind.value}: {self.message} (status={self.status})"
        return f"{self.kind.value}: {self.message}"


class Cancelled(Exception):
    """The caller stopped caring about a result before it was applied."""


# ──────────────────────────────────────────────────────────────
# Geometry / rendering
# ──────────────────────────────────────────────────────────────

class InvalidGeometry(ValueError):
    """A point with non-finite coordinates. Logged and skipped, never fatal."""


class RenderSurfaceUnavailable(RuntimeError):
    """The map backend failed to initialize."""


class SurfaceStateError(RuntimeError):
    """Drawing on a surface that is not in the `ready` state."""


def raise_http_for_ingestion(err: IngestionError):
    """Map a typed ingestion failure to the matching HTTP error."""
    code = err.kind.value
    if err.kind is IngestionErrorKind.CONFIG_MISSING:
        service_unavailable(code, err.message)
    if err.kind is IngestionErrorKind.UPSTREAM_TIMEOUT:
        gateway_timeout(code, err.message)
    bad_gateway(code, str(err))
