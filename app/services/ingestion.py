# app/services/ingestion.py
"""
Ingestion gate: one bounded GET against the IPMA warnings feed.

  - Every failure surfaces as a typed IngestionError; callers never get a
    partial list.
  - The whole fetch runs under a fixed deadline (IPMA_TIMEOUT_S, 8 s).
  - A CancelToken lets a torn-down consumer stop caring. Cancellation is
    cooperative: the request may still finish, but its result is dropped.
  - Successful snapshots are memoised in the process-wide TTL cache.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import List, Optional

import httpx
from cachetools import TTLCache

from app.core.cache import get_cache
from app.core.contracts import Alert
from app.core.errors import Cancelled, IngestionError, IngestionErrorKind
from app.core.keying import alerts_key
from app.core.settings import settings
from app.services.alerts import MalformedEnvelope, normalize_envelope

logger = logging.getLogger(__name__)

_BODY_SNIPPET = 200


class CancelToken:
    """Set on teardown; checked before every state transition."""

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def check(self, stage: str) -> None:
        if self.cancelled:
            logger.debug("[ingestion] dropped late result at stage=%s", stage)
            raise Cancelled(stage)


class IngestionGate:
    def __init__(
        self,
        *,
        url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        cache_seconds: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = (settings.ipma_warnings_url if url is None else url).strip()
        self.timeout_s = float(settings.ipma_timeout_s if timeout_s is None else timeout_s)
        ttl = settings.alerts_cache_seconds if cache_seconds is None else cache_seconds
        self._cache: Optional[TTLCache] = get_cache("alerts", ttl_s=ttl) if ttl > 0 else None
        self._transport = transport

    async def fetch_alerts(self, token: Optional[CancelToken] = None) -> List[Alert]:
        token = token or CancelToken()

        if not self.url:
            raise IngestionError(
                IngestionErrorKind.CONFIG_MISSING,
                "IPMA_WARNINGS_URL is not set",
            )

        key = alerts_key(self.url)
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                token.check("cache")
                return [a.model_copy() for a in cached]

        token.check("request")
        try:
            alerts = await asyncio.wait_for(self._fetch(token), timeout=self.timeout_s)
        except asyncio.TimeoutError as exc:
            logger.warning("[ingestion] deadline exceeded url=%s timeout_s=%.1f", self.url, self.timeout_s)
            raise IngestionError(
                IngestionErrorKind.UPSTREAM_TIMEOUT,
                f"IPMA did not answer within {self.timeout_s:.0f}s",
            ) from exc

        token.check("apply")
        if self._cache is not None:
            self._cache[key] = alerts

        logger.info("[ingestion] fetched alerts=%d", len(alerts))
        return alerts

    async def _fetch(self, token: CancelToken) -> List[Alert]:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_s,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                r = await client.get(
                    self.url,
                    headers={"accept": "application/json", "User-Agent": settings.ipma_user_agent},
                )
        except httpx.TimeoutException as exc:
            logger.warning("[ingestion] upstream timeout url=%s", self.url)
            raise IngestionError(
                IngestionErrorKind.UPSTREAM_TIMEOUT,
                f"IPMA did not answer within {self.timeout_s:.0f}s",
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("[ingestion] transport error url=%s err=%s", self.url, exc)
            raise IngestionError(
                IngestionErrorKind.UPSTREAM_HTTP_ERROR,
                f"IPMA unreachable: {exc}",
            ) from exc

        token.check("response")

        text = r.text
        if not r.is_success:
            logger.error(
                "[ingestion] upstream status=%d body=%s",
                r.status_code,
                text[:_BODY_SNIPPET],
            )
            raise IngestionError(
                IngestionErrorKind.UPSTREAM_HTTP_ERROR,
                f"IPMA {r.status_code}",
                status=r.status_code,
                body=text[:_BODY_SNIPPET],
            )

        try:
            envelope = json.loads(text)
            alerts = normalize_envelope(envelope)
        except (ValueError, MalformedEnvelope) as exc:
            logger.error("[ingestion] malformed body=%s", text[:_BODY_SNIPPET])
            raise IngestionError(
                IngestionErrorKind.MALFORMED_RESPONSE,
                f"response is not a valid warnings envelope: {text[:_BODY_SNIPPET]}",
                body=text[:_BODY_SNIPPET],
            ) from exc

        token.check("parse")
        return alerts


async def fetch_alerts(token: Optional[CancelToken] = None) -> List[Alert]:
    """Fetch with the configured endpoint and deadline."""
    return await IngestionGate().fetch_alerts(token)
