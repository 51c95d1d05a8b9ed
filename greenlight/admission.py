"""Request admission: client identification and rate limit enforcement."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from greenlight.background import BackgroundTaskManager
from greenlight.metrics import MetricsRecorder, default_metrics
from greenlight.rate_limiter import RateLimiterRegistry

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT_KEY = "unknown"


def _strip_port(address: str) -> str:
    """Drop a trailing port from ``host:port`` or ``[v6]:port``."""
    address = address.strip()
    if address.startswith("["):
        end = address.find("]")
        return address[1:end] if end != -1 else address[1:]
    # A bare IPv6 address has several colons and no port.
    if address.count(":") == 1:
        return address.split(":", 1)[0]
    return address


def client_key(request: Request, *, trust_forwarded: bool = False) -> str:
    """
    Derive the rate limiting identity for ``request``.

    Falls back to ``UNKNOWN_CLIENT_KEY`` when no address can be determined.
    """
    address: Optional[str] = None
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for", "")
        address = forwarded.split(",")[0] if forwarded else None
    if not address and request.client is not None:
        address = request.client.host
    if not address:
        return UNKNOWN_CLIENT_KEY
    return _strip_port(address) or UNKNOWN_CLIENT_KEY


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests from clients that have exhausted their token bucket."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        limiter: RateLimiterRegistry,
        tasks: Optional[BackgroundTaskManager] = None,
        trust_forwarded: bool = False,
        metrics: MetricsRecorder = default_metrics,
    ) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.tasks = tasks
        self.trust_forwarded = trust_forwarded
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.tasks is not None and not self.tasks.accepting:
            return JSONResponse(status_code=503, content={"error": "server is shutting down"})

        key = client_key(request, trust_forwarded=self.trust_forwarded)
        if not await self.limiter.allow(key):
            request_id = getattr(request.state, "request_id", None)
            logger.warning(
                "client=%s outcome=rate_limited request_id=%s",
                key,
                request_id,
                extra={"client": key, "request_id": request_id},
            )
            self.metrics.incr_rate_limited()
            return JSONResponse(status_code=429, content={"error": "rate limit exceeded"})
        return await call_next(request)
