"""
AgentDesk Rate Limiting & Request Middleware
============================================
- Token-bucket rate limiting per client IP and route group
- Request logging with timing
- Security headers on every response
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════
# Rate limiting
# ══════════════════════════════════════════════════════════════════

@dataclass
class TokenBucket:
    capacity: int
    refill_rate: float  # tokens per second
    tokens: float = 0.0
    last_refill: float = field(default_factory=time.monotonic)

    def consume(self, n: int = 1) -> bool:
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self.last_refill) * self.refill_rate)
        self.last_refill = now
        if self.tokens < n:
            return False
        self.tokens -= n
        return True

    def retry_after(self) -> int:
        return max(1, int((1.0 - self.tokens) / max(self.refill_rate, 0.01)))


def per_minute(n: int) -> Tuple[int, float]:
    return n, n / 60


class RateLimiter:
    """
    Per-client rate limiting grouped by route prefix.

    Automation and trading routes: 30/min.  Market proxies: 120/min.
    Beta-code verification: 10/min.  Everything else uses DEFAULT_LIMIT.
    """

    # Longest prefixes first; the first match wins.
    ROUTE_LIMITS: Dict[str, Tuple[int, float]] = {
        "/api/v1/beta-access/verify": per_minute(10),
        "/api/v1/automation": per_minute(30),
        "/api/v1/positions": per_minute(30),
        "/api/v1/trading-history": per_minute(30),
        "/api/v1/market": per_minute(120),
        "/api/v1/dexscreener": per_minute(120),
        "/api/v1/hyperliquid": per_minute(120),
        "/api/v1/tokens": per_minute(120),
    }
    DEFAULT_LIMIT = per_minute(240)

    def __init__(self, route_limits: Optional[Dict[str, Tuple[int, float]]] = None):
        self._limits = dict(route_limits or self.ROUTE_LIMITS)
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = threading.RLock()
        self._last_cleanup = time.monotonic()

    def is_allowed(self, client_id: str, path: str) -> Tuple[bool, int]:
        """
        Returns:
            (allowed, retry_after_seconds)
        """
        group, (capacity, rate) = self._match(path)
        key = f"{client_id}:{group}"
        with self._lock:
            self._maybe_cleanup()
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(capacity=capacity, refill_rate=rate, tokens=capacity)
                self._buckets[key] = bucket
            if bucket.consume():
                return True, 0
            return False, bucket.retry_after()

    def _match(self, path: str) -> Tuple[str, Tuple[int, float]]:
        for prefix, limit in self._limits.items():
            if path.startswith(prefix):
                return prefix, limit
        return "default", self.DEFAULT_LIMIT

    def _maybe_cleanup(self) -> None:
        """Drop buckets idle for 10 minutes, checked every 5."""
        now = time.monotonic()
        if now - self._last_cleanup <= 300:
            return
        for k in [k for k, v in self._buckets.items() if now - v.last_refill > 600]:
            del self._buckets[k]
        self._last_cleanup = now


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# ══════════════════════════════════════════════════════════════════
# Starlette middleware
# ══════════════════════════════════════════════════════════════════

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """nosniff, frame denial and a referrer policy on every response; no-store on the API."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """429 with Retry-After once a client's bucket for the route is empty."""

    def __init__(self, app, rate_limiter: Optional[RateLimiter] = None):
        super().__init__(app)
        self.limiter = rate_limiter or RateLimiter()

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith("/api/") or path.startswith("/api/v1/health"):
            return await call_next(request)

        ip = client_ip(request)
        allowed, retry_after = self.limiter.is_allowed(ip, path)
        if not allowed:
            logger.warning("Rate limited: %s -> %s", ip, path)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too many requests. Please slow down.",
                    "detail": {"retry_after": retry_after},
                    "code": "RATE_LIMITED",
                },
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per /api request, WARNING for 4xx/5xx, plus an X-Process-Time-Ms header."""

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith("/api/"):
            return await call_next(request)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            "%s %s -> %d (%.0fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        response.headers["X-Process-Time-Ms"] = f"{duration_ms:.0f}"
        return response
