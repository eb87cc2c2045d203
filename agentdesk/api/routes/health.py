"""
Health & Infrastructure Routes
=================================
GET /api/v1/health      – Liveness.
GET /api/v1/health/deep – Supabase, Hyperliquid, automation and monitor status.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

import supabase_db

router = APIRouter()
logger = logging.getLogger(__name__)


# ── Response Models ───────────────────────────────────────────────

class ComponentHealth(BaseModel):
    """Status of a single infrastructure component."""
    name: str
    status: str = "unknown"         # healthy | degraded | down
    latency_ms: float = 0
    detail: str = ""


class HealthResponse(BaseModel):
    """Top-level health envelope."""
    status: str = "healthy"         # healthy | degraded | unhealthy
    version: str = "1.0.0"
    uptime_seconds: float = 0
    timestamp: str = ""
    components: list[ComponentHealth] = Field(default_factory=list)


# ── Quick liveness ────────────────────────────────────────────────

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Quick health check",
    description="Returns 200 if the API process is alive.",
)
async def health(request: Request):
    startup = getattr(request.app.state, "startup_time", time.time())
    return HealthResponse(
        status="healthy",
        uptime_seconds=round(time.time() - startup, 1),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


# ── Deep check ────────────────────────────────────────────────────

@router.get(
    "/health/deep",
    response_model=HealthResponse,
    summary="Deep health check",
    description="Checks Supabase, the Hyperliquid info API and background loops.",
)
async def deep_health(request: Request):
    state = request.app.state
    startup = getattr(state, "startup_time", time.time())
    components: list[ComponentHealth] = []
    overall = "healthy"

    # ── Supabase ──────────────────────────────────────────────────
    if getattr(state, "supabase_client", None) is not None or supabase_db.is_configured():
        components.append(ComponentHealth(
            name="supabase", status="healthy", detail="Client configured",
        ))
    else:
        components.append(ComponentHealth(
            name="supabase", status="down", detail="SUPABASE_URL / SUPABASE_KEY not set",
        ))
        overall = "degraded"

    # ── Hyperliquid ───────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        mids = await state.hyperliquid.get_mids()
        latency = (time.perf_counter() - t0) * 1000
        components.append(ComponentHealth(
            name="hyperliquid", status="healthy", latency_ms=round(latency, 1),
            detail=f"{len(mids)} mids",
        ))
    except Exception as exc:
        logger.warning("Hyperliquid health check failed: %s", exc)
        components.append(ComponentHealth(
            name="hyperliquid", status="down", detail=str(exc),
        ))
        overall = "degraded"

    # ── Background loops ──────────────────────────────────────────
    automation = state.automation
    components.append(ComponentHealth(
        name="automation",
        status="healthy" if automation.is_running else "idle",
        detail=f"{len(automation.active_agents)} active agents",
    ))
    positions = state.position_manager.get_monitoring_status()
    components.append(ComponentHealth(
        name="position_monitor",
        status="healthy" if positions["is_monitoring"] else "idle",
        detail=f"{positions['active_positions']} open positions",
    ))
    price_monitor = state.price_monitor
    components.append(ComponentHealth(
        name="price_monitor",
        status="healthy" if price_monitor.is_running else "idle",
        detail=", ".join(price_monitor.symbols) or "no subscriptions",
    ))

    return HealthResponse(
        status=overall,
        uptime_seconds=round(time.time() - startup, 1),
        timestamp=datetime.now(timezone.utc).isoformat(),
        components=components,
    )
