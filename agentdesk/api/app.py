"""
FastAPI Application Factory
==============================
Main entry-point for the AgentDesk REST API.

Run with::

    uvicorn agentdesk.api.app:app --host 0.0.0.0 --port 8000 --reload

``create_app`` wires every service onto ``app.state`` up front; the
lifespan only starts the optional background loops and closes HTTP
clients on shutdown.  Tests pass a fake Supabase client and an
``httpx.MockTransport`` to keep everything in-process.
"""

from __future__ import annotations

import logging
import os
import random
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agentdesk.analyzers import AIAgentService, SignalValidator
from agentdesk.config import get_config_manager
from agentdesk.data_collectors import BinanceCollector, CoinGeckoCollector, DexScreenerCollector
from agentdesk.monitors import AlertMonitor, PriceMonitor
from agentdesk.storage import (
    AgentStore,
    AlertStore,
    BetaAccessStore,
    CommunityStore,
    CopyTradingStore,
    SettingsStore,
    SignalStore,
)
from agentdesk.trading import (
    AITradingAutomation,
    HyperliquidService,
    PositionManager,
    TradingHistoryService,
)
from middleware import (
    RateLimiter,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    per_minute,
)

from .error_handlers import register_error_handlers

load_dotenv()

logger = logging.getLogger(__name__)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


# ══════════════════════════════════════════════════════════════════
# Service wiring
# ══════════════════════════════════════════════════════════════════

def build_services(
    app: FastAPI,
    supabase_client: Optional[Any] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
    rng: Optional[random.Random] = None,
) -> None:
    """Construct collectors, stores and trading services on ``app.state``."""
    cfg = get_config_manager()
    state = app.state
    state.supabase_client = supabase_client

    # ── Market data ───────────────────────────────────────────────
    state.coingecko = CoinGeckoCollector(transport=http_transport)
    state.dexscreener = DexScreenerCollector(transport=http_transport, rng=rng)
    state.binance = BinanceCollector(transport=http_transport)

    # ── Stores ────────────────────────────────────────────────────
    state.agent_store = AgentStore(supabase_client)
    state.signal_store = SignalStore(supabase_client)
    state.alert_store = AlertStore(supabase_client)
    state.settings_store = SettingsStore(supabase_client)
    state.community_store = CommunityStore(supabase_client)
    state.beta_store = BetaAccessStore(supabase_client)
    state.copy_trading_store = CopyTradingStore(supabase_client)
    state.history = TradingHistoryService(supabase_client)

    # ── Analysis & trading ────────────────────────────────────────
    state.agent_service = AIAgentService(state.coingecko, rng=rng)
    state.signal_validator = SignalValidator(cfg.get_signal_validation())
    state.hyperliquid = HyperliquidService(
        history=state.history,
        transport=http_transport,
        rng=rng,
        agent_store=state.agent_store,
    )
    state.position_manager = PositionManager(
        state.hyperliquid,
        history=state.history,
        client=supabase_client,
        interval=cfg.get_interval("position_check", 10),
        rng=rng,
    )
    state.automation = AITradingAutomation(
        state.hyperliquid,
        state.position_manager,
        state.agent_store,
        interval=cfg.get_interval("automation_cycle", 30),
        rng=rng,
    )

    # ── Monitors ──────────────────────────────────────────────────
    state.price_monitor = PriceMonitor(state.binance, interval=cfg.get_interval("price_poll", 5))
    state.alert_monitor = AlertMonitor()


def build_rate_limiter() -> RateLimiter:
    """Route-group limits from ``api_settings.rate_limits``."""
    cfg = get_config_manager()
    trading = per_minute(cfg.get_rate_limit("trading", 30))
    market = per_minute(cfg.get_rate_limit("market", 120))
    return RateLimiter({
        "/api/v1/beta-access/verify": per_minute(cfg.get_rate_limit("beta_verify", 10)),
        "/api/v1/automation": trading,
        "/api/v1/positions": trading,
        "/api/v1/trading-history": trading,
        "/api/v1/market": market,
        "/api/v1/dexscreener": market,
        "/api/v1/hyperliquid": market,
        "/api/v1/tokens": market,
    })


# ══════════════════════════════════════════════════════════════════
# Lifespan (startup / shutdown hooks)
# ══════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: optional autostart of the position monitor and automation loop.
    Shutdown: stop loops, close HTTP clients.
    """
    logger.info("AgentDesk API starting up …")
    state = app.state
    state.startup_time = time.time()

    try:
        if _env_flag("POSITION_MONITOR_AUTOSTART"):
            await state.position_manager.start_monitoring()

        wallet = os.getenv("AUTOMATION_WALLET_ADDRESS", "")
        if _env_flag("AUTOMATION_AUTOSTART"):
            if not wallet:
                logger.warning("AUTOMATION_AUTOSTART set without AUTOMATION_WALLET_ADDRESS")
            elif get_config_manager().emergency_stop():
                logger.warning("EMERGENCY_STOP set, automation not started")
            else:
                await state.automation.start(wallet)
    except Exception as exc:
        logger.error("Startup failed: %s", exc, exc_info=True)

    state.ready = True
    logger.info("AgentDesk API ready")

    yield  # ── Application runs ──

    # ── Shutdown ──────────────────────────────────────────────────
    logger.info("AgentDesk API shutting down …")
    await state.automation.stop()
    await state.position_manager.stop_monitoring()
    await state.price_monitor.stop()
    for client in (state.coingecko, state.dexscreener, state.binance, state.hyperliquid):
        await client.close()
    logger.info("Shutdown complete")


# ══════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════

def create_app(
    supabase_client: Optional[Any] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
    rng: Optional[random.Random] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build and return the fully-configured FastAPI application.
    """
    app = FastAPI(
        title="AgentDesk API",
        description=(
            "Backend for the AI-agent crypto trading dashboard: market data "
            "proxies, agent signals, simulated Hyperliquid trading with "
            "stop-loss / take-profit monitoring, community feed and settings."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.startup_time = time.time()
    app.state.ready = False
    build_services(app, supabase_client, http_transport, rng)

    # ── Middleware (last added runs first) ────────────────────────
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RateLimitMiddleware, rate_limiter=rate_limiter or build_rate_limiter())
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Error handlers ────────────────────────────────────────────
    register_error_handlers(app)

    # ── Routers ───────────────────────────────────────────────────
    from .routes import (
        agents_router,
        alerts_router,
        automation_router,
        beta_access_router,
        community_router,
        copy_trading_router,
        health_router,
        market_router,
        portfolio_router,
        positions_router,
        settings_router,
        signals_router,
        trading_history_router,
    )

    for router, tag in (
        (health_router, "health"),
        (market_router, "market"),
        (agents_router, "agents"),
        (signals_router, "signals"),
        (automation_router, "automation"),
        (positions_router, "positions"),
        (trading_history_router, "trading-history"),
        (alerts_router, "alerts"),
        (portfolio_router, "portfolio"),
        (community_router, "community"),
        (settings_router, "settings"),
        (beta_access_router, "beta-access"),
        (copy_trading_router, "copy-trading"),
    ):
        app.include_router(router, prefix="/api/v1", tags=[tag])

    return app


# ── Module-level app for ``uvicorn agentdesk.api.app:app`` ───────
app = create_app()
