"""
FastAPI Dependencies
======================
Shared dependency-injection functions for the API routes.

Provides:
  - ``verify_api_key``   → ``X-API-Key`` guard for mutating routes
  - ``verify_admin_key`` → ``X-Admin-Key`` guard for beta-code admin routes
  - ``get_db``           → Supabase client, or 503 when not configured
  - ``get_*``            → services and stores built by ``create_app``
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Optional

from fastapi import Depends, Header, HTTPException, Request, status

import supabase_db

from .error_handlers import DatabaseUnavailableError

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════
# Configuration
# ══════════════════════════════════════════════════════════════════

def _parse_keys(raw: str) -> frozenset:
    return frozenset(k.strip() for k in raw.split(",") if k.strip())


@lru_cache()
def _api_keys() -> frozenset:
    """Load valid API keys from env (comma-separated)."""
    return _parse_keys(os.getenv("AGENTDESK_API_KEYS", ""))


@lru_cache()
def _admin_keys() -> frozenset:
    return _parse_keys(os.getenv("AGENTDESK_ADMIN_KEYS", ""))


def reset_key_cache() -> None:
    """Re-read key env vars on next request (tests and hot config reloads)."""
    _api_keys.cache_clear()
    _admin_keys.cache_clear()


# ══════════════════════════════════════════════════════════════════
# Auth / API Key
# ══════════════════════════════════════════════════════════════════

async def verify_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> str:
    """
    Validate the ``X-API-Key`` header.

    If no keys are configured (dev mode), any request is accepted.
    Returns the validated key or ``"dev"`` in open mode.
    """
    valid_keys = _api_keys()
    if not valid_keys:
        # Dev mode – no auth required
        return "dev"
    if not x_api_key or x_api_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return x_api_key


async def verify_admin_key(
    x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
) -> str:
    """Same contract as ``verify_api_key`` against ``AGENTDESK_ADMIN_KEYS``."""
    valid_keys = _admin_keys()
    if not valid_keys:
        return "dev"
    if not x_admin_key or x_admin_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin key required",
        )
    return x_admin_key


# ══════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════

async def get_db(request: Request) -> Any:
    """
    The Supabase client the stores use: the one handed to ``create_app``,
    else the ``supabase_db`` singleton.
    """
    client = getattr(request.app.state, "supabase_client", None)
    if client is not None:
        return client
    try:
        return supabase_db.get_supabase()
    except RuntimeError as exc:
        logger.warning("Supabase unavailable: %s", exc)
        raise DatabaseUnavailableError(str(exc))


# ══════════════════════════════════════════════════════════════════
# Services (built once in create_app, stored on app.state)
# ══════════════════════════════════════════════════════════════════

def _state(request: Request, name: str) -> Any:
    return getattr(request.app.state, name)


async def get_coingecko(request: Request):
    return _state(request, "coingecko")


async def get_dexscreener(request: Request):
    return _state(request, "dexscreener")


async def get_binance(request: Request):
    return _state(request, "binance")


async def get_hyperliquid(request: Request):
    return _state(request, "hyperliquid")


async def get_agent_service(request: Request):
    return _state(request, "agent_service")


async def get_signal_validator(request: Request):
    return _state(request, "signal_validator")


async def get_automation(request: Request):
    return _state(request, "automation")


async def get_position_manager(request: Request):
    return _state(request, "position_manager")


async def get_alert_monitor(request: Request):
    return _state(request, "alert_monitor")


# ── Stores: require a reachable database ─────────────────────────

async def get_history(request: Request, _db: Any = Depends(get_db)):
    return _state(request, "history")


async def get_agent_store(request: Request, _db: Any = Depends(get_db)):
    return _state(request, "agent_store")


async def get_signal_store(request: Request, _db: Any = Depends(get_db)):
    return _state(request, "signal_store")


async def get_alert_store(request: Request, _db: Any = Depends(get_db)):
    return _state(request, "alert_store")


async def get_settings_store(request: Request, _db: Any = Depends(get_db)):
    return _state(request, "settings_store")


async def get_community_store(request: Request, _db: Any = Depends(get_db)):
    return _state(request, "community_store")


async def get_beta_store(request: Request, _db: Any = Depends(get_db)):
    return _state(request, "beta_store")


async def get_copy_trading_store(request: Request, _db: Any = Depends(get_db)):
    return _state(request, "copy_trading_store")
