"""
Market Data Routes
==================
Proxies to the public market-data APIs, shaped for the dashboard.

GET /api/v1/market/coins              – CoinGecko market list (formatted)
GET /api/v1/market/coins/{id}         – one coin
GET /api/v1/market/coins/{id}/chart   – price / volume history
GET /api/v1/market/tickers            – Binance 24h tickers
GET /api/v1/dexscreener/chart         – simulated DEX chart
GET /api/v1/tokens/{address}          – DexScreener token profile
GET /api/v1/hyperliquid/pairs         – tradable perp pairs
GET /api/v1/hyperliquid/market        – Hyperliquid mids + 24h context
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query

from agentdesk.config import get_config_manager
from agentdesk.market_format import format_crypto_asset
from agentdesk.monitors import get_price_sentiment
from cache import market_cache

from ..dependencies import get_binance, get_coingecko, get_dexscreener, get_hyperliquid
from ..error_handlers import BadRequestError, NotFoundError

router = APIRouter()
logger = logging.getLogger(__name__)


def _symbol_list(raw: str) -> List[str]:
    return [s.strip().upper() for s in raw.split(",") if s.strip()]


# ══════════════════════════════════════════════════════════════════
# CoinGecko
# ══════════════════════════════════════════════════════════════════

@router.get("/market/coins", summary="Ranked market list")
async def list_coins(
    per_page: int = Query(20, ge=1, le=250),
    page: int = Query(1, ge=1),
    coingecko=Depends(get_coingecko),
) -> List[Dict[str, Any]]:
    key = f"coingecko:markets:{coingecko.currency}:{per_page}:{page}"
    rows = market_cache.get(key)
    if rows is not None:
        return rows

    coins = await coingecko.get_markets(per_page=per_page, page=page)
    rows = [format_crypto_asset(c).to_dict() for c in coins]
    if rows:
        ttl = get_config_manager().get_cache_ttl("coingecko_markets", 60)
        market_cache.set(key, rows, ttl=ttl)
    return rows


@router.get("/market/coins/{coin_id}", summary="Coin detail")
async def get_coin(coin_id: str, coingecko=Depends(get_coingecko)) -> Dict[str, Any]:
    coin = await coingecko.get_coin(coin_id)
    if coin is None:
        raise NotFoundError("Coin", coin_id)
    return {**coin.to_dict(), "formatted": format_crypto_asset(coin).to_dict()}


@router.get("/market/coins/{coin_id}/chart", summary="Price history")
async def get_coin_chart(
    coin_id: str,
    days: int = Query(7, ge=1, le=365),
    coingecko=Depends(get_coingecko),
) -> Dict[str, Any]:
    history = await coingecko.get_market_chart(coin_id, days=days)
    if history is None:
        raise NotFoundError("Chart", coin_id)
    return asdict(history)


# ══════════════════════════════════════════════════════════════════
# Binance
# ══════════════════════════════════════════════════════════════════

@router.get("/market/tickers", summary="Binance 24h tickers")
async def get_tickers(
    symbols: str = Query("BTC,ETH,SOL"),
    binance=Depends(get_binance),
) -> List[Dict[str, Any]]:
    wanted = _symbol_list(symbols)
    if not wanted:
        raise BadRequestError("At least one symbol is required")
    updates = await binance.get_tickers(wanted)
    return [{**u.to_dict(), "sentiment": get_price_sentiment(u)} for u in updates]


# ══════════════════════════════════════════════════════════════════
# DexScreener
# ══════════════════════════════════════════════════════════════════

@router.get("/dexscreener/chart", summary="Simulated DEX price chart")
async def dexscreener_chart(
    symbol: str = Query(""),
    interval: str = Query("1h"),
    limit: int = Query(24),
    dexscreener=Depends(get_dexscreener),
) -> Dict[str, Any]:
    if not symbol:
        raise BadRequestError("Symbol is required")
    try:
        chart = await dexscreener.build_chart(symbol, interval=interval, limit=limit)
    except ValueError as exc:
        raise BadRequestError(str(exc))
    if chart is None:
        raise NotFoundError("Pair", symbol)
    return chart


@router.get("/tokens/{address}", summary="Token profile from DexScreener")
async def get_token(address: str, dexscreener=Depends(get_dexscreener)) -> Dict[str, Any]:
    token = await dexscreener.get_token(address)
    if token is None:
        raise NotFoundError("Token", address)
    return asdict(token)


# ══════════════════════════════════════════════════════════════════
# Hyperliquid
# ══════════════════════════════════════════════════════════════════

@router.get("/hyperliquid/pairs", summary="Tradable Hyperliquid pairs")
async def hyperliquid_pairs(hyperliquid=Depends(get_hyperliquid)) -> List[Dict[str, Any]]:
    pairs = await hyperliquid.get_trading_pairs()
    return [p.to_dict() for p in pairs]


@router.get("/hyperliquid/market", summary="Hyperliquid market snapshot")
async def hyperliquid_market(
    symbols: str = Query("BTC-USD,ETH-USD"),
    hyperliquid=Depends(get_hyperliquid),
) -> List[Dict[str, Any]]:
    wanted = _symbol_list(symbols)
    if not wanted:
        raise BadRequestError("At least one symbol is required")
    data = await hyperliquid.get_market_data(wanted)
    return [m.to_dict() for m in data]
