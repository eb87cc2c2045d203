"""
Copy Trading Routes
===================
POST /api/v1/copy-trading/start           – mirror an AI position
GET  /api/v1/copy-trading/active          – a wallet's open copy trades
GET  /api/v1/copy-trading/stats           – counts and week-over-week P&L change
GET  /api/v1/copy-trading/trades          – trade history with a summary
POST /api/v1/copy-trading/update-prices   – apply latest token prices
POST /api/v1/copy-trading/{id}/close      – close a copy trade
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..dependencies import get_copy_trading_store, verify_api_key
from ..error_handlers import BadRequestError, NotFoundError

router = APIRouter()


class StartCopyIn(BaseModel):
    wallet_address: str
    token_address: str
    entry_price: float
    user_amount: float
    ai_amount: float = 0.0


class PricesIn(BaseModel):
    """Latest price per token address."""
    prices: Dict[str, float] = Field(default_factory=dict)


@router.post("/copy-trading/start", summary="Start a copy trade")
async def start_copy_trade(
    body: StartCopyIn,
    copy_trading=Depends(get_copy_trading_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    try:
        return copy_trading.start_copy_trade(
            body.wallet_address,
            body.token_address,
            body.entry_price,
            body.user_amount,
            body.ai_amount,
        )
    except ValueError as exc:
        raise BadRequestError(str(exc))


@router.get("/copy-trading/active", summary="Active copy trades")
async def active_trades(
    wallet: str = Query(...),
    limit: int = Query(10, ge=1, le=100),
    copy_trading=Depends(get_copy_trading_store),
) -> List[Dict[str, Any]]:
    return copy_trading.list_active(wallet, limit=limit)


@router.get("/copy-trading/stats", summary="Copy trading stats")
async def copy_stats(
    wallet: str = Query(...),
    copy_trading=Depends(get_copy_trading_store),
) -> Dict[str, Any]:
    return copy_trading.get_stats(wallet)


@router.get("/copy-trading/trades", summary="Copy trade history")
async def trade_history(
    wallet: str = Query(...),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    copy_trading=Depends(get_copy_trading_store),
) -> Dict[str, Any]:
    try:
        return copy_trading.list_trades(wallet, status=status, limit=limit)
    except ValueError as exc:
        raise BadRequestError(str(exc))


@router.post("/copy-trading/update-prices", summary="Refresh copy trade prices")
async def update_prices(
    body: PricesIn,
    copy_trading=Depends(get_copy_trading_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, int]:
    return {"updated": copy_trading.update_prices(body.prices)}


@router.post("/copy-trading/{trade_id}/close", summary="Close a copy trade")
async def close_trade(
    trade_id: str,
    copy_trading=Depends(get_copy_trading_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    closed = copy_trading.close_trade(trade_id)
    if closed is None:
        raise NotFoundError("Copy trade", trade_id)
    return closed
