"""
Trading History Routes
======================
GET  /api/v1/trading-history               – trades for an agent or a wallet
POST /api/v1/trading-history               – record a trade
GET  /api/v1/trading-history/pnl           – agent P&L over a timeframe
GET  /api/v1/trading-history/positions     – position snapshots for a wallet
GET  /api/v1/trading-history/performance   – daily agent performance snapshots
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from agentdesk.trading.models import now_ms

from ..dependencies import get_history, verify_api_key
from ..error_handlers import BadRequestError

router = APIRouter()


class TradeIn(BaseModel):
    agent_id: str
    wallet_address: str
    order_id: str
    symbol: str
    side: str = Field(..., pattern="^(buy|sell)$")
    size: float = Field(..., gt=0)
    price: float = Field(..., gt=0)
    order_type: str = "Market"
    status: str = "open"
    pnl: Optional[float] = None
    fees: float = 0
    timestamp: Optional[int] = None


@router.get("/trading-history", summary="Trade records")
async def list_trades(
    agent_id: Optional[str] = Query(None),
    wallet_address: Optional[str] = Query(None),
    timeframe: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=1000),
    history=Depends(get_history),
) -> List[Dict[str, Any]]:
    try:
        if agent_id:
            return history.get_agent_trades(agent_id, timeframe, limit)
        if wallet_address:
            return history.get_wallet_trades(wallet_address, limit)
    except ValueError as exc:
        raise BadRequestError(str(exc))
    raise BadRequestError("agent_id or wallet_address is required")


@router.post("/trading-history", summary="Record a trade")
async def record_trade(
    body: TradeIn,
    history=Depends(get_history),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    trade = body.model_dump()
    trade["timestamp"] = trade["timestamp"] or now_ms()
    stored = history.record_trade(trade)
    if stored is None:
        raise BadRequestError("Trade could not be recorded", detail=body.order_id)
    return stored


@router.get("/trading-history/pnl", summary="Agent P&L")
async def agent_pnl(
    agent_id: str = Query(...),
    timeframe: str = Query("7d"),
    history=Depends(get_history),
) -> Dict[str, Any]:
    try:
        return history.calculate_agent_pnl(agent_id, timeframe)
    except ValueError as exc:
        raise BadRequestError(str(exc))


@router.get("/trading-history/positions", summary="Position snapshots")
async def position_history(
    wallet_address: str = Query(...),
    symbol: Optional[str] = Query(None),
    timeframe: Optional[str] = Query(None),
    history=Depends(get_history),
) -> List[Dict[str, Any]]:
    try:
        return history.get_position_history(wallet_address, symbol, timeframe)
    except ValueError as exc:
        raise BadRequestError(str(exc))


@router.get("/trading-history/performance", summary="Daily performance snapshots")
async def performance_history(
    agent_id: str = Query(...),
    days: int = Query(30, ge=1, le=365),
    history=Depends(get_history),
) -> List[Dict[str, Any]]:
    return history.get_agent_performance_history(agent_id, days)
