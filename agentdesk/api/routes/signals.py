"""
Signal Routes
=============
GET   /api/v1/signals               – recent signals, or one agent's
POST  /api/v1/signals               – store a signal
PATCH /api/v1/signals/{id}/result   – record the outcome of a signal
POST  /api/v1/signals/validate      – pre-trade risk checks
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..dependencies import get_signal_store, get_signal_validator, verify_api_key
from ..error_handlers import BadRequestError

router = APIRouter()
logger = logging.getLogger(__name__)


# ── Request Models ────────────────────────────────────────────────

class SignalIn(BaseModel):
    id: Optional[str] = None
    agent_id: str
    asset: str
    type: str = Field(..., pattern="^(Buy|Sell)$")
    signal: str = ""
    price: float
    confidence: float
    timestamp: Optional[int] = None
    result: Optional[str] = None
    profit: Optional[float] = None
    time: Optional[str] = None


class SignalResultIn(BaseModel):
    result: str
    profit: Optional[float] = None


class ValidateRequest(BaseModel):
    """``signal`` needs price, confidence and an age like ``"2h ago"``."""
    signal: Dict[str, Any]
    current_price: float
    volatility_24h: float = 0.0
    portfolio_value: Optional[float] = None


# ── Routes ────────────────────────────────────────────────────────

@router.get("/signals", summary="List signals")
async def list_signals(
    agent_id: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=500),
    signal_store=Depends(get_signal_store),
) -> List[Dict[str, Any]]:
    if agent_id:
        return signal_store.get_signals_by_agent(agent_id, limit=limit)
    return signal_store.get_recent_signals(limit=limit)


@router.post("/signals", summary="Store a signal")
async def save_signal(
    body: SignalIn,
    signal_store=Depends(get_signal_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    return signal_store.save_signal(body.model_dump(exclude_none=True))


@router.patch("/signals/{signal_id}/result", summary="Record a signal outcome")
async def update_signal_result(
    signal_id: str,
    body: SignalResultIn,
    signal_store=Depends(get_signal_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    try:
        signal_store.update_signal_result(signal_id, body.result, body.profit)
    except ValueError as exc:
        raise BadRequestError(str(exc))
    return {"success": True}


@router.post("/signals/validate", summary="Validate a signal before trading")
async def validate_signal(
    body: ValidateRequest,
    validator=Depends(get_signal_validator),
) -> Dict[str, Any]:
    missing = [k for k in ("price", "confidence") if k not in body.signal]
    if missing:
        raise BadRequestError(f"Signal is missing {', '.join(missing)}")

    try:
        result = validator.validate_signal(body.signal, body.current_price, body.volatility_24h)
    except (TypeError, ValueError) as exc:
        raise BadRequestError(str(exc))

    out: Dict[str, Any] = {
        "is_valid": result.is_valid,
        "risk_score": result.risk_score,
        "message": result.message,
    }
    if result.is_valid:
        out["stop_loss"] = validator.calculate_stop_loss(
            float(body.signal["price"]), str(body.signal.get("type", "Buy")),
        )
        if body.portfolio_value:
            out["position_size"] = validator.calculate_position_size(
                body.portfolio_value, result.risk_score,
            )
    return out
