"""
Alert Routes
============
GET    /api/v1/alerts              – a wallet's alerts
POST   /api/v1/alerts              – create
PATCH  /api/v1/alerts/{id}         – edit fields
POST   /api/v1/alerts/{id}/toggle  – flip ``active``
DELETE /api/v1/alerts/{id}         – delete (owner wallet required)
POST   /api/v1/alerts/check        – evaluate a wallet's alerts against a price
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from agentdesk.data_collectors.binance_collector import PriceUpdate, base_asset

from ..dependencies import get_alert_monitor, get_alert_store, get_binance, verify_api_key
from ..error_handlers import BadRequestError, NotFoundError

router = APIRouter()
logger = logging.getLogger(__name__)


class AlertIn(BaseModel):
    wallet_address: str = Field(..., min_length=1)
    type: str = "price"
    symbol: str = Field(..., min_length=1)
    condition: str = Field("above", pattern="^(above|below)$")
    value: float
    priority: str = "medium"
    active: bool = True


class AlertPatch(BaseModel):
    type: Optional[str] = None
    symbol: Optional[str] = None
    condition: Optional[str] = Field(None, pattern="^(above|below)$")
    value: Optional[float] = None
    priority: Optional[str] = None
    active: Optional[bool] = None


class AlertCheckRequest(BaseModel):
    """Without ``price`` the live Binance ticker is used."""
    wallet_address: str
    symbol: str
    price: Optional[float] = None


@router.get("/alerts", summary="List alerts")
async def list_alerts(
    wallet_address: str = Query(...),
    alert_store=Depends(get_alert_store),
) -> List[Dict[str, Any]]:
    return alert_store.list_alerts(wallet_address)


@router.post("/alerts", summary="Create an alert")
async def create_alert(
    body: AlertIn,
    alert_store=Depends(get_alert_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    try:
        return alert_store.create_alert(
            body.model_dump(exclude={"wallet_address"}), body.wallet_address,
        )
    except ValueError as exc:
        raise BadRequestError(str(exc))


@router.patch("/alerts/{alert_id}", summary="Edit an alert")
async def update_alert(
    alert_id: str,
    body: AlertPatch,
    alert_store=Depends(get_alert_store),
    alert_monitor=Depends(get_alert_monitor),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    updated = alert_store.update_alert(alert_id, body.model_dump(exclude_none=True))
    if updated is None:
        raise NotFoundError("Alert", alert_id)
    # An edited alert may fire again.
    alert_monitor.reset(alert_id)
    return updated


@router.post("/alerts/{alert_id}/toggle", summary="Toggle an alert on or off")
async def toggle_alert(
    alert_id: str,
    alert_store=Depends(get_alert_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    toggled = alert_store.toggle_active(alert_id)
    if toggled is None:
        raise NotFoundError("Alert", alert_id)
    return toggled


@router.delete("/alerts/{alert_id}", summary="Delete an alert")
async def delete_alert(
    alert_id: str,
    wallet_address: str = Query(...),
    alert_store=Depends(get_alert_store),
    alert_monitor=Depends(get_alert_monitor),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    if not alert_store.delete_alert(alert_id, wallet_address):
        raise NotFoundError("Alert", alert_id)
    alert_monitor.reset(alert_id)
    return {"success": True}


@router.post("/alerts/check", summary="Evaluate alerts against a price")
async def check_alerts(
    body: AlertCheckRequest,
    alert_store=Depends(get_alert_store),
    alert_monitor=Depends(get_alert_monitor),
    binance=Depends(get_binance),
) -> Dict[str, Any]:
    symbol = base_asset(body.symbol)
    if body.price is not None:
        update = PriceUpdate(
            symbol=symbol, price=body.price, change_24h=0, change_percent_24h=0,
            volume_24h=0, high_24h=0, low_24h=0, timestamp=int(time.time() * 1000),
        )
    else:
        update = await binance.get_ticker(symbol)
        if update is None:
            raise NotFoundError("Ticker", symbol)

    alerts = alert_store.list_alerts(body.wallet_address)
    triggered = alert_monitor.check_alerts(alerts, update)
    return {"price": update.price, "symbol": update.symbol, "triggered": triggered}
