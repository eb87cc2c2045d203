"""
Position Routes
===============
GET  /api/v1/positions                    – open positions by agent or wallet
GET  /api/v1/positions/status             – monitor status
POST /api/v1/positions/{id}/close         – close at the last seen price
POST /api/v1/positions/monitoring/start   – start stop-loss / take-profit monitoring
POST /api/v1/positions/monitoring/stop    – stop monitoring
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_position_manager, verify_api_key
from ..error_handlers import BadRequestError, NotFoundError

router = APIRouter()


@router.get("/positions", summary="Open positions")
async def list_positions(
    agent_id: Optional[str] = Query(None),
    wallet_address: Optional[str] = Query(None),
    positions=Depends(get_position_manager),
) -> List[Dict[str, Any]]:
    if agent_id:
        found = positions.get_agent_positions(agent_id)
    elif wallet_address:
        found = positions.get_wallet_positions(wallet_address)
    else:
        raise BadRequestError("agent_id or wallet_address is required")
    return [p.to_dict() for p in found]


@router.get("/positions/status", summary="Position monitor status")
async def monitoring_status(positions=Depends(get_position_manager)) -> Dict[str, Any]:
    return positions.get_monitoring_status()


@router.post("/positions/monitoring/start", summary="Start position monitoring")
async def start_monitoring(
    positions=Depends(get_position_manager),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    await positions.start_monitoring()
    return positions.get_monitoring_status()


@router.post("/positions/monitoring/stop", summary="Stop position monitoring")
async def stop_monitoring(
    positions=Depends(get_position_manager),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    await positions.stop_monitoring()
    return positions.get_monitoring_status()


@router.post("/positions/{position_id}/close", summary="Close a position manually")
async def close_position(
    position_id: str,
    positions=Depends(get_position_manager),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    if positions.get_position(position_id) is None:
        raise NotFoundError("Position", position_id)
    closed = await positions.close_position_manually(position_id)
    return {"success": closed, "position_id": position_id}
