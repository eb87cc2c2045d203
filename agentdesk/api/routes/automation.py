"""
Trading Automation Routes
=========================
GET  /api/v1/automation/status                – loop + monitor status
POST /api/v1/automation/start                 – start the loop for a wallet
POST /api/v1/automation/stop                  – stop the loop
POST /api/v1/automation/cycle                 – run one cycle now
POST /api/v1/automation/agents/{id}/enable    – enable (with config overrides)
POST /api/v1/automation/agents/{id}/disable   – disable
GET  /api/v1/automation/agents/{id}/signals   – last signals for an agent
POST /api/v1/automation/agents/{id}/test      – dry-run signal generation
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from agentdesk.config import get_config_manager

from ..dependencies import get_automation, get_db, verify_api_key
from ..error_handlers import NotFoundError, TradingHaltedError

router = APIRouter()
logger = logging.getLogger(__name__)


class StartRequest(BaseModel):
    wallet_address: str = Field(..., min_length=1)


class EnableRequest(BaseModel):
    """Any ``AutomationConfig`` field, e.g. ``max_open_positions``."""
    config: Dict[str, Any] = Field(default_factory=dict)


class TestRequest(BaseModel):
    wallet_address: Optional[str] = None


def _ensure_not_halted() -> None:
    if get_config_manager().emergency_stop():
        raise TradingHaltedError()


@router.get("/automation/status", summary="Automation status")
async def automation_status(automation=Depends(get_automation)) -> Dict[str, Any]:
    status = automation.get_status()
    cfg = get_config_manager()
    status["emergency_stop"] = cfg.emergency_stop()
    status["paper_trading"] = cfg.paper_trading()
    return status


@router.post("/automation/start", summary="Start automated trading")
async def start_automation(
    body: StartRequest,
    automation=Depends(get_automation),
    _db=Depends(get_db),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    _ensure_not_halted()
    await automation.start(body.wallet_address)
    return automation.get_status()


@router.post("/automation/stop", summary="Stop automated trading")
async def stop_automation(
    automation=Depends(get_automation),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    await automation.stop()
    return automation.get_status()


@router.post("/automation/cycle", summary="Run one automation cycle now")
async def run_cycle(
    automation=Depends(get_automation),
    _db=Depends(get_db),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, int]:
    _ensure_not_halted()
    return await automation.run_cycle()


@router.post("/automation/agents/{agent_id}/enable", summary="Enable automation for an agent")
async def enable_agent(
    agent_id: str,
    body: Optional[EnableRequest] = None,
    automation=Depends(get_automation),
    _db=Depends(get_db),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    overrides = (body or EnableRequest()).config
    if not automation.enable_agent_automation(agent_id, overrides):
        automation.load_active_agents(automation.wallet_address)
        if not automation.enable_agent_automation(agent_id, overrides):
            raise NotFoundError("Active agent", agent_id)
    return {"success": True, "agent_id": agent_id, "enabled": True}


@router.post("/automation/agents/{agent_id}/disable", summary="Disable automation for an agent")
async def disable_agent(
    agent_id: str,
    automation=Depends(get_automation),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    if not automation.disable_agent_automation(agent_id):
        raise NotFoundError("Active agent", agent_id)
    return {"success": True, "agent_id": agent_id, "enabled": False}


@router.get("/automation/agents/{agent_id}/signals", summary="Last signals for an agent")
async def agent_signals(agent_id: str, automation=Depends(get_automation)) -> List[Dict[str, Any]]:
    return [s.to_dict() for s in automation.get_last_signals(agent_id)]


@router.post("/automation/agents/{agent_id}/test", summary="Dry-run signal generation")
async def test_agent(
    agent_id: str,
    body: Optional[TestRequest] = None,
    automation=Depends(get_automation),
    _db=Depends(get_db),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    result = await automation.test_signal_generation(agent_id, (body or TestRequest()).wallet_address)
    if result["agent"] is None:
        raise NotFoundError("Active agent", agent_id)
    return result
