"""
AI Agent Routes
===============
GET    /api/v1/agents                     – list (by id, wallet, active flag)
POST   /api/v1/agents                     – create / update
DELETE /api/v1/agents/{id}                – delete (owner wallet required)
POST   /api/v1/agents/{id}/analyze        – run the agent's analyzer, save the signal
POST   /api/v1/agents/{id}/train          – mock training run
GET    /api/v1/agents/{id}/performance    – P&L summary over a timeframe
GET    /api/v1/agents/{id}/analytics      – performance + risk + signal stats
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from agentdesk.analyzers.models import AgentConfig

from ..dependencies import (
    get_agent_service,
    get_agent_store,
    get_db,
    get_hyperliquid,
    get_signal_store,
    verify_api_key,
)
from ..error_handlers import BadRequestError, NotFoundError

router = APIRouter()
logger = logging.getLogger(__name__)


class TrainRequest(BaseModel):
    training_data: List[Any] = Field(default_factory=list)


def _require_agent(agent_store, agent_id: str) -> AgentConfig:
    agent = agent_store.get_agent(agent_id)
    if agent is None:
        raise NotFoundError("Agent", agent_id)
    return agent


# ══════════════════════════════════════════════════════════════════
# CRUD
# ══════════════════════════════════════════════════════════════════

@router.get("/agents", summary="List agents")
async def list_agents(
    id: Optional[str] = Query(None),
    wallet_address: Optional[str] = Query(None),
    active: bool = Query(False),
    agent_store=Depends(get_agent_store),
) -> List[Dict[str, Any]]:
    if id:
        return [_require_agent(agent_store, id).model_dump()]
    if active:
        agents = agent_store.get_active_agents(wallet_address)
    else:
        agents = agent_store.get_all_agents(wallet_address)
    return [a.model_dump() for a in agents]


@router.post("/agents", summary="Create or update an agent")
async def save_agent(
    agent: AgentConfig,
    agent_store=Depends(get_agent_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    try:
        saved = agent_store.save_agent(agent, agent.wallet_address)
    except ValueError as exc:
        raise BadRequestError(str(exc))
    return saved.model_dump()


@router.delete("/agents/{agent_id}", summary="Delete an agent")
async def delete_agent(
    agent_id: str,
    wallet_address: Optional[str] = Query(None),
    agent_store=Depends(get_agent_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    try:
        deleted = agent_store.delete_agent(agent_id, wallet_address)
    except ValueError as exc:
        raise BadRequestError(str(exc))
    if not deleted:
        raise NotFoundError("Agent", agent_id)
    return {"success": True}


# ══════════════════════════════════════════════════════════════════
# Analysis & training
# ══════════════════════════════════════════════════════════════════

@router.post("/agents/{agent_id}/analyze", summary="Generate a signal for an agent")
async def analyze_agent(
    agent_id: str,
    agent_store=Depends(get_agent_store),
    signal_store=Depends(get_signal_store),
    agent_service=Depends(get_agent_service),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    agent = _require_agent(agent_store, agent_id)
    signal = await agent_service.analyze_market(agent)
    if signal is None:
        return {"signal": None}

    saved = signal_store.save_signal({
        "id": signal.id,
        "agent_id": agent.id,
        "asset": signal.asset_id,
        "type": signal.type.value,
        "signal": signal.message,
        "price": signal.price,
        "timestamp": signal.timestamp,
        "confidence": signal.confidence,
    })
    agent_store.update_performance(agent.id, {
        "signals": agent.signals + 1,
        "lastSignal": f"{signal.type.value} {signal.asset_id}",
    })
    return {"signal": saved}


@router.post("/agents/{agent_id}/train", summary="Train an agent")
async def train_agent(
    agent_id: str,
    body: Optional[TrainRequest] = None,
    agent_store=Depends(get_agent_store),
    hyperliquid=Depends(get_hyperliquid),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    agent = _require_agent(agent_store, agent_id)
    return hyperliquid.train_agent(agent, (body or TrainRequest()).training_data)


# ══════════════════════════════════════════════════════════════════
# Performance
# ══════════════════════════════════════════════════════════════════

@router.get("/agents/{agent_id}/performance", summary="Agent P&L summary")
async def agent_performance(
    agent_id: str,
    timeframe: str = Query("1d"),
    hyperliquid=Depends(get_hyperliquid),
    _db=Depends(get_db),
) -> Dict[str, Any]:
    try:
        return hyperliquid.get_agent_performance(agent_id, timeframe)
    except ValueError as exc:
        raise BadRequestError(str(exc))


@router.get("/agents/{agent_id}/analytics", summary="Agent analytics")
async def agent_analytics(
    agent_id: str,
    timeframe: str = Query("1d"),
    hyperliquid=Depends(get_hyperliquid),
    _db=Depends(get_db),
) -> Dict[str, Any]:
    try:
        return hyperliquid.get_agent_analytics(agent_id, timeframe)
    except ValueError as exc:
        raise BadRequestError(str(exc))
