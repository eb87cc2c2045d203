"""
Analyzers – Data Models
=======================
Agent configuration, analyzer output and the signal an agent emits.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ─────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────

class AgentType(str, Enum):
    TECHNICAL = "Technical Analysis"
    ONCHAIN = "On-chain Analysis"
    MACRO = "Macro Analysis"


class SignalType(str, Enum):
    BUY = "Buy"
    SELL = "Sell"


# ─────────────────────────────────────────────────────────────────
# Agent
# ─────────────────────────────────────────────────────────────────

class AgentConfig(BaseModel):
    """
    An AI trading agent as the dashboard sees it.

    Stored in ``ai_agents``: identity columns at the top level,
    strategy knobs in the ``configuration`` JSON column and counters in
    ``performance_metrics``.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    type: str = AgentType.TECHNICAL.value
    description: str = ""
    is_active: bool = True
    risk_tolerance: float = Field(default=50, ge=0, le=100)
    focus_assets: List[str] = Field(default_factory=list)
    indicators: List[str] = Field(default_factory=list)
    max_position_size: float = 1000
    leverage: float = 1
    trading_pairs: List[str] = Field(default_factory=lambda: ["BTC-USD", "ETH-USD"])
    wallet_address: Optional[str] = None
    trading_enabled: bool = True
    custom: bool = False
    strategy: Optional[str] = None
    accuracy: float = 0
    signals: int = 0
    last_signal: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AgentConfig":
        cfg = row.get("configuration") or {}
        perf = row.get("performance_metrics") or {}

        def opt(source: Dict[str, Any], key: str, default: Any) -> Any:
            value = source.get(key)
            return default if value is None else value

        return cls(
            id=row["id"],
            name=row.get("name") or "",
            type=row.get("type") or AgentType.TECHNICAL.value,
            description=row.get("description") or "",
            is_active=bool(row.get("is_active", True)),
            risk_tolerance=opt(cfg, "riskTolerance", 50),
            focus_assets=opt(cfg, "focusAssets", []),
            indicators=opt(cfg, "indicators", []),
            max_position_size=opt(cfg, "maxPositionSize", 1000),
            leverage=opt(cfg, "leverage", 1),
            trading_pairs=opt(cfg, "tradingPairs", ["BTC-USD", "ETH-USD"]),
            wallet_address=row.get("wallet_address"),
            trading_enabled=opt(cfg, "tradingEnabled", True),
            custom=opt(cfg, "custom", False),
            strategy=cfg.get("strategy"),
            accuracy=opt(perf, "accuracy", 0),
            signals=opt(perf, "signals", 0),
            last_signal=opt(perf, "lastSignal", ""),
        )

    def to_row(self, wallet_address: str) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "is_active": self.is_active,
            "wallet_address": wallet_address,
            "configuration": {
                "custom": self.custom,
                "riskTolerance": self.risk_tolerance,
                "focusAssets": self.focus_assets,
                "indicators": self.indicators,
                "maxPositionSize": self.max_position_size,
                "leverage": self.leverage,
                "tradingPairs": self.trading_pairs,
                "tradingEnabled": self.trading_enabled,
                "strategy": self.strategy,
            },
            "performance_metrics": {
                "accuracy": self.accuracy,
                "signals": self.signals,
                "lastSignal": self.last_signal,
            },
        }


# ─────────────────────────────────────────────────────────────────
# Analyzer output
# ─────────────────────────────────────────────────────────────────

@dataclass
class AnalysisResult:
    """What one analyzer concluded about one asset."""
    type: SignalType
    confidence: float
    signal: str
    price: float
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    indicators: Optional[List[str]] = None
    risk_score: Optional[float] = None


class AgentSignal(BaseModel):
    """A signal an agent emitted for an asset (timestamp in ms)."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    agent_id: str
    asset_id: str
    type: SignalType
    confidence: float
    price: float
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))
    message: str = ""
    status: str = "active"
