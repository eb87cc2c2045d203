"""
AgentDesk – Trading
===================
Simulated execution and position lifecycle.

    - HyperliquidService     – market data, simulated orders, agent analytics
    - TradingHistoryService  – trade / position / performance persistence
    - PositionManager        – stop-loss / take-profit monitor
    - AITradingAutomation    – per-agent signal -> trade loop
"""

from .automation import AITradingAutomation
from .hyperliquid_service import HyperliquidService
from .models import (
    AutomationConfig,
    MarketData,
    OrderRequest,
    OrderResult,
    Position,
    RiskCheck,
    RiskLimits,
    TradingPair,
    TradingSignal,
)
from .position_manager import PositionManager
from .trading_history import TradingHistoryService

__all__ = [
    "AITradingAutomation",
    "AutomationConfig",
    "HyperliquidService",
    "MarketData",
    "OrderRequest",
    "OrderResult",
    "Position",
    "PositionManager",
    "RiskCheck",
    "RiskLimits",
    "TradingHistoryService",
    "TradingPair",
    "TradingSignal",
]
