"""
AgentDesk – Analyzers
=====================
Signal generation for AI agents.

    - TechnicalAnalyzer  – RSI / MACD / SMA / EMA scoring on price history
    - OnChainAnalyzer    – whale, exchange-flow and network factors
    - MacroAnalyzer      – sentiment, correlation, regulatory, institutional
    - AIAgentService     – routes an agent to its analyzer
    - SignalValidator    – pre-trade risk checks
"""

from .agent_service import AIAgentService
from .macro_analyzer import MacroAnalyzer
from .models import AgentConfig, AgentSignal, AgentType, AnalysisResult, SignalType
from .onchain_analyzer import OnChainAnalyzer
from .signal_validator import SignalValidator, ValidationResult
from .technical_analyzer import TechnicalAnalyzer

__all__ = [
    "AIAgentService",
    "AgentConfig",
    "AgentSignal",
    "AgentType",
    "AnalysisResult",
    "MacroAnalyzer",
    "OnChainAnalyzer",
    "SignalType",
    "SignalValidator",
    "TechnicalAnalyzer",
    "ValidationResult",
]
