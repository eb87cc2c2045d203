"""
AI Agent Service
================
Runs an agent over its focus assets and returns the first signal that
clears the confidence bar.

Flow
----
1. CoinGecko market list, filtered to ``agent.focus_assets`` (by id)
2. 7-day price history per asset (technical agents only)
3. Analyzer chosen by ``agent.type``
4. ``adjusted = confidence * (1 + risk_tolerance / 100)``
5. First asset with ``adjusted >= 70`` becomes an ``AgentSignal``
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional

from agentdesk.data_collectors.coingecko_collector import CoinGeckoCollector, CoinMarketData

from .macro_analyzer import MacroAnalyzer
from .models import AgentConfig, AgentSignal, AgentType, AnalysisResult
from .onchain_analyzer import OnChainAnalyzer
from .technical_analyzer import TechnicalAnalyzer

logger = logging.getLogger(__name__)

SIGNAL_THRESHOLD = 70
MARKET_PAGE_SIZE = 100


def adjust_confidence_for_risk(confidence: float, risk_tolerance: float) -> float:
    return confidence * (1 + risk_tolerance / 100)


class AIAgentService:

    def __init__(
        self,
        coingecko: Optional[CoinGeckoCollector] = None,
        rng: Optional[random.Random] = None,
    ):
        self.coingecko = coingecko or CoinGeckoCollector()
        self.technical = TechnicalAnalyzer()
        self.onchain = OnChainAnalyzer(rng)
        self.macro = MacroAnalyzer(rng)

    async def analyze_market(self, agent: AgentConfig) -> Optional[AgentSignal]:
        logger.info("Analyzing market for agent %s (%s)", agent.name, agent.type)

        markets = await self.coingecko.get_markets(per_page=MARKET_PAGE_SIZE)
        wanted = set(agent.focus_assets)
        focus = [coin for coin in markets if coin.coin_id in wanted]
        if not focus:
            logger.info("No focus assets found for agent %s", agent.id)
            return None

        for asset in focus:
            analysis = await self._run_analyzer(agent, asset)
            if analysis is None:
                logger.debug("No analysis generated for %s", asset.name)
                continue

            adjusted = adjust_confidence_for_risk(analysis.confidence, agent.risk_tolerance)
            if adjusted < SIGNAL_THRESHOLD:
                logger.debug("Confidence %.1f below %d for %s", adjusted, SIGNAL_THRESHOLD, asset.name)
                continue

            signal = AgentSignal(
                agent_id=agent.id,
                asset_id=asset.coin_id,
                type=analysis.type,
                confidence=adjusted,
                price=analysis.price,
                timestamp=analysis.timestamp,
                message=analysis.signal,
            )
            logger.info(
                "Signal generated: %s %s @ %s (%.1f%%)",
                signal.type.value, asset.coin_id, signal.price, signal.confidence,
            )
            return signal

        logger.info("No signals generated for agent %s", agent.id)
        return None

    async def _run_analyzer(self, agent: AgentConfig, asset: CoinMarketData) -> Optional[AnalysisResult]:
        if agent.type == AgentType.TECHNICAL.value:
            history = await self.coingecko.get_market_chart(asset.coin_id, days=7)
            closes: List[float] = history.closes if history else []
            return self.technical.analyze(asset, closes, agent)
        if agent.type == AgentType.ONCHAIN.value:
            return self.onchain.analyze(asset)
        if agent.type == AgentType.MACRO.value:
            return self.macro.analyze(asset)
        logger.warning("Unknown agent type %r for agent %s", agent.type, agent.id)
        return None
