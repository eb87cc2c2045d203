"""
AI Trading Automation
=====================
Background loop that turns agent analysis into simulated trades.

Every cycle (30s by default), for each loaded agent whose automation is
enabled:

    trading hours -> risk limits -> signal generation -> filter -> execute

``EMERGENCY_STOP=true`` halts a cycle before any agent is processed.
``PAPER_TRADING_MODE=true`` is reported in the log; orders are always
simulated by the Hyperliquid service.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from agentdesk.analyzers.models import AgentConfig
from agentdesk.config import get_config_manager

from .hyperliquid_service import HyperliquidService
from .models import AutomationConfig, MarketData, RiskCheck, RiskLimits, TradingSignal
from .position_manager import PositionManager

logger = logging.getLogger(__name__)

DEFAULT_SYMBOLS = ["BTC-USD", "ETH-USD"]
CYCLE_SECONDS = 30


def within_trading_hours(config: AutomationConfig, now: Optional[datetime] = None) -> bool:
    """Inclusive ``HH:MM`` window in UTC."""
    current = (now or datetime.now(timezone.utc)).strftime("%H:%M")
    return config.trading_hours_start <= current <= config.trading_hours_end


class AITradingAutomation:
    """
    Usage::

        automation = AITradingAutomation(hyperliquid, positions, agent_store)
        await automation.start("0xabc...")
        automation.get_status()
        await automation.stop()
    """

    def __init__(
        self,
        hyperliquid: HyperliquidService,
        positions: PositionManager,
        agent_store: Any,
        config: Optional[AutomationConfig] = None,
        risk_limits: Optional[RiskLimits] = None,
        interval: float = CYCLE_SECONDS,
        rng: Optional[random.Random] = None,
    ):
        self.hyperliquid = hyperliquid
        self.positions = positions
        self.history = hyperliquid.history
        self.agent_store = agent_store
        cfg = get_config_manager()
        self.default_config = config or AutomationConfig.from_settings(cfg.get_automation_config())
        self.risk_limits = risk_limits or RiskLimits.from_settings(cfg.get_risk_limits())
        self.interval = interval
        self._rng = rng or random.Random()

        self.active_agents: Dict[str, Dict[str, Any]] = {}
        self.last_signals: Dict[str, List[TradingSignal]] = {}
        self.wallet_address: Optional[str] = None
        self.is_running = False
        self.last_cycle: Optional[int] = None
        self._task: Optional[asyncio.Task] = None

    # ══════════════════════════════════════════════════════════════
    # Lifecycle
    # ══════════════════════════════════════════════════════════════

    async def start(self, wallet_address: str) -> None:
        if self.is_running:
            logger.info("Automation already running")
            return
        self.is_running = True
        self.wallet_address = wallet_address
        self.load_active_agents(wallet_address)
        await self.positions.start_monitoring()
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "AI trading automation started for %s (%d agents, %ss cycle)",
            wallet_address, len(self.active_agents), self.interval,
        )

    async def stop(self) -> None:
        if not self.is_running:
            return
        self.is_running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        await self.positions.stop_monitoring()
        logger.info("AI trading automation stopped")

    async def _loop(self) -> None:
        while self.is_running:
            await asyncio.sleep(self.interval)
            try:
                await self.run_cycle()
            except Exception as exc:
                logger.error("Automation cycle failed: %s", exc, exc_info=True)

    def load_active_agents(self, wallet_address: Optional[str] = None) -> int:
        try:
            agents = self.agent_store.get_all_agents(wallet_address)
        except Exception as exc:
            logger.error("Error loading active agents: %s", exc)
            return 0
        for agent in agents:
            if agent.is_active:
                self.active_agents[agent.id] = {
                    "agent": agent,
                    "config": replace(self.default_config, enabled=True),
                }
        logger.info("Loaded %d active agents for %s", len(self.active_agents), wallet_address)
        return len(self.active_agents)

    def enable_agent_automation(self, agent_id: str, overrides: Optional[Dict[str, Any]] = None) -> bool:
        entry = self.active_agents.get(agent_id)
        if entry is None:
            return False
        known = {
            k: v for k, v in (overrides or {}).items()
            if k in AutomationConfig.__dataclass_fields__
        }
        entry["config"] = replace(entry["config"], **known, enabled=True)
        logger.info("Automation enabled for agent %s", entry["agent"].name)
        return True

    def disable_agent_automation(self, agent_id: str) -> bool:
        entry = self.active_agents.get(agent_id)
        if entry is None:
            return False
        entry["config"] = replace(entry["config"], enabled=False)
        logger.info("Automation disabled for agent %s", entry["agent"].name)
        return True

    # ══════════════════════════════════════════════════════════════
    # Cycle
    # ══════════════════════════════════════════════════════════════

    async def run_cycle(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """One pass over the loaded agents.  Returns per-cycle counters."""
        stats = {"agents": 0, "signals": 0, "executed": 0}
        cfg = get_config_manager()
        if cfg.emergency_stop():
            logger.warning("EMERGENCY STOP active, all trading halted")
            return stats
        if cfg.paper_trading():
            logger.info("Paper trading mode active, trades are simulated")

        self.last_cycle = int(time.time() * 1000)
        for agent_id, entry in list(self.active_agents.items()):
            agent: AgentConfig = entry["agent"]
            config: AutomationConfig = entry["config"]
            if not config.enabled:
                logger.debug("Agent %s has automation disabled, skipping", agent.name)
                continue
            try:
                if not within_trading_hours(config, now):
                    logger.info("Outside trading hours for agent %s", agent.name)
                    continue

                risk = await self.check_risk_limits(agent_id, self.wallet_address or "", config)
                if not risk.can_trade:
                    logger.warning("Risk limits exceeded for agent %s: %s", agent.name, risk.reason)
                    continue

                stats["agents"] += 1
                signals = await self.generate_signals(agent)
                stats["signals"] += len(signals)
                for signal in self.filter_signals(signals, config):
                    if await self.execute_signal(signal, agent, self.wallet_address or ""):
                        stats["executed"] += 1
                self.last_signals[agent_id] = signals
            except Exception as exc:
                logger.error("Error processing agent %s: %s", agent.name, exc, exc_info=True)

        logger.info(
            "Automation cycle complete: %d agents, %d signals, %d executed",
            stats["agents"], stats["signals"], stats["executed"],
        )
        return stats

    async def check_risk_limits(
        self,
        agent_id: str,
        wallet_address: str,
        config: Optional[AutomationConfig] = None,
    ) -> RiskCheck:
        config = config or self.default_config
        try:
            today = self.history.calculate_agent_pnl(agent_id, "1d")
            if today["total_pnl"] < -config.max_daily_loss:
                return RiskCheck(False, "Daily loss limit exceeded", today["total_pnl"])

            open_positions = await self.hyperliquid.get_positions(wallet_address)
            if len(open_positions) >= config.max_open_positions:
                return RiskCheck(
                    False, "Maximum open positions reached",
                    today["total_pnl"], len(open_positions),
                )

            performance = self.hyperliquid.get_agent_performance(agent_id, "7d")
            if abs(performance["max_drawdown"]) > self.risk_limits.max_drawdown:
                return RiskCheck(
                    False, "Maximum drawdown limit exceeded",
                    today["total_pnl"], len(open_positions),
                )
            return RiskCheck(True, None, today["total_pnl"], len(open_positions))
        except Exception as exc:
            logger.error("Error checking risk limits for %s: %s", agent_id, exc)
            return RiskCheck(False, "Error checking risk limits")

    # ══════════════════════════════════════════════════════════════
    # Signals
    # ══════════════════════════════════════════════════════════════

    async def generate_signals(self, agent: AgentConfig) -> List[TradingSignal]:
        symbols = agent.focus_assets or DEFAULT_SYMBOLS
        signals: List[TradingSignal] = []
        try:
            market = await self.hyperliquid.get_market_data(symbols)
        except Exception as exc:
            logger.error("Error generating trading signals for %s: %s", agent.name, exc)
            return signals

        for data in market:
            analysis = self.perform_technical_analysis(data, agent)
            signal = self.make_trading_decision(analysis, agent)
            if signal is not None:
                signals.append(signal)
        logger.info("Generated %d signals for agent %s", len(signals), agent.name)
        return signals

    def perform_technical_analysis(self, data: MarketData, agent: AgentConfig) -> Dict[str, Any]:
        change = data.change_24h or 0
        analysis: Dict[str, Any] = {
            "symbol": data.symbol,
            "price": data.price,
            "trend": "neutral",
            "momentum": 50.0,
            "volatility": abs(change),
            "volume_strength": data.volume_24h or 0,
            "risk_score": self.risk_score(change, agent),
        }

        if change:
            if change > 2:
                analysis["momentum"] = 75.0
            elif change < -2:
                analysis["momentum"] = 25.0
            else:
                analysis["momentum"] = 50 + change * 10
            if change > 1:
                analysis["trend"] = "bullish"
            elif change < -1:
                analysis["trend"] = "bearish"
            return analysis

        # No 24h change reported: a slow cycle plus noise stands in for it.
        r = self._rng.random
        drift = math.sin(time.time() / 1000) + (r() - 0.5)
        if drift > 0.3:
            analysis["trend"], analysis["momentum"] = "bullish", 60 + r() * 30
        elif drift < -0.3:
            analysis["trend"], analysis["momentum"] = "bearish", 10 + r() * 30
        else:
            analysis["trend"], analysis["momentum"] = "neutral", 40 + r() * 20
        analysis["volatility"] = 1 + r() * 4
        return analysis

    @staticmethod
    def risk_score(change_24h: float, agent: AgentConfig) -> float:
        tolerance = agent.risk_tolerance or 50
        return min(100.0, abs(change_24h or 0) * (100 - tolerance) / 50)

    def make_trading_decision(self, analysis: Dict[str, Any], agent: AgentConfig) -> Optional[TradingSignal]:
        trend = analysis["trend"]
        momentum = analysis["momentum"]
        volatility = analysis["volatility"]
        risk = analysis["risk_score"]
        r = self._rng.random

        if trend == "bullish" and momentum < 80 and risk < 50:
            action, confidence = "buy", 65 + r() * 20
            reasoning = (
                f"Bullish trend detected with momentum {momentum:.1f} "
                f"and acceptable risk {risk:.1f}%"
            )
        elif trend == "bearish" and momentum > 20 and risk < 60:
            action, confidence = "sell", 60 + r() * 25
            reasoning = (
                f"Bearish trend detected with momentum {momentum:.1f} "
                f"and acceptable risk {risk:.1f}%"
            )
        elif trend == "neutral" and volatility < 3 and risk < 40:
            action = "buy" if r() > 0.5 else "sell"
            confidence = 55 + r() * 15
            reasoning = (
                f"Neutral market with low volatility {volatility:.1f}%, "
                f"taking speculative position"
            )
        else:
            logger.debug(
                "Holding %s: trend=%s momentum=%.1f volatility=%.1f risk=%.1f",
                analysis["symbol"], trend, momentum, volatility, risk,
            )
            return None

        size = max(0.01, min(1.0, 0.1 * (agent.risk_tolerance or 50) / 50))
        price = analysis["price"]
        return TradingSignal(
            agent_id=agent.id,
            symbol=analysis["symbol"],
            action=action,
            confidence=confidence,
            size=size,
            reasoning=reasoning,
            price=price * 1.001 if action == "buy" else price * 0.999,
            indicators={
                "trend_strength": momentum,
                "volatility": volatility,
                "risk_score": risk,
            },
        )

    @staticmethod
    def filter_signals(signals: List[TradingSignal], config: AutomationConfig) -> List[TradingSignal]:
        passed: List[TradingSignal] = []
        for signal in signals:
            if signal.confidence < config.min_confidence_level:
                logger.debug(
                    "Signal filtered: confidence %.1f < %s for %s",
                    signal.confidence, config.min_confidence_level, signal.symbol,
                )
            elif signal.symbol not in config.allowed_symbols:
                logger.debug("Signal filtered: %s not in allowed symbols", signal.symbol)
            elif signal.action == "hold":
                logger.debug("Signal filtered: hold for %s", signal.symbol)
            else:
                passed.append(signal)
        return passed

    async def execute_signal(self, signal: TradingSignal, agent: AgentConfig, wallet_address: str) -> bool:
        logger.info(
            "Executing signal for %s: %s %s (%.1f%% confidence)",
            agent.name, signal.action.upper(), signal.symbol, signal.confidence,
        )
        if get_config_manager().paper_trading():
            logger.info("Paper trade: %s %s %s", signal.action, signal.size, signal.symbol)

        result = await self.hyperliquid.execute_agent_trade(
            agent, wallet_address, signal.symbol, signal.action, signal.size, signal.price,
        )
        if not result.success:
            logger.error("Trade failed for %s: %s", agent.name, result.error)
            return False

        execution = result.executions[0]
        self.positions.open_position(
            agent.id,
            wallet_address,
            result.order_id,
            signal.symbol,
            signal.action,
            signal.size,
            execution.price,
            self.risk_limits,
        )
        logger.info(
            "Recorded signal execution: order %s, %s (confidence %.1f)",
            result.order_id, signal.reasoning, signal.confidence,
        )
        return True

    # ══════════════════════════════════════════════════════════════
    # Introspection
    # ══════════════════════════════════════════════════════════════

    def get_status(self) -> Dict[str, Any]:
        enabled = sum(1 for e in self.active_agents.values() if e["config"].enabled)
        return {
            "is_running": self.is_running,
            "wallet_address": self.wallet_address,
            "active_agents": len(self.active_agents),
            "enabled_agents": enabled,
            "last_cycle": self.last_cycle,
            "position_monitoring": self.positions.get_monitoring_status(),
        }

    def get_last_signals(self, agent_id: Optional[str] = None) -> List[TradingSignal]:
        if agent_id:
            signals = list(self.last_signals.get(agent_id, []))
        else:
            signals = [s for per_agent in self.last_signals.values() for s in per_agent]
        return sorted(signals, key=lambda s: s.timestamp, reverse=True)

    async def test_signal_generation(self, agent_id: str, wallet_address: Optional[str] = None) -> Dict[str, Any]:
        """Dry run for one agent: signals plus the analysis behind them, nothing executed."""
        self.load_active_agents(wallet_address)
        entry = self.active_agents.get(agent_id)
        if entry is None:
            logger.error("Agent %s not found in active agents", agent_id)
            return {"agent": None, "signals": [], "market_data": [], "analysis": []}

        agent: AgentConfig = entry["agent"]
        signals = await self.generate_signals(agent)
        market = await self.hyperliquid.get_market_data(agent.focus_assets or DEFAULT_SYMBOLS)
        analysis = [
            {**self.perform_technical_analysis(m, agent), "market_data": m.to_dict()}
            for m in market
        ]
        return {
            "agent": agent.model_dump(),
            "signals": [s.to_dict() for s in signals],
            "market_data": [m.to_dict() for m in market],
            "analysis": analysis,
        }
