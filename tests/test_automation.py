"""
Tests for the automation loop: agent loading, risk gates, signal
generation / filtering and execution into managed positions.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from agentdesk.analyzers.models import AgentConfig
from agentdesk.storage import AgentStore
from agentdesk.storage.base import iso_now
from agentdesk.trading import (
    AITradingAutomation,
    AutomationConfig,
    MarketData,
    PositionManager,
    RiskCheck,
    TradingSignal,
)
from agentdesk.trading.automation import within_trading_hours

from conftest import agent_row

NOON = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def _signal(symbol="BTC-USD", action="buy", confidence=80.0):
    return TradingSignal(
        agent_id="agent-1", symbol=symbol, action=action,
        confidence=confidence, size=0.1, reasoning="test",
    )


class TestTradingHours:

    def test_inclusive_window(self):
        cfg = AutomationConfig(trading_hours_start="09:00", trading_hours_end="17:00")
        assert within_trading_hours(cfg, NOON)
        assert within_trading_hours(cfg, NOON.replace(hour=17, minute=0))
        assert not within_trading_hours(cfg, NOON.replace(hour=20))


class TestAutomation:

    @pytest.fixture(autouse=True)
    def _automation(self, db, market, hyperliquid, history, rng):
        self.db = db
        self.market = market
        db.seed("ai_agents", agent_row(focusAssets=["BTC-USD", "ETH-USD"]))
        self.pm = PositionManager(hyperliquid, history=history, client=db, interval=60, rng=rng)
        self.auto = AITradingAutomation(
            hyperliquid, self.pm, AgentStore(db),
            config=AutomationConfig(min_confidence_level=60),
            interval=60, rng=rng,
        )

    def test_load_active_agents(self):
        self.db.seed("ai_agents", {**agent_row("agent-2"), "is_active": False})
        assert self.auto.load_active_agents("0xwallet") == 1
        assert self.auto.active_agents["agent-1"]["config"].enabled is True

    def test_cycle_executes_signals(self):
        self.auto.load_active_agents("0xwallet")
        self.auto.wallet_address = "0xwallet"

        stats = asyncio.run(self.auto.run_cycle(now=NOON))

        assert stats == {"agents": 1, "signals": 2, "executed": 2}
        trades = self.db.rows("trade_records")
        assert {(t["symbol"], t["side"]) for t in trades} == {("BTC-USD", "buy"), ("ETH-USD", "sell")}
        assert len(self.pm.active_positions) == 2
        sides = {p.symbol: p.side for p in self.pm.active_positions.values()}
        assert sides == {"BTC-USD": "long", "ETH-USD": "short"}
        assert len(self.auto.get_last_signals("agent-1")) == 2
        assert self.auto.last_cycle is not None

    def test_emergency_stop_halts_cycle(self, monkeypatch):
        monkeypatch.setenv("EMERGENCY_STOP", "true")
        self.auto.load_active_agents("0xwallet")
        assert asyncio.run(self.auto.run_cycle(now=NOON)) == {"agents": 0, "signals": 0, "executed": 0}
        assert self.db.rows("trade_records") == []

    def test_outside_trading_hours(self):
        self.auto.load_active_agents("0xwallet")
        self.auto.enable_agent_automation("agent-1", {"trading_hours_start": "09:00", "trading_hours_end": "11:00"})
        assert asyncio.run(self.auto.run_cycle(now=NOON))["agents"] == 0

    def test_disabled_agent_is_skipped(self):
        self.auto.load_active_agents("0xwallet")
        assert self.auto.disable_agent_automation("agent-1")
        assert asyncio.run(self.auto.run_cycle(now=NOON))["agents"] == 0
        assert self.auto.get_status()["enabled_agents"] == 0

    def test_enable_unknown_agent(self):
        assert self.auto.enable_agent_automation("missing") is False
        assert self.auto.disable_agent_automation("missing") is False

    def test_enable_ignores_unknown_keys(self):
        self.auto.load_active_agents("0xwallet")
        self.auto.enable_agent_automation("agent-1", {"max_open_positions": 1, "bogus": True})
        assert self.auto.active_agents["agent-1"]["config"].max_open_positions == 1

    def test_daily_loss_limit(self):
        self.db.seed("trade_records", {
            "agent_id": "agent-1", "status": "closed", "pnl": -600,
            "timestamp": 1, "created_at": iso_now(),
        })
        risk = asyncio.run(self.auto.check_risk_limits("agent-1", "0xwallet"))
        assert risk.can_trade is False
        assert risk.reason == "Daily loss limit exceeded"
        assert risk.current_daily_loss == -600

    def test_open_position_limit(self):
        self.market.asset_positions = [
            {"position": {"coin": c, "szi": "1", "entryPx": "1"}} for c in ("BTC", "ETH", "SOL")
        ]
        risk = asyncio.run(self.auto.check_risk_limits("agent-1", "0xwallet"))
        assert risk.reason == "Maximum open positions reached"
        assert risk.open_positions == 3

    def test_risk_check_error(self):
        self.db.fail = True
        risk = asyncio.run(self.auto.check_risk_limits("agent-1", "0xwallet"))
        assert risk == RiskCheck(False, "Error checking risk limits")

    def test_risk_checks_pass(self):
        risk = asyncio.run(self.auto.check_risk_limits("agent-1", "0xwallet"))
        assert risk.can_trade is True

    def test_technical_analysis_from_change(self):
        agent = AgentConfig(risk_tolerance=50)
        up = self.auto.perform_technical_analysis(MarketData("BTC-USD", 100, change_24h=1.5), agent)
        assert up["trend"] == "bullish"
        assert up["momentum"] == pytest.approx(65)
        assert up["risk_score"] == pytest.approx(1.5)
        down = self.auto.perform_technical_analysis(MarketData("BTC-USD", 100, change_24h=-5), agent)
        assert down["trend"] == "bearish"
        assert down["momentum"] == 25

    def test_technical_analysis_without_change(self):
        result = self.auto.perform_technical_analysis(MarketData("SOL-USD", 150), AgentConfig())
        assert result["trend"] in ("bullish", "bearish", "neutral")
        assert 1 <= result["volatility"] < 5

    def test_decision_holds_on_high_risk(self):
        analysis = {"symbol": "BTC-USD", "price": 100, "trend": "bullish",
                    "momentum": 70, "volatility": 2, "risk_score": 55}
        assert self.auto.make_trading_decision(analysis, AgentConfig()) is None

    def test_decision_buy_price_and_size(self):
        analysis = {"symbol": "BTC-USD", "price": 100, "trend": "bullish",
                    "momentum": 70, "volatility": 2, "risk_score": 10}
        signal = self.auto.make_trading_decision(analysis, AgentConfig(risk_tolerance=100))
        assert signal.action == "buy"
        assert signal.price == pytest.approx(100.1)
        assert signal.size == pytest.approx(0.2)
        assert 65 <= signal.confidence < 85

    def test_filter_signals(self):
        cfg = AutomationConfig(min_confidence_level=70, allowed_symbols=["BTC-USD"])
        kept = AITradingAutomation.filter_signals([
            _signal(),
            _signal(confidence=50),
            _signal(symbol="DOGE-USD"),
            _signal(action="hold"),
        ], cfg)
        assert [(s.symbol, s.confidence) for s in kept] == [("BTC-USD", 80.0)]

    def test_last_signals_newest_first(self):
        old, new = _signal("BTC-USD"), _signal("ETH-USD")
        old.timestamp, new.timestamp = 1_000, 2_000
        other = _signal("SOL-USD")
        other.agent_id, other.timestamp = "agent-2", 1_500
        self.auto.last_signals = {"agent-1": [old, new], "agent-2": [other]}

        assert [s.symbol for s in self.auto.get_last_signals("agent-1")] == ["ETH-USD", "BTC-USD"]
        assert [s.timestamp for s in self.auto.get_last_signals()] == [2_000, 1_500, 1_000]
        assert self.auto.get_last_signals("ghost") == []

    def test_dry_run(self):
        result = asyncio.run(self.auto.test_signal_generation("agent-1", "0xwallet"))
        assert result["agent"]["id"] == "agent-1"
        assert [m["symbol"] for m in result["market_data"]] == ["BTC-USD", "ETH-USD"]
        assert len(result["analysis"]) == 2
        assert self.db.rows("trade_records") == []

    def test_dry_run_unknown_agent(self):
        result = asyncio.run(self.auto.test_signal_generation("missing"))
        assert result["agent"] is None

    def test_start_and_stop(self):
        async def run():
            await self.auto.start("0xwallet")
            status = self.auto.get_status()
            await self.auto.stop()
            return status

        status = asyncio.run(run())
        assert status["is_running"] is True
        assert status["wallet_address"] == "0xwallet"
        assert status["active_agents"] == 1
        assert status["position_monitoring"]["is_monitoring"] is True
        assert self.auto.is_running is False
        assert self.pm.is_monitoring is False
