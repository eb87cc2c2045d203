"""
Tests for the signal-generation analyzers and the pre-trade validator.

Covers:
    - TechnicalAnalyzer  (indicator selection, voting, confidence)
    - OnChainAnalyzer / MacroAnalyzer  (factor thresholds)
    - AIAgentService     (routing, risk adjustment, 70% bar)
    - SignalValidator    (four checks and sizing helpers)
"""

import asyncio
import random

import pytest

from agentdesk.analyzers import (
    AgentConfig,
    AIAgentService,
    MacroAnalyzer,
    OnChainAnalyzer,
    SignalType,
    SignalValidator,
    TechnicalAnalyzer,
)
from agentdesk.analyzers.agent_service import adjust_confidence_for_risk
from agentdesk.analyzers.technical_analyzer import PriceAction, VolumeAnalysis
from agentdesk.data_collectors import CoinGeckoCollector
from agentdesk.data_collectors.coingecko_collector import CoinMarketData


class ScriptedRandom(random.Random):
    """Returns the queued values from ``random()`` in order."""

    def __init__(self, values):
        super().__init__(0)
        self._values = list(values)

    def random(self):
        return self._values.pop(0)


def _asset(**overrides):
    fields = dict(
        coin_id="bitcoin", symbol="btc", name="Bitcoin", current_price=100.0,
        high_24h=120.0, low_24h=98.0, price_change_pct_24h=0.0,
    )
    fields.update(overrides)
    return CoinMarketData(**fields)


# ── Technical ──────────────────────────────────────────────────────

class TestTechnicalAnalyzer:

    def setup_method(self):
        self.ta = TechnicalAnalyzer()

    def test_only_selected_indicators_are_computed(self):
        closes = [float(i) for i in range(1, 61)]
        result = self.ta.calculate_indicators(closes, ["RSI", "SMA"])
        assert set(result) == {"RSI", "SMA_20", "SMA_50"}

    def test_macd_adds_signal_line(self):
        closes = [float(i) for i in range(1, 61)]
        result = self.ta.calculate_indicators(closes, ["MACD"])
        assert set(result) == {"MACD", "MACD_Signal"}

    def test_unknown_indicator_is_ignored(self):
        assert self.ta.calculate_indicators([1.0, 2.0], ["VWAP"]) == {}

    def test_oversold_near_low_votes_buy(self):
        indicators = {"RSI": 25.0}
        pa = PriceAction(near_high=False, near_low=True, change_24h=0)
        vol = VolumeAnalysis(ratio=0, high_volume=False)
        assert self.ta.determine_signal_type(indicators, pa, vol) == SignalType.BUY
        assert self.ta.calculate_confidence(indicators, pa, vol) == 80

    def test_overbought_near_high_votes_sell(self):
        indicators = {"RSI": 80.0}
        pa = PriceAction(near_high=True, near_low=False, change_24h=0)
        vol = VolumeAnalysis(ratio=0, high_volume=False)
        assert self.ta.determine_signal_type(indicators, pa, vol) == SignalType.SELL
        assert self.ta.calculate_confidence(indicators, pa, vol) == 60

    def test_tie_produces_no_signal(self):
        pa = PriceAction(near_high=False, near_low=False, change_24h=0)
        vol = VolumeAnalysis(ratio=0, high_volume=False)
        assert self.ta.determine_signal_type({}, pa, vol) is None

    def test_high_volume_votes_with_price_direction(self):
        pa = PriceAction(near_high=False, near_low=False, change_24h=-5)
        vol = VolumeAnalysis(ratio=2, high_volume=True)
        assert self.ta.determine_signal_type({}, pa, vol) == SignalType.SELL

    def test_volume_ratio_uses_supply_proxy(self):
        vol = self.ta.analyze_volume(_asset(current_price=10, market_cap=1000, total_volume_24h=200))
        assert vol.ratio == 2
        assert vol.high_volume is True

    def test_volume_without_market_cap(self):
        vol = self.ta.analyze_volume(_asset(market_cap=0))
        assert vol == VolumeAnalysis(ratio=0.0, high_volume=False)

    def test_signal_message(self):
        msg = self.ta.signal_message(
            {"RSI": 25.0, "MACD": 1.5},
            PriceAction(False, False, 2.0),
            VolumeAnalysis(2.0, True),
        )
        assert msg == "RSI: 25.00 | MACD: 1.50 | 24h Change: 2.00% | Volume Ratio: 2.00x"

    def test_analyze_near_low_without_indicators(self):
        agent = AgentConfig(indicators=[])
        result = self.ta.analyze(_asset(), [], agent)
        assert result is not None
        assert result.type == SignalType.BUY
        assert result.confidence == 60
        assert result.price == 100.0


# ── On-chain / Macro ───────────────────────────────────────────────

class TestOnChainAnalyzer:

    def test_flow_overrides_whale_direction(self):
        result = OnChainAnalyzer(ScriptedRandom([0.8, 0.2, 0.5])).analyze(_asset())
        assert result.type == SignalType.SELL
        assert result.confidence == 45
        assert result.signal == "Large whale accumulation detected + High exchange outflow"
        assert result.risk_score == 65

    def test_weak_factors_give_nothing(self):
        assert OnChainAnalyzer(ScriptedRandom([0.5, 0.5, 0.9])).analyze(_asset()) is None

    def test_all_high(self):
        result = OnChainAnalyzer(ScriptedRandom([0.9, 0.9, 0.9])).analyze(_asset())
        assert result.type == SignalType.BUY
        assert result.confidence == 60
        assert result.risk_score == 90


class TestMacroAnalyzer:

    def test_correlation_does_not_set_direction(self):
        result = MacroAnalyzer(ScriptedRandom([0.9, 0.1, 0.5, 0.2])).analyze(_asset())
        assert result.type == SignalType.SELL
        assert result.confidence == 65
        assert result.indicators == [
            "Positive market sentiment",
            "Weak correlation with traditional markets",
            "Low institutional interest",
        ]
        assert result.risk_score == 70

    def test_below_minimum_confidence(self):
        assert MacroAnalyzer(ScriptedRandom([0.5, 0.9, 0.5, 0.5])).analyze(_asset()) is None


# ── Agent service ──────────────────────────────────────────────────

class TestAIAgentService:

    def _service(self, transport, values):
        cg = CoinGeckoCollector(api_key="", transport=transport, retry_delay=0)
        return AIAgentService(cg, rng=ScriptedRandom(values))

    def test_risk_adjustment(self):
        assert adjust_confidence_for_risk(60, 50) == pytest.approx(90)
        assert adjust_confidence_for_risk(60, 0) == 60

    def test_onchain_agent_emits_signal(self, transport):
        service = self._service(transport, [0.9, 0.9, 0.9])
        agent = AgentConfig(id="a1", type="On-chain Analysis", focus_assets=["ethereum"], risk_tolerance=50)

        signal = asyncio.run(service.analyze_market(agent))

        assert signal is not None
        assert signal.agent_id == "a1"
        assert signal.asset_id == "ethereum"
        assert signal.type == SignalType.BUY
        assert signal.confidence == pytest.approx(90)
        assert signal.price == 3000.0

    def test_confidence_below_bar_is_dropped(self, transport):
        service = self._service(transport, [0.9, 0.9, 0.9])
        agent = AgentConfig(type="On-chain Analysis", focus_assets=["ethereum"], risk_tolerance=0)
        assert asyncio.run(service.analyze_market(agent)) is None

    def test_no_focus_assets_in_market(self, transport, market):
        service = self._service(transport, [])
        agent = AgentConfig(type="Technical Analysis", focus_assets=["dogecoin"])
        assert asyncio.run(service.analyze_market(agent)) is None
        assert not any("market_chart" in r.url.path for r in market.requests)

    def test_technical_agent_fetches_history(self, transport, market):
        service = self._service(transport, [])
        agent = AgentConfig(type="Technical Analysis", focus_assets=["solana"], indicators=["RSI"])
        asyncio.run(service.analyze_market(agent))
        assert any(r.url.path.endswith("/coins/solana/market_chart") for r in market.requests)

    def test_unknown_agent_type(self, transport):
        service = self._service(transport, [])
        agent = AgentConfig(type="Astrology", focus_assets=["bitcoin"])
        assert asyncio.run(service.analyze_market(agent)) is None


# ── Validator ──────────────────────────────────────────────────────

class TestSignalValidator:

    def setup_method(self):
        self.v = SignalValidator()

    def test_passing_signal_uses_weighted_risk(self):
        result = self.v.validate_signal({"price": 100, "confidence": 80, "time": "2h ago"}, 101, 0.01)
        assert result.is_valid is True
        assert result.risk_score == 15
        assert result.message == "Signal validated with risk score 15"

    def test_failing_signal_reports_worst_risk(self):
        result = self.v.validate_signal({"price": 100, "confidence": 60, "time": "2h ago"}, 105, 0.01)
        assert result.is_valid is False
        assert result.risk_score == 80
        assert result.message == (
            "Price deviation of 5.00% exceeds maximum allowed, "
            "Confidence of 60% is below minimum required"
        )

    def test_high_volatility(self):
        result = self.v.check_volatility(0.05)
        assert result.is_valid is False
        assert result.risk_score == 50

    def test_old_signal(self):
        result = self.v.check_age("3d ago")
        assert result.is_valid is False
        assert result.risk_score == 100
        assert result.message == "Signal is too old"

    def test_unparseable_age(self):
        result = self.v.check_age("yesterday")
        assert result.is_valid is False
        assert result.message == "Invalid time format"

    def test_config_overrides_threshold(self):
        assert SignalValidator({"volatility_threshold": 0.1}).check_volatility(0.05).is_valid

    def test_position_size(self):
        assert self.v.calculate_position_size(10_000, 20) == pytest.approx(800)

    def test_stop_loss_direction(self):
        assert self.v.calculate_stop_loss(100, "Buy") == pytest.approx(95)
        assert self.v.calculate_stop_loss(100, "Sell") == pytest.approx(105)
