"""
Tests for the Hyperliquid service: market data, pair listing, wallet
positions, simulated orders and agent analytics.
"""

import asyncio
import json

import httpx
import pytest

from agentdesk.analyzers.models import AgentConfig
from agentdesk.storage import AgentStore
from agentdesk.storage.base import iso_now
from agentdesk.trading import HyperliquidService, OrderRequest
from agentdesk.trading.hyperliquid_service import FALLBACK_PAIRS, coin_of

from conftest import agent_row


class TestMarketData:

    def test_coin_of(self):
        assert coin_of("BTC-USD") == "BTC"
        assert coin_of("ETH") == "ETH"

    def test_mids(self, hyperliquid):
        mids = asyncio.run(hyperliquid.get_mids())
        assert mids["BTC"] == 50000.0

    def test_market_data_uses_previous_day(self, hyperliquid):
        [btc] = asyncio.run(hyperliquid.get_market_data(["BTC-USD"]))
        assert btc.price == 50000.0
        assert btc.change_24h == pytest.approx(4.1667, rel=1e-3)
        assert btc.volume_24h == 1_000_000
        assert btc.funding == pytest.approx(0.0001)

    def test_unlisted_symbol_has_zero_price(self, hyperliquid):
        [xyz] = asyncio.run(hyperliquid.get_market_data(["XYZ-USD"]))
        assert xyz.price == 0.0
        assert xyz.change_24h == 0.0

    def test_mock_data_when_upstream_down(self, hyperliquid, market):
        market.fail_hyperliquid = True
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(hyperliquid.get_mids())
        [btc] = asyncio.run(hyperliquid.get_market_data(["BTC-USD"]))
        assert btc.symbol == "BTC-USD"
        assert 20000 <= btc.price < 70000

    def test_pairs_sorted_and_cached(self, hyperliquid, market):
        pairs = asyncio.run(hyperliquid.get_trading_pairs())
        assert [p.symbol for p in pairs] == ["BTC-USD", "ETH-USD", "SOL-USD", "DOGE-USD"]
        assert pairs[0].max_leverage == 50
        asyncio.run(hyperliquid.get_trading_pairs())
        assert market.hits("hyperliquid") == 1

    def test_pairs_fallback(self, hyperliquid, market):
        market.fail_hyperliquid = True
        assert asyncio.run(hyperliquid.get_trading_pairs()) == FALLBACK_PAIRS

    def test_wallet_positions(self, hyperliquid, market):
        market.asset_positions = [
            {"position": {"coin": "ETH", "szi": "-2", "entryPx": "3000",
                          "unrealizedPnl": "-10", "leverage": {"value": 3}}},
            {"position": {"coin": "BTC", "szi": "0"}},
        ]
        [eth] = asyncio.run(hyperliquid.get_positions("abc"))
        assert eth.symbol == "ETH-USD"
        assert eth.side == "short"
        assert eth.size == 2
        assert eth.leverage == 3
        assert json.loads(market.requests[-1].content)["user"] == "0xabc"


class TestOrders:

    def test_market_buy_fills_above_mid(self, hyperliquid):
        result = asyncio.run(hyperliquid.place_order("0xw", OrderRequest("BTC-USD", "buy", 0.1)))
        assert result.success
        assert result.order_id.startswith("order_")
        assert result.fill_price == pytest.approx(50050)
        assert result.executions[0].fee == pytest.approx(1.001)

    def test_market_sell_fills_below_mid(self, hyperliquid):
        result = asyncio.run(hyperliquid.place_order("0xw", OrderRequest("ETH-USD", "sell", 1)))
        assert result.fill_price == pytest.approx(2997)

    def test_limit_order_keeps_price(self, hyperliquid):
        order = OrderRequest("BTC-USD", "buy", 1, order_type="Limit", price=49000)
        assert asyncio.run(hyperliquid.place_order("0xw", order)).fill_price == 49000

    def test_non_positive_size(self, hyperliquid):
        result = asyncio.run(hyperliquid.place_order("0xw", OrderRequest("BTC-USD", "buy", 0)))
        assert result.success is False
        assert result.error == "Order size must be positive"

    def test_no_price(self, hyperliquid):
        result = asyncio.run(hyperliquid.place_order("0xw", OrderRequest("XYZ-USD", "buy", 1)))
        assert result.success is False
        assert result.error == "No price available for XYZ-USD"


class TestAgentTrades:

    def setup_method(self):
        self.agent = AgentConfig(id="agent-1", risk_tolerance=50)

    def test_size_cap_from_risk_tolerance(self, hyperliquid, db):
        result = asyncio.run(hyperliquid.execute_agent_trade(self.agent, "0xw", "BTC-USD", "buy", 6000))
        assert result.success is False
        assert result.error == "Trade size exceeds maximum position size of $5000"
        assert db.rows("trade_records") == []

    def test_fill_is_recorded(self, hyperliquid, db):
        result = asyncio.run(hyperliquid.execute_agent_trade(self.agent, "0xw", "SOL-USD", "buy", 10))
        assert result.success
        [row] = db.rows("trade_records")
        assert row["order_id"] == result.order_id
        assert row["status"] == "open"
        assert row["price"] == pytest.approx(150 * 1.001)
        assert row["agent_id"] == "agent-1"


class TestAnalytics:

    def test_performance(self, hyperliquid, db):
        db.seed("trade_records",
                {"agent_id": "agent-1", "status": "closed", "pnl": 10, "size": 2, "price": 100, "timestamp": 1, "created_at": iso_now()},
                {"agent_id": "agent-1", "status": "open", "size": 1, "price": 200, "timestamp": 2, "created_at": iso_now()})
        perf = hyperliquid.get_agent_performance("agent-1", "30d")
        assert perf["total_trades"] == 2
        assert perf["avg_trade_size"] == 200
        assert perf["win_rate"] == 100.0

    def test_unknown_timeframe(self, hyperliquid):
        with pytest.raises(ValueError):
            hyperliquid.get_agent_performance("agent-1", "1y")

    def test_database_failure_gives_empty_performance(self, hyperliquid, db):
        db.fail = True
        perf = hyperliquid.get_agent_performance("agent-1")
        assert perf["total_trades"] == 0
        assert perf["trades"] == []

    def test_analytics_shape(self, hyperliquid, db):
        db.seed("trade_records", *[
            {"agent_id": "agent-1", "status": "open", "size": 1, "price": 1, "timestamp": i, "created_at": iso_now()}
            for i in range(12)
        ])
        analytics = hyperliquid.get_agent_analytics("agent-1", "30d")
        assert len(analytics["recent_trades"]) == 10
        assert analytics["recent_trades"][0]["timestamp"] == 11
        assert analytics["signals"]["total"] == 12

    def test_training_updates_accuracy(self, db, history, transport, rng):
        db.seed("ai_agents", agent_row())
        store = AgentStore(db)
        service = HyperliquidService(history=history, transport=transport, rng=rng, agent_store=store)
        agent = store.get_agent("agent-1")

        result = service.train_agent(agent, [1, 2, 3])

        assert 0.75 <= result["training_accuracy"] < 0.95
        assert result["samples"] == 3
        stored = store.get_agent("agent-1")
        assert stored.accuracy == round(result["training_accuracy"] * 100, 2)
