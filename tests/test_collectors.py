"""
Tests for the market-data collectors against the in-process fake upstreams.

Covers:
    - CoinGeckoCollector    (markets with retry, coin detail, chart)
    - DexScreenerCollector  (search, token lookup, simulated chart)
    - BinanceCollector      (single / batch tickers, payload parsing)
"""

import asyncio

import pytest

from agentdesk.data_collectors import (
    BinanceCollector,
    CoinGeckoCollector,
    DexScreenerCollector,
)
from agentdesk.data_collectors.binance_collector import base_asset, parse_ticker, to_pair


# ── CoinGecko ──────────────────────────────────────────────────────

class TestCoinGeckoCollector:

    @pytest.fixture(autouse=True)
    def _collector(self, transport, market):
        self.market = market
        self.cg = CoinGeckoCollector(api_key="", transport=transport, max_retries=2, retry_delay=0)

    def test_markets_parsed(self):
        coins = asyncio.run(self.cg.get_markets(per_page=2))
        assert [c.coin_id for c in coins] == ["bitcoin", "ethereum"]
        assert coins[0].current_price == 50000.0
        assert coins[1].price_change_pct_24h == -4.0
        assert coins[0].total_volume_24h == 30_000_000_000

    def test_markets_retry_then_empty(self):
        self.market.fail_coingecko = True
        assert asyncio.run(self.cg.get_markets()) == []
        assert self.market.hits("coingecko") == 2

    def test_coin_detail(self):
        coin = asyncio.run(self.cg.get_coin("solana"))
        assert coin.name == "Solana"
        assert coin.current_price == 150.0
        assert coin.image == "https://img.test/sol.png"
        assert coin.market_cap_rank == 5

    def test_unknown_coin_is_none(self):
        assert asyncio.run(self.cg.get_coin("nope")) is None

    def test_coins_by_ids(self):
        coins = asyncio.run(self.cg.get_coins_by_ids(["solana", "bitcoin"]))
        assert {c.coin_id for c in coins} == {"solana", "bitcoin"}
        assert asyncio.run(self.cg.get_coins_by_ids([])) == []

    def test_market_chart_closes(self):
        history = asyncio.run(self.cg.get_market_chart("bitcoin", days=7))
        assert len(history.closes) == 60
        assert history.days == 7
        assert history.closes[0] == pytest.approx(45000.0)

    def test_demo_key_header(self, transport):
        cg = CoinGeckoCollector(api_key="k", transport=transport)
        asyncio.run(cg.get_markets(per_page=1))
        assert self.market.requests[-1].headers["x-cg-demo-api-key"] == "k"


# ── DexScreener ────────────────────────────────────────────────────

class TestDexScreenerCollector:

    @pytest.fixture(autouse=True)
    def _collector(self, transport, rng):
        self.dex = DexScreenerCollector(transport=transport, rng=rng)

    def test_search_pairs(self):
        pairs = asyncio.run(self.dex.search_pairs("pepe"))
        assert len(pairs) == 1
        pair = pairs[0]
        assert pair.base_token_symbol == "PEPE"
        assert pair.price_usd == pytest.approx(0.00001)
        assert pair.liquidity_usd == 5_000_000
        assert pair.txns_buys_24h == 300

    def test_token_profile(self):
        token = asyncio.run(self.dex.get_token("0xpepe"))
        assert token.symbol == "PEPE"
        assert token.buy_sell_ratio == 2.0
        assert token.pair_count == 1
        assert token.collected_at is not None

    def test_unknown_token(self):
        assert asyncio.run(self.dex.get_token("0xnothing")) is None

    def test_chart_ends_at_live_price(self):
        now = 1_700_000_000_000
        chart = asyncio.run(self.dex.build_chart("PEPE", interval="1h", limit=24, now_ms=now))
        prices, volumes = chart["prices"], chart["volumes"]
        assert len(prices) == len(volumes) == 24
        assert prices[-1][1] == pytest.approx(0.00001)
        assert prices[-1][0] == now - 3_600_000
        assert prices[0][0] == now - 24 * 3_600_000
        assert all(v > 0 for _, v in volumes)

    def test_chart_starts_near_yesterday(self):
        chart = self.dex.simulate_series(
            base_price=110.0, change_24h=10.0, volume_24h=2400,
            step_ms=60_000, limit=2, now_ms=0,
        )
        # first point is one step away from 110 - 11 = 99
        assert chart["prices"][0][1] == pytest.approx(99.0, abs=0.5)

    def test_chart_bad_interval(self):
        with pytest.raises(ValueError):
            asyncio.run(self.dex.build_chart("PEPE", interval="3h"))

    def test_chart_bad_limit(self):
        with pytest.raises(ValueError):
            asyncio.run(self.dex.build_chart("PEPE", limit=0))

    def test_chart_unknown_symbol(self):
        assert asyncio.run(self.dex.build_chart("NOPE")) is None


# ── Binance ────────────────────────────────────────────────────────

class TestBinanceCollector:

    @pytest.fixture(autouse=True)
    def _collector(self, transport, market):
        self.market = market
        self.binance = BinanceCollector(transport=transport)

    @pytest.mark.parametrize("raw,expected", [
        ("btc", "BTCUSDT"),
        ("BTC-USD", "BTCUSDT"),
        ("ETHUSDT", "ETHUSDT"),
    ])
    def test_to_pair(self, raw, expected):
        assert to_pair(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("btc", "BTC"),
        ("BTC-USD", "BTC"),
        ("eth/usdt", "ETH"),
        ("SOLUSDT", "SOL"),
    ])
    def test_base_asset(self, raw, expected):
        assert base_asset(raw) == expected

    def test_single_ticker(self):
        update = asyncio.run(self.binance.get_ticker("btc"))
        assert update.symbol == "BTC"
        assert update.price == 50000.0
        assert update.change_percent_24h == 3.0
        assert update.timestamp == 1_700_000_000_000

    def test_batch_is_one_request(self):
        updates = asyncio.run(self.binance.get_tickers(["BTC", "ETH", "btc"]))
        assert [u.symbol for u in updates] == ["BTC", "ETH"]
        assert self.market.hits("binance") == 1

    def test_empty_batch(self):
        assert asyncio.run(self.binance.get_tickers([])) == []
        assert self.market.hits("binance") == 0

    def test_stream_payload(self):
        update = parse_ticker({
            "s": "SOLUSDT", "c": "151.5", "p": "1.5", "P": "1.0",
            "v": "900", "h": "155", "l": "149", "E": 123,
        })
        assert update.symbol == "SOL"
        assert update.price == 151.5
        assert update.high_24h == 155.0
        assert update.timestamp == 123
