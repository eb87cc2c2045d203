"""
Shared Test Fixtures & Configuration
=======================================
Pytest conftest with reusable fixtures for the entire test suite.

- ``FakeSupabase``  – in-memory stand-in for the supabase-py query builder
- ``FakeMarket``    – CoinGecko / DexScreener / Binance / Hyperliquid served
                      through ``httpx.MockTransport``
- ``app`` / ``client`` – the FastAPI app wired to both fakes
"""

from __future__ import annotations

import copy
import json
import os
import random
import sys
import uuid
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

# ── Ensure project root is on sys.path ────────────────────────────
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


# ══════════════════════════════════════════════════════════════════
# Fake Supabase
# ══════════════════════════════════════════════════════════════════

class FakeResult:
    def __init__(self, data: List[Dict[str, Any]], count: Optional[int] = None):
        self.data = data
        self.count = count


class FakeQuery:
    """The subset of the PostgREST builder the stores use."""

    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._payload: Any = None
        self._on_conflict = "id"
        self._filters: List[Any] = []
        self._order: List[Any] = []
        self._limit: Optional[int] = None
        self._count = False

    # ── operations ────────────────────────────────────────────────

    def select(self, columns: str = "*", count: Optional[str] = None) -> "FakeQuery":
        self._op = "select"
        self._count = count is not None
        return self

    def insert(self, rows: Any) -> "FakeQuery":
        self._op, self._payload = "insert", rows
        return self

    def upsert(self, rows: Any, on_conflict: str = "id") -> "FakeQuery":
        self._op, self._payload, self._on_conflict = "upsert", rows, on_conflict
        return self

    def update(self, fields: Dict[str, Any]) -> "FakeQuery":
        self._op, self._payload = "update", fields
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    # ── filters ───────────────────────────────────────────────────

    def eq(self, col, value):
        self._filters.append(lambda r: r.get(col) == value)
        return self

    def neq(self, col, value):
        self._filters.append(lambda r: r.get(col) != value)
        return self

    def in_(self, col, values):
        values = list(values)
        self._filters.append(lambda r: r.get(col) in values)
        return self

    def gte(self, col, value):
        self._filters.append(lambda r: r.get(col) is not None and r.get(col) >= value)
        return self

    def lt(self, col, value):
        self._filters.append(lambda r: r.get(col) is not None and r.get(col) < value)
        return self

    def lte(self, col, value):
        self._filters.append(lambda r: r.get(col) is not None and r.get(col) <= value)
        return self

    def order(self, col, desc: bool = False):
        self._order.append((col, desc))
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    # ── execution ─────────────────────────────────────────────────

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(f(row) for f in self._filters)

    def execute(self) -> FakeResult:
        self._db.calls.append((self._table, self._op))
        if self._db.fail:
            raise RuntimeError("database offline")
        rows = self._db.tables.setdefault(self._table, [])

        if self._op in ("insert", "upsert"):
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            stored = []
            keys = [k.strip() for k in self._on_conflict.split(",")]
            for item in payload:
                item = copy.deepcopy(item)
                existing = None
                if self._op == "upsert":
                    existing = next(
                        (r for r in rows if all(r.get(k) == item.get(k) for k in keys)), None,
                    )
                if existing is not None:
                    existing.update(item)
                    stored.append(copy.deepcopy(existing))
                else:
                    item.setdefault("id", str(uuid.uuid4()))
                    rows.append(item)
                    stored.append(copy.deepcopy(item))
            return FakeResult(stored)

        matched = [r for r in rows if self._matches(r)]

        if self._op == "update":
            for r in matched:
                r.update(copy.deepcopy(self._payload))
            return FakeResult([copy.deepcopy(r) for r in matched])

        if self._op == "delete":
            self._db.tables[self._table] = [r for r in rows if not self._matches(r)]
            return FakeResult([copy.deepcopy(r) for r in matched])

        total = len(matched)
        for col, desc in reversed(self._order):
            matched.sort(key=lambda r: (r.get(col) is None, r.get(col)), reverse=desc)
        if self._limit is not None:
            matched = matched[: self._limit]
        return FakeResult([copy.deepcopy(r) for r in matched], total if self._count else None)


class FakeSupabase:
    """``client.table(name)`` over plain dict rows held in ``tables``."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[Any] = []
        self.fail = False

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.get(name, [])

    def seed(self, name: str, *rows: Dict[str, Any]) -> None:
        self.tables.setdefault(name, []).extend(copy.deepcopy(list(rows)))


# ══════════════════════════════════════════════════════════════════
# Fake market-data upstreams
# ══════════════════════════════════════════════════════════════════

COINS: List[Dict[str, Any]] = [
    {
        "id": "bitcoin", "symbol": "btc", "name": "Bitcoin",
        "image": "https://img.test/btc.png", "current_price": 50000.0,
        "market_cap": 1_000_000_000_000, "market_cap_rank": 1,
        "total_volume": 30_000_000_000, "high_24h": 51000.0, "low_24h": 49000.0,
        "price_change_24h": 1000.0, "price_change_percentage_24h": 2.0,
        "circulating_supply": 19_000_000,
    },
    {
        "id": "ethereum", "symbol": "eth", "name": "Ethereum",
        "image": "https://img.test/eth.png", "current_price": 3000.0,
        "market_cap": 360_000_000_000, "market_cap_rank": 2,
        "total_volume": 15_000_000_000, "high_24h": 3150.0, "low_24h": 2950.0,
        "price_change_24h": -120.0, "price_change_percentage_24h": -4.0,
        "circulating_supply": 120_000_000,
    },
    {
        "id": "solana", "symbol": "sol", "name": "Solana",
        "image": "https://img.test/sol.png", "current_price": 150.0,
        "market_cap": 70_000_000_000, "market_cap_rank": 5,
        "total_volume": 3_000_000_000, "high_24h": 155.0, "low_24h": 140.0,
        "price_change_24h": 7.5, "price_change_percentage_24h": 5.0,
        "circulating_supply": 440_000_000,
    },
]

PEPE_PAIR: Dict[str, Any] = {
    "chainId": "ethereum",
    "dexId": "uniswap",
    "pairAddress": "0xpair",
    "baseToken": {"address": "0xpepe", "name": "Pepe", "symbol": "PEPE"},
    "quoteToken": {"symbol": "WETH"},
    "priceUsd": "0.00001",
    "txns": {"h24": {"buys": 300, "sells": 150}},
    "volume": {"h24": 2_400_000},
    "priceChange": {"h1": 1.0, "h24": 10.0},
    "liquidity": {"usd": 5_000_000},
    "fdv": 4_000_000_000,
    "marketCap": 4_000_000_000,
}


class FakeMarket:
    """Routes httpx requests by host; tweak the attributes per test."""

    def __init__(self):
        self.mids: Dict[str, float] = {"BTC": 50000.0, "ETH": 3000.0, "SOL": 150.0}
        self.prev_day: Dict[str, float] = {"BTC": 48000.0, "ETH": 3100.0, "SOL": 150.0}
        self.universe: List[Dict[str, Any]] = [
            {"name": "DOGE", "maxLeverage": 10},
            {"name": "ETH", "maxLeverage": 50},
            {"name": "BTC", "maxLeverage": 50},
            {"name": "SOL", "maxLeverage": 20},
            {"name": "OLD", "maxLeverage": 3, "isDelisted": True},
        ]
        self.asset_positions: List[Dict[str, Any]] = []
        self.fail_hyperliquid = False
        self.fail_coingecko = False
        self.requests: List[httpx.Request] = []

    # ── dispatch ──────────────────────────────────────────────────

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if "coingecko" in host:
            return self._coingecko(request)
        if "dexscreener" in host:
            return self._dexscreener(request)
        if "binance" in host:
            return self._binance(request)
        if "hyperliquid" in host:
            return self._hyperliquid(request)
        return httpx.Response(404, json={"error": "unknown host"})

    def hits(self, host_part: str) -> int:
        return sum(1 for r in self.requests if host_part in r.url.host)

    # ── upstreams ─────────────────────────────────────────────────

    def _coingecko(self, request: httpx.Request) -> httpx.Response:
        if self.fail_coingecko:
            return httpx.Response(503, json={"error": "unavailable"})
        path = request.url.path.replace("/api/v3", "")
        if path == "/coins/markets":
            ids = request.url.params.get("ids")
            coins = COINS
            if ids:
                wanted = ids.split(",")
                coins = [c for c in COINS if c["id"] in wanted]
            per_page = int(request.url.params.get("per_page", 100))
            return httpx.Response(200, json=coins[:per_page])
        parts = path.strip("/").split("/")
        coin = next((c for c in COINS if len(parts) > 1 and c["id"] == parts[1]), None)
        if coin is None:
            return httpx.Response(404, json={"error": "coin not found"})
        if len(parts) == 3 and parts[2] == "market_chart":
            price = coin["current_price"]
            prices = [[1_700_000_000_000 + i * 3_600_000, price * (0.9 + i * 0.002)] for i in range(60)]
            return httpx.Response(200, json={
                "prices": prices,
                "total_volumes": [[p[0], 1_000_000] for p in prices],
                "market_caps": [[p[0], coin["market_cap"]] for p in prices],
            })
        return httpx.Response(200, json={
            "id": coin["id"],
            "symbol": coin["symbol"],
            "name": coin["name"],
            "image": {"small": coin["image"]},
            "market_cap_rank": coin["market_cap_rank"],
            "market_data": {
                "current_price": {"usd": coin["current_price"]},
                "market_cap": {"usd": coin["market_cap"]},
                "total_volume": {"usd": coin["total_volume"]},
                "high_24h": {"usd": coin["high_24h"]},
                "low_24h": {"usd": coin["low_24h"]},
                "price_change_24h": coin["price_change_24h"],
                "price_change_percentage_24h": coin["price_change_percentage_24h"],
                "circulating_supply": coin["circulating_supply"],
            },
        })

    def _dexscreener(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/latest/dex/search":
            q = request.url.params.get("q", "").upper()
            return httpx.Response(200, json={"pairs": [PEPE_PAIR] if q == "PEPE" else []})
        if path.startswith("/latest/dex/tokens/"):
            address = path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"pairs": [PEPE_PAIR] if address == "0xpepe" else None})
        return httpx.Response(404)

    def _binance(self, request: httpx.Request) -> httpx.Response:
        def ticker(pair: str) -> Dict[str, Any]:
            base = pair.replace("USDT", "")
            price = self.mids.get(base, 1.0)
            return {
                "symbol": pair,
                "lastPrice": str(price),
                "priceChange": str(price * 0.03),
                "priceChangePercent": "3.0" if base == "BTC" else "-0.5",
                "volume": "12345.6",
                "highPrice": str(price * 1.05),
                "lowPrice": str(price * 0.95),
                "closeTime": 1_700_000_000_000,
            }

        params = request.url.params
        if "symbols" in params:
            pairs = json.loads(params["symbols"])
            return httpx.Response(200, json=[ticker(p) for p in pairs])
        return httpx.Response(200, json=ticker(params.get("symbol", "BTCUSDT")))

    def _hyperliquid(self, request: httpx.Request) -> httpx.Response:
        if self.fail_hyperliquid:
            return httpx.Response(500, json={"error": "down"})
        payload = json.loads(request.content)
        kind = payload.get("type")
        if kind == "allMids":
            return httpx.Response(200, json={k: str(v) for k, v in self.mids.items()})
        if kind == "meta":
            return httpx.Response(200, json={"universe": self.universe})
        if kind == "metaAndAssetCtxs":
            coins = list(self.mids)
            return httpx.Response(200, json=[
                {"universe": [{"name": c} for c in coins]},
                [
                    {
                        "prevDayPx": str(self.prev_day.get(c, self.mids[c])),
                        "dayNtlVlm": "1000000",
                        "funding": "0.0001",
                        "openInterest": "5000",
                    }
                    for c in coins
                ],
            ])
        if kind == "clearinghouseState":
            return httpx.Response(200, json={"assetPositions": self.asset_positions})
        return httpx.Response(400, json={"error": f"unknown type {kind}"})


# ══════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Every test starts with empty caches and no trading/auth env."""
    from agentdesk.api.dependencies import reset_key_cache
    from cache import market_cache

    for name in (
        "AGENTDESK_API_KEYS", "AGENTDESK_ADMIN_KEYS", "EMERGENCY_STOP", "PAPER_TRADING_MODE",
        "AUTOMATION_AUTOSTART", "POSITION_MONITOR_AUTOSTART", "SUPABASE_URL", "SUPABASE_KEY",
        "DEFAULT_MAX_POSITION_SIZE", "DEFAULT_MAX_DAILY_LOSS", "MAX_OPEN_POSITIONS",
        "MIN_CONFIDENCE_LEVEL", "TRADING_HOURS_START", "TRADING_HOURS_END", "MAX_LEVERAGE",
        "DEFAULT_STOP_LOSS_PERCENTAGE", "DEFAULT_TAKE_PROFIT_PERCENTAGE", "COINGECKO_PRO",
    ):
        monkeypatch.delenv(name, raising=False)
    market_cache.clear()
    reset_key_cache()
    yield
    market_cache.clear()
    reset_key_cache()


@pytest.fixture()
def db():
    return FakeSupabase()


@pytest.fixture()
def market():
    return FakeMarket()


@pytest.fixture()
def transport(market):
    return httpx.MockTransport(market.handle)


@pytest.fixture()
def rng():
    return random.Random(7)


@pytest.fixture()
def app(db, transport, rng):
    """A fresh app per test, wired to the fakes."""
    from agentdesk.api.app import create_app
    return create_app(supabase_client=db, http_transport=transport, rng=rng)


@pytest.fixture()
def client(app):
    """Sync TestClient wrapping the FastAPI app (runs the lifespan)."""
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def history(db):
    from agentdesk.trading import TradingHistoryService
    return TradingHistoryService(db)


@pytest.fixture()
def hyperliquid(history, transport, rng):
    from agentdesk.trading import HyperliquidService
    return HyperliquidService(history=history, transport=transport, rng=rng)


def agent_row(agent_id: str = "agent-1", wallet: str = "0xwallet", **config: Any) -> Dict[str, Any]:
    """An ``ai_agents`` row as Supabase would return it."""
    cfg = {
        "riskTolerance": 50,
        "focusAssets": ["bitcoin", "ethereum"],
        "indicators": ["RSI", "MACD"],
        "tradingPairs": ["BTC-USD", "ETH-USD"],
        "tradingEnabled": True,
    }
    cfg.update(config)
    return {
        "id": agent_id,
        "name": f"Agent {agent_id}",
        "type": "Technical Analysis",
        "description": "test agent",
        "is_active": True,
        "wallet_address": wallet,
        "configuration": cfg,
        "performance_metrics": {"accuracy": 0, "signals": 0, "lastSignal": ""},
    }
