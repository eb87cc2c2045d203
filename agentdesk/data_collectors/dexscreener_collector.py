"""
DexScreener Pair Collector
==========================
Pair search and token lookups against the public **DexScreener** API
(free, no key).  Base: ``https://api.dexscreener.com``

DexScreener exposes no candle history, so ``build_chart`` synthesises
a series that ends at the live price and starts where the 24h change
says the price was a day ago.
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

# Chart interval → step in milliseconds
INTERVAL_MS: Dict[str, int] = {
    "1m": 60_000,
    "5m": 300_000,
    "15m": 900_000,
    "1h": 3_600_000,
    "1d": 86_400_000,
}


# ───────────────────────── Data classes ─────────────────────────

@dataclass
class DexPairInfo:
    """One DEX trading pair (from DexScreener)."""
    pair_address: str
    chain_id: str
    dex_id: str
    base_token_address: str
    base_token_symbol: str
    base_token_name: str
    quote_token_symbol: str
    price_usd: float = 0.0
    volume_24h: float = 0.0
    price_change_1h: float = 0.0
    price_change_24h: float = 0.0
    liquidity_usd: float = 0.0
    fdv: float = 0.0
    market_cap: float = 0.0
    pair_created_at: Optional[datetime] = None
    txns_buys_24h: int = 0
    txns_sells_24h: int = 0


@dataclass
class DexScreenerToken:
    """Token profile built from its most liquid pair."""
    token_address: str
    symbol: str
    name: str
    price_usd: float = 0.0
    volume_24h: float = 0.0
    price_change_24h: float = 0.0
    market_cap: float = 0.0
    liquidity_usd: float = 0.0
    buy_sell_ratio: float = 1.0
    dex_id: str = ""
    chain_id: str = ""
    pair_address: str = ""
    pair_count: int = 0
    collected_at: Optional[datetime] = None
    dex_pairs: List[DexPairInfo] = field(default_factory=list)


# ───────────────────────── Collector ────────────────────────────

class DexScreenerCollector:
    """
    Usage::

        dex = DexScreenerCollector()
        pairs = await dex.search_pairs("PEPE")
        chart = await dex.build_chart("PEPE", interval="15m", limit=48)
    """

    DEXSCREENER_BASE = "https://api.dexscreener.com"

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
    ):
        self._transport = transport
        self._rng = rng or random.Random()
        self._client: Optional[httpx.AsyncClient] = None

    # ── helpers ────────────────────────────────────────────────────

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=20, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, params: Optional[Dict] = None) -> Any:
        resp = await self._get_client().get(
            f"{self.DEXSCREENER_BASE}{path}",
            params=params or {},
            headers={"Accept": "application/json", "Cache-Control": "no-cache"},
        )
        resp.raise_for_status()
        return resp.json()

    # ── DexScreener endpoints ──────────────────────────────────────

    async def search_pairs(self, query: str) -> List[DexPairInfo]:
        """GET /latest/dex/search?q={query}"""
        try:
            data = await self._get_json("/latest/dex/search", {"q": query})
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("DexScreener search error: %s", exc)
            return []
        return [self._parse_pair(p) for p in (data.get("pairs") or [])]

    async def get_token_pairs(self, token_address: str) -> List[DexPairInfo]:
        """GET /latest/dex/tokens/{tokenAddress}"""
        try:
            data = await self._get_json(f"/latest/dex/tokens/{token_address}")
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("DexScreener token lookup error: %s", exc)
            return []
        return [self._parse_pair(p) for p in (data.get("pairs") or [])]

    async def get_token(self, token_address: str) -> Optional[DexScreenerToken]:
        pairs = await self.get_token_pairs(token_address)
        if not pairs:
            logger.warning("No DEX pairs found for %s", token_address)
            return None

        primary = max(pairs, key=lambda p: p.liquidity_usd)
        return DexScreenerToken(
            token_address=token_address,
            symbol=primary.base_token_symbol,
            name=primary.base_token_name,
            price_usd=primary.price_usd,
            volume_24h=primary.volume_24h,
            price_change_24h=primary.price_change_24h,
            market_cap=primary.market_cap,
            liquidity_usd=primary.liquidity_usd,
            buy_sell_ratio=round(primary.txns_buys_24h / max(primary.txns_sells_24h, 1), 2),
            dex_id=primary.dex_id,
            chain_id=primary.chain_id,
            pair_address=primary.pair_address,
            pair_count=len(pairs),
            collected_at=datetime.now(timezone.utc),
            dex_pairs=pairs,
        )

    # ── simulated chart ────────────────────────────────────────────

    async def build_chart(
        self,
        symbol: str,
        interval: str = "1h",
        limit: int = 24,
        now_ms: Optional[int] = None,
    ) -> Optional[Dict[str, List[List[float]]]]:
        """
        Simulated ``{"prices": [[ts, p]...], "volumes": [[ts, v]...]}``
        for the first pair matching *symbol*.

        Raises ValueError on an unknown interval or a non-positive limit.
        Returns None when DexScreener has no pair for the symbol.
        """
        if interval not in INTERVAL_MS:
            raise ValueError(f"Unsupported interval '{interval}'")
        if limit < 1:
            raise ValueError("limit must be at least 1")

        pairs = await self.search_pairs(symbol)
        if not pairs:
            return None
        pair = pairs[0]
        return self.simulate_series(
            base_price=pair.price_usd,
            change_24h=pair.price_change_24h,
            volume_24h=pair.volume_24h,
            step_ms=INTERVAL_MS[interval],
            limit=limit,
            now_ms=now_ms,
        )

    def simulate_series(
        self,
        base_price: float,
        change_24h: float,
        volume_24h: float,
        step_ms: int,
        limit: int,
        now_ms: Optional[int] = None,
    ) -> Dict[str, List[List[float]]]:
        """
        Random walk with a half-sine drift::

            vol   = |change_24h / 100| * 2
            p0    = base - change_24h / 100 * base
            delta = (sin(i / limit * pi) * vol + (u - 0.5) * vol) * last * 0.01

        The last point is pinned to *base_price*.
        """
        now = now_ms if now_ms is not None else int(time.time() * 1000)
        volatility = abs(change_24h / 100) * 2
        volume_base = volume_24h / 24 if volume_24h else 1_000_000

        prices: List[List[float]] = []
        volumes: List[List[float]] = []
        last = base_price - (change_24h / 100 * base_price)

        for i in range(limit):
            ts = now - (limit - i) * step_ms
            trend = math.sin(i / limit * math.pi) * volatility
            noise = (self._rng.random() - 0.5) * volatility
            delta = (trend + noise) * last * 0.01

            last = base_price if i == limit - 1 else last + delta

            swing = abs(delta / last) * 2 if last else 0.0
            volume = volume_base * (0.8 + swing + self._rng.random() * 0.4)

            prices.append([ts, last])
            volumes.append([ts, volume])

        return {"prices": prices, "volumes": volumes}

    # ── internals ──────────────────────────────────────────────────

    @staticmethod
    def _parse_pair(p: Dict[str, Any]) -> DexPairInfo:
        base_token = p.get("baseToken") or {}
        h24 = (p.get("txns") or {}).get("h24") or {}
        price_change = p.get("priceChange") or {}
        vol = p.get("volume") or {}

        created = None
        if p.get("pairCreatedAt"):
            created = datetime.fromtimestamp(p["pairCreatedAt"] / 1000, tz=timezone.utc)

        return DexPairInfo(
            pair_address=p.get("pairAddress", ""),
            chain_id=p.get("chainId", ""),
            dex_id=p.get("dexId", ""),
            base_token_address=base_token.get("address", ""),
            base_token_symbol=base_token.get("symbol", ""),
            base_token_name=base_token.get("name", ""),
            quote_token_symbol=(p.get("quoteToken") or {}).get("symbol", ""),
            price_usd=float(p.get("priceUsd", 0) or 0),
            volume_24h=float(vol.get("h24", 0) or 0),
            price_change_1h=float(price_change.get("h1", 0) or 0),
            price_change_24h=float(price_change.get("h24", 0) or 0),
            liquidity_usd=float((p.get("liquidity") or {}).get("usd", 0) or 0),
            fdv=float(p.get("fdv", 0) or 0),
            market_cap=float(p.get("marketCap", 0) or p.get("fdv", 0) or 0),
            pair_created_at=created,
            txns_buys_24h=int(h24.get("buys", 0) or 0),
            txns_sells_24h=int(h24.get("sells", 0) or 0),
        )
