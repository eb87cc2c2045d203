"""
CoinGecko Market-Data Collector
===============================
Market snapshots and price history from the CoinGecko API v3.

API base : https://api.coingecko.com/api/v3

With ``COINGECKO_API_KEY`` set the key is sent as a demo key; add
``COINGECKO_PRO=true`` to route requests through the Pro endpoint.

Endpoints used
--------------
1. ``/coins/markets``           – ranked market list, or a list of ids
2. ``/coins/{id}``              – full coin detail
3. ``/coins/{id}/market_chart`` – price / volume / market-cap history
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


# ───────────────────────────── Data classes ─────────────────────────────

@dataclass
class CoinMarketData:
    """Snapshot of a coin returned by /coins/markets or /coins/{id}."""
    coin_id: str                     # CoinGecko slug  e.g. "bitcoin"
    symbol: str                      # e.g. "btc"
    name: str
    image: str = ""
    current_price: float = 0.0
    market_cap: float = 0.0
    market_cap_rank: Optional[int] = None
    total_volume_24h: float = 0.0
    high_24h: float = 0.0
    low_24h: float = 0.0
    price_change_24h: float = 0.0    # absolute
    price_change_pct_24h: float = 0.0
    circulating_supply: float = 0.0
    last_updated: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CoinPriceHistory:
    """Time-series arrays for a coin, each entry ``[ts_ms, value]``."""
    coin_id: str
    prices: List[List[float]] = field(default_factory=list)
    volumes: List[List[float]] = field(default_factory=list)
    market_caps: List[List[float]] = field(default_factory=list)
    currency: str = "usd"
    days: int = 7

    @property
    def closes(self) -> List[float]:
        return [p[1] for p in self.prices if len(p) > 1]


# ───────────────────────────── Collector ────────────────────────────────

class CoinGeckoCollector:
    """
    Async wrapper over the CoinGecko REST API.

    Usage::

        cg = CoinGeckoCollector()
        markets = await cg.get_markets(per_page=50)
        history = await cg.get_market_chart("bitcoin", days=7)
    """

    FREE_BASE = "https://api.coingecko.com/api/v3"
    PRO_BASE = "https://pro-api.coingecko.com/api/v3"

    def __init__(
        self,
        api_key: Optional[str] = None,
        currency: str = "usd",
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("COINGECKO_API_KEY", "")
        self.currency = currency
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        self._is_pro = os.getenv("COINGECKO_PRO", "").lower() in ("1", "true")
        self._base = self.PRO_BASE if (self._is_pro and self.api_key) else self.FREE_BASE

    # ── helpers ────────────────────────────────────────────────────

    def _get_client(self) -> httpx.AsyncClient:
        """Long-lived client so connections are pooled."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> Dict[str, str]:
        h: Dict[str, str] = {"Accept": "application/json"}
        if self.api_key:
            h["x-cg-pro-api-key" if self._is_pro else "x-cg-demo-api-key"] = self.api_key
        return h

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = await self._get_client().get(
            f"{self._base}{path}", params=params or {}, headers=self._headers(),
        )
        resp.raise_for_status()
        return resp.json()

    # ── public API ─────────────────────────────────────────────────

    async def get_markets(
        self,
        currency: Optional[str] = None,
        per_page: int = 20,
        page: int = 1,
        order: str = "market_cap_desc",
    ) -> List[CoinMarketData]:
        """
        Ranked market list.  Retried with a linearly growing delay;
        an empty list is returned once every attempt has failed.
        """
        params = {
            "vs_currency": currency or self.currency,
            "order": order,
            "per_page": per_page,
            "page": page,
            "sparkline": "false",
        }
        for attempt in range(1, self.max_retries + 1):
            try:
                data = await self._get("/coins/markets", params)
                return [self._parse_market_item(item) for item in data]
            except (httpx.HTTPError, ValueError) as exc:
                logger.error(
                    "CoinGecko /coins/markets error (attempt %d/%d): %s",
                    attempt, self.max_retries, exc,
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay * attempt)

        logger.warning("CoinGecko markets unavailable after %d attempts", self.max_retries)
        return []

    async def get_coin(self, coin_id: str) -> Optional[CoinMarketData]:
        """Full detail for one coin, or None on any failure."""
        try:
            data = await self._get(
                f"/coins/{coin_id}",
                {
                    "localization": "false",
                    "tickers": "false",
                    "market_data": "true",
                    "community_data": "false",
                    "developer_data": "false",
                    "sparkline": "false",
                },
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("CoinGecko /coins/%s error: %s", coin_id, exc)
            return None

        md = data.get("market_data", {}) or {}
        cur = self.currency

        def pick(key: str) -> float:
            value = md.get(key) or {}
            return (value.get(cur) if isinstance(value, dict) else value) or 0

        return CoinMarketData(
            coin_id=data.get("id", coin_id),
            symbol=data.get("symbol", ""),
            name=data.get("name", ""),
            image=(data.get("image") or {}).get("small", ""),
            current_price=pick("current_price"),
            market_cap=pick("market_cap"),
            market_cap_rank=data.get("market_cap_rank"),
            total_volume_24h=pick("total_volume"),
            high_24h=pick("high_24h"),
            low_24h=pick("low_24h"),
            price_change_24h=md.get("price_change_24h") or 0,
            price_change_pct_24h=md.get("price_change_percentage_24h") or 0,
            circulating_supply=md.get("circulating_supply") or 0,
            last_updated=data.get("last_updated") or "",
        )

    async def get_coins_by_ids(self, ids: List[str]) -> List[CoinMarketData]:
        if not ids:
            return []
        try:
            data = await self._get(
                "/coins/markets",
                {
                    "vs_currency": self.currency,
                    "ids": ",".join(ids),
                    "order": "market_cap_desc",
                    "per_page": len(ids),
                    "page": 1,
                    "sparkline": "false",
                },
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("CoinGecko markets?ids= error: %s", exc)
            return []
        return [self._parse_market_item(item) for item in data]

    async def get_market_chart(self, coin_id: str, days: int = 7) -> Optional[CoinPriceHistory]:
        """
        Price + volume arrays for the past *days*.  CoinGecko picks the
        granularity (5-minute up to 1 day, hourly up to 90 days).
        """
        try:
            data = await self._get(
                f"/coins/{coin_id}/market_chart",
                {"vs_currency": self.currency, "days": str(days)},
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("CoinGecko market_chart error for %s: %s", coin_id, exc)
            return None

        return CoinPriceHistory(
            coin_id=coin_id,
            prices=data.get("prices", []),
            volumes=data.get("total_volumes", []),
            market_caps=data.get("market_caps", []),
            currency=self.currency,
            days=days,
        )

    # ── parsing helper ─────────────────────────────────────────────

    @staticmethod
    def _parse_market_item(item: Dict[str, Any]) -> CoinMarketData:
        return CoinMarketData(
            coin_id=item.get("id", ""),
            symbol=item.get("symbol", ""),
            name=item.get("name", ""),
            image=item.get("image", "") or "",
            current_price=item.get("current_price", 0) or 0,
            market_cap=item.get("market_cap", 0) or 0,
            market_cap_rank=item.get("market_cap_rank"),
            total_volume_24h=item.get("total_volume", 0) or 0,
            high_24h=item.get("high_24h", 0) or 0,
            low_24h=item.get("low_24h", 0) or 0,
            price_change_24h=item.get("price_change_24h", 0) or 0,
            price_change_pct_24h=item.get("price_change_percentage_24h", 0) or 0,
            circulating_supply=item.get("circulating_supply", 0) or 0,
            last_updated=item.get("last_updated", "") or "",
        )
