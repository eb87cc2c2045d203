"""
Binance Ticker Collector
========================
24h rolling ticker statistics from the public Binance REST API
(``https://api.binance.com/api/v3``).  Symbols are USDT-quoted; callers
pass the base asset (``"BTC"``) and get a ``PriceUpdate`` keyed by it.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

QUOTE = "USDT"


@dataclass
class PriceUpdate:
    symbol: str               # base asset, upper-case
    price: float
    change_24h: float
    change_percent_24h: float
    volume_24h: float
    high_24h: float
    low_24h: float
    timestamp: int            # ms

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def base_asset(symbol: str) -> str:
    """``"btc"`` / ``"BTC-USD"`` / ``"BTC/USDT"`` / ``"BTCUSDT"`` → ``"BTC"``."""
    base = symbol.strip().upper().replace("/", "-").split("-")[0]
    if base.endswith(QUOTE) and len(base) > len(QUOTE):
        base = base[: -len(QUOTE)]
    return base


def to_pair(symbol: str) -> str:
    """``"btc"`` / ``"BTC-USD"`` / ``"BTCUSDT"`` → ``"BTCUSDT"``."""
    return f"{base_asset(symbol)}{QUOTE}"


def _num(raw: Dict[str, Any], *keys: str) -> float:
    for key in keys:
        if raw.get(key) not in (None, ""):
            return float(raw[key])
    return 0.0


def parse_ticker(raw: Dict[str, Any]) -> PriceUpdate:
    """
    Accepts both the REST ``/ticker/24hr`` payload (``lastPrice``,
    ``priceChange`` ...) and the ``@ticker`` stream payload (``c``,
    ``p``, ``P``, ``v``, ``h``, ``l``).
    """
    pair = str(raw.get("symbol") or raw.get("s") or "").upper()
    base = pair[: -len(QUOTE)] if pair.endswith(QUOTE) else pair
    ts = raw.get("closeTime") or raw.get("E") or int(time.time() * 1000)
    return PriceUpdate(
        symbol=base,
        price=_num(raw, "lastPrice", "c"),
        change_24h=_num(raw, "priceChange", "p"),
        change_percent_24h=_num(raw, "priceChangePercent", "P"),
        volume_24h=_num(raw, "volume", "v"),
        high_24h=_num(raw, "highPrice", "h"),
        low_24h=_num(raw, "lowPrice", "l"),
        timestamp=int(ts),
    )


class BinanceCollector:
    """
    Usage::

        binance = BinanceCollector()
        btc = await binance.get_ticker("BTC")
        many = await binance.get_tickers(["BTC", "ETH"])
    """

    BASE = "https://api.binance.com/api/v3"

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=10, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def get_ticker(self, symbol: str) -> Optional[PriceUpdate]:
        try:
            resp = await self._get_client().get(
                f"{self.BASE}/ticker/24hr", params={"symbol": to_pair(symbol)},
            )
            resp.raise_for_status()
            return parse_ticker(resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Binance ticker error for %s: %s", symbol, exc)
            return None

    async def get_tickers(self, symbols: List[str]) -> List[PriceUpdate]:
        """One request for all *symbols*; unknown pairs fail the whole batch upstream."""
        if not symbols:
            return []
        pairs = sorted({to_pair(s) for s in symbols})
        try:
            resp = await self._get_client().get(
                f"{self.BASE}/ticker/24hr",
                params={"symbols": json.dumps(pairs, separators=(",", ":"))},
            )
            resp.raise_for_status()
            return [parse_ticker(item) for item in resp.json()]
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Binance tickers error for %s: %s", ",".join(pairs), exc)
            return []
