"""
Price Monitor
=============
Polls Binance 24h tickers for the subscribed symbols and fans the
updates out to subscriber callbacks.

    monitor = PriceMonitor(BinanceCollector())
    unsubscribe = monitor.subscribe("BTC", on_update)
    await monitor.start()
    ...
    unsubscribe()
    await monitor.stop()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from agentdesk.data_collectors.binance_collector import BinanceCollector, PriceUpdate, base_asset
from agentdesk.market_format import price_sentiment

logger = logging.getLogger(__name__)

PriceCallback = Callable[[PriceUpdate], None]
POLL_SECONDS = 5


def get_price_sentiment(update: PriceUpdate) -> str:
    """Bullish above +2%, Bearish below -2%, otherwise Neutral."""
    return price_sentiment(update.change_percent_24h)


class PriceMonitor:

    def __init__(self, binance: BinanceCollector, interval: float = POLL_SECONDS):
        self.binance = binance
        self.interval = interval
        self._subscribers: Dict[str, Set[PriceCallback]] = {}
        self.last_prices: Dict[str, PriceUpdate] = {}
        self._task: Optional[asyncio.Task] = None
        self.is_running = False

    @staticmethod
    def _key(symbol: str) -> str:
        return base_asset(symbol)

    def subscribe(self, symbol: str, callback: PriceCallback) -> Callable[[], None]:
        key = self._key(symbol)
        self._subscribers.setdefault(key, set()).add(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key)
            if callbacks is None:
                return
            callbacks.discard(callback)
            if not callbacks:
                del self._subscribers[key]

        return unsubscribe

    @property
    def symbols(self) -> List[str]:
        return sorted(self._subscribers)

    async def poll_once(self) -> List[PriceUpdate]:
        if not self._subscribers:
            return []
        updates = await self.binance.get_tickers(self.symbols)
        for update in updates:
            self.last_prices[update.symbol] = update
            for callback in list(self._subscribers.get(update.symbol, ())):
                try:
                    callback(update)
                except Exception as exc:
                    logger.error("Price subscriber for %s failed: %s", update.symbol, exc)
        return updates

    async def start(self) -> None:
        if self.is_running:
            return
        self.is_running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Price monitor started (%ss poll)", self.interval)

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
        logger.info("Price monitor stopped")

    async def _loop(self) -> None:
        while self.is_running:
            try:
                await self.poll_once()
            except Exception as exc:
                logger.error("Price poll failed: %s", exc)
            await asyncio.sleep(self.interval)
