"""
AgentDesk – Data Collectors
===========================
Async clients for the public market-data APIs the dashboard proxies.

Available collectors:
    - CoinGeckoCollector    – markets, coin detail, price history
    - DexScreenerCollector  – DEX pair search and simulated chart history
    - BinanceCollector      – 24h tickers
"""

from .binance_collector import BinanceCollector, PriceUpdate
from .coingecko_collector import CoinGeckoCollector, CoinMarketData, CoinPriceHistory
from .dexscreener_collector import DexPairInfo, DexScreenerCollector, DexScreenerToken

__all__ = [
    "BinanceCollector",
    "PriceUpdate",
    "CoinGeckoCollector",
    "CoinMarketData",
    "CoinPriceHistory",
    "DexScreenerCollector",
    "DexPairInfo",
    "DexScreenerToken",
]
