"""
Technical Analyzer
==================
Scores one asset from its 7-day price history and the current market
snapshot, using only the indicators the agent selected.

Indicators
----------
- ``RSI``  – 14-period Wilder RSI
- ``MACD`` – 12/26 EMA spread with a 9-period signal line
- ``SMA``  – SMA-20 / SMA-50
- ``EMA``  – EMA-20 / EMA-50

Scoring
-------
Confidence starts at 50 and moves with RSI extremes, a bullish MACD,
proximity to the 24h high / low and unusual volume.  Each condition
also votes Buy or Sell; a tied vote produces no signal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from agentdesk import ta_utils
from agentdesk.data_collectors.coingecko_collector import CoinMarketData

from .models import AgentConfig, AnalysisResult, SignalType

logger = logging.getLogger(__name__)


@dataclass
class PriceAction:
    near_high: bool
    near_low: bool
    change_24h: float


@dataclass
class VolumeAnalysis:
    ratio: float
    high_volume: bool


class TechnicalAnalyzer:
    """
    Usage::

        ta = TechnicalAnalyzer()
        result = ta.analyze(asset, closes, agent)
        if result:
            print(result.type, result.confidence, result.signal)
    """

    def analyze(
        self,
        asset: CoinMarketData,
        closes: List[float],
        agent: AgentConfig,
    ) -> Optional[AnalysisResult]:
        indicators = self.calculate_indicators(closes, agent.indicators)
        price_action = self.analyze_price_action(asset)
        volume = self.analyze_volume(asset)

        signal_type = self.determine_signal_type(indicators, price_action, volume)
        if signal_type is None:
            return None

        return AnalysisResult(
            type=signal_type,
            confidence=self.calculate_confidence(indicators, price_action, volume),
            signal=self.signal_message(indicators, price_action, volume),
            price=asset.current_price,
        )

    # ── inputs ──────────────────────────────────────────────────

    @staticmethod
    def calculate_indicators(closes: List[float], selected: List[str]) -> Dict[str, float]:
        results: Dict[str, float] = {}
        for name in selected:
            if name == "RSI":
                results["RSI"] = ta_utils.rsi(closes, 14)
            elif name == "MACD":
                line, signal, _ = ta_utils.macd(closes, 12, 26, 9)
                results["MACD"] = line
                results["MACD_Signal"] = signal
            elif name == "SMA":
                results["SMA_20"] = ta_utils.sma(closes, 20)
                results["SMA_50"] = ta_utils.sma(closes, 50)
            elif name == "EMA":
                results["EMA_20"] = ta_utils.ema(closes, 20)
                results["EMA_50"] = ta_utils.ema(closes, 50)
            else:
                logger.debug("Ignoring unknown indicator %s", name)
        return results

    @staticmethod
    def analyze_price_action(asset: CoinMarketData) -> PriceAction:
        price = asset.current_price
        return PriceAction(
            near_high=price > asset.high_24h * 0.95,
            near_low=price < asset.low_24h * 1.05,
            change_24h=asset.price_change_pct_24h or 0,
        )

    @staticmethod
    def analyze_volume(asset: CoinMarketData) -> VolumeAnalysis:
        # Circulating-supply proxy for "normal" daily volume
        if not asset.current_price or not asset.market_cap:
            return VolumeAnalysis(ratio=0.0, high_volume=False)
        avg_volume = asset.market_cap / asset.current_price
        return VolumeAnalysis(
            ratio=asset.total_volume_24h / avg_volume,
            high_volume=asset.total_volume_24h > avg_volume * 1.5,
        )

    # ── scoring ─────────────────────────────────────────────────

    @staticmethod
    def calculate_confidence(
        indicators: Dict[str, float],
        price_action: PriceAction,
        volume: VolumeAnalysis,
    ) -> float:
        confidence = 50.0

        rsi = indicators.get("RSI")
        if rsi and (rsi < 30 or rsi > 70):
            confidence += 20

        macd, macd_signal = indicators.get("MACD"), indicators.get("MACD_Signal")
        if macd and macd_signal and macd > macd_signal:
            confidence += 15

        if price_action.near_high:
            confidence -= 10
        if price_action.near_low:
            confidence += 10
        if volume.high_volume:
            confidence += 15

        return min(100.0, max(0.0, confidence))

    @staticmethod
    def determine_signal_type(
        indicators: Dict[str, float],
        price_action: PriceAction,
        volume: VolumeAnalysis,
    ) -> Optional[SignalType]:
        buy = sell = 0

        rsi = indicators.get("RSI")
        if rsi:
            buy += rsi < 30
            sell += rsi > 70

        macd, macd_signal = indicators.get("MACD"), indicators.get("MACD_Signal")
        if macd and macd_signal:
            buy += macd > macd_signal
            sell += macd < macd_signal

        buy += price_action.near_low
        sell += price_action.near_high

        if volume.high_volume:
            buy += price_action.change_24h > 0
            sell += price_action.change_24h < 0

        if buy > sell:
            return SignalType.BUY
        if sell > buy:
            return SignalType.SELL
        return None

    @staticmethod
    def signal_message(
        indicators: Dict[str, float],
        price_action: PriceAction,
        volume: VolumeAnalysis,
    ) -> str:
        parts: List[str] = []
        if indicators.get("RSI"):
            parts.append(f"RSI: {indicators['RSI']:.2f}")
        if indicators.get("MACD"):
            parts.append(f"MACD: {indicators['MACD']:.2f}")
        if price_action.change_24h:
            parts.append(f"24h Change: {price_action.change_24h:.2f}%")
        if volume.ratio:
            parts.append(f"Volume Ratio: {volume.ratio:.2f}x")
        return " | ".join(parts)
