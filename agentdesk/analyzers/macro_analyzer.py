"""
Macro Analyzer
==============
Market sentiment, traditional-market correlation, regulatory climate
and institutional interest, each sampled in [0, 1) from the injected
``random.Random`` until a macro data source is wired in.
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional, Tuple

from agentdesk.data_collectors.coingecko_collector import CoinMarketData

from .models import AnalysisResult, SignalType
from .onchain_analyzer import HIGH, LOW, MIN_CONFIDENCE, half_up

logger = logging.getLogger(__name__)

# factor → (points, message when high, message when low, sets direction)
FACTORS: List[Tuple[str, int, str, str, bool]] = [
    ("sentiment", 25, "Positive market sentiment", "Negative market sentiment", True),
    ("correlation", 20, "Strong correlation with traditional markets",
     "Weak correlation with traditional markets", False),
    ("regulatory", 15, "Favorable regulatory environment", "Unfavorable regulatory environment", True),
    ("institutional", 20, "High institutional interest", "Low institutional interest", True),
]


class MacroAnalyzer:

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def analyze(self, asset: CoinMarketData) -> Optional[AnalysisResult]:
        messages: List[str] = []
        confidence = 0
        signal_type = SignalType.BUY
        samples = {}

        for name, points, high_msg, low_msg, directional in FACTORS:
            value = self._rng.random()
            samples[name] = value
            if value > HIGH:
                messages.append(high_msg)
                confidence += points
                if directional:
                    signal_type = SignalType.BUY
            elif value < LOW:
                messages.append(low_msg)
                confidence += points
                if directional:
                    signal_type = SignalType.SELL

        risk_score = min(100, half_up((samples["sentiment"] + samples["regulatory"]) * 50))

        if confidence < MIN_CONFIDENCE:
            logger.debug("Macro confidence %d too low for %s", confidence, asset.coin_id)
            return None

        return AnalysisResult(
            type=signal_type,
            confidence=min(100, confidence),
            signal=" + ".join(messages),
            price=asset.current_price,
            indicators=list(messages),
            risk_score=risk_score,
        )
