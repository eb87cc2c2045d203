"""
On-Chain Analyzer
=================
Whale activity, exchange flow and network activity for one asset.

There is no on-chain feed behind this yet: each factor is sampled in
[0, 1) from the injected ``random.Random``.  A factor above 0.7 or
below 0.3 is considered significant.
"""

from __future__ import annotations

import logging
import math
import random
from typing import List, Optional

from agentdesk.data_collectors.coingecko_collector import CoinMarketData

from .models import AnalysisResult, SignalType

logger = logging.getLogger(__name__)

HIGH = 0.7
LOW = 0.3
MIN_CONFIDENCE = 30


def half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


class OnChainAnalyzer:

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def analyze(self, asset: CoinMarketData) -> Optional[AnalysisResult]:
        messages: List[str] = []
        confidence = 0
        signal_type = SignalType.BUY

        whale = self._rng.random()
        if whale > HIGH:
            messages.append("Large whale accumulation detected")
            confidence += 25
            signal_type = SignalType.BUY
        elif whale < LOW:
            messages.append("Large whale distribution detected")
            confidence += 25
            signal_type = SignalType.SELL

        flow = self._rng.random()
        if flow > HIGH:
            messages.append("High exchange inflow")
            confidence += 20
            signal_type = SignalType.BUY
        elif flow < LOW:
            messages.append("High exchange outflow")
            confidence += 20
            signal_type = SignalType.SELL

        network = self._rng.random()
        if network > HIGH:
            messages.append("High network activity")
            confidence += 15
        elif network < LOW:
            messages.append("Low network activity")
            confidence += 15

        risk_score = min(100, half_up((whale + network) * 50))

        if confidence < MIN_CONFIDENCE:
            logger.debug("On-chain confidence %d too low for %s", confidence, asset.coin_id)
            return None

        return AnalysisResult(
            type=signal_type,
            confidence=min(100, confidence),
            signal=" + ".join(messages),
            price=asset.current_price,
            risk_score=risk_score,
        )
