"""
Signal Validator
================
Gatekeeper between a generated signal and a trade.  Four checks, each
with its own 0-100 risk score:

=================  =========================  ======================
check              passes when                risk
=================  =========================  ======================
price deviation    |cur - sig| / sig <= 2%    dev * 1000
volatility         vol_24h <= threshold       vol * 1000
confidence         confidence >= 65           (100 - c) * 2
age                "<n><m|h|d>" <= 24h        age / 24h * 100
=================  =========================  ======================

A failing signal reports the worst risk; a passing one reports the
0.4 / 0.3 / 0.2 / 0.1 weighted sum.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

MAX_PRICE_DEVIATION = 0.02
MIN_CONFIDENCE = 65
MAX_AGE_MS = 24 * 60 * 60 * 1000
CHECK_WEIGHTS = (0.4, 0.3, 0.2, 0.1)

_AGE_RE = re.compile(r"(\d+)([mhd])")
_UNIT_MS = {"m": 60 * 1000, "h": 60 * 60 * 1000, "d": 24 * 60 * 60 * 1000}

DEFAULT_RISK_PARAMS: Dict[str, float] = {
    "max_position_size": 0.1,       # share of portfolio
    "stop_loss": 0.05,
    "max_drawdown": 0.15,
    "volatility_threshold": 0.03,
}


@dataclass
class ValidationResult:
    is_valid: bool
    risk_score: int
    message: str = ""


def _capped(x: float) -> int:
    return min(100, math.floor(x))


def _fmt(n: float) -> str:
    return str(int(n)) if float(n).is_integer() else str(n)


class SignalValidator:

    def __init__(self, config: Optional[Dict[str, float]] = None):
        self.params = {**DEFAULT_RISK_PARAMS, **(config or {})}

    def validate_signal(
        self,
        signal: Dict[str, Any],
        current_price: float,
        volatility_24h: float,
    ) -> ValidationResult:
        """
        *signal* needs ``price``, ``confidence`` and ``time`` (e.g. ``"2h ago"``).
        """
        checks: List[ValidationResult] = [
            self.check_price_deviation(float(signal["price"]), current_price),
            self.check_volatility(volatility_24h),
            self.check_confidence(float(signal["confidence"])),
            self.check_age(str(signal.get("time") or "")),
        ]

        failed = [c for c in checks if not c.is_valid]
        if failed:
            return ValidationResult(
                is_valid=False,
                risk_score=max(c.risk_score for c in checks),
                message=", ".join(c.message for c in failed),
            )

        risk = math.floor(sum(c.risk_score * w for c, w in zip(checks, CHECK_WEIGHTS)))
        return ValidationResult(
            is_valid=True,
            risk_score=risk,
            message=f"Signal validated with risk score {risk}",
        )

    # ── individual checks ───────────────────────────────────────

    @staticmethod
    def check_price_deviation(signal_price: float, current_price: float) -> ValidationResult:
        if signal_price <= 0:
            return ValidationResult(False, 100, "Signal price must be positive")
        deviation = abs(current_price - signal_price) / signal_price
        ok = deviation <= MAX_PRICE_DEVIATION
        return ValidationResult(
            ok,
            _capped(deviation * 1000),
            "" if ok else f"Price deviation of {deviation * 100:.2f}% exceeds maximum allowed",
        )

    def check_volatility(self, volatility_24h: float) -> ValidationResult:
        ok = volatility_24h <= self.params["volatility_threshold"]
        return ValidationResult(
            ok,
            _capped(volatility_24h * 1000),
            "" if ok else f"Volatility of {volatility_24h * 100:.2f}% exceeds threshold",
        )

    @staticmethod
    def check_confidence(confidence: float) -> ValidationResult:
        ok = confidence >= MIN_CONFIDENCE
        return ValidationResult(
            ok,
            _capped((100 - confidence) * 2),
            "" if ok else f"Confidence of {_fmt(confidence)}% is below minimum required",
        )

    @staticmethod
    def check_age(signal_time: str) -> ValidationResult:
        match = _AGE_RE.search(signal_time)
        if not match:
            return ValidationResult(False, 100, "Invalid time format")
        age_ms = int(match.group(1)) * _UNIT_MS[match.group(2)]
        ok = age_ms <= MAX_AGE_MS
        return ValidationResult(
            ok,
            _capped(age_ms / MAX_AGE_MS * 100),
            "" if ok else "Signal is too old",
        )

    # ── sizing ──────────────────────────────────────────────────

    def calculate_position_size(self, portfolio_value: float, risk_score: float) -> float:
        return portfolio_value * self.params["max_position_size"] * (1 - risk_score / 100)

    def calculate_stop_loss(self, entry_price: float, signal_type: str) -> float:
        amount = entry_price * self.params["stop_loss"]
        return entry_price - amount if signal_type == "Buy" else entry_price + amount
