"""
Technical Indicator Utilities
=============================
Plain-Python moving averages, RSI and MACD used by the technical
analyzer.  Every function takes a list of closing prices (oldest first)
and never raises on short input; it falls back to a neutral value.
"""

from __future__ import annotations

from typing import List, Tuple


# ── Moving averages ─────────────────────────────────────────────

def sma(values: List[float], period: int) -> float:
    """Mean of the last *period* values (or of all values if fewer)."""
    if not values or period <= 0:
        return 0.0
    window = values[-period:]
    return sum(window) / len(window)


def ema_series(values: List[float], period: int) -> List[float]:
    """
    Full EMA series, same length as *values*.

    The value at index ``period - 1`` is seeded with the SMA of the
    first *period* values; earlier entries are left as the raw input::

        k = 2 / (period + 1)
        ema[i] = values[i] * k + ema[i-1] * (1 - k)
    """
    if not values or period <= 0:
        return []
    period = min(period, len(values))

    k = 2.0 / (period + 1)
    out = list(values[:period])
    out[-1] = sum(values[:period]) / period
    for price in values[period:]:
        out.append(price * k + out[-1] * (1 - k))
    return out


def ema(values: List[float], period: int) -> float:
    """Latest EMA value."""
    series = ema_series(values, period)
    return series[-1] if series else 0.0


# ── RSI (Wilder) ────────────────────────────────────────────────

def rsi_series(closes: List[float], period: int = 14) -> List[float]:
    """
    RSI series using Wilder smoothing.

    Positions without enough history are reported as 50 (neutral).
    """
    n = len(closes)
    if n < period + 1:
        return [50.0] * n

    deltas = [closes[i] - closes[i - 1] for i in range(1, n)]
    avg_gain = sum(max(d, 0.0) for d in deltas[:period]) / period
    avg_loss = sum(max(-d, 0.0) for d in deltas[:period]) / period

    out = [50.0] * period
    out.append(_rsi_value(avg_gain, avg_loss))

    for d in deltas[period:]:
        avg_gain = (avg_gain * (period - 1) + max(d, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-d, 0.0)) / period
        out.append(_rsi_value(avg_gain, avg_loss))
    return out


def rsi(closes: List[float], period: int = 14) -> float:
    """Latest RSI value."""
    series = rsi_series(closes, period)
    return series[-1] if series else 50.0


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


# ── MACD ────────────────────────────────────────────────────────

def macd_series(
    closes: List[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> Tuple[List[float], List[float], List[float]]:
    """
    Return ``(macd_line, signal_line, histogram)``.

    All three lists match ``len(closes)``; with fewer than *slow*
    closes everything is zero.
    """
    n = len(closes)
    if n < slow:
        return [0.0] * n, [0.0] * n, [0.0] * n

    line = [f - s for f, s in zip(ema_series(closes, fast), ema_series(closes, slow))]
    sig = ema_series(line, signal)
    hist = [m - s for m, s in zip(line, sig)]
    return line, sig, hist


def macd(
    closes: List[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> Tuple[float, float, float]:
    """Latest ``(macd, signal, histogram)`` triple."""
    line, sig, hist = macd_series(closes, fast, slow, signal)
    if not line:
        return 0.0, 0.0, 0.0
    return line[-1], sig[-1], hist[-1]
