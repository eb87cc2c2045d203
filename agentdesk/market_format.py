"""
Market Display Formatting
=========================
Turns raw CoinGecko rows into the display records the dashboard shows,
and values a list of holdings into portfolio rows plus summary stats.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from agentdesk.data_collectors.coingecko_collector import CoinMarketData


# ══════════════════════════════════════════════════════════════════
# Number formatting
# ══════════════════════════════════════════════════════════════════

def _grouped(num: float, max_decimals: int = 3) -> str:
    """Thousands separators and at most *max_decimals* decimals, trailing zeros dropped."""
    text = f"{num:,.{max_decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_price(price: float) -> str:
    if price < 0.01:
        return f"{price:.6f}"
    if price < 1:
        return f"{price:.4f}"
    if price < 10:
        return f"{price:.3f}"
    if price < 1000:
        return f"{price:.2f}"
    return f"{price:,.2f}"


def format_large_number(num: float) -> str:
    if num >= 1_000_000_000_000:
        return f"{num / 1_000_000_000_000:.2f}T"
    if num >= 1_000_000_000:
        return f"{num / 1_000_000_000:.2f}B"
    if num >= 1_000_000:
        return f"{num / 1_000_000:.2f}M"
    return _grouped(num)


def format_change(pct: float, decimals: int = 2) -> str:
    return f"+{pct:.{decimals}f}%" if pct > 0 else f"{pct:.{decimals}f}%"


def sentiment_for(change_pct: float, threshold: float = 3.0) -> str:
    if change_pct > threshold:
        return "Bullish"
    if change_pct < -threshold:
        return "Bearish"
    return "Neutral"


def price_sentiment(change_pct: float) -> str:
    """Live-ticker sentiment uses a tighter ±2% band."""
    return sentiment_for(change_pct, threshold=2.0)


# ══════════════════════════════════════════════════════════════════
# Market rows
# ══════════════════════════════════════════════════════════════════

@dataclass
class FormattedCryptoAsset:
    id: str
    name: str
    symbol: str
    price: str
    price_value: float
    change: str
    change_percent: float
    market_cap: str
    volume: str
    image: str
    positive: bool
    sentiment: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def format_crypto_asset(coin: CoinMarketData) -> FormattedCryptoAsset:
    price = coin.current_price or 0
    change = coin.price_change_pct_24h or 0
    return FormattedCryptoAsset(
        id=coin.coin_id,
        name=coin.name,
        symbol=coin.symbol.upper(),
        price=format_price(price),
        price_value=price,
        change=format_change(change),
        change_percent=change,
        market_cap=format_large_number(coin.market_cap or 0),
        volume=format_large_number(coin.total_volume_24h or 0),
        image=coin.image,
        positive=change > 0,
        sentiment=sentiment_for(change),
    )


# ══════════════════════════════════════════════════════════════════
# Portfolio
# ══════════════════════════════════════════════════════════════════

def _format_amount(amount: float, symbol: str) -> str:
    sym = symbol.lower()
    if sym == "btc":
        return f"{amount:.4f}"
    if sym == "eth":
        return f"{amount:.2f}"
    return f"{amount:.0f}"


def build_portfolio(
    holdings: List[Dict[str, Any]],
    coins: List[CoinMarketData],
) -> List[Dict[str, Any]]:
    """
    Value *holdings* (``{"coin_id" or "symbol", "amount"}``) at the
    prices in *coins*.  Holdings with no matching coin are skipped.
    Rows are sorted by rounded allocation, largest first.
    """
    by_id = {c.coin_id: c for c in coins}
    by_symbol = {c.symbol.lower(): c for c in coins}

    matched: List[tuple] = []
    for h in holdings:
        coin: Optional[CoinMarketData] = None
        if h.get("coin_id"):
            coin = by_id.get(h["coin_id"])
        if coin is None and h.get("symbol"):
            coin = by_symbol.get(str(h["symbol"]).lower())
        if coin is None:
            continue
        matched.append((coin, float(h.get("amount", 0) or 0)))

    total_value = sum((c.current_price or 0) * amount for c, amount in matched)

    rows: List[Dict[str, Any]] = []
    for coin, amount in matched:
        value = (coin.current_price or 0) * amount
        change = coin.price_change_pct_24h or 0
        symbol = coin.symbol.upper()
        rows.append({
            "id": coin.coin_id,
            "name": coin.name,
            "symbol": symbol,
            "amount": amount,
            "formatted_amount": f"{_format_amount(amount, coin.symbol)} {symbol}",
            "value": value,
            "formatted_value": f"{value:,.2f}",
            "change": format_change(change, decimals=1),
            "change_percent": change,
            "positive": change > 0,
            "allocation": round(value / total_value * 100) if total_value > 0 else 0,
            "image": coin.image,
        })

    rows.sort(key=lambda r: r["allocation"], reverse=True)
    return rows


def calculate_portfolio_stats(assets: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Totals for portfolio rows from ``build_portfolio``.

    The 24h percentage is measured against yesterday's value::

        change_percent = change / (total - change) * 100
    """
    total_value = sum(a["value"] for a in assets)
    change_24h = sum(a["value"] * (a["change_percent"] / 100) for a in assets)

    base = total_value - change_24h
    change_pct = (change_24h / base * 100) if total_value > 0 and base != 0 else 0.0

    if assets:
        best = max(assets, key=lambda a: a["change_percent"])
        best_performer = {"symbol": best["symbol"], "change": best["change"]}
    else:
        best_performer = {"symbol": "N/A", "change": "0%"}

    return {
        "total_value": total_value,
        "formatted_total_value": f"{total_value:,.2f}",
        "change_24h": change_24h,
        "formatted_change_24h": f"{'+' if change_24h > 0 else ''}{abs(change_24h):,.2f}",
        "change_percent_24h": change_pct,
        "formatted_change_percent_24h": format_change(change_pct, decimals=1),
        "positive_24h": change_pct > 0,
        "asset_count": len(assets),
        "best_performer": best_performer,
    }
