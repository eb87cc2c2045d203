"""
Trading – Data Models
=====================
Orders, positions, market snapshots and automation settings.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


def now_ms() -> int:
    return int(time.time() * 1000)


# ══════════════════════════════════════════════════════════════════
# Orders
# ══════════════════════════════════════════════════════════════════

@dataclass
class OrderRequest:
    symbol: str
    side: str                       # "buy" | "sell"
    size: float
    order_type: str = "Market"      # "Market" | "Limit"
    price: Optional[float] = None
    reduce_only: bool = False
    time_in_force: str = "Gtc"


@dataclass
class Execution:
    price: float
    size: float
    fee: float
    timestamp: int


@dataclass
class OrderResult:
    success: bool
    order_id: Optional[str] = None
    error: Optional[str] = None
    executions: List[Execution] = field(default_factory=list)

    @property
    def fill_price(self) -> Optional[float]:
        return self.executions[0].price if self.executions else None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ══════════════════════════════════════════════════════════════════
# Market
# ══════════════════════════════════════════════════════════════════

@dataclass
class MarketData:
    symbol: str
    price: float
    change_24h: float = 0.0
    volume_24h: float = 0.0
    funding: float = 0.0
    open_interest: float = 0.0
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TradingPair:
    symbol: str
    name: str
    max_leverage: float
    is_isolated_only: bool = False
    is_delisted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ExchangePosition:
    """A position as the exchange reports it for a wallet."""
    symbol: str
    size: float
    entry_price: float
    unrealized_pnl: float
    side: str
    realized_pnl: float = 0.0
    leverage: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ══════════════════════════════════════════════════════════════════
# Managed positions
# ══════════════════════════════════════════════════════════════════

OPEN = "open"
CLOSED = "closed"
STOP_LOSS_TRIGGERED = "stop_loss_triggered"
TAKE_PROFIT_TRIGGERED = "take_profit_triggered"


@dataclass
class Position:
    """A position the position manager watches for stop-loss / take-profit."""
    id: str
    agent_id: str
    wallet_address: str
    order_id: str
    symbol: str
    side: str                        # "long" | "short"
    size: float
    entry_price: float
    current_price: float
    unrealized_pnl: float
    stop_loss_price: float
    take_profit_price: float
    stop_loss_percentage: float
    take_profit_percentage: float
    status: str = OPEN
    open_time: int = field(default_factory=now_ms)
    close_time: Optional[int] = None
    leverage: float = 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Position":
        return cls(
            id=row["id"],
            agent_id=row.get("agent_id") or "",
            wallet_address=row.get("wallet_address") or "",
            order_id=row.get("order_id") or "",
            symbol=row["symbol"],
            side=row["side"],
            size=float(row["size"]),
            entry_price=float(row["entry_price"]),
            current_price=float(row.get("current_price") or row["entry_price"]),
            unrealized_pnl=float(row.get("unrealized_pnl") or 0),
            stop_loss_price=float(row["stop_loss_price"]),
            take_profit_price=float(row["take_profit_price"]),
            stop_loss_percentage=float(row.get("stop_loss_percentage") or 0),
            take_profit_percentage=float(row.get("take_profit_percentage") or 0),
            status=row.get("status") or OPEN,
            open_time=int(row.get("open_time") or now_ms()),
            close_time=row.get("close_time"),
            leverage=float(row.get("leverage") or 1),
        )


# ══════════════════════════════════════════════════════════════════
# Automation
# ══════════════════════════════════════════════════════════════════

@dataclass
class AutomationConfig:
    enabled: bool = False
    max_position_size: float = 1000
    max_daily_loss: float = 500
    max_open_positions: int = 3
    min_confidence_level: float = 70
    allowed_symbols: List[str] = field(
        default_factory=lambda: ["BTC-USD", "ETH-USD", "SOL-USD", "BTC", "ETH", "SOL"]
    )
    trading_hours_start: str = "00:00"
    trading_hours_end: str = "23:59"
    timezone: str = "UTC"

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "AutomationConfig":
        hours = settings.get("trading_hours") or {}
        return cls(
            enabled=bool(settings.get("enabled", False)),
            max_position_size=settings.get("max_position_size", 1000),
            max_daily_loss=settings.get("max_daily_loss", 500),
            max_open_positions=int(settings.get("max_open_positions", 3)),
            min_confidence_level=settings.get("min_confidence_level", 70),
            allowed_symbols=list(settings.get("allowed_symbols") or cls().allowed_symbols),
            trading_hours_start=hours.get("start", "00:00"),
            trading_hours_end=hours.get("end", "23:59"),
            timezone=hours.get("timezone", "UTC"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RiskLimits:
    max_leverage: float = 5
    max_portfolio_allocation: float = 25
    stop_loss_percentage: float = 5
    take_profit_percentage: float = 15
    max_drawdown: float = 20

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "RiskLimits":
        known = {k: v for k, v in settings.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RiskCheck:
    can_trade: bool
    reason: Optional[str] = None
    current_daily_loss: float = 0.0
    open_positions: int = 0


@dataclass
class TradingSignal:
    """A decision produced by the automation loop for one symbol."""
    agent_id: str
    symbol: str
    action: str                      # "buy" | "sell" | "hold"
    confidence: float
    size: float
    reasoning: str
    price: Optional[float] = None
    indicators: Dict[str, float] = field(default_factory=dict)
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
