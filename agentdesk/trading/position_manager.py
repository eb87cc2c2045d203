"""
Position Manager
================
Watches open positions and closes them when a stop-loss or take-profit
level is crossed.

Each monitor cycle (every 10s by default):
    1. fetch current prices for every symbol with an open position
    2. refresh current_price / unrealized_pnl
    3. stop-loss is checked before take-profit; a hit places an
       opposite-side reduce-only market order
    4. surviving positions have their P&L written to ``positions``

A position whose closing order fails stays open and is retried on the
next cycle.  While its closing order is in flight a position is skipped
by the monitor and cannot be closed a second time.
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
from typing import Any, Dict, List, Optional, Set

from agentdesk.storage.base import SupabaseStore, iso_now

from .hyperliquid_service import HyperliquidService
from .models import (
    CLOSED,
    OPEN,
    STOP_LOSS_TRIGGERED,
    TAKE_PROFIT_TRIGGERED,
    OrderRequest,
    Position,
    RiskLimits,
    now_ms,
)
from .trading_history import TradingHistoryService

logger = logging.getLogger(__name__)

MONITOR_INTERVAL_SECONDS = 10
SIGNIFICANT_MOVE = 0.005

_BASE36 = string.digits + string.ascii_lowercase


# ── pure helpers ─────────────────────────────────────────────────

def stop_loss_price(entry: float, side: str, pct: float) -> float:
    return entry * (1 - pct / 100) if side == "long" else entry * (1 + pct / 100)


def take_profit_price(entry: float, side: str, pct: float) -> float:
    return entry * (1 + pct / 100) if side == "long" else entry * (1 - pct / 100)


def unrealized_pnl(entry: float, current: float, size: float, side: str) -> float:
    return (current - entry) * size if side == "long" else (entry - current) * size


def stop_loss_hit(position: Position, price: float) -> bool:
    if not position.stop_loss_price:
        return False
    if position.side == "long":
        return price <= position.stop_loss_price
    return price >= position.stop_loss_price


def take_profit_hit(position: Position, price: float) -> bool:
    if not position.take_profit_price:
        return False
    if position.side == "long":
        return price >= position.take_profit_price
    return price <= position.take_profit_price


class PositionManager(SupabaseStore):
    """Owns the ``positions`` table and the in-memory set of open positions."""

    TABLE = "positions"

    def __init__(
        self,
        hyperliquid: HyperliquidService,
        history: Optional[TradingHistoryService] = None,
        client: Optional[Any] = None,
        interval: float = MONITOR_INTERVAL_SECONDS,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(client)
        self.hyperliquid = hyperliquid
        self.history = history or hyperliquid.history
        self.interval = interval
        self.active_positions: Dict[str, Position] = {}
        self._closing: Set[str] = set()
        self.is_monitoring = False
        self._task: Optional[asyncio.Task] = None
        self._rng = rng or random.Random()

    # ── lifecycle ───────────────────────────────────────────────

    async def start_monitoring(self) -> None:
        if self.is_monitoring:
            logger.info("Position monitoring already running")
            return
        self.is_monitoring = True
        self.load_open_positions()
        self._task = asyncio.create_task(self._monitor_loop())
        logger.info("Position monitoring started (%ss interval)", self.interval)

    async def stop_monitoring(self) -> None:
        if not self.is_monitoring:
            return
        self.is_monitoring = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Position monitoring stopped")

    async def _monitor_loop(self) -> None:
        while self.is_monitoring:
            try:
                await self.check_positions()
            except Exception as exc:
                logger.error("Position monitoring cycle failed: %s", exc, exc_info=True)
            await asyncio.sleep(self.interval)

    def load_open_positions(self) -> int:
        try:
            result = self.sb.table(self.TABLE).select("*").eq("status", OPEN).execute()
        except Exception as exc:
            logger.error("Error loading open positions: %s", exc)
            return 0
        for row in self.rows(result):
            position = Position.from_row(row)
            self.active_positions[position.id] = position
        logger.info("Loaded %d open positions for monitoring", len(self.active_positions))
        return len(self.active_positions)

    # ── opening ─────────────────────────────────────────────────

    def _position_id(self) -> str:
        suffix = "".join(self._rng.choice(_BASE36) for _ in range(9))
        return f"pos_{now_ms()}_{suffix}"

    def open_position(
        self,
        agent_id: str,
        wallet_address: str,
        order_id: str,
        symbol: str,
        side: str,
        size: float,
        entry_price: float,
        risk: Optional[RiskLimits] = None,
    ) -> Position:
        """*side* is the order side (``buy`` opens a long, ``sell`` a short)."""
        risk = risk or RiskLimits()
        position_side = "long" if side == "buy" else "short"
        sl_pct = risk.stop_loss_percentage
        tp_pct = risk.take_profit_percentage

        position = Position(
            id=self._position_id(),
            agent_id=agent_id,
            wallet_address=wallet_address,
            order_id=order_id,
            symbol=symbol,
            side=position_side,
            size=size,
            entry_price=entry_price,
            current_price=entry_price,
            unrealized_pnl=0.0,
            stop_loss_price=stop_loss_price(entry_price, position_side, sl_pct),
            take_profit_price=take_profit_price(entry_price, position_side, tp_pct),
            stop_loss_percentage=sl_pct,
            take_profit_percentage=tp_pct,
        )
        self._save(position)
        self.active_positions[position.id] = position

        logger.info(
            "Position opened: %s %s %s at %s (SL %.4f, TP %.4f)",
            position_side.upper(), size, symbol, entry_price,
            position.stop_loss_price, position.take_profit_price,
        )
        return position

    # ── monitoring ──────────────────────────────────────────────

    async def check_positions(self) -> List[Position]:
        """One monitor pass.  Returns the positions closed during it."""
        if not self.active_positions:
            return []

        symbols = sorted({p.symbol for p in self.active_positions.values()})
        prices = {m.symbol: m.price for m in await self.hyperliquid.get_market_data(symbols)}

        closed: List[Position] = []
        for position in list(self.active_positions.values()):
            if position.id in self._closing:
                continue
            price = prices.get(position.symbol)
            if not price:
                logger.warning("No market data available for %s", position.symbol)
                continue
            try:
                if await self._check_position(position, price):
                    closed.append(position)
            except Exception as exc:
                logger.error("Error monitoring position %s: %s", position.id, exc)
        return closed

    async def _check_position(self, position: Position, price: float) -> bool:
        previous = position.current_price
        pnl = unrealized_pnl(position.entry_price, price, position.size, position.side)
        position.current_price = price
        position.unrealized_pnl = pnl

        if stop_loss_hit(position, price):
            logger.warning(
                "STOP LOSS triggered for %s: entry %s, current %s, stop %.4f, pnl %.2f",
                position.symbol, position.entry_price, price, position.stop_loss_price, pnl,
            )
            return await self.close_position(position, STOP_LOSS_TRIGGERED, price)

        if take_profit_hit(position, price):
            logger.info(
                "TAKE PROFIT triggered for %s: entry %s, current %s, target %.4f, pnl %.2f",
                position.symbol, position.entry_price, price, position.take_profit_price, pnl,
            )
            return await self.close_position(position, TAKE_PROFIT_TRIGGERED, price)

        if previous and abs(price - previous) / previous > SIGNIFICANT_MOVE:
            notional = position.entry_price * position.size
            logger.info(
                "%s %s: %.4f | PnL %.2f (%.2f%%)",
                position.symbol, position.side.upper(), price, pnl,
                pnl / notional * 100 if notional else 0,
            )

        self._update(position.id, {"current_price": price, "unrealized_pnl": pnl})
        return False

    # ── closing ─────────────────────────────────────────────────

    async def close_position(self, position: Position, reason: str, close_price: float) -> bool:
        if position.id in self._closing or position.id not in self.active_positions:
            logger.warning("Position %s is already closing or closed", position.id)
            return False

        realized = unrealized_pnl(position.entry_price, close_price, position.size, position.side)
        order = OrderRequest(
            symbol=position.symbol,
            side="sell" if position.side == "long" else "buy",
            size=position.size,
            order_type="Market",
            reduce_only=True,
        )
        self._closing.add(position.id)
        try:
            result = await self.hyperliquid.place_order(position.wallet_address, order)
        finally:
            self._closing.discard(position.id)
        if not result.success:
            logger.error("Failed to close position %s: %s", position.id, result.error)
            return False

        position.status = reason
        position.close_time = now_ms()
        position.current_price = close_price
        position.unrealized_pnl = realized

        self._update(position.id, {
            "status": reason,
            "current_price": close_price,
            "unrealized_pnl": realized,
            "close_time": position.close_time,
        })
        try:
            self.history.update_trade(position.order_id, pnl=realized, status="closed")
        except Exception as exc:
            logger.error("Error updating trade record %s: %s", position.order_id, exc)

        self.active_positions.pop(position.id, None)
        logger.info(
            "Position closed: %s %s, pnl %.2f (%s)",
            position.symbol, position.side.upper(), realized, reason,
        )
        return True

    async def close_position_manually(self, position_id: str) -> bool:
        position = self.active_positions.get(position_id)
        if position is None:
            logger.error("Position %s not found", position_id)
            return False
        return await self.close_position(position, CLOSED, position.current_price)

    # ── queries ─────────────────────────────────────────────────

    def get_position(self, position_id: str) -> Optional[Position]:
        return self.active_positions.get(position_id)

    def get_agent_positions(self, agent_id: str) -> List[Position]:
        return [p for p in self.active_positions.values() if p.agent_id == agent_id]

    def get_wallet_positions(self, wallet_address: str) -> List[Position]:
        return [p for p in self.active_positions.values() if p.wallet_address == wallet_address]

    def get_monitoring_status(self) -> Dict[str, Any]:
        return {
            "is_monitoring": self.is_monitoring,
            "active_positions": len(self.active_positions),
            "total_pnl": sum(p.unrealized_pnl for p in self.active_positions.values()),
        }

    # ── persistence ─────────────────────────────────────────────

    def _save(self, position: Position) -> None:
        row = position.to_dict()
        row.pop("close_time", None)
        try:
            self.sb.table(self.TABLE).insert(row).execute()
        except Exception as exc:
            logger.error("Error saving position %s: %s", position.id, exc)

    def _update(self, position_id: str, fields: Dict[str, Any]) -> None:
        try:
            self.sb.table(self.TABLE).update(
                {**fields, "updated_at": iso_now()}
            ).eq("id", position_id).execute()
        except Exception as exc:
            logger.error("Error updating position %s: %s", position_id, exc)
