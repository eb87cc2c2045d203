"""
Trading History Service
=======================
Supabase persistence for executed trades and agent performance.

Tables
------
- ``trade_records``               – one row per executed order
- ``position_history``            – periodic position snapshots
- ``agent_performance_snapshots`` – one row per agent per day
"""

from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Any, Dict, List, Optional

from agentdesk.storage.base import SupabaseStore, iso_ago, iso_now, utc_now

from .models import now_ms

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
TIMEFRAME_MS: Dict[str, int] = {
    "1h": 60 * 60 * 1000,
    "1d": DAY_MS,
    "7d": 7 * DAY_MS,
    "30d": 30 * DAY_MS,
}

POSITION_HISTORY_DAYS = 90
SNAPSHOT_DAYS = 365


def timeframe_ms(timeframe: str) -> int:
    try:
        return TIMEFRAME_MS[timeframe]
    except KeyError:
        raise ValueError(
            f"Unknown timeframe '{timeframe}', expected one of {', '.join(TIMEFRAME_MS)}"
        ) from None


class TradingHistoryService(SupabaseStore):

    # ── trades ──────────────────────────────────────────────────

    def record_trade(self, trade: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Insert a trade row; returns the stored row, or None on failure."""
        row = {**trade, "created_at": iso_now(), "updated_at": iso_now()}
        try:
            result = self.sb.table("trade_records").insert(row).execute()
        except Exception as exc:
            logger.error("Error recording trade %s: %s", trade.get("order_id"), exc)
            return None
        return self.first(result) or row

    def update_trade(
        self,
        order_id: str,
        pnl: Optional[float] = None,
        status: Optional[str] = None,
        **fields: Any,
    ) -> None:
        updates: Dict[str, Any] = dict(fields)
        if pnl is not None:
            updates["pnl"] = pnl
        if status is not None:
            updates["status"] = status
        updates["updated_at"] = iso_now()
        self.sb.table("trade_records").update(updates).eq("order_id", order_id).execute()

    def get_agent_trades(
        self,
        agent_id: str,
        timeframe: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = (
            self.sb.table("trade_records")
            .select("*")
            .eq("agent_id", agent_id)
            .order("timestamp", desc=True)
        )
        if timeframe:
            cutoff = iso_ago(seconds=timeframe_ms(timeframe) / 1000)
            query = query.gte("created_at", cutoff)
        if limit:
            query = query.limit(limit)
        return self.rows(query.execute())

    def get_wallet_trades(self, wallet_address: str, limit: int = 50) -> List[Dict[str, Any]]:
        result = (
            self.sb.table("trade_records")
            .select("*")
            .eq("wallet_address", wallet_address)
            .order("timestamp", desc=True)
            .limit(limit)
            .execute()
        )
        return self.rows(result)

    # ── positions ───────────────────────────────────────────────

    def record_position_update(self, update: Dict[str, Any]) -> None:
        """Frequent background write; failures are logged, never raised."""
        try:
            self.sb.table("position_history").insert(
                {**update, "created_at": iso_now()}
            ).execute()
        except Exception as exc:
            logger.error("Error recording position update: %s", exc)

    def get_position_history(
        self,
        wallet_address: str,
        symbol: Optional[str] = None,
        timeframe: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query = (
            self.sb.table("position_history")
            .select("*")
            .eq("wallet_address", wallet_address)
            .order("timestamp", desc=True)
        )
        if symbol:
            query = query.eq("symbol", symbol)
        if timeframe:
            query = query.gte("created_at", iso_ago(seconds=timeframe_ms(timeframe) / 1000))
        return self.rows(query.execute())

    # ── performance snapshots ───────────────────────────────────

    def record_agent_performance(self, snapshot: Dict[str, Any]) -> None:
        """One row per (agent_id, snapshot_date); a second write the same day replaces it."""
        row = dict(snapshot)
        row.setdefault("snapshot_date", utc_now().date().isoformat())
        row.setdefault("created_at", iso_now())
        try:
            self.sb.table("agent_performance_snapshots").upsert(
                row, on_conflict="agent_id,snapshot_date",
            ).execute()
        except Exception as exc:
            logger.error("Error recording performance for %s: %s", row.get("agent_id"), exc)

    def get_agent_performance_history(self, agent_id: str, days: int = 30) -> List[Dict[str, Any]]:
        cutoff = (utc_now() - timedelta(days=days)).date().isoformat()
        result = (
            self.sb.table("agent_performance_snapshots")
            .select("*")
            .eq("agent_id", agent_id)
            .gte("snapshot_date", cutoff)
            .order("snapshot_date", desc=True)
            .execute()
        )
        return self.rows(result)

    # ── P&L ─────────────────────────────────────────────────────

    def calculate_agent_pnl(
        self,
        agent_id: str,
        timeframe: Optional[str] = None,
        now: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Realized P&L and win rate over closed trades in the window.

        ``daily_pnl`` has one bucket per day of the window (7 with no
        timeframe), oldest first; a closed trade ``n`` days old lands in
        bucket ``days - 1 - n``.
        """
        trades = self.get_agent_trades(agent_id, timeframe)
        closed = [t for t in trades if t.get("status") == "closed"]
        realized = sum(t.get("pnl") or 0 for t in closed)
        winners = sum(1 for t in closed if (t.get("pnl") or 0) > 0)
        unrealized = 0.0

        return {
            "total_pnl": realized + unrealized,
            "realized_pnl": realized,
            "unrealized_pnl": unrealized,
            "win_rate": winners / len(closed) * 100 if closed else 0.0,
            "total_trades": len(trades),
            "daily_pnl": self.daily_pnl(trades, timeframe, now),
            "trades": trades,
        }

    @staticmethod
    def daily_pnl(
        trades: List[Dict[str, Any]],
        timeframe: Optional[str] = None,
        now: Optional[int] = None,
    ) -> List[float]:
        window = timeframe_ms(timeframe) if timeframe else 7 * DAY_MS
        days = math.ceil(window / DAY_MS)
        buckets = [0.0] * days
        current = now if now is not None else now_ms()

        for trade in trades:
            pnl = trade.get("pnl")
            if not pnl or trade.get("status") != "closed":
                continue
            days_ago = (current - int(trade.get("timestamp") or current)) // DAY_MS
            if 0 <= days_ago < days:
                buckets[days - 1 - days_ago] += pnl
        return buckets

    # ── housekeeping ────────────────────────────────────────────

    def cleanup_old_data(self) -> None:
        """Position history older than 90 days, snapshots older than a year."""
        try:
            self.sb.table("position_history").delete().lt(
                "created_at", iso_ago(days=POSITION_HISTORY_DAYS)
            ).execute()
            self.sb.table("agent_performance_snapshots").delete().lt(
                "created_at", iso_ago(days=SNAPSHOT_DAYS)
            ).execute()
        except Exception as exc:
            logger.error("Error cleaning up trading history: %s", exc)
