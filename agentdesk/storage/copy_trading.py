"""
Copy Trading Storage
====================
``copy_trades``: a user mirrors an AI position on a token.  Each row keeps
the user's stake (``user_amount``), the AI wallet's stake (``ai_amount``),
the entry price and the latest price, plus the user's P&L:

    user_pnl = (current_price - entry_price) / entry_price * user_amount
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .base import SupabaseStore, iso_now, new_id, utc_now

logger = logging.getLogger(__name__)

ACTIVE = "active"
CLOSED = "closed"
STATS_PERIOD_DAYS = 7


def user_pnl(entry_price: float, current_price: float, user_amount: float) -> float:
    if not entry_price:
        return 0.0
    return (current_price - entry_price) / entry_price * user_amount


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class CopyTradingStore(SupabaseStore):
    TABLE = "copy_trades"

    def start_copy_trade(
        self,
        wallet_address: str,
        token_address: str,
        entry_price: float,
        user_amount: float,
        ai_amount: float = 0.0,
    ) -> Dict[str, Any]:
        if not wallet_address or not token_address:
            raise ValueError("Wallet and token address are required")
        if entry_price <= 0:
            raise ValueError("Entry price must be positive")
        if user_amount <= 0:
            raise ValueError("User amount must be positive")

        row = {
            "id": new_id(),
            "wallet_address": wallet_address,
            "token_address": token_address,
            "entry_price": entry_price,
            "current_price": entry_price,
            "user_amount": user_amount,
            "ai_amount": ai_amount,
            "user_pnl": 0.0,
            "status": ACTIVE,
            "created_at": iso_now(),
        }
        result = self.sb.table(self.TABLE).insert(row).execute()
        logger.info("Copy trade started: %s on %s (%.4f)", wallet_address, token_address, user_amount)
        return self.first(result) or row

    def list_active(self, wallet_address: str, limit: int = 10) -> List[Dict[str, Any]]:
        result = (
            self.sb.table(self.TABLE)
            .select("*")
            .eq("wallet_address", wallet_address)
            .eq("status", ACTIVE)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return self.rows(result)

    def list_trades(
        self,
        wallet_address: str,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> Dict[str, Any]:
        """
        Trade history for a wallet, newest first, with a summary over the
        returned rows.  A trade counts as successful when its P&L is
        positive and as failed when it is negative.
        """
        if status is not None and status not in (ACTIVE, CLOSED):
            raise ValueError(f"Unknown copy trade status '{status}'")

        query = self.sb.table(self.TABLE).select("*").eq("wallet_address", wallet_address)
        if status:
            query = query.eq("status", status)
        trades = self.rows(query.order("created_at", desc=True).limit(limit).execute())

        pnls = [float(t.get("user_pnl") or 0) for t in trades]
        wins = sum(1 for p in pnls if p > 0)
        total_pnl = sum(pnls)
        return {
            "trades": trades,
            "stats": {
                "total_trades": len(trades),
                "successful_trades": wins,
                "failed_trades": sum(1 for p in pnls if p < 0),
                "total_profit": total_pnl,
                "win_rate": wins / len(trades) * 100 if trades else 0.0,
                "average_profit": total_pnl / len(trades) if trades else 0.0,
            },
        }

    def update_prices(self, prices: Dict[str, float]) -> int:
        """
        Apply the latest *prices* (token address -> price) to every active
        trade.  Returns how many rows were updated.
        """
        trades = self.rows(self.sb.table(self.TABLE).select("*").eq("status", ACTIVE).execute())
        updated = 0
        for trade in trades:
            price = prices.get(trade["token_address"])
            if price is None:
                continue
            try:
                self.sb.table(self.TABLE).update({
                    "current_price": price,
                    "user_pnl": user_pnl(
                        float(trade["entry_price"]), price, float(trade["user_amount"])
                    ),
                    "updated_at": iso_now(),
                }).eq("id", trade["id"]).execute()
                updated += 1
            except Exception as exc:
                logger.error("Error updating copy trade %s: %s", trade["id"], exc)
        return updated

    def close_trade(self, trade_id: str) -> Optional[Dict[str, Any]]:
        result = (
            self.sb.table(self.TABLE)
            .update({"status": CLOSED, "closed_at": iso_now()})
            .eq("id", trade_id)
            .execute()
        )
        return self.first(result)

    def get_stats(self, wallet_address: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Active trades, total trade count and the week-over-week change in
        user P&L (0 when the previous week had none).
        """
        now = now or utc_now()
        current_start = now - timedelta(days=STATS_PERIOD_DAYS)
        previous_start = current_start - timedelta(days=STATS_PERIOD_DAYS)

        active = self.list_active(wallet_address, limit=1000)
        total = (
            self.sb.table(self.TABLE)
            .select("id", count="exact")
            .eq("wallet_address", wallet_address)
            .execute()
        ).count or 0
        recent = self.rows(
            self.sb.table(self.TABLE)
            .select("user_pnl, created_at")
            .eq("wallet_address", wallet_address)
            .gte("created_at", previous_start.isoformat())
            .execute()
        )

        current = previous = 0.0
        for trade in recent:
            created = _parse_ts(trade["created_at"])
            pnl = float(trade.get("user_pnl") or 0)
            if created >= current_start:
                current += pnl
            elif created >= previous_start:
                previous += pnl

        change = (current - previous) / abs(previous) * 100 if previous else 0.0
        return {
            "active_trades": active,
            "total_trades": total,
            "profit_change": change,
        }
