"""
Agent & Signal Storage  (Supabase)
==================================
Tables:
  - ai_agents   – agent identity plus ``configuration`` / ``performance_metrics`` JSON
  - ai_signals  – signals emitted by agents, with their eventual result
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from agentdesk.analyzers.models import AgentConfig

from .base import SupabaseStore, iso_now, new_id

logger = logging.getLogger(__name__)

SIGNAL_RESULTS = ("Success", "Failure", "Pending")


def _ms_to_iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


def _iso_to_ms(value: Any) -> Optional[int]:
    if value is None or isinstance(value, (int, float)):
        return value
    return int(datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp() * 1000)


class AgentStore(SupabaseStore):
    TABLE = "ai_agents"

    def save_agent(self, agent: AgentConfig, wallet_address: Optional[str]) -> AgentConfig:
        if not wallet_address:
            raise ValueError("Wallet address is required to save an agent")
        row = agent.to_row(wallet_address)
        row["updated_at"] = iso_now()
        result = self.sb.table(self.TABLE).upsert(row).execute()
        stored = self.first(result)
        logger.info("Saved agent %s (%s) for %s", agent.id, agent.name, wallet_address)
        return AgentConfig.from_row(stored) if stored else agent.model_copy(
            update={"wallet_address": wallet_address}
        )

    def get_agent(self, agent_id: str) -> Optional[AgentConfig]:
        result = self.sb.table(self.TABLE).select("*").eq("id", agent_id).limit(1).execute()
        row = self.first(result)
        return AgentConfig.from_row(row) if row else None

    def get_all_agents(self, wallet_address: Optional[str] = None) -> List[AgentConfig]:
        query = self.sb.table(self.TABLE).select("*")
        if wallet_address:
            query = query.eq("wallet_address", wallet_address)
        return [AgentConfig.from_row(r) for r in self.rows(query.execute())]

    def get_active_agents(self, wallet_address: Optional[str] = None) -> List[AgentConfig]:
        query = self.sb.table(self.TABLE).select("*").eq("is_active", True)
        if wallet_address:
            query = query.eq("wallet_address", wallet_address)
        return [AgentConfig.from_row(r) for r in self.rows(query.execute())]

    def delete_agent(self, agent_id: str, wallet_address: Optional[str]) -> bool:
        if not wallet_address:
            raise ValueError("Wallet address is required to delete an agent")
        result = (
            self.sb.table(self.TABLE)
            .delete()
            .eq("id", agent_id)
            .eq("wallet_address", wallet_address)
            .execute()
        )
        deleted = bool(self.rows(result))
        if deleted:
            logger.info("Deleted agent %s for %s", agent_id, wallet_address)
        return deleted

    def update_performance(self, agent_id: str, metrics: Dict[str, Any]) -> Optional[AgentConfig]:
        """Merge *metrics* into the agent's ``performance_metrics`` column."""
        result = (
            self.sb.table(self.TABLE)
            .select("performance_metrics")
            .eq("id", agent_id)
            .limit(1)
            .execute()
        )
        row = self.first(result)
        if row is None:
            return None
        merged = {**(row.get("performance_metrics") or {}), **metrics}
        self.sb.table(self.TABLE).update(
            {"performance_metrics": merged, "updated_at": iso_now()}
        ).eq("id", agent_id).execute()
        return self.get_agent(agent_id)


class SignalStore(SupabaseStore):
    TABLE = "ai_signals"

    @staticmethod
    def to_row(signal: Dict[str, Any]) -> Dict[str, Any]:
        timestamp = signal.get("timestamp")
        return {
            "id": signal.get("id") or new_id(),
            "agent_id": signal["agent_id"],
            "asset": signal["asset"],
            "type": signal["type"],
            "signal": signal.get("signal", ""),
            "price": signal["price"],
            "timestamp": _ms_to_iso(timestamp) if isinstance(timestamp, (int, float)) else (timestamp or iso_now()),
            "result": signal.get("result") or "Pending",
            "profit": signal.get("profit"),
            "confidence": signal["confidence"],
            "time": signal.get("time") or "Just now",
        }

    @staticmethod
    def from_row(row: Dict[str, Any]) -> Dict[str, Any]:
        out = dict(row)
        out["timestamp"] = _iso_to_ms(row.get("timestamp"))
        out["time"] = row.get("time") or "Just now"
        return out

    def save_signal(self, signal: Dict[str, Any]) -> Dict[str, Any]:
        row = self.to_row(signal)
        result = self.sb.table(self.TABLE).upsert(row).execute()
        return self.from_row(self.first(result) or row)

    def get_signals_by_agent(self, agent_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = (
            self.sb.table(self.TABLE)
            .select("*")
            .eq("agent_id", agent_id)
            .order("timestamp", desc=True)
        )
        if limit:
            query = query.limit(limit)
        return [self.from_row(r) for r in self.rows(query.execute())]

    def get_recent_signals(self, limit: int = 10) -> List[Dict[str, Any]]:
        result = (
            self.sb.table(self.TABLE)
            .select("*")
            .order("timestamp", desc=True)
            .limit(limit)
            .execute()
        )
        return [self.from_row(r) for r in self.rows(result)]

    def update_signal_result(
        self,
        signal_id: str,
        result: str,
        profit: Optional[float] = None,
    ) -> None:
        if result not in SIGNAL_RESULTS:
            raise ValueError(f"Unknown signal result '{result}'")
        updates: Dict[str, Any] = {"result": result}
        if profit is not None:
            updates["profit"] = profit
        self.sb.table(self.TABLE).update(updates).eq("id", signal_id).execute()
