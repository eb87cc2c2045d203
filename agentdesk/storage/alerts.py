"""
Trading alerts, one row per alert in ``alerts`` keyed by wallet.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from agentdesk.data_collectors.binance_collector import base_asset

from .base import SupabaseStore, iso_now, new_id

logger = logging.getLogger(__name__)

ALERT_TYPES = ("price", "volume", "trend")
PRIORITIES = ("high", "medium", "low")
EDITABLE = ("type", "symbol", "condition", "value", "active", "priority")


class AlertStore(SupabaseStore):
    TABLE = "alerts"

    def list_alerts(self, wallet_address: str) -> List[Dict[str, Any]]:
        result = (
            self.sb.table(self.TABLE)
            .select("*")
            .eq("wallet_address", wallet_address)
            .order("created_at", desc=True)
            .execute()
        )
        return self.rows(result)

    def get_alert(self, alert_id: str) -> Optional[Dict[str, Any]]:
        return self.first(self.sb.table(self.TABLE).select("*").eq("id", alert_id).limit(1).execute())

    def create_alert(self, alert: Dict[str, Any], wallet_address: str) -> Dict[str, Any]:
        if alert.get("type", "price") not in ALERT_TYPES:
            raise ValueError(f"Unknown alert type '{alert.get('type')}'")
        if alert.get("priority", "medium") not in PRIORITIES:
            raise ValueError(f"Unknown alert priority '{alert.get('priority')}'")
        row = {
            "id": new_id(),
            "type": "price",
            "priority": "medium",
            "active": True,
            **{k: v for k, v in alert.items() if k in EDITABLE},
            "wallet_address": wallet_address,
            "created_at": iso_now(),
        }
        row["symbol"] = base_asset(str(row.get("symbol", "")))
        result = self.sb.table(self.TABLE).insert(row).execute()
        return self.first(result) or row

    def update_alert(self, alert_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        updates = {k: v for k, v in fields.items() if k in EDITABLE}
        if "symbol" in updates:
            updates["symbol"] = base_asset(str(updates["symbol"]))
        if not updates:
            return self.get_alert(alert_id)
        result = self.sb.table(self.TABLE).update(updates).eq("id", alert_id).execute()
        return self.first(result)

    def toggle_active(self, alert_id: str) -> Optional[Dict[str, Any]]:
        alert = self.get_alert(alert_id)
        if alert is None:
            return None
        return self.update_alert(alert_id, {"active": not alert.get("active", True)})

    def delete_alert(self, alert_id: str, wallet_address: str) -> bool:
        result = (
            self.sb.table(self.TABLE)
            .delete()
            .eq("id", alert_id)
            .eq("wallet_address", wallet_address)
            .execute()
        )
        return bool(self.rows(result))
