"""
User Settings Storage
=====================
Seven settings groups, one Supabase table each, one row per user:

    profile        user_profiles
    preferences    user_preferences
    dashboard      dashboard_preferences
    notifications  notification_settings
    trading        trading_preferences
    security       security_settings
    subscription   subscription_settings

A user without a row sees the group's defaults; the first update
creates the row.
"""

from __future__ import annotations

import copy
import logging
import secrets
import string
from typing import Any, Dict, Optional

from .base import SupabaseStore, iso_now

logger = logging.getLogger(__name__)

SETTINGS_TABLES: Dict[str, str] = {
    "profile": "user_profiles",
    "preferences": "user_preferences",
    "dashboard": "dashboard_preferences",
    "notifications": "notification_settings",
    "trading": "trading_preferences",
    "security": "security_settings",
    "subscription": "subscription_settings",
}

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "profile": {
        "name": "",
        "username": "",
        "bio": "",
        "avatar_url": None,
        "timezone": "UTC",
        "public_profile": True,
    },
    "preferences": {
        "theme": "dark",
    },
    "dashboard": {
        "show_portfolio_widget": True,
        "show_market_widget": True,
        "show_signals_widget": True,
        "show_news_widget": True,
        "show_ai_widget": True,
    },
    "notifications": {
        "notifications": True,
        "email_notifications": False,
        "push_notifications": False,
        "price_alerts": True,
        "signal_alerts": True,
        "copy_trading_updates": True,
        "community_mentions": True,
        "marketing_communications": False,
        "in_app_notifications": True,
        "browser_notifications": False,
    },
    "trading": {
        "default_exchange": "hyperliquid",
        "default_timeframe": "1h",
        "risk_level": "medium",
        "max_leverage": 5,
        "show_portfolio_value": True,
        "show_trading_history": True,
        "show_holdings": True,
    },
    "security": {
        "two_factor_enabled": False,
        "api_access_enabled": False,
        "active_sessions": [],
    },
    "subscription": {
        "plan": "free",
        "status": "active",
        "billing_cycle": "monthly",
    },
}

_PROTECTED = {"id", "user_id", "created_at", "updated_at"}
_KEY_ALPHABET = string.ascii_letters + string.digits


def _random_string(length: int) -> str:
    return "".join(secrets.choice(_KEY_ALPHABET) for _ in range(length))


class SettingsStore(SupabaseStore):

    @staticmethod
    def table_for(settings_type: str) -> str:
        try:
            return SETTINGS_TABLES[settings_type]
        except KeyError:
            raise ValueError(
                f"Unknown settings type '{settings_type}', expected one of "
                f"{', '.join(SETTINGS_TABLES)}"
            ) from None

    def _row(self, settings_type: str, user_id: str) -> Optional[Dict[str, Any]]:
        result = (
            self.sb.table(self.table_for(settings_type))
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return self.first(result)

    def get(self, settings_type: str, user_id: str) -> Dict[str, Any]:
        """Stored values layered over the group's defaults."""
        row = self._row(settings_type, user_id)
        merged = copy.deepcopy(DEFAULT_SETTINGS[settings_type])
        merged.update(row or {})
        merged["user_id"] = user_id
        return merged

    def update(self, settings_type: str, user_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        table = self.table_for(settings_type)
        current = self.get(settings_type, user_id)
        current.update({k: v for k, v in values.items() if k not in _PROTECTED})
        current["user_id"] = user_id
        current["updated_at"] = iso_now()
        current.setdefault("created_at", iso_now())
        current.pop("id", None)

        result = self.sb.table(table).upsert(current, on_conflict="user_id").execute()
        logger.info("Updated %s settings for %s", settings_type, user_id)
        return self.first(result) or current

    def get_all(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        return {kind: self.get(kind, user_id) for kind in SETTINGS_TABLES}

    def generate_api_key(self, user_id: str) -> Dict[str, Any]:
        """Issue a fresh API key / secret / passphrase and enable API access."""
        return self.update("security", user_id, {
            "api_key": _random_string(32),
            "api_secret": _random_string(64),
            "api_passphrase": _random_string(16),
            "api_key_created_at": iso_now(),
            "api_access_enabled": True,
        })
