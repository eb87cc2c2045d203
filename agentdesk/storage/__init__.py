"""
AgentDesk – Storage
===================
Thin wrappers over Supabase tables.
"""

from .agents import AgentStore, SignalStore
from .alerts import AlertStore
from .base import SupabaseStore
from .beta_access import BetaAccessStore
from .community import CommunityStore
from .copy_trading import CopyTradingStore
from .settings import SETTINGS_TABLES, SettingsStore

__all__ = [
    "AgentStore",
    "AlertStore",
    "BetaAccessStore",
    "CommunityStore",
    "CopyTradingStore",
    "SETTINGS_TABLES",
    "SettingsStore",
    "SignalStore",
]
