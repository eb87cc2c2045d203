"""
Shared plumbing for the Supabase table wrappers.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import supabase_db


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_now() -> str:
    return utc_now().isoformat()


def iso_ago(**delta: float) -> str:
    """ISO timestamp *delta* (``days=``, ``hours=`` ...) in the past."""
    return (utc_now() - timedelta(**delta)).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class SupabaseStore:
    """
    Base for classes that own one or more Supabase tables.

    The client is resolved lazily so a store can be constructed before
    SUPABASE_URL / SUPABASE_KEY are loaded; tests pass a client directly.
    """

    def __init__(self, client: Optional[Any] = None):
        self._client = client

    @property
    def sb(self):
        if self._client is None:
            self._client = supabase_db.get_supabase()
        return self._client

    @staticmethod
    def rows(result) -> List[Dict[str, Any]]:
        return list(result.data or [])

    @staticmethod
    def first(result) -> Optional[Dict[str, Any]]:
        data = result.data or []
        return data[0] if data else None
