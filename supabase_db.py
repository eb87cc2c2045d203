"""
AgentDesk Supabase Client
=========================
Lazily creates and exports the Supabase client singleton used by every
store in ``agentdesk.storage``.

Required environment variables (set in .env):
  SUPABASE_URL  – project URL   (e.g. https://xyzcompany.supabase.co)
  SUPABASE_KEY  – service-role key for the backend
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from supabase import Client, create_client

logger = logging.getLogger(__name__)

_client: Optional[Client] = None


def get_supabase() -> Client:
    """Return the Supabase client singleton. Raises RuntimeError if not configured."""
    global _client
    if _client is None:
        url = os.getenv("SUPABASE_URL", "")
        key = os.getenv("SUPABASE_KEY", "")
        if not url or not key:
            raise RuntimeError(
                "Supabase is not configured. "
                "Set SUPABASE_URL and SUPABASE_KEY in your .env file."
            )
        _client = create_client(url, key)
        logger.info("Supabase client created for %s", url)
    return _client


def set_supabase(client: Optional[Any]) -> None:
    """Install (or clear, with None) the client returned by get_supabase()."""
    global _client
    _client = client


def is_configured() -> bool:
    if _client is not None:
        return True
    return bool(os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_KEY"))
