"""
Beta access codes (``beta_access_codes``).  A code is single-use: a
successful verification deactivates it.
"""

from __future__ import annotations

import logging
import secrets
import string
from typing import Any, Dict, List

from .base import SupabaseStore, iso_now

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_CODE_LENGTH = 6


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


class BetaAccessStore(SupabaseStore):
    TABLE = "beta_access_codes"

    def verify_code(self, code: str) -> bool:
        code = (code or "").strip().upper()
        if not code:
            return False
        row = self.first(
            self.sb.table(self.TABLE).select("code, is_active").eq("code", code).limit(1).execute()
        )
        if not row or not row.get("is_active"):
            return False
        self.deactivate_code(code)
        logger.info("Beta access code %s redeemed", code)
        return True

    def create_code(self, code: str) -> Dict[str, Any]:
        row = {"code": code.strip().upper(), "is_active": True, "created_at": iso_now()}
        result = self.sb.table(self.TABLE).insert(row).execute()
        return self.first(result) or row

    def generate_codes(self, count: int = 1, length: int = DEFAULT_CODE_LENGTH) -> List[str]:
        if count < 1:
            raise ValueError("count must be at least 1")
        if length < 4:
            raise ValueError("code length must be at least 4")
        codes: List[str] = []
        while len(codes) < count:
            code = generate_code(length)
            if code not in codes:
                codes.append(code)
        self.sb.table(self.TABLE).insert(
            [{"code": c, "is_active": True, "created_at": iso_now()} for c in codes]
        ).execute()
        logger.info("Generated %d beta access codes", len(codes))
        return codes

    def list_codes(self) -> List[Dict[str, Any]]:
        return self.rows(
            self.sb.table(self.TABLE).select("*").order("created_at", desc=True).execute()
        )

    def deactivate_code(self, code: str) -> None:
        self.sb.table(self.TABLE).update({"is_active": False}).eq("code", code.strip().upper()).execute()
