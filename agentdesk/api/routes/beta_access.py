"""
Beta Access Routes
==================
POST /api/v1/beta-access/verify       – redeem a code (single use)
POST /api/v1/beta-access/generate     – admin: mint codes
GET  /api/v1/beta-access/list         – admin: all codes
POST /api/v1/beta-access/deactivate   – admin: revoke a code
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from agentdesk.storage.beta_access import DEFAULT_CODE_LENGTH

from ..dependencies import get_beta_store, verify_admin_key
from ..error_handlers import BadRequestError

router = APIRouter()
logger = logging.getLogger(__name__)


class CodeIn(BaseModel):
    code: str = Field(..., min_length=1)


class GenerateIn(BaseModel):
    count: int = 1
    length: int = DEFAULT_CODE_LENGTH


@router.post("/beta-access/verify", summary="Verify a beta access code")
async def verify_code(body: CodeIn, beta=Depends(get_beta_store)) -> Dict[str, bool]:
    return {"is_valid": beta.verify_code(body.code)}


@router.post("/beta-access/generate", summary="Generate beta access codes")
async def generate_codes(
    body: GenerateIn = GenerateIn(),
    beta=Depends(get_beta_store),
    _admin: str = Depends(verify_admin_key),
) -> Dict[str, Any]:
    try:
        codes = beta.generate_codes(body.count, body.length)
    except ValueError as exc:
        raise BadRequestError(str(exc))
    return {"codes": codes, "code": codes[0]}


@router.get("/beta-access/list", summary="List beta access codes")
async def list_codes(
    beta=Depends(get_beta_store),
    _admin: str = Depends(verify_admin_key),
) -> List[Dict[str, Any]]:
    return beta.list_codes()


@router.post("/beta-access/deactivate", summary="Deactivate a beta access code")
async def deactivate_code(
    body: CodeIn,
    beta=Depends(get_beta_store),
    _admin: str = Depends(verify_admin_key),
) -> Dict[str, bool]:
    beta.deactivate_code(body.code)
    return {"success": True}
