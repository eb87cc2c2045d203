"""
Settings Routes
===============
GET  /api/v1/settings/{user_id}            – every settings group
GET  /api/v1/settings/{user_id}/{type}     – one group (defaults when unset)
PUT  /api/v1/settings/{user_id}/{type}     – merge and upsert
POST /api/v1/settings/{user_id}/api-key    – issue a new API key
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from ..dependencies import get_settings_store, verify_api_key
from ..error_handlers import BadRequestError

router = APIRouter()


@router.get("/settings/{user_id}", summary="All settings for a user")
async def get_all_settings(
    user_id: str,
    settings=Depends(get_settings_store),
) -> Dict[str, Dict[str, Any]]:
    return settings.get_all(user_id)


@router.post("/settings/{user_id}/api-key", summary="Generate API credentials")
async def generate_api_key(
    user_id: str,
    settings=Depends(get_settings_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    return settings.generate_api_key(user_id)


@router.get("/settings/{user_id}/{settings_type}", summary="One settings group")
async def get_settings(
    user_id: str,
    settings_type: str,
    settings=Depends(get_settings_store),
) -> Dict[str, Any]:
    try:
        return settings.get(settings_type, user_id)
    except ValueError as exc:
        raise BadRequestError(str(exc))


@router.put("/settings/{user_id}/{settings_type}", summary="Update a settings group")
async def update_settings(
    user_id: str,
    settings_type: str,
    values: Dict[str, Any] = Body(...),
    settings=Depends(get_settings_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    try:
        return settings.update(settings_type, user_id, values)
    except ValueError as exc:
        raise BadRequestError(str(exc))
