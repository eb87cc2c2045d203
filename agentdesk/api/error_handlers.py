"""
Error Handlers
================
Every error leaves the API as ``{"error", "detail", "code"}``.

Strategy:
  - ``ValueError`` raised by a service   → route re-raises ``BadRequestError`` (400)
  - Wallet acting on someone else's row → 403
  - Missing rows / market objects       → 404
  - EMERGENCY_STOP engaged              → 423
  - Supabase not configured             → 503
  - Request body / query validation     → 422, one line per failing field
  - Anything else                       → 500, internals logged but not returned

Rate limiting answers 429 from ``middleware.RateLimitMiddleware`` before a
route runs, so it has no exception class here.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════
# Exceptions
# ══════════════════════════════════════════════════════════════════

class AgentDeskError(Exception):
    """Base for errors the API turns into a JSON response with ``code``."""

    code = 500

    def __init__(self, message: str, detail: Optional[str] = None, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        if code is not None:
            self.code = code


class BadRequestError(AgentDeskError):
    code = 400


class ForbiddenError(AgentDeskError):
    code = 403


class NotFoundError(AgentDeskError):
    code = 404

    def __init__(self, what: str, key: str = ""):
        super().__init__(
            f"{what} not found",
            detail=f"No {what.lower()} matches '{key}'." if key else None,
        )


class TradingHaltedError(AgentDeskError):
    code = 423

    def __init__(self):
        super().__init__(
            "Trading halted",
            detail="EMERGENCY_STOP is set. Unset it to resume automated trading.",
        )


class DatabaseUnavailableError(AgentDeskError):
    code = 503

    def __init__(self, reason: str = ""):
        super().__init__(
            "Database connection not available",
            detail=reason or "Set SUPABASE_URL and SUPABASE_KEY.",
        )


# ══════════════════════════════════════════════════════════════════
# Registration
# ══════════════════════════════════════════════════════════════════

def error_body(code: int, error: str, detail: Any = None) -> Dict[str, Any]:
    return {"error": error, "detail": detail, "code": code}


def register_error_handlers(app: FastAPI) -> None:
    """Attach the AgentDesk, validation and catch-all handlers to *app*."""

    @app.exception_handler(AgentDeskError)
    async def agentdesk_error_handler(request: Request, exc: AgentDeskError):
        if exc.code >= 500:
            logger.error("%s %s -> %d %s (%s)", request.method, request.url.path,
                         exc.code, exc.message, exc.detail)
        else:
            logger.warning("%s %s -> %d %s", request.method, request.url.path,
                           exc.code, exc.message)
        return JSONResponse(status_code=exc.code, content=error_body(exc.code, exc.message, exc.detail))

    async def validation_handler(request: Request, exc: Exception):
        errors = exc.errors()  # both validation error types expose .errors()
        logger.warning("Validation failed on %s: %s", request.url.path, errors)
        return JSONResponse(
            status_code=422,
            content=error_body(422, "Validation error", describe_validation_errors(errors)),
        )

    app.add_exception_handler(RequestValidationError, validation_handler)
    app.add_exception_handler(ValidationError, validation_handler)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s %s:\n%s",
                     request.method, request.url.path, traceback.format_exc())
        return JSONResponse(
            status_code=500,
            content=error_body(500, "Internal server error",
                               "An unexpected error occurred. Please try again later."),
        )


def describe_validation_errors(errors: Iterable[Dict[str, Any]]) -> str:
    """``"body → price: Field required; query → limit: ..."``"""
    parts = [
        f"{' → '.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in errors
    ]
    return "; ".join(parts) or "Unknown validation error"
