"""Maps exceptions to the {"error": message} JSON envelope every handler returns."""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from app.config.settings import settings

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


class LimitExceededError(Exception):
    """A usage cap blocked the call; reported as 429 with the usage that tripped it"""

    def __init__(self, reason: str, usage: Optional[Dict[str, Any]] = None):
        super().__init__(reason)
        self.reason = reason
        self.usage = usage or {}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        messages = "; ".join(
            f"{'.'.join(str(part) for part in e['loc'] if part != 'body')}: {e['msg']}" for e in exc.errors()
        )
        return error_response(400, messages or "Invalid request body")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: HTTPException):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(LimitExceededError)
    async def limit_exceeded(request: Request, exc: LimitExceededError):
        return JSONResponse(
            status_code=429,
            content={"error": "blocked_limit", "message": exc.reason, "usage": exc.usage},
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        if settings.is_production:
            return error_response(500, "Unknown error")
        return error_response(500, str(exc) or "Unknown error")
