"""
Application errors and the JSON envelope used by every response.

Successful responses look like ``{"success": true, "data": ...}``; failures
look like ``{"success": false, "message": ..., "error": {"code": ...}}``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """An expected failure with an HTTP status and a machine-readable code."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "INTERNAL_ERROR",
        details: Any = None,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details
        self.headers = headers


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def error_body(
    message: str, status_code: int, code: str, details: Any = None
) -> dict:
    error: dict[str, Any] = {"code": code}
    if details is not None and status_code in (400, 422, 429, 403):
        error["details"] = details
    return {
        "success": False,
        "message": message,
        "error": error,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def error_response(
    message: str,
    status_code: int,
    code: str,
    details: Any = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(error_body(message, status_code, code, details)),
        headers=headers,
    )


def _validation_details(exc: RequestValidationError) -> list[dict]:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc) or None, "message": err.get("msg")})
    return details


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s", request.method, request.url.path, exc.message
            )
        else:
            logger.warning(
                "%s %s -> %s %s",
                request.method,
                request.url.path,
                exc.status_code,
                exc.code,
            )
        return error_response(
            exc.message, exc.status_code, exc.code, exc.details, exc.headers
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error_response(
            "Validation failed", 422, "VALIDATION_ERROR", _validation_details(exc)
        )

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError):
        logger.warning("Integrity error on %s: %s", request.url.path, exc.orig)
        return error_response("Resource already exists", 409, "DUPLICATE_ENTRY")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(
                f"Route {request.method} {request.url.path} not found",
                404,
                "NOT_FOUND",
            )
        if exc.status_code == 405:
            return error_response("Method not allowed", 405, "METHOD_NOT_ALLOWED")
        return error_response(str(exc.detail), exc.status_code, "HTTP_ERROR")

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response("Internal server error", 500, "INTERNAL_ERROR")
