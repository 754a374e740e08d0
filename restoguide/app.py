"""
FastAPI application entry point.
"""

from __future__ import annotations

import logging
import secrets
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from restoguide import __version__
from restoguide.config import configure_logging, get_settings
from restoguide.dependencies import get_client_info, get_rate_limiter
from restoguide.errors import AppError, error_response, register_exception_handlers
from restoguide.routes import router
from restoguide.security import decode_access_token

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def new_correlation_id() -> str:
    return f"req_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title="Restaurant Guide API", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_HEADER, "X-RateLimit-Limit", "X-RateLimit-Remaining"],
    )

    @app.middleware("http")
    async def global_rate_limit(request: Request, call_next):
        current = get_settings()
        if not current.rate_limit_enabled or not request.url.path.startswith(
            current.api_root
        ):
            return await call_next(request)
        identifier = None
        header = request.headers.get("Authorization", "")
        if header.startswith("Bearer "):
            try:
                identifier = f"user:{decode_access_token(header[7:], current)['userId']}"
            except AppError:
                identifier = None
        if identifier:
            limit = current.rate_limit_authenticated
            window = current.rate_limit_authenticated_window
        else:
            ip = get_client_info(request).ip_address or "unknown"
            identifier = f"ip:{ip}"
            limit = current.rate_limit_unauthenticated
            window = current.rate_limit_unauthenticated_window
        try:
            headers = await run_in_threadpool(
                get_rate_limiter().check, identifier, limit, window, "global"
            )
        except AppError as exc:
            logger.warning("Global rate limit exceeded for %s", identifier)
            return error_response(
                exc.message, exc.status_code, exc.code, exc.details, exc.headers
            )
        response = await call_next(request)
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response

    @app.middleware("http")
    async def correlation_id(request: Request, call_next):
        value = request.headers.get(CORRELATION_HEADER) or new_correlation_id()
        request.state.correlation_id = value
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = value
        return response

    register_exception_handlers(app)

    @app.get(settings.api_prefix, tags=["meta"])
    def api_info():
        return {
            "success": True,
            "message": "Restaurant Guide Belarus API",
            "version": settings.api_version,
            "availableVersions": [settings.api_version],
            "endpoints": {
                "health": f"{settings.api_root}/health",
                "auth": f"{settings.api_root}/auth",
                "search": f"{settings.api_root}/search",
                "partner": f"{settings.api_root}/partner",
                "reviews": f"{settings.api_root}/reviews",
                "favorites": f"{settings.api_root}/favorites",
                "admin": f"{settings.api_root}/admin",
            },
        }

    app.include_router(router, prefix=settings.api_root)
    return app


app = create_app()
