"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request, Response

from restoguide.config import Settings, get_settings
from restoguide.counters import CounterStore, InMemoryCounterStore, RedisCounterStore
from restoguide.db import Database
from restoguide.errors import AppError
from restoguide.ratelimit import RateLimiter
from restoguide.security import decode_access_token
from restoguide.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

_database: Database | None = None
_counter_store: CounterStore | None = None
_storage_client: StorageClient | None = None
_rate_limiter: RateLimiter | None = None


def get_database() -> Database:
    """
    Return a singleton database so the engine pool is shared across requests.
    """
    global _database
    if _database:
        return _database

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.warning("DATABASE_URL not set; using an in-memory SQLite database")
        _database = Database("sqlite+pysqlite:///:memory:")
    else:
        _database = Database(settings.database_url)
    return _database


def get_counter_store() -> CounterStore:
    global _counter_store
    if _counter_store:
        return _counter_store

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _counter_store = RedisCounterStore(url=settings.redis_url)
    else:
        _counter_store = InMemoryCounterStore()
    return _counter_store


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.media_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.media_bucket,
            region=settings.media_region or "",
            endpoint=settings.media_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.media_public_base_url,
        )
    return _storage_client


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter:
        return _rate_limiter

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _rate_limiter = RateLimiter.from_url(settings.redis_url)
    else:
        _rate_limiter = RateLimiter()
    return _rate_limiter


def override_dependencies(
    *,
    database: Database | None = None,
    counter_store: CounterStore | None = None,
    storage_client: StorageClient | None = None,
    rate_limiter: RateLimiter | None = None,
) -> None:
    """Replace the singletons (used by tests and local scripts)."""
    global _database, _counter_store, _storage_client, _rate_limiter
    _database = database
    _counter_store = counter_store
    _storage_client = storage_client
    _rate_limiter = rate_limiter


@dataclass
class CurrentUser:
    id: str
    email: Optional[str]
    role: str


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization")
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise AppError(
            "Authorization header must be 'Bearer <token>'", 401, "INVALID_TOKEN_FORMAT"
        )
    return parts[1]


def get_current_user(
    request: Request, settings: Settings = Depends(get_settings)
) -> CurrentUser:
    token = _bearer_token(request)
    if token is None:
        raise AppError("Authentication required", 401, "MISSING_TOKEN")
    claims = decode_access_token(token, settings)
    user = CurrentUser(id=claims["userId"], email=claims.get("email"), role=claims["role"])
    request.state.user = user
    return user


def get_optional_user(
    request: Request, settings: Settings = Depends(get_settings)
) -> Optional[CurrentUser]:
    try:
        return get_current_user(request, settings)
    except AppError:
        return None


def require_roles(*roles: str):
    """Dependency factory that admits only the given roles."""

    def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            raise AppError(
                "You do not have permission to perform this action",
                403,
                "FORBIDDEN",
                {"required_roles": list(roles), "your_role": user.role},
            )
        return user

    return _check


@dataclass
class ClientInfo:
    ip_address: Optional[str]
    user_agent: Optional[str]


def get_client_info(request: Request) -> ClientInfo:
    forwarded = request.headers.get("X-Forwarded-For")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    if not ip and request.client:
        ip = request.client.host
    return ClientInfo(ip_address=ip, user_agent=request.headers.get("User-Agent"))


def rate_limit(limit: int, window_seconds: int, key_prefix: str):
    """
    Per-endpoint fixed-window limiter keyed by user id or client IP. Limiter
    storage failures let the request through.
    """

    def _limit(
        request: Request,
        response: Response,
        limiter: RateLimiter = Depends(get_rate_limiter),
        settings: Settings = Depends(get_settings),
    ) -> None:
        if not settings.rate_limit_enabled:
            return
        user = getattr(request.state, "user", None)
        identifier = user.id if user else get_client_info(request).ip_address or "unknown"
        response.headers.update(
            limiter.check(identifier, limit, window_seconds, key_prefix)
        )

    return _limit
