"""
Password hashing and token primitives.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from restoguide.config import Settings
from restoguide.errors import AppError

# Verified against when the account does not exist, so a login for an
# unknown email costs the same as a wrong password.
_DUMMY_HASH = bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=4))


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode(
        "utf-8"
    )


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        bcrypt.checkpw(password.encode("utf-8"), _DUMMY_HASH)
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user: dict, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "userId": user["id"],
        "email": user.get("email"),
        "role": user["role"],
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=settings.jwt_access_ttl_seconds),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def decode_access_token(token: str, settings: Settings) -> dict:
    """Verify an access token and return its claims, raising 401 AppErrors."""
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
        )
    except jwt.ExpiredSignatureError as exc:
        raise AppError("Access token has expired", 401, "TOKEN_EXPIRED") from exc
    except jwt.InvalidTokenError as exc:
        raise AppError("Invalid access token", 401, "MALFORMED_TOKEN") from exc
    if claims.get("type") != "access" or not claims.get("userId"):
        raise AppError("Invalid access token", 401, "MALFORMED_TOKEN")
    return claims


def generate_refresh_token() -> str:
    return secrets.token_hex(32)
