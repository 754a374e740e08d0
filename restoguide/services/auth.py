"""
Registration, login and refresh-token rotation.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, update

from restoguide.config import Settings
from restoguide.db import Database, RefreshTokenRow, UserRow, utcnow
from restoguide.errors import AppError
from restoguide.security import (
    create_access_token,
    generate_refresh_token,
    hash_password,
    verify_password,
)
from restoguide.services import iso

logger = logging.getLogger(__name__)


def serialize_user(user: UserRow) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "phone": user.phone,
        "name": user.name,
        "role": user.role,
        "authMethod": user.auth_method,
        "avatarUrl": user.avatar_url,
        "emailVerified": user.email_verified,
        "phoneVerified": user.phone_verified,
        "isActive": user.is_active,
        "lastLoginAt": iso(user.last_login_at),
        "createdAt": iso(user.created_at),
    }


class AuthService:
    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.settings = settings

    def _issue_tokens(self, session, user: UserRow) -> dict:
        refresh = RefreshTokenRow(
            user_id=user.id,
            token=generate_refresh_token(),
            expires_at=utcnow() + timedelta(days=self.settings.refresh_token_ttl_days),
        )
        session.add(refresh)
        return {
            "accessToken": create_access_token(
                {"id": user.id, "email": user.email, "role": user.role}, self.settings
            ),
            "refreshToken": refresh.token,
            "expiresIn": self.settings.jwt_access_ttl_seconds,
            "tokenType": "Bearer",
        }

    def register(
        self,
        *,
        name: str,
        password: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        auth_method: str = "email",
    ) -> dict:
        email = email.strip().lower() if email else None
        with self.db.Session() as session:
            if email and session.execute(
                select(UserRow.id).where(UserRow.email == email)
            ).first():
                raise AppError("User with this email already exists", 409, "EMAIL_EXISTS")
            if phone and session.execute(
                select(UserRow.id).where(UserRow.phone == phone)
            ).first():
                raise AppError(
                    "User with this phone number already exists", 409, "PHONE_EXISTS"
                )
            user = UserRow(
                name=name.strip(),
                email=email,
                phone=phone,
                password_hash=hash_password(password, self.settings.bcrypt_rounds),
                role="user",
                auth_method=auth_method,
            )
            session.add(user)
            session.flush()
            tokens = self._issue_tokens(session, user)
            session.commit()
            logger.info("Registered user %s via %s", user.id, auth_method)
            return {"user": serialize_user(user), **tokens}

    def login(
        self,
        *,
        password: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        admin_only: bool = False,
    ) -> dict:
        with self.db.Session() as session:
            stmt = select(UserRow)
            if email:
                stmt = stmt.where(UserRow.email == email.strip().lower())
            else:
                stmt = stmt.where(UserRow.phone == phone)
            user = session.execute(stmt).scalar_one_or_none()
            valid = verify_password(password, user.password_hash if user else None)
            if not user or not valid or not user.is_active:
                raise AppError("Invalid credentials", 401, "INVALID_CREDENTIALS")
            if admin_only and user.role != "admin":
                logger.warning("Non-admin user %s tried the admin login", user.id)
                raise AppError("Admin access required", 403, "ADMIN_ACCESS_REQUIRED")
            user.last_login_at = utcnow()
            tokens = self._issue_tokens(session, user)
            session.commit()
            return {"user": serialize_user(user), **tokens}

    def refresh(self, refresh_token: str) -> dict:
        now = utcnow()
        with self.db.Session() as session:
            stored = session.execute(
                select(RefreshTokenRow).where(RefreshTokenRow.token == refresh_token)
            ).scalar_one_or_none()
            if not stored:
                raise AppError("Invalid refresh token", 401, "INVALID_TOKEN")
            if stored.expires_at <= now:
                raise AppError("Refresh token has expired", 401, "TOKEN_EXPIRED")
            if stored.used_at is not None:
                logger.error(
                    "Refresh token reuse for user %s (token %s...)",
                    stored.user_id,
                    refresh_token[:10],
                )
                session.execute(
                    update(RefreshTokenRow)
                    .where(
                        RefreshTokenRow.user_id == stored.user_id,
                        RefreshTokenRow.used_at.is_(None),
                    )
                    .values(used_at=now)
                )
                session.commit()
                raise AppError(
                    "Refresh token reuse detected; all sessions were revoked",
                    403,
                    "TOKEN_REUSE_DETECTED",
                )
            user = session.get(UserRow, stored.user_id)
            if not user or not user.is_active:
                raise AppError("Account is inactive", 401, "ACCOUNT_INACTIVE")
            stored.used_at = now
            tokens = self._issue_tokens(session, user)
            session.commit()
            return tokens

    def logout(self, refresh_token: str) -> None:
        with self.db.Session() as session:
            session.execute(
                update(RefreshTokenRow)
                .where(
                    RefreshTokenRow.token == refresh_token,
                    RefreshTokenRow.used_at.is_(None),
                )
                .values(used_at=utcnow())
            )
            session.commit()

    def get_profile(self, user_id: str) -> dict:
        with self.db.Session() as session:
            user = session.get(UserRow, user_id)
            if not user:
                raise AppError("User not found", 404, "USER_NOT_FOUND")
            return serialize_user(user)

    def update_profile(
        self, user_id: str, *, name: Optional[str] = None, avatar_url: Optional[str] = None
    ) -> dict:
        with self.db.Session() as session:
            user = session.get(UserRow, user_id)
            if not user:
                raise AppError("User not found", 404, "USER_NOT_FOUND")
            if name is not None:
                user.name = name.strip()
            if avatar_url is not None:
                user.avatar_url = avatar_url or None
            session.commit()
            return serialize_user(user)


def upgrade_to_partner(session, user_id: str) -> bool:
    """Promote a plain user to partner inside an open session; returns True on change."""
    user = session.get(UserRow, user_id)
    if user and user.role == "user":
        user.role = "partner"
        logger.info("User %s upgraded to partner", user_id)
        return True
    return False
