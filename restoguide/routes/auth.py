"""
Authentication routes: register, login, token refresh, logout and profile.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from restoguide.config import Settings, get_settings
from restoguide.db import Database
from restoguide.dependencies import (
    CurrentUser,
    get_current_user,
    get_database,
    rate_limit,
)
from restoguide.errors import ok
from restoguide.schemas import LoginRequest, ProfileUpdate, RefreshRequest, RegisterRequest
from restoguide.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(
    db: Database = Depends(get_database), settings: Settings = Depends(get_settings)
) -> AuthService:
    return AuthService(db, settings)


@router.post(
    "/register",
    status_code=201,
    dependencies=[Depends(rate_limit(20, 60, "register"))],
)
def register(payload: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    result = service.register(
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        password=payload.password,
        auth_method=payload.auth_method,
    )
    return ok(result, "User registered successfully")


@router.post("/login", dependencies=[Depends(rate_limit(10, 60, "login"))])
def login(payload: LoginRequest, service: AuthService = Depends(get_auth_service)):
    result = service.login(
        email=payload.email, phone=payload.phone, password=payload.password
    )
    return ok(result, "Login successful")


@router.post("/refresh", dependencies=[Depends(rate_limit(50, 60, "refresh"))])
def refresh(payload: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    return ok(service.refresh(payload.refresh_token), "Token refreshed successfully")


@router.post("/logout")
def logout(
    payload: RefreshRequest,
    user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    service.logout(payload.refresh_token)
    return ok(None, "Logged out successfully")


@router.get("/me")
def me(
    user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return ok({"user": service.get_profile(user.id)})


@router.put("/me")
def update_me(
    payload: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    profile = service.update_profile(
        user.id, name=payload.name, avatar_url=payload.avatar_url
    )
    return ok({"user": profile}, "Profile updated successfully")
