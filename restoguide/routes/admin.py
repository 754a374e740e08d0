"""
Admin routes: login, establishment moderation, review moderation,
analytics and the audit log. Everything except login requires the admin role.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from restoguide.config import Settings, get_settings
from restoguide.db import Database
from restoguide.dependencies import (
    ClientInfo,
    CurrentUser,
    get_client_info,
    get_database,
    rate_limit,
    require_roles,
)
from restoguide.errors import ok
from restoguide.schemas import (
    AdminReviewDelete,
    CoordinatesUpdate,
    LoginRequest,
    ModerateRequest,
    SuspendRequest,
)
from restoguide.services.admin_reviews import AdminReviewService
from restoguide.services.analytics import AnalyticsService
from restoguide.services.audit_log import AuditLogService
from restoguide.services.auth import AuthService
from restoguide.services.moderation import ModerationService

router = APIRouter(prefix="/admin", tags=["admin"])

admin_only = require_roles("admin")


def get_moderation_service(db: Database = Depends(get_database)) -> ModerationService:
    return ModerationService(db)


def get_admin_review_service(db: Database = Depends(get_database)) -> AdminReviewService:
    return AdminReviewService(db)


def get_analytics_service(db: Database = Depends(get_database)) -> AnalyticsService:
    return AnalyticsService(db)


def get_audit_log_service(db: Database = Depends(get_database)) -> AuditLogService:
    return AuditLogService(db)


@router.post("/auth/login", dependencies=[Depends(rate_limit(5, 60, "admin_login"))])
def admin_login(
    payload: LoginRequest,
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    result = AuthService(db, settings).login(
        email=payload.email,
        phone=payload.phone,
        password=payload.password,
        admin_only=True,
    )
    return ok(result, "Admin login successful")


# Establishments. The fixed paths are declared before /establishments/{id}.


@router.get("/establishments/pending")
def pending_establishments(
    page: int = 1,
    per_page: int = 20,
    _: CurrentUser = Depends(admin_only),
    service: ModerationService = Depends(get_moderation_service),
):
    return ok(service.list_pending(page=page, per_page=per_page))


@router.get("/establishments/active")
def active_establishments(
    page: int = 1,
    per_page: int = 20,
    sort: str = "newest",
    city: Optional[str] = None,
    search: Optional[str] = None,
    _: CurrentUser = Depends(admin_only),
    service: ModerationService = Depends(get_moderation_service),
):
    return ok(
        service.list_active(
            page=page, per_page=per_page, sort=sort, city=city, search=search
        )
    )


@router.get("/establishments/rejected")
def rejected_establishments(
    page: int = 1,
    per_page: int = 20,
    _: CurrentUser = Depends(admin_only),
    service: ModerationService = Depends(get_moderation_service),
):
    return ok(service.list_rejected(page=page, per_page=per_page))


@router.get("/establishments/suspended")
def suspended_establishments(
    page: int = 1,
    per_page: int = 20,
    _: CurrentUser = Depends(admin_only),
    service: ModerationService = Depends(get_moderation_service),
):
    return ok(service.list_suspended(page=page, per_page=per_page))


@router.get("/establishments/search")
def search_establishments(
    search: Optional[str] = None,
    status: Optional[str] = None,
    city: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
    _: CurrentUser = Depends(admin_only),
    service: ModerationService = Depends(get_moderation_service),
):
    return ok(
        service.search_all(
            search=search, status=status, city=city, page=page, per_page=per_page
        )
    )


@router.get("/establishments/{establishment_id}")
def establishment_details(
    establishment_id: str,
    _: CurrentUser = Depends(admin_only),
    service: ModerationService = Depends(get_moderation_service),
):
    return ok({"establishment": service.get_details(establishment_id)})


@router.post("/establishments/{establishment_id}/moderate")
def moderate_establishment(
    establishment_id: str,
    payload: ModerateRequest,
    admin: CurrentUser = Depends(admin_only),
    client: ClientInfo = Depends(get_client_info),
    service: ModerationService = Depends(get_moderation_service),
):
    result = service.moderate(
        establishment_id,
        action=payload.action,
        moderation_notes=payload.moderation_notes,
        admin_id=admin.id,
        client=client,
    )
    message = "Establishment approved" if payload.action == "approve" else "Establishment rejected"
    return ok({"establishment": result}, message)


@router.post("/establishments/{establishment_id}/suspend")
def suspend_establishment(
    establishment_id: str,
    payload: SuspendRequest,
    admin: CurrentUser = Depends(admin_only),
    client: ClientInfo = Depends(get_client_info),
    service: ModerationService = Depends(get_moderation_service),
):
    result = service.suspend(
        establishment_id, reason=payload.reason, admin_id=admin.id, client=client
    )
    return ok({"establishment": result}, "Establishment suspended")


@router.post("/establishments/{establishment_id}/unsuspend")
def unsuspend_establishment(
    establishment_id: str,
    admin: CurrentUser = Depends(admin_only),
    client: ClientInfo = Depends(get_client_info),
    service: ModerationService = Depends(get_moderation_service),
):
    result = service.unsuspend(establishment_id, admin_id=admin.id, client=client)
    return ok({"establishment": result}, "Establishment unsuspended")


@router.patch("/establishments/{establishment_id}/coordinates")
def update_coordinates(
    establishment_id: str,
    payload: CoordinatesUpdate,
    admin: CurrentUser = Depends(admin_only),
    client: ClientInfo = Depends(get_client_info),
    service: ModerationService = Depends(get_moderation_service),
):
    result = service.update_coordinates(
        establishment_id,
        latitude=payload.latitude,
        longitude=payload.longitude,
        admin_id=admin.id,
        client=client,
    )
    return ok({"establishment": result}, "Coordinates updated")


# Reviews


@router.get("/reviews")
def list_reviews(
    page: int = 1,
    per_page: int = 20,
    establishment_id: Optional[str] = None,
    user_id: Optional[str] = None,
    rating: Optional[int] = Query(default=None, ge=1, le=5),
    status: Optional[str] = Query(default=None, pattern="^(visible|hidden|deleted)$"),
    search: Optional[str] = None,
    sort: str = "newest",
    date_from: Optional[datetime] = Query(default=None, alias="from"),
    date_to: Optional[datetime] = Query(default=None, alias="to"),
    _: CurrentUser = Depends(admin_only),
    service: AdminReviewService = Depends(get_admin_review_service),
):
    return ok(
        service.list_reviews(
            page=page,
            per_page=per_page,
            establishment_id=establishment_id,
            user_id=user_id,
            rating=rating,
            status=status,
            search=search,
            sort=sort,
            date_from=date_from,
            date_to=date_to,
        )
    )


@router.post("/reviews/{review_id}/toggle-visibility")
def toggle_review_visibility(
    review_id: str,
    admin: CurrentUser = Depends(admin_only),
    client: ClientInfo = Depends(get_client_info),
    service: AdminReviewService = Depends(get_admin_review_service),
):
    result = service.toggle_visibility(review_id, admin_id=admin.id, client=client)
    return ok({"review": result})


@router.post("/reviews/{review_id}/delete")
def delete_review(
    review_id: str,
    payload: Optional[AdminReviewDelete] = None,
    admin: CurrentUser = Depends(admin_only),
    client: ClientInfo = Depends(get_client_info),
    service: AdminReviewService = Depends(get_admin_review_service),
):
    result = service.delete(
        review_id,
        reason=payload.reason if payload else None,
        admin_id=admin.id,
        client=client,
    )
    return ok({"review": result}, "Review deleted")


# Analytics


@router.get("/analytics/{section}")
def analytics(
    section: str = Path(pattern="^(overview|users|establishments|reviews)$"),
    period: Optional[str] = None,
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    _: CurrentUser = Depends(admin_only),
    service: AnalyticsService = Depends(get_analytics_service),
):
    handler = getattr(service, section)
    return ok(handler(period=period, date_from=date_from, date_to=date_to))


@router.get("/audit-log")
def audit_log(
    page: int = 1,
    per_page: int = 20,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    user_id: Optional[str] = None,
    date_from: Optional[datetime] = Query(default=None, alias="from"),
    date_to: Optional[datetime] = Query(default=None, alias="to"),
    sort: str = Query(default="newest", pattern="^(newest|oldest)$"),
    include_metadata: bool = False,
    _: CurrentUser = Depends(admin_only),
    service: AuditLogService = Depends(get_audit_log_service),
):
    return ok(
        service.list_entries(
            page=page,
            per_page=per_page,
            action=action,
            entity_type=entity_type,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            sort=sort,
            include_metadata=include_metadata,
        )
    )
