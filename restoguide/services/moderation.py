"""
Admin moderation of establishments: the pending queue, approve/reject,
suspension and coordinate corrections. Every state change is audited.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, or_, select

from restoguide.constants import (
    STATUS_ACTIVE,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUS_SUSPENDED,
)
from restoguide.db import (
    AuditLogRow,
    Database,
    EstablishmentRow,
    MediaRow,
    PartnerDocumentRow,
    UserRow,
    utcnow,
)
from restoguide.dependencies import ClientInfo
from restoguide.errors import AppError
from restoguide.geo import validate_coordinates
from restoguide.services import audit_log, clamp, iso
from restoguide.services.search import serialize_summary

logger = logging.getLogger(__name__)

ACTIVE_SORTS = {
    "newest": (EstablishmentRow.published_at.desc(), EstablishmentRow.created_at.desc()),
    "oldest": (EstablishmentRow.published_at.asc(), EstablishmentRow.created_at.asc()),
    "rating": (EstablishmentRow.average_rating.desc(), EstablishmentRow.review_count.desc()),
    "views": (EstablishmentRow.view_count.desc(),),
    "name": (EstablishmentRow.name.asc(),),
}


def _meta(total: int, page: int, per_page: int) -> dict:
    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": (total + per_page - 1) // per_page,
    }


def _list_item(est: EstablishmentRow, partner: Optional[UserRow]) -> dict:
    item = serialize_summary(est)
    item.update(
        {
            "partner_name": partner.name if partner else None,
            "partner_email": partner.email if partner else None,
            "moderation_notes": est.moderation_notes,
            "moderated_at": iso(est.moderated_at),
            "published_at": iso(est.published_at),
            "view_count": est.view_count,
        }
    )
    return item


class ModerationService:
    def __init__(self, db: Database):
        self.db = db

    def _page(
        self,
        conditions: list,
        order: tuple,
        page: int,
        per_page: int,
        key: str = "establishments",
    ) -> dict:
        page = max(1, page)
        per_page = clamp(per_page, 1, 50)
        with self.db.Session() as session:
            total = session.execute(
                select(func.count()).select_from(EstablishmentRow).where(*conditions)
            ).scalar_one()
            rows = session.execute(
                select(EstablishmentRow, UserRow)
                .outerjoin(UserRow, UserRow.id == EstablishmentRow.partner_id)
                .where(*conditions)
                .order_by(*order)
                .limit(per_page)
                .offset((page - 1) * per_page)
            ).all()
        return {
            key: [_list_item(est, partner) for est, partner in rows],
            "meta": _meta(total, page, per_page),
        }

    def list_pending(self, *, page: int = 1, per_page: int = 20) -> dict:
        return self._page(
            [EstablishmentRow.status == STATUS_PENDING],
            (EstablishmentRow.updated_at.asc(),),
            page,
            per_page,
        )

    def list_active(
        self,
        *,
        page: int = 1,
        per_page: int = 20,
        sort: str = "newest",
        city: Optional[str] = None,
        search: Optional[str] = None,
    ) -> dict:
        conditions = [EstablishmentRow.status == STATUS_ACTIVE]
        if city:
            conditions.append(EstablishmentRow.city == city)
        if search:
            conditions.append(
                func.lower(EstablishmentRow.name).contains(search.lower(), autoescape=True)
            )
        return self._page(
            conditions, ACTIVE_SORTS.get(sort, ACTIVE_SORTS["newest"]), page, per_page
        )

    def list_suspended(self, *, page: int = 1, per_page: int = 20) -> dict:
        return self._page(
            [EstablishmentRow.status == STATUS_SUSPENDED],
            (EstablishmentRow.updated_at.desc(),),
            page,
            per_page,
        )

    def search_all(
        self,
        *,
        search: Optional[str],
        status: Optional[str] = None,
        city: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> dict:
        if not search or not search.strip():
            raise AppError("Search query is required", 400, "SEARCH_REQUIRED")
        term = search.strip().lower()
        conditions = [
            or_(
                func.lower(EstablishmentRow.name).contains(term, autoescape=True),
                func.lower(EstablishmentRow.address).contains(term, autoescape=True),
            )
        ]
        if status:
            conditions.append(EstablishmentRow.status == status)
        if city:
            conditions.append(EstablishmentRow.city == city)
        return self._page(
            conditions, (EstablishmentRow.name.asc(),), page, per_page
        )

    def list_rejected(self, *, page: int = 1, per_page: int = 20) -> dict:
        """Rejection history comes from the audit log, one entry per rejection."""
        page = max(1, page)
        per_page = clamp(per_page, 1, 50)
        condition = AuditLogRow.action == "moderate_reject"
        with self.db.Session() as session:
            total = session.execute(
                select(func.count()).select_from(AuditLogRow).where(condition)
            ).scalar_one()
            rows = session.execute(
                select(AuditLogRow, EstablishmentRow, UserRow)
                .outerjoin(EstablishmentRow, EstablishmentRow.id == AuditLogRow.entity_id)
                .outerjoin(UserRow, UserRow.id == AuditLogRow.user_id)
                .where(condition)
                .order_by(AuditLogRow.created_at.desc())
                .limit(per_page)
                .offset((page - 1) * per_page)
            ).all()
        rejections = [
            {
                "audit_id": entry.id,
                "establishment_id": entry.entity_id,
                "establishment_name": est.name if est else None,
                "city": est.city if est else None,
                "current_status": est.status if est else None,
                "moderation_notes": (entry.new_data or {}).get("moderation_notes"),
                "rejected_by": admin.name if admin else None,
                "rejected_at": iso(entry.created_at),
            }
            for entry, est, admin in rows
        ]
        meta = _meta(total, page, per_page)
        meta["pages"] = meta["pages"] or 1
        return {"rejections": rejections, "meta": meta}

    def get_details(self, establishment_id: str) -> dict:
        with self.db.Session() as session:
            est = session.get(EstablishmentRow, establishment_id)
            if not est:
                raise AppError("Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND")
            partner = session.get(UserRow, est.partner_id)
            document = session.execute(
                select(PartnerDocumentRow).where(
                    PartnerDocumentRow.establishment_id == est.id
                )
            ).scalar_one_or_none()
            media = session.execute(
                select(MediaRow)
                .where(MediaRow.establishment_id == est.id)
                .order_by(MediaRow.position)
            ).scalars().all()
        details = _list_item(est, partner)
        details.update(
            {
                "email": est.email,
                "special_hours": est.special_hours,
                "moderated_by": est.moderated_by,
                "legal_name": document.company_name if document else None,
                "unp": document.tax_id if document else None,
                "contact_person": document.contact_person if document else None,
                "contact_email": document.contact_email if document else None,
                "interior_photos": [
                    {
                        "id": m.id,
                        "url": m.url,
                        "thumbnail_url": m.thumbnail_url,
                        "is_primary": m.is_primary,
                    }
                    for m in media
                    if m.type == "interior"
                ],
                "menu_media": [
                    {"id": m.id, "url": m.url, "thumbnail_url": m.thumbnail_url}
                    for m in media
                    if m.type == "menu"
                ],
            }
        )
        return details

    def moderate(
        self,
        establishment_id: str,
        *,
        action: str,
        moderation_notes: Optional[dict],
        admin_id: str,
        client: ClientInfo,
    ) -> dict:
        if action not in ("approve", "reject"):
            raise AppError(
                'Invalid moderation action. Must be "approve" or "reject".',
                400,
                "INVALID_MODERATION_ACTION",
            )
        notes = moderation_notes or {}
        with self.db.Session() as session:
            est = session.get(EstablishmentRow, establishment_id)
            if not est:
                raise AppError("Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND")
            if est.status != STATUS_PENDING:
                raise AppError(
                    f"Cannot moderate establishment with status '{est.status}'. "
                    "Only pending establishments can be moderated.",
                    400,
                    "INVALID_STATUS_FOR_MODERATION",
                )
            old_status = est.status
            now = utcnow()
            est.status = STATUS_ACTIVE if action == "approve" else STATUS_REJECTED
            est.moderated_by = admin_id
            est.moderated_at = now
            est.moderation_notes = notes
            if action == "approve" and est.published_at is None:
                est.published_at = now
            audit_log.record(
                session,
                user_id=admin_id,
                action=f"moderate_{action}",
                entity_type="establishment",
                entity_id=est.id,
                old_data={"status": old_status},
                new_data={"status": est.status, "moderation_notes": notes},
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
            session.commit()
            logger.info(
                "Establishment %s moderated (%s -> %s) by %s",
                est.id,
                old_status,
                est.status,
                admin_id,
            )
            return {
                "id": est.id,
                "name": est.name,
                "status": est.status,
                "moderation_notes": est.moderation_notes,
                "moderated_by": est.moderated_by,
                "moderated_at": iso(est.moderated_at),
                "published_at": iso(est.published_at),
            }

    def suspend(
        self, establishment_id: str, *, reason: Optional[str], admin_id: str, client: ClientInfo
    ) -> dict:
        if not reason or not reason.strip():
            raise AppError("Suspension reason is required", 400, "REASON_REQUIRED")
        with self.db.Session() as session:
            est = session.get(EstablishmentRow, establishment_id)
            if not est:
                raise AppError("Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND")
            if est.status != STATUS_ACTIVE:
                raise AppError(
                    f"Cannot suspend establishment with status '{est.status}'",
                    400,
                    "INVALID_STATUS_FOR_SUSPEND",
                )
            now = utcnow()
            notes = dict(est.moderation_notes or {})
            notes["suspend_reason"] = reason.strip()
            notes["suspended_at"] = now.isoformat()
            est.moderation_notes = notes
            est.status = STATUS_SUSPENDED
            est.suspended_by = "admin"
            est.moderated_by = admin_id
            est.moderated_at = now
            audit_log.record(
                session,
                user_id=admin_id,
                action="suspend_establishment",
                entity_type="establishment",
                entity_id=est.id,
                old_data={"status": STATUS_ACTIVE},
                new_data={"status": STATUS_SUSPENDED, "reason": reason.strip()},
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
            session.commit()
            return {"id": est.id, "name": est.name, "status": est.status}

    def unsuspend(self, establishment_id: str, *, admin_id: str, client: ClientInfo) -> dict:
        with self.db.Session() as session:
            est = session.get(EstablishmentRow, establishment_id)
            if not est:
                raise AppError("Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND")
            if est.status != STATUS_SUSPENDED:
                raise AppError(
                    f"Cannot unsuspend establishment with status '{est.status}'",
                    400,
                    "INVALID_STATUS_FOR_UNSUSPEND",
                )
            est.status = STATUS_ACTIVE
            est.suspended_by = None
            est.moderated_by = admin_id
            est.moderated_at = utcnow()
            audit_log.record(
                session,
                user_id=admin_id,
                action="unsuspend_establishment",
                entity_type="establishment",
                entity_id=est.id,
                old_data={"status": STATUS_SUSPENDED},
                new_data={"status": STATUS_ACTIVE},
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
            session.commit()
            return {"id": est.id, "name": est.name, "status": est.status}

    def update_coordinates(
        self,
        establishment_id: str,
        *,
        latitude: float,
        longitude: float,
        admin_id: str,
        client: ClientInfo,
    ) -> dict:
        with self.db.Session() as session:
            est = session.get(EstablishmentRow, establishment_id)
            if not est:
                raise AppError("Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND")
            validate_coordinates(latitude, longitude, est.city)
            old = {"latitude": est.latitude, "longitude": est.longitude}
            est.latitude = latitude
            est.longitude = longitude
            audit_log.record(
                session,
                user_id=admin_id,
                action="admin_update_coordinates",
                entity_type="establishment",
                entity_id=est.id,
                old_data=old,
                new_data={"latitude": latitude, "longitude": longitude},
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
            session.commit()
            return {
                "id": est.id,
                "name": est.name,
                "city": est.city,
                "latitude": est.latitude,
                "longitude": est.longitude,
            }
