"""
Partner-side establishment lifecycle: create, edit, submit for moderation,
pause/resume and delete.

Establishments start as drafts. Submitting moves them to ``pending``; admins
approve (``active``) or reject (``rejected``, editable and resubmittable).
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, func, select

from restoguide.constants import (
    CATEGORIES,
    CITIES,
    CUISINES,
    FEATURES,
    MAX_CATEGORIES,
    MAX_CUISINES,
    PRICE_RANGES,
    STATUS_ACTIVE,
    STATUS_DRAFT,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUS_SUSPENDED,
)
from restoguide.db import (
    Database,
    EstablishmentRow,
    FavoriteRow,
    MediaRow,
    PartnerDocumentRow,
    ReviewRow,
)
from restoguide.errors import AppError
from restoguide.geo import validate_coordinates
from restoguide.hours import derive_hour_flags, validate_working_hours
from restoguide.services import iso
from restoguide.services.auth import upgrade_to_partner
from restoguide.services.search import serialize_media, serialize_summary

logger = logging.getLogger(__name__)

PLAIN_FIELDS = (
    "name",
    "description",
    "city",
    "address",
    "latitude",
    "longitude",
    "phone",
    "email",
    "website",
    "categories",
    "cuisines",
    "price_range",
    "working_hours",
    "special_hours",
)
MAJOR_FIELDS = ("name", "categories", "cuisines")
REQUIRED_FOR_SUBMISSION = (
    "name",
    "city",
    "address",
    "latitude",
    "longitude",
    "categories",
    "cuisines",
    "working_hours",
)
# Legal payload field -> partner_documents column
LEGAL_FIELDS = {
    "legal_name": "company_name",
    "unp": "tax_id",
    "contact_person": "contact_person",
    "contact_email": "contact_email",
}
MAX_PARTNER_PAGE_SIZE = 50


def validate_fields(data: dict, current: Optional[EstablishmentRow] = None) -> None:
    """
    Validate the domain rules for provided fields. On update, ``current``
    supplies the values the payload leaves out (city for the bounds check).
    """
    if "city" in data and data["city"] not in CITIES:
        raise AppError(
            f"City must be one of: {', '.join(CITIES)}",
            400,
            "INVALID_CITY",
            {"field": "city", "value": data["city"]},
        )
    if "categories" in data:
        categories = data["categories"] or []
        if not 1 <= len(categories) <= MAX_CATEGORIES:
            raise AppError(
                f"Select between 1 and {MAX_CATEGORIES} categories",
                400,
                "INVALID_CATEGORIES_LENGTH",
            )
        invalid = [c for c in categories if c not in CATEGORIES]
        if invalid:
            raise AppError(
                f"Invalid category: {invalid[0]}",
                400,
                "INVALID_CATEGORY_VALUE",
                {"invalid": invalid},
            )
    if "cuisines" in data:
        cuisines = data["cuisines"] or []
        if not 1 <= len(cuisines) <= MAX_CUISINES:
            raise AppError(
                f"Select between 1 and {MAX_CUISINES} cuisines",
                400,
                "INVALID_CUISINES_LENGTH",
            )
        invalid = [c for c in cuisines if c not in CUISINES]
        if invalid:
            raise AppError(
                f"Invalid cuisine: {invalid[0]}",
                400,
                "INVALID_CUISINE_VALUE",
                {"invalid": invalid},
            )
    if data.get("price_range") is not None and data["price_range"] not in PRICE_RANGES:
        raise AppError(
            "Price range must be one of $, $$, $$$", 400, "INVALID_PRICE_RANGE"
        )
    if data.get("features"):
        invalid = [f for f in data["features"] if f not in FEATURES]
        if invalid:
            raise AppError(
                f"Invalid feature: {invalid[0]}",
                400,
                "INVALID_FEATURE",
                {"invalid": invalid, "allowed": FEATURES},
            )
    if data.get("working_hours") is not None:
        problems = validate_working_hours(data["working_hours"])
        if problems:
            raise AppError(
                "Invalid working hours", 400, "INVALID_WORKING_HOURS", problems
            )
    if "latitude" in data or "longitude" in data or "city" in data:
        latitude = data.get("latitude", current.latitude if current else None)
        longitude = data.get("longitude", current.longitude if current else None)
        city = data.get("city", current.city if current else None)
        validate_coordinates(latitude, longitude, city)


def _sync_photos(
    session, establishment_id: str, media_type: str, urls: list[str]
) -> None:
    existing = {
        m.url: m
        for m in session.execute(
            select(MediaRow).where(
                MediaRow.establishment_id == establishment_id,
                MediaRow.type == media_type,
            )
        ).scalars()
    }
    for url, media in existing.items():
        if url not in urls:
            session.delete(media)
    for position, url in enumerate(urls):
        media = existing.get(url)
        if media is None:
            media = MediaRow(
                establishment_id=establishment_id,
                type=media_type,
                url=url,
                thumbnail_url=url,
                preview_url=url,
            )
            session.add(media)
        media.position = position


def _current_primary(session, establishment_id: str) -> Optional[str]:
    return session.execute(
        select(MediaRow.url).where(
            MediaRow.establishment_id == establishment_id,
            MediaRow.is_primary.is_(True),
        )
    ).scalars().first()


def _set_primary(session, establishment_id: str, primary: Optional[str]) -> None:
    for media in session.execute(
        select(MediaRow).where(MediaRow.establishment_id == establishment_id)
    ).scalars():
        media.is_primary = primary is not None and media.url == primary


def _upsert_documents(session, est: EstablishmentRow, data: dict) -> None:
    provided = {col: data[key] for key, col in LEGAL_FIELDS.items() if key in data}
    if not provided:
        return
    document = session.execute(
        select(PartnerDocumentRow).where(
            PartnerDocumentRow.establishment_id == est.id
        )
    ).scalar_one_or_none()
    if document is None:
        document = PartnerDocumentRow(establishment_id=est.id, partner_id=est.partner_id)
        session.add(document)
    for column, value in provided.items():
        setattr(document, column, value)


def _apply_fields(est: EstablishmentRow, data: dict) -> None:
    for name in PLAIN_FIELDS:
        if name in data:
            setattr(est, name, data[name])
    attributes = dict(est.attributes or {})
    if data.get("attributes"):
        attributes.update(data["attributes"])
    for key in ("features", "capacity"):
        if key in data:
            attributes[key] = data[key]
    est.attributes = attributes
    if "working_hours" in data:
        for flag, value in derive_hour_flags(data["working_hours"]).items():
            setattr(est, flag, value)


def rating_distribution(session, establishment_id: str) -> dict:
    counts = {str(star): 0 for star in range(1, 6)}
    rows = session.execute(
        select(ReviewRow.rating, func.count())
        .where(
            ReviewRow.establishment_id == establishment_id,
            ReviewRow.is_deleted.is_(False),
            ReviewRow.is_visible.is_(True),
        )
        .group_by(ReviewRow.rating)
    ).all()
    for rating, count in rows:
        counts[str(rating)] = count
    return counts


class EstablishmentService:
    def __init__(self, db: Database):
        self.db = db

    def _owned(self, session, partner_id: str, establishment_id: str) -> EstablishmentRow:
        est = session.get(EstablishmentRow, establishment_id)
        if not est:
            raise AppError("Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND")
        if est.partner_id != partner_id:
            raise AppError(
                "You do not have permission to modify this establishment",
                403,
                "FORBIDDEN",
            )
        return est

    def _check_duplicate_name(
        self, session, partner_id: str, name: str, exclude_id: Optional[str] = None
    ) -> None:
        stmt = select(EstablishmentRow.id).where(
            EstablishmentRow.partner_id == partner_id,
            func.lower(EstablishmentRow.name) == name.strip().lower(),
        )
        if exclude_id:
            stmt = stmt.where(EstablishmentRow.id != exclude_id)
        if session.execute(stmt).first():
            raise AppError(
                "You already have an establishment with this name",
                409,
                "DUPLICATE_ESTABLISHMENT",
            )

    def create(self, partner_id: str, data: dict) -> dict:
        validate_fields(data)
        with self.db.Session() as session:
            self._check_duplicate_name(session, partner_id, data["name"])
            est = EstablishmentRow(partner_id=partner_id, status=STATUS_DRAFT)
            _apply_fields(est, data)
            session.add(est)
            session.flush()
            _sync_photos(session, est.id, "interior", data.get("interior_photos") or [])
            _sync_photos(session, est.id, "menu", data.get("menu_photos") or [])
            session.flush()
            _set_primary(session, est.id, data.get("primary_photo"))
            _upsert_documents(session, est, data)
            upgraded = upgrade_to_partner(session, partner_id)
            session.commit()
            logger.info("Establishment %s created by %s", est.id, partner_id)
            return {
                "establishment": self._details(session, est),
                "role_upgraded": upgraded,
            }

    def list_for_partner(
        self,
        partner_id: str,
        *,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        page = max(1, page)
        limit = max(1, min(limit, MAX_PARTNER_PAGE_SIZE))
        conditions = [EstablishmentRow.partner_id == partner_id]
        if status:
            conditions.append(EstablishmentRow.status == status)
        with self.db.Session() as session:
            total = session.execute(
                select(func.count()).select_from(EstablishmentRow).where(*conditions)
            ).scalar_one()
            rows = (
                session.execute(
                    select(EstablishmentRow)
                    .where(*conditions)
                    .order_by(EstablishmentRow.created_at.desc())
                    .limit(limit)
                    .offset((page - 1) * limit)
                )
                .scalars()
                .all()
            )
            primaries = {
                m.establishment_id: m.url
                for m in session.execute(
                    select(MediaRow).where(
                        MediaRow.establishment_id.in_([r.id for r in rows]),
                        MediaRow.is_primary.is_(True),
                    )
                ).scalars()
            }
        return {
            "establishments": [
                serialize_summary(r, primary_image_url=primaries.get(r.id)) for r in rows
            ],
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "pages": (total + limit - 1) // limit,
            },
        }

    def _details(self, session, est: EstablishmentRow) -> dict:
        media = (
            session.execute(
                select(MediaRow)
                .where(MediaRow.establishment_id == est.id)
                .order_by(MediaRow.type, MediaRow.position)
            )
            .scalars()
            .all()
        )
        document = session.execute(
            select(PartnerDocumentRow).where(
                PartnerDocumentRow.establishment_id == est.id
            )
        ).scalar_one_or_none()
        primary = next((m.url for m in media if m.is_primary), None)
        details = serialize_summary(est, primary_image_url=primary)
        details.update(
            {
                "email": est.email,
                "special_hours": est.special_hours,
                "view_count": est.view_count,
                "moderation_notes": est.moderation_notes,
                "moderated_at": iso(est.moderated_at),
                "published_at": iso(est.published_at),
                "suspended_by": est.suspended_by,
                "primary_photo": primary,
                "interior_photos": [m.url for m in media if m.type == "interior"],
                "menu_photos": [m.url for m in media if m.type == "menu"],
                "media": [serialize_media(m) for m in media],
                "rating_distribution": rating_distribution(session, est.id),
                "legal_name": document.company_name if document else None,
                "unp": document.tax_id if document else None,
                "contact_person": document.contact_person if document else None,
                "contact_email": document.contact_email if document else None,
            }
        )
        return details

    def get_for_partner(self, partner_id: str, establishment_id: str) -> dict:
        with self.db.Session() as session:
            est = session.get(EstablishmentRow, establishment_id)
            if not est or est.partner_id != partner_id:
                raise AppError("Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND")
            return self._details(session, est)

    def update(self, partner_id: str, establishment_id: str, data: dict) -> dict:
        # Status is owned by the moderation flow, never by the partner payload.
        data = {k: v for k, v in data.items() if k != "status"}
        with self.db.Session() as session:
            est = self._owned(session, partner_id, establishment_id)
            if est.status == STATUS_SUSPENDED:
                raise AppError(
                    "Suspended establishments cannot be edited",
                    403,
                    "ESTABLISHMENT_SUSPENDED",
                )
            validate_fields(data, current=est)
            if data.get("name"):
                self._check_duplicate_name(session, partner_id, data["name"], est.id)

            major_change = any(
                field in data and data[field] != getattr(est, field)
                for field in MAJOR_FIELDS
            )
            _apply_fields(est, data)
            photo_fields = ("interior_photos", "menu_photos", "primary_photo")
            if any(key in data for key in photo_fields):
                primary = data.get("primary_photo", _current_primary(session, est.id))
                for media_type in ("interior", "menu"):
                    key = f"{media_type}_photos"
                    if key in data:
                        _sync_photos(session, est.id, media_type, data[key] or [])
                session.flush()
                _set_primary(session, est.id, primary)
            _upsert_documents(session, est, data)

            if est.status == STATUS_ACTIVE and major_change:
                est.status = STATUS_PENDING
                logger.info(
                    "Establishment %s returned to moderation after a major change", est.id
                )
            session.commit()
            return self._details(session, est)

    def submit(self, partner_id: str, establishment_id: str) -> dict:
        with self.db.Session() as session:
            est = self._owned(session, partner_id, establishment_id)
            if est.status not in (STATUS_DRAFT, STATUS_REJECTED):
                raise AppError(
                    f"Only draft or rejected establishments can be submitted (current: {est.status})",
                    400,
                    "INVALID_STATUS_FOR_SUBMISSION",
                )
            missing = [
                field
                for field in REQUIRED_FOR_SUBMISSION
                if getattr(est, field) in (None, "", [], {})
            ]
            if missing:
                raise AppError(
                    "Establishment is missing required fields",
                    400,
                    "INCOMPLETE_ESTABLISHMENT",
                    {"missing_fields": missing},
                )
            est.status = STATUS_PENDING
            session.commit()
            logger.info("Establishment %s submitted for moderation", est.id)
            return {"id": est.id, "name": est.name, "status": est.status}

    def suspend(self, partner_id: str, establishment_id: str) -> dict:
        with self.db.Session() as session:
            est = self._owned(session, partner_id, establishment_id)
            if est.status != STATUS_ACTIVE:
                raise AppError(
                    "Only active establishments can be paused",
                    400,
                    "INVALID_STATUS_FOR_SUSPEND",
                )
            est.status = STATUS_SUSPENDED
            est.suspended_by = "partner"
            session.commit()
            return {"id": est.id, "name": est.name, "status": est.status}

    def resume(self, partner_id: str, establishment_id: str) -> dict:
        with self.db.Session() as session:
            est = self._owned(session, partner_id, establishment_id)
            if est.status != STATUS_SUSPENDED:
                raise AppError(
                    "Only paused establishments can be resumed",
                    400,
                    "INVALID_STATUS_FOR_RESUME",
                )
            if est.suspended_by != "partner":
                raise AppError(
                    "Establishment was suspended by moderation",
                    403,
                    "ESTABLISHMENT_SUSPENDED",
                )
            est.status = STATUS_PENDING
            est.suspended_by = None
            session.commit()
            return {"id": est.id, "name": est.name, "status": est.status}

    def delete(self, partner_id: str, establishment_id: str) -> dict:
        with self.db.Session() as session:
            est = self._owned(session, partner_id, establishment_id)
            result = {"id": est.id, "name": est.name}
            for model in (MediaRow, PartnerDocumentRow, ReviewRow, FavoriteRow):
                session.execute(delete(model).where(model.establishment_id == est.id))
            session.delete(est)
            session.commit()
            logger.info("Establishment %s deleted by %s", est.id, partner_id)
            return result

