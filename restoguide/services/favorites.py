"""
User favorites. Adding and removing are idempotent.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, select

from restoguide.constants import STATUS_ACTIVE
from restoguide.db import Database, EstablishmentRow, FavoriteRow
from restoguide.errors import AppError
from restoguide.services import iso, page_meta
from restoguide.services.search import primary_images

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50
MAX_BATCH_SIZE = 50


def _refresh_favorite_count(session, establishment_id: str) -> None:
    est = session.get(EstablishmentRow, establishment_id)
    if est:
        est.favorite_count = session.execute(
            select(func.count())
            .select_from(FavoriteRow)
            .where(FavoriteRow.establishment_id == establishment_id)
        ).scalar_one()


class FavoriteService:
    def __init__(self, db: Database):
        self.db = db

    def add(self, user_id: str, establishment_id: str) -> dict:
        with self.db.Session() as session:
            est = session.get(EstablishmentRow, establishment_id)
            if not est or est.status != STATUS_ACTIVE:
                raise AppError(
                    "Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND"
                )
            favorite = session.execute(
                select(FavoriteRow).where(
                    FavoriteRow.user_id == user_id,
                    FavoriteRow.establishment_id == establishment_id,
                )
            ).scalar_one_or_none()
            created = favorite is None
            if created:
                favorite = FavoriteRow(user_id=user_id, establishment_id=establishment_id)
                session.add(favorite)
                session.flush()
                _refresh_favorite_count(session, establishment_id)
                session.commit()
            return {
                "id": favorite.id,
                "user_id": user_id,
                "establishment_id": establishment_id,
                "created_at": iso(favorite.created_at),
                "created": created,
            }

    def remove(self, user_id: str, establishment_id: str) -> dict:
        with self.db.Session() as session:
            result = session.execute(
                delete(FavoriteRow).where(
                    FavoriteRow.user_id == user_id,
                    FavoriteRow.establishment_id == establishment_id,
                )
            )
            if result.rowcount:
                _refresh_favorite_count(session, establishment_id)
            session.commit()
            return {"establishment_id": establishment_id, "removed": bool(result.rowcount)}

    def list_favorites(self, user_id: str, *, page: int = 1, limit: int = 10) -> dict:
        if page < 1:
            raise AppError("Page must be a positive integer", 400, "INVALID_PAGE")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise AppError(
                f"Limit must be between 1 and {MAX_PAGE_SIZE}", 400, "INVALID_LIMIT"
            )
        with self.db.Session() as session:
            total = session.execute(
                select(func.count())
                .select_from(FavoriteRow)
                .where(FavoriteRow.user_id == user_id)
            ).scalar_one()
            rows = session.execute(
                select(FavoriteRow, EstablishmentRow)
                .join(EstablishmentRow, EstablishmentRow.id == FavoriteRow.establishment_id)
                .where(FavoriteRow.user_id == user_id)
                .order_by(FavoriteRow.created_at.desc())
                .limit(limit)
                .offset((page - 1) * limit)
            ).all()
            images = primary_images(session, [est.id for _, est in rows])
        favorites = [
            {
                "id": fav.id,
                "establishment_id": est.id,
                "created_at": iso(fav.created_at),
                "establishment_name": est.name,
                "establishment_description": est.description,
                "establishment_city": est.city,
                "establishment_address": est.address,
                "establishment_latitude": est.latitude,
                "establishment_longitude": est.longitude,
                "establishment_categories": est.categories or [],
                "establishment_cuisines": est.cuisines or [],
                "establishment_price_range": est.price_range,
                "establishment_rating": float(est.average_rating or 0),
                "establishment_review_count": est.review_count or 0,
                "establishment_status": est.status,
                "establishment_primary_image": images.get(est.id),
            }
            for fav, est in rows
        ]
        return {"favorites": favorites, "pagination": page_meta(total, page, limit)}

    def is_favorite(self, user_id: str, establishment_id: str) -> dict:
        with self.db.Session() as session:
            found = session.execute(
                select(FavoriteRow.id).where(
                    FavoriteRow.user_id == user_id,
                    FavoriteRow.establishment_id == establishment_id,
                )
            ).first()
        return {"establishment_id": establishment_id, "is_favorite": found is not None}

    def check_batch(self, user_id: str, establishment_ids: list[str]) -> dict:
        if not establishment_ids:
            raise AppError(
                "establishment_ids must be a non-empty array", 400, "INVALID_INPUT"
            )
        if len(establishment_ids) > MAX_BATCH_SIZE:
            raise AppError(
                f"At most {MAX_BATCH_SIZE} establishments can be checked at once",
                400,
                "BATCH_TOO_LARGE",
            )
        with self.db.Session() as session:
            found = set(
                session.execute(
                    select(FavoriteRow.establishment_id).where(
                        FavoriteRow.user_id == user_id,
                        FavoriteRow.establishment_id.in_(establishment_ids),
                    )
                ).scalars()
            )
        return {"favorites": {eid: eid in found for eid in establishment_ids}}

    def stats(self, user_id: str) -> dict:
        with self.db.Session() as session:
            total = session.execute(
                select(func.count())
                .select_from(FavoriteRow)
                .where(FavoriteRow.user_id == user_id)
            ).scalar_one()
        return {"total_favorites": total}
