"""
Reviews: creation with a daily quota, author edits, soft deletes, partner
responses and per-establishment listings.

Establishment aggregates (``average_rating``, ``review_count``) are always
recomputed from visible, non-deleted reviews after a change.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select

from restoguide.config import Settings
from restoguide.constants import STATUS_ACTIVE
from restoguide.counters import CounterStore
from restoguide.db import Database, EstablishmentRow, ReviewRow, UserRow, utcnow
from restoguide.errors import AppError
from restoguide.services import clamp, iso, page_meta

logger = logging.getLogger(__name__)

REVIEW_SORTS = {
    "newest": (ReviewRow.created_at.desc(),),
    "highest": (ReviewRow.rating.desc(), ReviewRow.created_at.desc()),
    "lowest": (ReviewRow.rating.asc(), ReviewRow.created_at.desc()),
}


def quota_key(user_id: str) -> str:
    return f"reviews:ratelimit:{user_id}"


def recompute_aggregates(session, establishment_id: str) -> None:
    average, count = session.execute(
        select(func.avg(ReviewRow.rating), func.count(ReviewRow.id)).where(
            ReviewRow.establishment_id == establishment_id,
            ReviewRow.is_deleted.is_(False),
            ReviewRow.is_visible.is_(True),
        )
    ).one()
    est = session.get(EstablishmentRow, establishment_id)
    if est:
        est.average_rating = round(float(average), 2) if average is not None else 0.0
        est.review_count = count or 0


def serialize_review(
    review: ReviewRow,
    author: Optional[UserRow] = None,
    establishment: Optional[EstablishmentRow] = None,
) -> dict:
    data = {
        "id": review.id,
        "user_id": review.user_id,
        "establishment_id": review.establishment_id,
        "rating": review.rating,
        "content": review.content,
        "is_visible": review.is_visible,
        "is_deleted": review.is_deleted,
        "is_edited": review.is_edited,
        "partner_response": review.partner_response,
        "partner_response_at": iso(review.partner_response_at),
        "partner_responder_id": review.partner_responder_id,
        "created_at": iso(review.created_at),
        "updated_at": iso(review.updated_at),
    }
    if author is not None:
        data["author"] = {
            "id": author.id,
            "name": author.name,
            "avatar_url": author.avatar_url,
        }
    if establishment is not None:
        data["establishment"] = {
            "id": establishment.id,
            "name": establishment.name,
            "city": establishment.city,
        }
    return data


class ReviewService:
    def __init__(self, db: Database, counters: CounterStore, settings: Settings):
        self.db = db
        self.counters = counters
        self.settings = settings

    def quota(self, user_id: str) -> dict:
        limit = self.settings.review_daily_limit
        try:
            used = self.counters.get(quota_key(user_id))
            ttl = self.counters.ttl(quota_key(user_id))
        except Exception:
            logger.exception("Review quota store unavailable; treating quota as unused")
            used, ttl = 0, 0
        return {
            "limit": limit,
            "used": used,
            "remaining": max(0, limit - used),
            "resetIn": ttl if ttl > 0 else 0,
        }

    def create(self, user_id: str, establishment_id: str, rating: int, content: str) -> dict:
        with self.db.Session() as session:
            user = session.get(UserRow, user_id)
            if not user:
                raise AppError("User not found", 404, "USER_NOT_FOUND")
            if not user.is_active:
                raise AppError("User account is inactive", 403, "USER_INACTIVE")
            est = session.get(EstablishmentRow, establishment_id)
            if not est or est.status != STATUS_ACTIVE:
                raise AppError(
                    "Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND"
                )
            quota = self.quota(user_id)
            if quota["remaining"] <= 0:
                raise AppError(
                    "Daily review limit reached",
                    429,
                    "RATE_LIMIT_EXCEEDED",
                    {"limit": quota["limit"], "retry_after": quota["resetIn"]},
                )
            duplicate = session.execute(
                select(ReviewRow.id).where(
                    ReviewRow.user_id == user_id,
                    ReviewRow.establishment_id == establishment_id,
                    ReviewRow.is_deleted.is_(False),
                )
            ).first()
            if duplicate:
                raise AppError(
                    "You have already reviewed this establishment",
                    409,
                    "DUPLICATE_REVIEW",
                )
            review = ReviewRow(
                user_id=user_id,
                establishment_id=establishment_id,
                rating=rating,
                content=content.strip(),
            )
            session.add(review)
            session.flush()
            recompute_aggregates(session, establishment_id)
            session.commit()
        try:
            self.counters.incr(quota_key(user_id), self.settings.review_limit_window_seconds)
        except Exception:
            logger.exception("Could not count review %s against the daily quota", review.id)
        logger.info("Review %s created for %s", review.id, establishment_id)
        return serialize_review(review, author=user)

    def _live_review(self, session, review_id: str) -> ReviewRow:
        review = session.get(ReviewRow, review_id)
        if not review or review.is_deleted:
            raise AppError("Review not found", 404, "REVIEW_NOT_FOUND")
        return review

    def get(self, review_id: str) -> dict:
        with self.db.Session() as session:
            review = self._live_review(session, review_id)
            author = session.get(UserRow, review.user_id)
            est = session.get(EstablishmentRow, review.establishment_id)
            return serialize_review(review, author=author, establishment=est)

    def update(
        self,
        user_id: str,
        review_id: str,
        *,
        rating: Optional[int] = None,
        content: Optional[str] = None,
    ) -> dict:
        if rating is None and content is None:
            raise AppError(
                "At least one field (rating or content) must be provided",
                400,
                "NO_UPDATE_FIELDS",
            )
        with self.db.Session() as session:
            review = self._live_review(session, review_id)
            if review.user_id != user_id:
                raise AppError(
                    "You can only edit your own reviews",
                    403,
                    "UNAUTHORIZED_REVIEW_MODIFICATION",
                )
            rating_changed = rating is not None and rating != review.rating
            if rating is not None:
                review.rating = rating
            if content is not None:
                review.content = content.strip()
            review.is_edited = True
            session.flush()
            if rating_changed:
                recompute_aggregates(session, review.establishment_id)
            session.commit()
            return serialize_review(review)

    def delete(self, user_id: str, review_id: str) -> dict:
        with self.db.Session() as session:
            review = self._live_review(session, review_id)
            if review.user_id != user_id:
                raise AppError(
                    "You can only delete your own reviews",
                    403,
                    "UNAUTHORIZED_REVIEW_DELETION",
                )
            review.is_deleted = True
            session.flush()
            recompute_aggregates(session, review.establishment_id)
            session.commit()
            return {"id": review.id}

    def _partner_review(self, session, partner_id: str, review_id: str) -> ReviewRow:
        review = self._live_review(session, review_id)
        est = session.get(EstablishmentRow, review.establishment_id)
        if not est or est.partner_id != partner_id:
            raise AppError(
                "Only the establishment owner can respond to this review",
                403,
                "UNAUTHORIZED_PARTNER_RESPONSE",
            )
        return review

    def respond(self, partner_id: str, review_id: str, text: str) -> dict:
        with self.db.Session() as session:
            review = self._partner_review(session, partner_id, review_id)
            review.partner_response = text.strip()
            review.partner_response_at = utcnow()
            review.partner_responder_id = partner_id
            session.commit()
            return serialize_review(review)

    def delete_response(self, partner_id: str, review_id: str) -> dict:
        with self.db.Session() as session:
            review = self._partner_review(session, partner_id, review_id)
            review.partner_response = None
            review.partner_response_at = None
            review.partner_responder_id = None
            session.commit()
            return serialize_review(review)

    def list_for_establishment(
        self,
        establishment_id: str,
        *,
        page: int = 1,
        limit: int = 10,
        sort: str = "newest",
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> dict:
        conditions = [
            ReviewRow.establishment_id == establishment_id,
            ReviewRow.is_deleted.is_(False),
            ReviewRow.is_visible.is_(True),
        ]
        if date_from:
            conditions.append(ReviewRow.created_at >= date_from)
        if date_to:
            conditions.append(ReviewRow.created_at <= date_to)
        with self.db.Session() as session:
            if not session.get(EstablishmentRow, establishment_id):
                raise AppError(
                    "Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND"
                )
            return self._list(session, conditions, page, limit, sort, with_author=True)

    def list_for_user(self, user_id: str, *, page: int = 1, limit: int = 10) -> dict:
        conditions = [ReviewRow.user_id == user_id, ReviewRow.is_deleted.is_(False)]
        with self.db.Session() as session:
            return self._list(
                session, conditions, page, limit, "newest", with_establishment=True
            )

    def _list(
        self,
        session,
        conditions: list,
        page: int,
        limit: int,
        sort: str,
        *,
        with_author: bool = False,
        with_establishment: bool = False,
    ) -> dict:
        page = max(1, page)
        limit = clamp(limit, 1, 50)
        total = session.execute(
            select(func.count()).select_from(ReviewRow).where(*conditions)
        ).scalar_one()
        rows = session.execute(
            select(ReviewRow, UserRow, EstablishmentRow)
            .join(UserRow, UserRow.id == ReviewRow.user_id)
            .join(EstablishmentRow, EstablishmentRow.id == ReviewRow.establishment_id)
            .where(*conditions)
            .order_by(*REVIEW_SORTS.get(sort, REVIEW_SORTS["newest"]))
            .limit(limit)
            .offset((page - 1) * limit)
        ).all()
        reviews = [
            serialize_review(
                review,
                author=author if with_author else None,
                establishment=est if with_establishment else None,
            )
            for review, author, est in rows
        ]
        return {"reviews": reviews, "pagination": page_meta(total, page, limit)}
