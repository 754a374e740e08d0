"""
Admin review moderation: filtered listing, hide/show and deletion.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select

from restoguide.db import Database, EstablishmentRow, ReviewRow, UserRow
from restoguide.dependencies import ClientInfo
from restoguide.errors import AppError
from restoguide.services import audit_log, clamp, iso
from restoguide.services.reviews import recompute_aggregates

logger = logging.getLogger(__name__)

ADMIN_REVIEW_SORTS = {
    "newest": (ReviewRow.created_at.desc(),),
    "oldest": (ReviewRow.created_at.asc(),),
    "rating_high": (ReviewRow.rating.desc(), ReviewRow.created_at.desc()),
    "rating_low": (ReviewRow.rating.asc(), ReviewRow.created_at.desc()),
}


def _review_status(review: ReviewRow) -> str:
    if review.is_deleted:
        return "deleted"
    return "visible" if review.is_visible else "hidden"


class AdminReviewService:
    def __init__(self, db: Database):
        self.db = db

    def list_reviews(
        self,
        *,
        page: int = 1,
        per_page: int = 20,
        establishment_id: Optional[str] = None,
        user_id: Optional[str] = None,
        rating: Optional[int] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "newest",
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> dict:
        page = max(1, page)
        per_page = clamp(per_page, 1, 50)
        conditions = []
        if establishment_id:
            conditions.append(ReviewRow.establishment_id == establishment_id)
        if user_id:
            conditions.append(ReviewRow.user_id == user_id)
        if rating:
            conditions.append(ReviewRow.rating == rating)
        if status == "visible":
            conditions += [ReviewRow.is_deleted.is_(False), ReviewRow.is_visible.is_(True)]
        elif status == "hidden":
            conditions += [ReviewRow.is_deleted.is_(False), ReviewRow.is_visible.is_(False)]
        elif status == "deleted":
            conditions.append(ReviewRow.is_deleted.is_(True))
        if search:
            term = search.strip().lower()
            conditions.append(
                or_(
                    func.lower(ReviewRow.content).contains(term, autoescape=True),
                    func.lower(UserRow.name).contains(term, autoescape=True),
                    func.lower(EstablishmentRow.name).contains(term, autoescape=True),
                )
            )
        if date_from:
            conditions.append(ReviewRow.created_at >= date_from)
        if date_to:
            conditions.append(ReviewRow.created_at <= date_to)

        base = (
            select(ReviewRow, UserRow, EstablishmentRow)
            .join(UserRow, UserRow.id == ReviewRow.user_id)
            .join(EstablishmentRow, EstablishmentRow.id == ReviewRow.establishment_id)
            .where(*conditions)
        )
        with self.db.Session() as session:
            total = session.execute(
                select(func.count()).select_from(base.subquery())
            ).scalar_one()
            rows = session.execute(
                base.order_by(*ADMIN_REVIEW_SORTS.get(sort, ADMIN_REVIEW_SORTS["newest"]))
                .limit(per_page)
                .offset((page - 1) * per_page)
            ).all()
        reviews = [
            {
                "id": review.id,
                "rating": review.rating,
                "content": review.content,
                "status": _review_status(review),
                "is_visible": review.is_visible,
                "is_deleted": review.is_deleted,
                "is_edited": review.is_edited,
                "partner_response": review.partner_response,
                "created_at": iso(review.created_at),
                "user_id": user.id,
                "user_name": user.name,
                "user_email": user.email,
                "establishment_id": est.id,
                "establishment_name": est.name,
                "establishment_city": est.city,
            }
            for review, user, est in rows
        ]
        return {
            "reviews": reviews,
            "meta": {
                "total": total,
                "page": page,
                "per_page": per_page,
                "pages": (total + per_page - 1) // per_page,
            },
        }

    def toggle_visibility(self, review_id: str, *, admin_id: str, client: ClientInfo) -> dict:
        with self.db.Session() as session:
            review = session.get(ReviewRow, review_id)
            if not review:
                raise AppError("Review not found", 404, "REVIEW_NOT_FOUND")
            if review.is_deleted:
                raise AppError(
                    "Deleted reviews cannot change visibility",
                    400,
                    "REVIEW_ALREADY_DELETED",
                )
            review.is_visible = not review.is_visible
            session.flush()
            recompute_aggregates(session, review.establishment_id)
            audit_log.record(
                session,
                user_id=admin_id,
                action="review_show" if review.is_visible else "review_hide",
                entity_type="review",
                entity_id=review.id,
                old_data={"is_visible": not review.is_visible},
                new_data={"is_visible": review.is_visible},
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
            session.commit()
            return {"id": review.id, "is_visible": review.is_visible, "status": _review_status(review)}

    def delete(
        self,
        review_id: str,
        *,
        reason: Optional[str],
        admin_id: str,
        client: ClientInfo,
    ) -> dict:
        with self.db.Session() as session:
            review = session.get(ReviewRow, review_id)
            if not review:
                raise AppError("Review not found", 404, "REVIEW_NOT_FOUND")
            if review.is_deleted:
                raise AppError(
                    "Review is already deleted", 400, "REVIEW_ALREADY_DELETED"
                )
            review.is_deleted = True
            session.flush()
            recompute_aggregates(session, review.establishment_id)
            audit_log.record(
                session,
                user_id=admin_id,
                action="review_delete",
                entity_type="review",
                entity_id=review.id,
                old_data={"is_deleted": False, "rating": review.rating},
                new_data={"is_deleted": True, "reason": reason},
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
            session.commit()
            return {"id": review.id, "status": "deleted"}
