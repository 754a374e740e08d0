"""
Review routes, including per-establishment and per-user listings.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from restoguide.config import Settings, get_settings
from restoguide.counters import CounterStore
from restoguide.db import Database
from restoguide.dependencies import (
    CurrentUser,
    get_counter_store,
    get_current_user,
    get_database,
    require_roles,
)
from restoguide.errors import ok
from restoguide.schemas import PartnerResponseRequest, ReviewCreate, ReviewUpdate
from restoguide.services.reviews import ReviewService

router = APIRouter(tags=["reviews"])


def get_review_service(
    db: Database = Depends(get_database),
    counters: CounterStore = Depends(get_counter_store),
    settings: Settings = Depends(get_settings),
) -> ReviewService:
    return ReviewService(db, counters, settings)


@router.post("/reviews", status_code=201)
def create_review(
    payload: ReviewCreate,
    user: CurrentUser = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.create(user.id, payload.establishment_id, payload.rating, payload.content)
    return ok({"review": review}, "Review created successfully")


@router.get("/reviews/quota")
def review_quota(
    user: CurrentUser = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    return ok(service.quota(user.id))


@router.get("/reviews/{review_id}")
def get_review(review_id: str, service: ReviewService = Depends(get_review_service)):
    return ok({"review": service.get(review_id)})


@router.put("/reviews/{review_id}")
def update_review(
    review_id: str,
    payload: ReviewUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.update(
        user.id, review_id, rating=payload.rating, content=payload.content
    )
    return ok({"review": review}, "Review updated successfully")


@router.delete("/reviews/{review_id}")
def delete_review(
    review_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    return ok(service.delete(user.id, review_id), "Review deleted successfully")


@router.post("/reviews/{review_id}/response")
def respond_to_review(
    review_id: str,
    payload: PartnerResponseRequest,
    user: CurrentUser = Depends(require_roles("partner")),
    service: ReviewService = Depends(get_review_service),
):
    review = service.respond(user.id, review_id, payload.response)
    return ok({"review": review}, "Response added")


@router.delete("/reviews/{review_id}/response")
def delete_review_response(
    review_id: str,
    user: CurrentUser = Depends(require_roles("partner")),
    service: ReviewService = Depends(get_review_service),
):
    return ok({"review": service.delete_response(user.id, review_id)}, "Response removed")


@router.get("/establishments/{establishment_id}/reviews")
def establishment_reviews(
    establishment_id: str,
    page: int = 1,
    limit: int = 10,
    sort: str = Query(default="newest", pattern="^(newest|highest|lowest)$"),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    service: ReviewService = Depends(get_review_service),
):
    return ok(
        service.list_for_establishment(
            establishment_id,
            page=page,
            limit=limit,
            sort=sort,
            date_from=date_from,
            date_to=date_to,
        )
    )


@router.get("/users/{user_id}/reviews")
def user_reviews(
    user_id: str,
    page: int = 1,
    limit: int = 10,
    service: ReviewService = Depends(get_review_service),
):
    return ok(service.list_for_user(user_id, page=page, limit=limit))
