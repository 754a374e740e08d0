"""
Favorites routes. All of them act on the authenticated user's list.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from restoguide.db import Database
from restoguide.dependencies import CurrentUser, get_current_user, get_database
from restoguide.errors import ok
from restoguide.schemas import FavoriteBatchCheck, FavoriteCreate
from restoguide.services.favorites import FavoriteService

router = APIRouter(prefix="/favorites", tags=["favorites"])


def get_favorite_service(db: Database = Depends(get_database)) -> FavoriteService:
    return FavoriteService(db)


@router.post("", status_code=201)
def add_favorite(
    payload: FavoriteCreate,
    user: CurrentUser = Depends(get_current_user),
    service: FavoriteService = Depends(get_favorite_service),
):
    return ok({"favorite": service.add(user.id, payload.establishment_id)}, "Added to favorites")


@router.get("")
def list_favorites(
    page: int = 1,
    limit: int = 10,
    user: CurrentUser = Depends(get_current_user),
    service: FavoriteService = Depends(get_favorite_service),
):
    return ok(service.list_favorites(user.id, page=page, limit=limit))


@router.get("/stats")
def favorite_stats(
    user: CurrentUser = Depends(get_current_user),
    service: FavoriteService = Depends(get_favorite_service),
):
    return ok(service.stats(user.id))


@router.get("/check/{establishment_id}")
def check_favorite(
    establishment_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: FavoriteService = Depends(get_favorite_service),
):
    return ok(service.is_favorite(user.id, establishment_id))


@router.post("/check-batch")
def check_favorites_batch(
    payload: FavoriteBatchCheck,
    user: CurrentUser = Depends(get_current_user),
    service: FavoriteService = Depends(get_favorite_service),
):
    return ok(service.check_batch(user.id, payload.establishment_ids))


@router.delete("/{establishment_id}")
def remove_favorite(
    establishment_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: FavoriteService = Depends(get_favorite_service),
):
    return ok(service.remove(user.id, establishment_id), "Removed from favorites")
