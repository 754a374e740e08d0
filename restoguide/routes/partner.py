"""
Partner routes: establishment management and media uploads.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from restoguide.db import Database
from restoguide.dependencies import (
    CurrentUser,
    get_database,
    get_storage_client,
    require_roles,
)
from restoguide.errors import ok
from restoguide.schemas import EstablishmentCreate, EstablishmentUpdate, MediaUpdate
from restoguide.services.establishments import EstablishmentService
from restoguide.services.media import MediaService
from restoguide.storage import StorageClient

router = APIRouter(prefix="/partner", tags=["partner"])

partner_only = require_roles("partner")
user_or_partner = require_roles("user", "partner")


def get_establishment_service(db: Database = Depends(get_database)) -> EstablishmentService:
    return EstablishmentService(db)


def get_media_service(
    db: Database = Depends(get_database),
    storage: StorageClient = Depends(get_storage_client),
) -> MediaService:
    return MediaService(db, storage)


@router.post("/establishments", status_code=201)
def create_establishment(
    payload: EstablishmentCreate,
    user: CurrentUser = Depends(user_or_partner),
    service: EstablishmentService = Depends(get_establishment_service),
):
    result = service.create(user.id, payload.model_dump(exclude_unset=True))
    return ok(result, "Establishment created successfully")


@router.get("/establishments")
def list_establishments(
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    user: CurrentUser = Depends(partner_only),
    service: EstablishmentService = Depends(get_establishment_service),
):
    return ok(service.list_for_partner(user.id, status=status, page=page, limit=limit))


@router.get("/establishments/{establishment_id}")
def get_establishment(
    establishment_id: str,
    user: CurrentUser = Depends(partner_only),
    service: EstablishmentService = Depends(get_establishment_service),
):
    return ok({"establishment": service.get_for_partner(user.id, establishment_id)})


@router.put("/establishments/{establishment_id}")
def update_establishment(
    establishment_id: str,
    payload: EstablishmentUpdate,
    user: CurrentUser = Depends(partner_only),
    service: EstablishmentService = Depends(get_establishment_service),
):
    establishment = service.update(
        user.id, establishment_id, payload.model_dump(exclude_unset=True)
    )
    return ok({"establishment": establishment}, "Establishment updated successfully")


@router.post("/establishments/{establishment_id}/submit")
def submit_establishment(
    establishment_id: str,
    user: CurrentUser = Depends(partner_only),
    service: EstablishmentService = Depends(get_establishment_service),
):
    return ok(
        {"establishment": service.submit(user.id, establishment_id)},
        "Establishment submitted for moderation",
    )


@router.post("/establishments/{establishment_id}/suspend")
def pause_establishment(
    establishment_id: str,
    user: CurrentUser = Depends(partner_only),
    service: EstablishmentService = Depends(get_establishment_service),
):
    return ok({"establishment": service.suspend(user.id, establishment_id)})


@router.post("/establishments/{establishment_id}/resume")
def resume_establishment(
    establishment_id: str,
    user: CurrentUser = Depends(partner_only),
    service: EstablishmentService = Depends(get_establishment_service),
):
    return ok({"establishment": service.resume(user.id, establishment_id)})


@router.delete("/establishments/{establishment_id}")
def delete_establishment(
    establishment_id: str,
    user: CurrentUser = Depends(partner_only),
    service: EstablishmentService = Depends(get_establishment_service),
):
    return ok(service.delete(user.id, establishment_id), "Establishment deleted")


@router.post("/media/upload", status_code=201)
async def upload_wizard_photo(
    file: UploadFile = File(...),
    user: CurrentUser = Depends(user_or_partner),
    service: MediaService = Depends(get_media_service),
):
    data = await file.read()
    return ok(service.upload_temporary(user.id, file.content_type, data))


@router.post("/establishments/{establishment_id}/media", status_code=201)
async def upload_media(
    establishment_id: str,
    file: UploadFile = File(...),
    type: str = Form(...),
    caption: Optional[str] = Form(default=None),
    is_primary: bool = Form(default=False),
    user: CurrentUser = Depends(partner_only),
    service: MediaService = Depends(get_media_service),
):
    data = await file.read()
    media = service.upload(
        user.id,
        establishment_id,
        media_type=type,
        content_type=file.content_type,
        data=data,
        caption=caption,
        is_primary=is_primary,
    )
    return ok({"media": media}, "Media uploaded successfully")


@router.get("/establishments/{establishment_id}/media")
def list_media(
    establishment_id: str,
    type: Optional[str] = None,
    user: CurrentUser = Depends(partner_only),
    service: MediaService = Depends(get_media_service),
):
    return ok({"media": service.list_media(user.id, establishment_id, type)})


@router.put("/establishments/{establishment_id}/media/{media_id}")
def update_media(
    establishment_id: str,
    media_id: str,
    payload: MediaUpdate,
    user: CurrentUser = Depends(partner_only),
    service: MediaService = Depends(get_media_service),
):
    media = service.update(
        user.id,
        establishment_id,
        media_id,
        caption=payload.caption,
        position=payload.position,
        is_primary=payload.is_primary,
    )
    return ok({"media": media})


@router.delete("/establishments/{establishment_id}/media/{media_id}")
def delete_media(
    establishment_id: str,
    media_id: str,
    user: CurrentUser = Depends(partner_only),
    service: MediaService = Depends(get_media_service),
):
    return ok(service.delete(user.id, establishment_id, media_id), "Media deleted")
