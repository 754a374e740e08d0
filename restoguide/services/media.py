"""
Photo uploads for establishments and for the partner registration wizard.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select

from restoguide.constants import MEDIA_TYPES
from restoguide.db import Database, EstablishmentRow, MediaRow
from restoguide.errors import AppError
from restoguide.services.search import serialize_media
from restoguide.storage import StorageClient

logger = logging.getLogger(__name__)

ESTABLISHMENT_MEDIA_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}
WIZARD_MEDIA_TYPES = {**ESTABLISHMENT_MEDIA_TYPES, "image/heic": "heic"}
MAX_ESTABLISHMENT_MEDIA_BYTES = 5 * 1024 * 1024
MAX_WIZARD_MEDIA_BYTES = 10 * 1024 * 1024


def _check_file(
    content_type: Optional[str], data: bytes, allowed: dict, max_bytes: int
) -> str:
    if not data:
        raise AppError("No file uploaded", 400, "NO_FILE")
    if content_type not in allowed:
        raise AppError(
            f"Unsupported file type. Allowed: {', '.join(allowed)}",
            400,
            "INVALID_FILE_TYPE",
        )
    if len(data) > max_bytes:
        raise AppError(
            f"File is too large (max {max_bytes // (1024 * 1024)}MB)",
            400,
            "FILE_TOO_LARGE",
        )
    return allowed[content_type]


class MediaService:
    def __init__(self, db: Database, storage: StorageClient):
        self.db = db
        self.storage = storage

    def upload_temporary(
        self, user_id: str, content_type: Optional[str], data: bytes
    ) -> dict:
        ext = _check_file(content_type, data, WIZARD_MEDIA_TYPES, MAX_WIZARD_MEDIA_BYTES)
        path = f"uploads/{user_id}/{uuid.uuid4().hex}.{ext}"
        url = self.storage.upload_bytes(path, data, content_type)
        logger.info("Temporary upload %s by %s (%d bytes)", path, user_id, len(data))
        return {"url": url, "thumbnail_url": url, "preview_url": url}

    def _owned(self, session, partner_id: str, establishment_id: str) -> EstablishmentRow:
        est = session.get(EstablishmentRow, establishment_id)
        if not est:
            raise AppError("Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND")
        if est.partner_id != partner_id:
            raise AppError(
                "You do not have permission to manage this establishment's media",
                403,
                "FORBIDDEN",
            )
        return est

    def upload(
        self,
        partner_id: str,
        establishment_id: str,
        *,
        media_type: str,
        content_type: Optional[str],
        data: bytes,
        caption: Optional[str] = None,
        is_primary: bool = False,
    ) -> dict:
        if media_type not in MEDIA_TYPES:
            raise AppError(
                f"Media type must be one of: {', '.join(MEDIA_TYPES)}",
                400,
                "INVALID_MEDIA_TYPE",
            )
        ext = _check_file(
            content_type, data, ESTABLISHMENT_MEDIA_TYPES, MAX_ESTABLISHMENT_MEDIA_BYTES
        )
        with self.db.Session() as session:
            self._owned(session, partner_id, establishment_id)
            path = f"establishments/{establishment_id}/{media_type}/{uuid.uuid4().hex}.{ext}"
            url = self.storage.upload_bytes(path, data, content_type)
            try:
                media = self._add_media(
                    session, establishment_id, media_type, url, path, caption, is_primary
                )
            except Exception:
                self.storage.delete(path)
                raise
            return serialize_media(media)

    def _add_media(
        self, session, establishment_id, media_type, url, path, caption, is_primary
    ) -> MediaRow:
        position = session.execute(
            select(func.count())
            .select_from(MediaRow)
            .where(
                MediaRow.establishment_id == establishment_id,
                MediaRow.type == media_type,
            )
        ).scalar_one()
        if is_primary:
            self._clear_primary(session, establishment_id)
        media = MediaRow(
            establishment_id=establishment_id,
            type=media_type,
            url=url,
            thumbnail_url=url,
            preview_url=url,
            storage_path=path,
            caption=caption,
            position=position,
            is_primary=is_primary,
        )
        session.add(media)
        session.commit()
        return media

    def list_media(
        self, partner_id: str, establishment_id: str, media_type: Optional[str] = None
    ) -> list[dict]:
        with self.db.Session() as session:
            self._owned(session, partner_id, establishment_id)
            stmt = select(MediaRow).where(MediaRow.establishment_id == establishment_id)
            if media_type:
                stmt = stmt.where(MediaRow.type == media_type)
            rows = session.execute(
                stmt.order_by(MediaRow.type, MediaRow.position)
            ).scalars()
            return [serialize_media(m) for m in rows]

    @staticmethod
    def _clear_primary(session, establishment_id: str) -> None:
        for media in session.execute(
            select(MediaRow).where(
                MediaRow.establishment_id == establishment_id,
                MediaRow.is_primary.is_(True),
            )
        ).scalars():
            media.is_primary = False

    def _get_media(self, session, establishment_id: str, media_id: str) -> MediaRow:
        media = session.get(MediaRow, media_id)
        if not media or media.establishment_id != establishment_id:
            raise AppError("Media not found", 404, "MEDIA_NOT_FOUND")
        return media

    def update(
        self,
        partner_id: str,
        establishment_id: str,
        media_id: str,
        *,
        caption: Optional[str] = None,
        position: Optional[int] = None,
        is_primary: Optional[bool] = None,
    ) -> dict:
        with self.db.Session() as session:
            self._owned(session, partner_id, establishment_id)
            media = self._get_media(session, establishment_id, media_id)
            if caption is not None:
                media.caption = caption
            if position is not None:
                media.position = position
            if is_primary:
                self._clear_primary(session, establishment_id)
                media.is_primary = True
            elif is_primary is False:
                media.is_primary = False
            session.commit()
            return serialize_media(media)

    def delete(self, partner_id: str, establishment_id: str, media_id: str) -> dict:
        with self.db.Session() as session:
            self._owned(session, partner_id, establishment_id)
            media = self._get_media(session, establishment_id, media_id)
            was_primary = media.is_primary
            storage_path = media.storage_path
            session.delete(media)
            session.flush()
            if was_primary:
                successor = session.execute(
                    select(MediaRow)
                    .where(MediaRow.establishment_id == establishment_id)
                    .order_by(MediaRow.type != "interior", MediaRow.position)
                ).scalars().first()
                if successor:
                    successor.is_primary = True
            session.commit()
        if storage_path:
            try:
                self.storage.delete(storage_path)
            except Exception:
                logger.exception("Could not remove stored object %s", storage_path)
        return {"id": media_id}
