"""
Audit trail of administrative actions.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select

from restoguide.db import AuditLogRow, Database, UserRow
from restoguide.services import clamp, iso

logger = logging.getLogger(__name__)


def record(
    session,
    *,
    user_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: Optional[str],
    old_data: Optional[dict] = None,
    new_data: Optional[dict] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuditLogRow:
    """Add an audit entry to an open session; committed with the caller's change."""
    entry = AuditLogRow(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_data=old_data,
        new_data=new_data,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
    )
    session.add(entry)
    logger.info("audit %s %s/%s by %s", action, entity_type, entity_id, user_id)
    return entry


class AuditLogService:
    def __init__(self, db: Database):
        self.db = db

    def list_entries(
        self,
        *,
        page: int = 1,
        per_page: int = 20,
        action: Optional[str] = None,
        entity_type: Optional[str] = None,
        user_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        sort: str = "newest",
        include_metadata: bool = False,
    ) -> dict:
        page = max(1, page)
        per_page = clamp(per_page, 1, 50)
        conditions = []
        if action:
            conditions.append(AuditLogRow.action == action)
        if entity_type:
            conditions.append(AuditLogRow.entity_type == entity_type)
        if user_id:
            conditions.append(AuditLogRow.user_id == user_id)
        if date_from:
            conditions.append(AuditLogRow.created_at >= date_from)
        if date_to:
            conditions.append(AuditLogRow.created_at <= date_to)
        order = (
            AuditLogRow.created_at.asc()
            if sort == "oldest"
            else AuditLogRow.created_at.desc()
        )
        with self.db.Session() as session:
            total = session.execute(
                select(func.count()).select_from(AuditLogRow).where(*conditions)
            ).scalar_one()
            rows = session.execute(
                select(AuditLogRow, UserRow.name, UserRow.email)
                .outerjoin(UserRow, UserRow.id == AuditLogRow.user_id)
                .where(*conditions)
                .order_by(order)
                .limit(per_page)
                .offset((page - 1) * per_page)
            ).all()

        entries = []
        for entry, user_name, user_email in rows:
            item = {
                "id": entry.id,
                "user_id": entry.user_id,
                "user_name": user_name,
                "user_email": user_email,
                "action": entry.action,
                "entity_type": entry.entity_type,
                "entity_id": entry.entity_id,
                "old_data": entry.old_data,
                "new_data": entry.new_data,
                "created_at": iso(entry.created_at),
            }
            if include_metadata:
                item["ip_address"] = entry.ip_address
                item["user_agent"] = entry.user_agent
            entries.append(item)
        pages = (total + per_page - 1) // per_page
        return {
            "entries": entries,
            "meta": {"total": total, "page": page, "per_page": per_page, "pages": pages},
        }
