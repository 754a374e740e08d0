"""
Business logic for the API, one module per feature area.

Services receive a ``Database`` and return plain dicts ready for the
response envelope; they raise ``AppError`` for expected failures.
"""

from __future__ import annotations

import math
from datetime import datetime


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def page_meta(total: int, page: int, limit: int) -> dict:
    pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": pages,
        "hasNext": page < pages,
        "hasPrevious": page > 1,
    }


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))
