"""
API routers, mounted together under the versioned prefix.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from restoguide.counters import CounterStore
from restoguide.db import Database
from restoguide.dependencies import get_counter_store, get_database
from restoguide.routes import admin, auth, favorites, partner, reviews, search

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", tags=["health"])
def health(
    db: Database = Depends(get_database),
    counters: CounterStore = Depends(get_counter_store),
):
    checks = {}
    healthy = True
    try:
        checks["database"] = {"status": "up", **db.health()}
    except Exception:
        logger.exception("Database health check failed")
        checks["database"] = {"status": "down"}
        healthy = False
    if counters.ping():
        checks["counters"] = {"status": "up"}
    else:
        checks["counters"] = {"status": "down"}
        healthy = False
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "success": healthy,
            "data": {"status": "healthy" if healthy else "unhealthy", "checks": checks},
        },
    )


router.include_router(auth.router)
router.include_router(search.router)
router.include_router(partner.router)
router.include_router(reviews.router)
router.include_router(favorites.router)
router.include_router(admin.router)
