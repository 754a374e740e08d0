"""
Public discovery routes: list search, map search and establishment details.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from restoguide.constants import HOURS_FILTERS, PRICE_RANGES
from restoguide.db import Database
from restoguide.dependencies import get_database
from restoguide.errors import AppError, error_response, ok
from restoguide.services.search import SearchFilters, SearchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


def get_search_service(db: Database = Depends(get_database)) -> SearchService:
    return SearchService(db)


def split_list(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_max_distance(value: Optional[str]) -> Optional[float]:
    """Metres; anything unparsable or not positive means no limit."""
    try:
        meters = float(value) if value else None
    except ValueError:
        return None
    if meters is None or not 0 < meters < float("inf"):
        return None
    return meters


def build_filters(
    city: Optional[str] = None,
    categories: Optional[str] = None,
    cuisines: Optional[str] = None,
    price_range: Optional[str] = Query(default=None, alias="priceRange"),
    min_rating: Optional[float] = Query(default=None, alias="minRating", ge=1, le=5),
    features: Optional[str] = None,
    hours_filter: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=200),
) -> SearchFilters:
    if hours_filter and hours_filter not in HOURS_FILTERS:
        raise AppError(
            f"Invalid hours_filter. Must be one of: {', '.join(HOURS_FILTERS)}",
            422,
            "VALIDATION_ERROR",
        )
    price_ranges = split_list(price_range)
    invalid = [p for p in price_ranges if p not in PRICE_RANGES]
    if invalid:
        raise AppError(
            f"Invalid priceRange: {invalid[0]}", 422, "VALIDATION_ERROR"
        )
    return SearchFilters(
        city=city.strip() if city else None,
        categories=split_list(categories),
        cuisines=split_list(cuisines),
        price_ranges=price_ranges,
        min_rating=min_rating,
        features=split_list(features),
        hours_filter=hours_filter,
        search=search.strip() if search and search.strip() else None,
    )


@router.get("/health")
def search_health(service: SearchService = Depends(get_search_service)):
    try:
        info = service.health()
    except Exception as exc:
        logger.exception("Search health check failed")
        return error_response(
            f"Search is unavailable: {exc.__class__.__name__}", 503, "SERVICE_UNAVAILABLE"
        )
    return ok({"status": "healthy", **info})


@router.get("/establishments")
def search_establishments(
    latitude: Optional[float] = Query(default=None, ge=-90, le=90),
    longitude: Optional[float] = Query(default=None, ge=-180, le=180),
    radius: float = 10.0,
    max_distance: Optional[str] = None,
    sort_by: Optional[str] = Query(default=None, pattern="^(distance|rating|reviews|newest)$"),
    limit: int = 20,
    page: Optional[int] = None,
    offset: Optional[int] = None,
    filters: SearchFilters = Depends(build_filters),
    service: SearchService = Depends(get_search_service),
):
    result = service.search(
        filters,
        latitude=latitude,
        longitude=longitude,
        radius_km=radius,
        max_distance_m=parse_max_distance(max_distance),
        sort_by=sort_by,
        limit=limit,
        page=page,
        offset=offset,
    )
    return ok(result)


@router.get("/map")
def search_map(
    min_lat: Optional[float] = Query(default=None, alias="minLat"),
    max_lat: Optional[float] = Query(default=None, alias="maxLat"),
    min_lon: Optional[float] = Query(default=None, alias="minLon"),
    max_lon: Optional[float] = Query(default=None, alias="maxLon"),
    sw_lat: Optional[float] = Query(default=None, alias="swLat"),
    ne_lat: Optional[float] = Query(default=None, alias="neLat"),
    sw_lon: Optional[float] = Query(default=None, alias="swLon"),
    ne_lon: Optional[float] = Query(default=None, alias="neLon"),
    limit: int = 100,
    filters: SearchFilters = Depends(build_filters),
    service: SearchService = Depends(get_search_service),
):
    bounds = {
        "min_lat": min_lat if min_lat is not None else sw_lat,
        "max_lat": max_lat if max_lat is not None else ne_lat,
        "min_lon": min_lon if min_lon is not None else sw_lon,
        "max_lon": max_lon if max_lon is not None else ne_lon,
    }
    missing = [name for name, value in bounds.items() if value is None]
    if missing:
        raise AppError(
            "Map bounds are required (minLat, maxLat, minLon, maxLon)",
            422,
            "VALIDATION_ERROR",
            {"missing": missing},
        )
    return ok(service.search_in_bounds(filters, limit=limit, **bounds))


@router.get("/establishments/{establishment_id}")
def establishment_details(
    establishment_id: str, service: SearchService = Depends(get_search_service)
):
    return ok({"establishment": service.get_details(establishment_id)})
