"""
Establishment discovery: radius search, map-bounds search and details.

Filters are composed into one SQLAlchemy WHERE clause. Distances come from
PostGIS on Postgres and from a registered haversine function on SQLite.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import String, Text, and_, cast, func, or_, select, type_coerce, update
from sqlalchemy.dialects import postgresql

from restoguide.constants import CATEGORIES, CUISINES, STATUS_ACTIVE
from restoguide.db import Database, EstablishmentRow, MediaRow
from restoguide.errors import AppError
from restoguide.services import iso

logger = logging.getLogger(__name__)

# Everyday words people type, mapped to the categories and cuisines they mean.
SYNONYMS: dict[str, dict[str, list[str]]] = {
    "пицц": {"categories": ["Пиццерия"], "cuisines": ["Итальянская"]},
    "pizza": {"categories": ["Пиццерия"], "cuisines": ["Итальянская"]},
    "паст": {"cuisines": ["Итальянская"]},
    "суши": {"cuisines": ["Японская", "Азиатская"]},
    "sushi": {"cuisines": ["Японская", "Азиатская"]},
    "ролл": {"cuisines": ["Японская", "Азиатская"]},
    "рамен": {"cuisines": ["Японская", "Азиатская"]},
    "вок": {"cuisines": ["Азиатская"]},
    "кофе": {"categories": ["Кофейня"]},
    "coffee": {"categories": ["Кофейня"]},
    "кафе": {"categories": ["Кофейня", "Ресторан"]},
    "пив": {"categories": ["Паб", "Бар"]},
    "beer": {"categories": ["Паб", "Бар"]},
    "коктейл": {"categories": ["Бар"]},
    "бургер": {"categories": ["Фаст-фуд"], "cuisines": ["Американская"]},
    "burger": {"categories": ["Фаст-фуд"], "cuisines": ["Американская"]},
    "шаурм": {"categories": ["Фаст-фуд"]},
    "торт": {"categories": ["Кондитерская"]},
    "десерт": {"categories": ["Кондитерская"]},
    "пирож": {"categories": ["Пекарня", "Кондитерская"]},
    "хлеб": {"categories": ["Пекарня"]},
    "хинкал": {"cuisines": ["Грузинская"]},
    "хачапур": {"cuisines": ["Грузинская"]},
    "драник": {"cuisines": ["Народная"]},
    "белорус": {"cuisines": ["Народная"]},
    "веган": {"cuisines": ["Вегетарианская"]},
    "кальян": {"categories": ["Кальянная"]},
    "обед": {"categories": ["Столовая"]},
}

_TERM_RE = re.compile(r"[\w'-]+", re.UNICODE)
MIN_TERM_LENGTH = 2


@dataclass
class SearchTerms:
    text: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    cuisines: list[str] = field(default_factory=list)


def expand_search_terms(query: Optional[str]) -> SearchTerms:
    """
    Split a free-text query into lowercase terms and expand each through the
    synonym table and the category/cuisine names it is a prefix of.
    """
    terms = SearchTerms()
    if not query:
        return terms
    for raw in _TERM_RE.findall(query.lower()):
        term = raw.strip("-'")
        if len(term) < MIN_TERM_LENGTH or term in terms.text:
            continue
        terms.text.append(term)
        for stem, targets in SYNONYMS.items():
            if term.startswith(stem) or (len(term) >= 3 and stem.startswith(term)):
                _extend_unique(terms.categories, targets.get("categories", []))
                _extend_unique(terms.cuisines, targets.get("cuisines", []))
        if len(term) >= 3:
            _extend_unique(
                terms.categories, [c for c in CATEGORIES if c.lower().startswith(term)]
            )
            _extend_unique(
                terms.cuisines, [c for c in CUISINES if c.lower().startswith(term)]
            )
    return terms


def _extend_unique(target: list[str], values: list[str]) -> None:
    for value in values:
        if value not in target:
            target.append(value)


def json_array_overlap(db: Database, column, values: list[str]):
    """Row matches when the JSON array column shares any value with ``values``."""
    if db.dialect == "postgresql":
        return type_coerce(column, postgresql.JSONB).op("?|")(
            postgresql.array(values, type_=Text)
        )
    return or_(*[cast(column, String).like(f"%{json.dumps(v)}%") for v in values])


def json_array_contains_all(db: Database, column, key: str, values: list[str]):
    if db.dialect == "postgresql":
        return type_coerce(column, postgresql.JSONB)[key].op("?&")(
            postgresql.array(values, type_=Text)
        )
    return and_(*[cast(column, String).like(f"%{json.dumps(v)}%") for v in values])


@dataclass
class SearchFilters:
    city: Optional[str] = None
    categories: list[str] = field(default_factory=list)
    cuisines: list[str] = field(default_factory=list)
    price_ranges: list[str] = field(default_factory=list)
    min_rating: Optional[float] = None
    features: list[str] = field(default_factory=list)
    hours_filter: Optional[str] = None
    search: Optional[str] = None


def build_conditions(db: Database, filters: SearchFilters) -> list:
    est = EstablishmentRow
    conditions = [est.status == STATUS_ACTIVE]
    if filters.city:
        conditions.append(est.city == filters.city)
    if filters.categories:
        conditions.append(json_array_overlap(db, est.categories, filters.categories))
    if filters.cuisines:
        conditions.append(json_array_overlap(db, est.cuisines, filters.cuisines))
    if filters.price_ranges:
        conditions.append(est.price_range.in_(filters.price_ranges))
    if filters.min_rating:
        conditions.append(est.average_rating >= filters.min_rating)
    if filters.features:
        conditions.append(
            json_array_contains_all(db, est.attributes, "features", filters.features)
        )
    if filters.hours_filter == "24_hours":
        conditions.append(est.is_24_hours.is_(True))
    elif filters.hours_filter == "until_22":
        conditions.append(est.closes_late.is_(True))
    elif filters.hours_filter == "until_morning":
        conditions.append(est.open_overnight.is_(True))
    if filters.search:
        terms = expand_search_terms(filters.search)
        alternatives = []
        for term in terms.text:
            alternatives.append(func.lower(est.name).contains(term, autoescape=True))
            alternatives.append(
                func.lower(est.description).contains(term, autoescape=True)
            )
        if terms.categories:
            alternatives.append(json_array_overlap(db, est.categories, terms.categories))
        if terms.cuisines:
            alternatives.append(json_array_overlap(db, est.cuisines, terms.cuisines))
        if alternatives:
            conditions.append(or_(*alternatives))
    return conditions


def serialize_summary(
    est: EstablishmentRow,
    *,
    distance_km: Optional[float] = None,
    primary_image_url: Optional[str] = None,
) -> dict:
    distance = round(float(distance_km), 3) if distance_km is not None else None
    return {
        "id": est.id,
        "partner_id": est.partner_id,
        "name": est.name,
        "description": est.description,
        "city": est.city,
        "address": est.address,
        "latitude": est.latitude,
        "longitude": est.longitude,
        "phone": est.phone,
        "website": est.website,
        "categories": est.categories or [],
        "cuisines": est.cuisines or [],
        "price_range": est.price_range,
        "working_hours": est.working_hours,
        "attributes": est.attributes or {},
        "is_24_hours": est.is_24_hours,
        "status": est.status,
        "average_rating": float(est.average_rating or 0),
        "review_count": est.review_count or 0,
        "favorite_count": est.favorite_count or 0,
        "subscription_tier": est.subscription_tier,
        "primary_image_url": primary_image_url,
        "distance": distance,
        "distance_km": distance,
        "created_at": iso(est.created_at),
        "updated_at": iso(est.updated_at),
    }


def primary_images(session, establishment_ids: list[str]) -> dict[str, str]:
    if not establishment_ids:
        return {}
    rows = session.execute(
        select(MediaRow.establishment_id, MediaRow.url)
        .where(
            MediaRow.establishment_id.in_(establishment_ids),
            MediaRow.is_primary.is_(True),
        )
        .order_by(MediaRow.position.asc())
    ).all()
    images: dict[str, str] = {}
    for establishment_id, url in rows:
        images.setdefault(establishment_id, url)
    return images


class SearchService:
    def __init__(self, db: Database):
        self.db = db

    def search(
        self,
        filters: SearchFilters,
        *,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: float = 10.0,
        max_distance_m: Optional[float] = None,
        sort_by: Optional[str] = None,
        limit: int = 20,
        page: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> dict:
        if (latitude is None) != (longitude is None):
            raise AppError(
                "Both latitude and longitude must be provided together",
                422,
                "VALIDATION_ERROR",
            )
        if not 0 < radius_km <= 1000:
            raise AppError(
                "Radius must be between 0 and 1000 km", 422, "VALIDATION_ERROR"
            )
        if not 1 <= limit <= 100:
            raise AppError("Limit must be between 1 and 100", 422, "VALIDATION_ERROR")
        if page is not None:
            if page < 1:
                raise AppError("Page must be at least 1", 422, "VALIDATION_ERROR")
            offset = (page - 1) * limit
        elif offset is not None:
            if offset < 0:
                raise AppError(
                    "Offset must be non-negative", 422, "VALIDATION_ERROR"
                )
            page = offset // limit + 1
        else:
            page, offset = 1, 0

        est = EstablishmentRow
        conditions = build_conditions(self.db, filters)
        has_location = latitude is not None
        distance = self.db.distance_km(latitude, longitude) if has_location else None

        if has_location:
            if max_distance_m is not None and max_distance_m > 0:
                conditions.append(distance <= max_distance_m / 1000.0)
            elif not filters.city:
                conditions.append(distance <= radius_km)

        if sort_by is None:
            sort_by = "distance" if has_location and not filters.city else "rating"
        order = self._ordering(sort_by, distance)

        columns = [est, distance.label("distance_km")] if has_location else [est]
        with self.db.Session() as session:
            total = session.execute(
                select(func.count()).select_from(est).where(*conditions)
            ).scalar_one()
            rows = session.execute(
                select(*columns).where(*conditions).order_by(*order).limit(limit).offset(offset)
            ).all()
            images = primary_images(session, [row[0].id for row in rows])

        establishments = [
            serialize_summary(
                row[0],
                distance_km=row[1] if has_location else None,
                primary_image_url=images.get(row[0].id),
            )
            for row in rows
        ]
        total_pages = (total + limit - 1) // limit
        return {
            "establishments": establishments,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": total_pages,
                "hasNext": page < total_pages,
                "hasPrevious": page > 1,
            },
        }

    @staticmethod
    def _ordering(sort_by: str, distance) -> list:
        est = EstablishmentRow
        by_rating = [
            est.average_rating.desc().nulls_last(),
            est.review_count.desc(),
            est.name.asc(),
        ]
        if sort_by == "distance" and distance is not None:
            return [distance.asc(), est.average_rating.desc(), est.review_count.desc()]
        if sort_by == "reviews":
            return [est.review_count.desc(), est.average_rating.desc(), est.name.asc()]
        if sort_by == "newest":
            return [est.created_at.desc(), est.name.asc()]
        return by_rating

    def search_in_bounds(
        self,
        filters: SearchFilters,
        *,
        min_lat: float,
        max_lat: float,
        min_lon: float,
        max_lon: float,
        limit: int = 100,
    ) -> dict:
        if min_lat >= max_lat:
            raise AppError(
                "minLat must be less than maxLat", 422, "VALIDATION_ERROR"
            )
        if min_lon >= max_lon:
            raise AppError(
                "minLon must be less than maxLon", 422, "VALIDATION_ERROR"
            )
        if not 1 <= limit <= 500:
            raise AppError(
                "Limit must be between 1 and 500 for bounds search",
                422,
                "VALIDATION_ERROR",
            )
        est = EstablishmentRow
        conditions = build_conditions(self.db, filters) + [
            est.latitude.between(min_lat, max_lat),
            est.longitude.between(min_lon, max_lon),
        ]
        with self.db.Session() as session:
            total = session.execute(
                select(func.count()).select_from(est).where(*conditions)
            ).scalar_one()
            rows = (
                session.execute(
                    select(est)
                    .where(*conditions)
                    .order_by(est.average_rating.desc(), est.review_count.desc())
                    .limit(limit)
                )
                .scalars()
                .all()
            )
            images = primary_images(session, [row.id for row in rows])
        return {
            "establishments": [
                serialize_summary(row, primary_image_url=images.get(row.id))
                for row in rows
            ],
            "total": total,
        }

    def get_details(self, establishment_id: str) -> dict:
        with self.db.Session() as session:
            est = session.get(EstablishmentRow, establishment_id)
            if not est or est.status != STATUS_ACTIVE:
                raise AppError("Establishment not found", 404, "NOT_FOUND")
            session.execute(
                update(EstablishmentRow)
                .where(EstablishmentRow.id == establishment_id)
                .values(view_count=EstablishmentRow.view_count + 1)
            )
            session.commit()
            media = (
                session.execute(
                    select(MediaRow)
                    .where(MediaRow.establishment_id == establishment_id)
                    .order_by(MediaRow.is_primary.desc(), MediaRow.position.asc())
                )
                .scalars()
                .all()
            )
        primary = next((m.url for m in media if m.is_primary), None)
        details = serialize_summary(est, primary_image_url=primary)
        details["email"] = est.email
        details["special_hours"] = est.special_hours
        details["published_at"] = iso(est.published_at)
        details["media"] = [serialize_media(m) for m in media]
        return details

    def health(self) -> dict:
        info = self.db.health()
        with self.db.Session() as session:
            info["active_establishments"] = session.execute(
                select(func.count())
                .select_from(EstablishmentRow)
                .where(EstablishmentRow.status == STATUS_ACTIVE)
            ).scalar_one()
        return info


def serialize_media(media: MediaRow) -> dict:
    return {
        "id": media.id,
        "establishment_id": media.establishment_id,
        "type": media.type,
        "url": media.url,
        "thumbnail_url": media.thumbnail_url,
        "preview_url": media.preview_url,
        "caption": media.caption,
        "position": media.position,
        "is_primary": media.is_primary,
        "created_at": iso(media.created_at),
    }
