"""
Partner onboarding wizard and search filter state.

These hold the non-visual state of the mobile client flows so they can be
driven from scripts and tests: the seven-step partner registration wizard,
which ends in a ``POST /partner/establishments`` body, and the search filter
sheet, which maps its selections to ``/search/establishments`` query params.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from restoguide.constants import (
    DISTANCE_OPTIONS_M,
    HOURS_FILTERS,
    MAX_CATEGORIES,
    MAX_CUISINES,
    PRICE_RANGES,
    WEEKDAYS,
)

logger = logging.getLogger(__name__)

STEPS = ["category", "cuisine", "basic_info", "media", "address", "legal_info", "summary"]
MAX_PHOTOS = 20

UNP_RE = re.compile(r"^\d{9}$")
EMAIL_RE = re.compile(r"^[\w\.-]+@[\w\.-]+\.\w+$")
WEEKEND = ("saturday", "sunday")

INCOMPLETE_MESSAGE = "Пожалуйста, заполните все обязательные поля"


def is_valid_unp(value: Optional[str]) -> bool:
    return bool(value) and bool(UNP_RE.match(value))


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and bool(EMAIL_RE.match(value))


@dataclass
class RegistrationData:
    categories: list[str] = field(default_factory=list)
    cuisines: list[str] = field(default_factory=list)
    name: Optional[str] = None
    description: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    price_range: Optional[str] = None
    attributes: list[str] = field(default_factory=list)
    # {"weekdays": {"open", "close"}, "weekends": {...}} or a full per-day dict
    working_hours: Optional[dict] = None
    interior_photos: list[str] = field(default_factory=list)
    menu_photos: list[str] = field(default_factory=list)
    primary_photo: Optional[str] = None
    city: Optional[str] = None
    street: Optional[str] = None
    building: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    legal_name: Optional[str] = None
    unp: Optional[str] = None
    contact_person: Optional[str] = None
    contact_email: Optional[str] = None


def _toggle(values: list[str], value: str, cap: Optional[int] = None) -> bool:
    if value in values:
        values.remove(value)
        return True
    if cap is not None and len(values) >= cap:
        return False
    values.append(value)
    return True


def expand_working_hours(hours: Optional[dict]) -> Optional[dict]:
    """Turn weekday/weekend periods into the per-day structure the API stores."""
    if not hours:
        return None
    if any(day in hours for day in WEEKDAYS):
        return dict(hours)
    expanded = {}
    for day in WEEKDAYS:
        period = hours.get("weekends" if day in WEEKEND else "weekdays")
        if period:
            expanded[day] = {"open": period["open"], "close": period["close"]}
    return expanded or None


class PartnerRegistrationWizard:
    """Step-by-step state for registering an establishment."""

    total_steps = len(STEPS)

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.current_step = 0
        self.max_reached_step = 0
        self.data = RegistrationData()
        self.is_submitting = False
        self.error: Optional[str] = None
        self.result: Any = None

    @property
    def step_name(self) -> str:
        return STEPS[self.current_step]

    @property
    def is_first_step(self) -> bool:
        return self.current_step == 0

    @property
    def is_last_step(self) -> bool:
        return self.current_step == self.total_steps - 1

    # Navigation

    def can_proceed(self) -> bool:
        return self.step_is_valid(self.current_step)

    def next_step(self) -> bool:
        if not self.can_proceed() or self.is_last_step:
            return False
        self.current_step += 1
        self.max_reached_step = max(self.max_reached_step, self.current_step)
        self.error = None
        return True

    def previous_step(self) -> bool:
        if self.is_first_step:
            return False
        self.current_step -= 1
        self.error = None
        return True

    def go_to_step(self, step: int) -> bool:
        if not 0 <= step <= self.max_reached_step:
            return False
        self.current_step = step
        self.error = None
        return True

    # Validation

    def step_is_valid(self, step: int) -> bool:
        checks = [
            self._category_valid,
            self._cuisine_valid,
            self._basic_info_valid,
            self._media_valid,
            self._address_valid,
            self._legal_info_valid,
            self._all_valid,
        ]
        if not 0 <= step < len(checks):
            return False
        return checks[step]()

    def _category_valid(self) -> bool:
        return 1 <= len(self.data.categories) <= MAX_CATEGORIES

    def _cuisine_valid(self) -> bool:
        return 1 <= len(self.data.cuisines) <= MAX_CUISINES

    def _basic_info_valid(self) -> bool:
        name = (self.data.name or "").strip()
        description = self.data.description or ""
        phone = self.data.phone or ""
        return (
            len(name) >= 2
            and (not description or len(description) >= 5)
            and (not phone or len(phone) >= 5)
            and bool(self.data.price_range)
        )

    def _media_valid(self) -> bool:
        return (
            bool(self.data.interior_photos)
            and bool(self.data.menu_photos)
            and self.data.primary_photo is not None
        )

    def _address_valid(self) -> bool:
        return all(
            (value or "").strip()
            for value in (self.data.city, self.data.street, self.data.building)
        )

    def _legal_info_valid(self) -> bool:
        return (
            bool((self.data.legal_name or "").strip())
            and is_valid_unp(self.data.unp)
            and bool((self.data.contact_person or "").strip())
            and is_valid_email(self.data.contact_email)
        )

    def _all_valid(self) -> bool:
        return all(self.step_is_valid(step) for step in range(self.total_steps - 1))

    # Selections

    def toggle_category(self, category: str) -> bool:
        return _toggle(self.data.categories, category, MAX_CATEGORIES)

    def toggle_cuisine(self, cuisine: str) -> bool:
        return _toggle(self.data.cuisines, cuisine, MAX_CUISINES)

    def toggle_attribute(self, attribute: str) -> bool:
        return _toggle(self.data.attributes, attribute)

    def update(self, **fields) -> None:
        for name, value in fields.items():
            if not hasattr(self.data, name):
                raise AttributeError(f"Unknown registration field '{name}'")
            if value is not None:
                setattr(self.data, name, value)

    # Photos

    def add_interior_photo(self, url: str) -> bool:
        if len(self.data.interior_photos) >= MAX_PHOTOS:
            return False
        self.data.interior_photos.append(url)
        if self.data.primary_photo is None:
            self.data.primary_photo = url
        return True

    def remove_interior_photo(self, url: str) -> None:
        if url in self.data.interior_photos:
            self.data.interior_photos.remove(url)
        if self.data.primary_photo == url:
            photos = self.data.interior_photos
            self.data.primary_photo = photos[0] if photos else None

    def add_menu_photo(self, url: str) -> bool:
        if len(self.data.menu_photos) >= MAX_PHOTOS:
            return False
        self.data.menu_photos.append(url)
        return True

    def remove_menu_photo(self, url: str) -> None:
        if url in self.data.menu_photos:
            self.data.menu_photos.remove(url)

    def set_primary_photo(self, url: str) -> None:
        self.data.primary_photo = url

    # Submission

    def to_payload(self) -> dict:
        data = self.data
        address = ", ".join(
            part.strip() for part in (data.street, data.building) if part and part.strip()
        )
        payload = {
            "name": (data.name or "").strip(),
            "description": data.description or None,
            "city": data.city,
            "address": address,
            "latitude": data.latitude,
            "longitude": data.longitude,
            "phone": data.phone or None,
            "email": data.email or None,
            "categories": list(data.categories),
            "cuisines": list(data.cuisines),
            "price_range": data.price_range,
            "features": list(data.attributes),
            "primary_photo": data.primary_photo,
            "interior_photos": list(data.interior_photos),
            "menu_photos": list(data.menu_photos),
            "legal_name": data.legal_name,
            "unp": data.unp,
            "contact_person": data.contact_person,
            "contact_email": data.contact_email,
        }
        working_hours = expand_working_hours(data.working_hours)
        if working_hours:
            payload["working_hours"] = working_hours
        return payload

    def submit(self, create: Callable[[dict], Any]) -> bool:
        """
        Send the collected data through ``create`` (for example a function
        posting to the partner API). Failures are kept in ``error``.
        """
        if not self._all_valid():
            self.error = INCOMPLETE_MESSAGE
            return False
        self.is_submitting = True
        self.error = None
        try:
            self.result = create(self.to_payload())
        except Exception as exc:
            logger.warning("Establishment registration failed: %s", exc)
            self.error = f"Ошибка при отправке: {exc}"
            return False
        finally:
            self.is_submitting = False
        return True


def distance_to_meters(option: Optional[int]) -> Optional[int]:
    if option not in DISTANCE_OPTIONS_M:
        raise ValueError(f"Unsupported distance option: {option}")
    return option


@dataclass
class SearchFilterState:
    """Selections from the search filter sheet."""

    distance_m: Optional[int] = None
    price_ranges: list[str] = field(default_factory=list)
    min_rating: Optional[float] = None
    hours_filter: Optional[str] = None
    categories: list[str] = field(default_factory=list)
    cuisines: list[str] = field(default_factory=list)
    features: list[str] = field(default_factory=list)

    @property
    def active_count(self) -> int:
        return (
            (self.distance_m is not None)
            + len(self.price_ranges)
            + (self.min_rating is not None)
            + (self.hours_filter is not None)
            + len(self.categories)
            + len(self.cuisines)
            + len(self.features)
        )

    def to_query_params(self) -> dict:
        params: dict[str, Any] = {}
        distance = distance_to_meters(self.distance_m)
        if distance is not None:
            params["max_distance"] = distance
        ranges = [value for value in self.price_ranges if value in PRICE_RANGES]
        if ranges:
            params["priceRange"] = ",".join(ranges)
        if self.min_rating is not None:
            params["minRating"] = self.min_rating
        if self.hours_filter in HOURS_FILTERS:
            params["hours_filter"] = self.hours_filter
        for name in ("categories", "cuisines", "features"):
            values = getattr(self, name)
            if values:
                params[name] = ",".join(values)
        return params

    def reset(self) -> None:
        self.distance_m = None
        self.price_ranges = []
        self.min_rating = None
        self.hours_filter = None
        self.categories = []
        self.cuisines = []
        self.features = []
