"""
Pydantic request schemas for the FastAPI app.
"""

from __future__ import annotations

import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NAME_RE = re.compile(r"^[A-Za-zА-Яа-яЁёІіЎў\s'-]+$")
PHONE_RE = r"^\+375(29|33|44|25)\d{7}$"
EMAIL_RE = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=2, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255, pattern=EMAIL_RE)
    phone: Optional[str] = Field(default=None, pattern=PHONE_RE)
    password: str = Field(..., min_length=8, max_length=128)
    auth_method: Literal["email", "phone", "google", "yandex"] = Field(
        default="email", alias="authMethod"
    )

    @field_validator("name")
    @classmethod
    def _name_letters(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2 or not NAME_RE.match(value):
            raise ValueError(
                "Name may only contain letters, spaces, hyphens and apostrophes"
            )
        return value

    @field_validator("password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        if not (
            re.search(r"[a-z]", value)
            and re.search(r"[A-Z]", value)
            and re.search(r"\d", value)
        ):
            raise ValueError(
                "Password must contain an uppercase letter, a lowercase letter and a digit"
            )
        return value

    @model_validator(mode="after")
    def _contact_for_method(self) -> "RegisterRequest":
        if not self.email and not self.phone:
            raise ValueError("Either email or phone is required")
        if self.auth_method == "email" and not self.email:
            raise ValueError("Email is required for email registration")
        if self.auth_method == "phone" and not self.phone:
            raise ValueError("Phone is required for phone registration")
        return self


class LoginRequest(BaseModel):
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=20)
    password: str = Field(..., min_length=1, max_length=128)

    @model_validator(mode="after")
    def _identifier(self) -> "LoginRequest":
        if not self.email and not self.phone:
            raise ValueError("Either email or phone is required")
        return self


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(..., alias="refreshToken", min_length=32, max_length=500)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=500)


class EstablishmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    city: str
    address: str = Field(..., min_length=1, max_length=500)
    latitude: float
    longitude: float
    phone: Optional[str] = Field(default=None, max_length=20)
    email: Optional[str] = Field(default=None, max_length=255)
    website: Optional[str] = Field(default=None, max_length=255)
    categories: list[str]
    cuisines: list[str]
    price_range: Optional[str] = None
    working_hours: Optional[dict] = None
    special_hours: Optional[dict] = None
    attributes: Optional[dict] = None
    features: Optional[list[str]] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    primary_photo: Optional[str] = None
    interior_photos: list[str] = Field(default_factory=list, max_length=20)
    menu_photos: list[str] = Field(default_factory=list, max_length=20)
    legal_name: Optional[str] = Field(default=None, max_length=255)
    unp: Optional[str] = Field(default=None, pattern=r"^\d{9}$")
    contact_person: Optional[str] = Field(default=None, max_length=255)
    contact_email: Optional[str] = Field(default=None, max_length=255)


class EstablishmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    city: Optional[str] = None
    address: Optional[str] = Field(default=None, min_length=1, max_length=500)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = Field(default=None, max_length=20)
    email: Optional[str] = Field(default=None, max_length=255)
    website: Optional[str] = Field(default=None, max_length=255)
    categories: Optional[list[str]] = None
    cuisines: Optional[list[str]] = None
    price_range: Optional[str] = None
    working_hours: Optional[dict] = None
    special_hours: Optional[dict] = None
    attributes: Optional[dict] = None
    features: Optional[list[str]] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    primary_photo: Optional[str] = None
    interior_photos: Optional[list[str]] = Field(default=None, max_length=20)
    menu_photos: Optional[list[str]] = Field(default=None, max_length=20)
    legal_name: Optional[str] = Field(default=None, max_length=255)
    unp: Optional[str] = Field(default=None, pattern=r"^\d{9}$")
    contact_person: Optional[str] = Field(default=None, max_length=255)
    contact_email: Optional[str] = Field(default=None, max_length=255)
    # Accepted for compatibility with older clients; status is set by moderation only.
    status: Optional[str] = None


class MediaUpdate(BaseModel):
    caption: Optional[str] = Field(default=None, max_length=255)
    position: Optional[int] = Field(default=None, ge=0)
    is_primary: Optional[bool] = None


class ReviewCreate(BaseModel):
    establishment_id: str
    rating: int = Field(..., ge=1, le=5)
    content: str = Field(..., min_length=20, max_length=1000)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    content: Optional[str] = Field(default=None, min_length=20, max_length=1000)


class PartnerResponseRequest(BaseModel):
    response: str = Field(..., min_length=1, max_length=1000)


class FavoriteCreate(BaseModel):
    establishment_id: str


class FavoriteBatchCheck(BaseModel):
    establishment_ids: list[str] = Field(default_factory=list)


class ModerateRequest(BaseModel):
    action: str
    moderation_notes: Optional[dict] = None


class SuspendRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class CoordinatesUpdate(BaseModel):
    latitude: float
    longitude: float


class AdminReviewDelete(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)
