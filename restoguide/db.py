"""
Database access for Postgres/PostGIS with a SQLite fallback for local runs and tests.

Row classes live at the bottom of this module; services open sessions through
``Database.Session`` and work with the rows directly.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0088

JsonType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def haversine_km(lat1, lon1, lat2, lon2):
    if None in (lat1, lon1, lat2, lon2):
        return None
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def _sqlite_lower(value):
    return value.lower() if isinstance(value, str) else value


class Database:
    """
    SQLAlchemy-backed database. Accepts any SQLAlchemy URL (Postgres in
    production, SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for Database")
        engine_kwargs = {"future": True, "pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url.rstrip("/").endswith(":"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_recycle"] = 1800
        self.engine = create_engine(database_url, **engine_kwargs)
        if self.dialect == "sqlite":
            event.listen(self.engine, "connect", _register_sqlite_functions)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def distance_km(self, latitude: float, longitude: float):
        """SQL expression for the distance in km from a point to each establishment."""
        if self.dialect == "postgresql":
            return (
                func.ST_Distance(
                    func.geography(func.ST_MakePoint(longitude, latitude)),
                    func.geography(
                        func.ST_MakePoint(
                            EstablishmentRow.longitude, EstablishmentRow.latitude
                        )
                    ),
                )
                / 1000.0
            )
        return func.haversine_km(
            latitude, longitude, EstablishmentRow.latitude, EstablishmentRow.longitude
        )

    def health(self) -> dict:
        with self.engine.connect() as conn:
            if self.dialect == "postgresql":
                version = conn.execute(text("SELECT PostGIS_Version()")).scalar()
                return {"database": "postgresql", "postgis_version": version}
            version = conn.execute(text("SELECT sqlite_version()")).scalar()
            return {"database": self.dialect, "version": version}


def _register_sqlite_functions(dbapi_connection, connection_record):
    dbapi_connection.create_function("haversine_km", 4, haversine_km)
    # Built-in lower() only folds ASCII; city and cuisine names are Cyrillic.
    dbapi_connection.create_function("lower", 1, _sqlite_lower)
    dbapi_connection.execute("PRAGMA foreign_keys=ON")


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=True, index=True)
    phone = Column(String(20), unique=True, nullable=True, index=True)
    password_hash = Column(String, nullable=True)
    name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default="user", index=True)
    auth_method = Column(String(20), nullable=False, default="email")
    avatar_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    phone_verified = Column(Boolean, nullable=False, default=False)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class RefreshTokenRow(Base):
    __tablename__ = "refresh_tokens"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token = Column(String(500), nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class EstablishmentRow(Base):
    __tablename__ = "establishments"

    id = Column(String, primary_key=True, default=new_id)
    partner_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    city = Column(String(50), nullable=False, index=True)
    address = Column(String(500), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(255), nullable=True)
    categories = Column(JsonType, nullable=False, default=list)
    cuisines = Column(JsonType, nullable=False, default=list)
    price_range = Column(String(3), nullable=True)
    working_hours = Column(JsonType, nullable=True)
    special_hours = Column(JsonType, nullable=True)
    attributes = Column(JsonType, nullable=False, default=dict)
    # Derived from working_hours so hour filters stay plain SQL.
    is_24_hours = Column(Boolean, nullable=False, default=False)
    closes_late = Column(Boolean, nullable=False, default=False)
    open_overnight = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="draft", index=True)
    suspended_by = Column(String(20), nullable=True)
    average_rating = Column(Float, nullable=False, default=0.0)
    review_count = Column(Integer, nullable=False, default=0)
    favorite_count = Column(Integer, nullable=False, default=0)
    view_count = Column(Integer, nullable=False, default=0)
    subscription_tier = Column(String(20), nullable=False, default="free")
    moderated_by = Column(String, nullable=True)
    moderated_at = Column(DateTime, nullable=True)
    moderation_notes = Column(JsonType, nullable=True)
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class MediaRow(Base):
    __tablename__ = "establishment_media"

    id = Column(String, primary_key=True, default=new_id)
    establishment_id = Column(
        String,
        ForeignKey("establishments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(String(20), nullable=False)
    url = Column(String(1000), nullable=False)
    thumbnail_url = Column(String(1000), nullable=True)
    preview_url = Column(String(1000), nullable=True)
    storage_path = Column(String(500), nullable=True)
    caption = Column(String(255), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class PartnerDocumentRow(Base):
    __tablename__ = "partner_documents"

    id = Column(String, primary_key=True, default=new_id)
    establishment_id = Column(
        String,
        ForeignKey("establishments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    partner_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    company_name = Column(String(255), nullable=True)
    tax_id = Column(String(20), nullable=True)
    contact_person = Column(String(255), nullable=True)
    contact_email = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class ReviewRow(Base):
    __tablename__ = "reviews"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    establishment_id = Column(
        String,
        ForeignKey("establishments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rating = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    is_visible = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    is_edited = Column(Boolean, nullable=False, default=False)
    partner_response = Column(Text, nullable=True)
    partner_response_at = Column(DateTime, nullable=True)
    partner_responder_id = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class FavoriteRow(Base):
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "establishment_id"),)

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    establishment_id = Column(
        String,
        ForeignKey("establishments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime, nullable=False, default=utcnow)


class AuditLogRow(Base):
    __tablename__ = "audit_log"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String, nullable=True, index=True)
    old_data = Column(JsonType, nullable=True)
    new_data = Column(JsonType, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
