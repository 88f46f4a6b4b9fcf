"""SQLAlchemy models for EventHub."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

from .utils import utcnow

Base = declarative_base()

EVENT_STATUSES = (
    "draft",
    "submitted",
    "needs_revisions",
    "approved",
    "rejected",
    "completed",
)
BOOKING_TYPES = ("ticketed", "table_booking", "free_entry", "mixed")


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return utcnow()


class Venue(Base):
    __tablename__ = "venues"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    timezone = Column(String(64), nullable=False, default="Europe/London")
    address = Column(Text, nullable=True)
    capacity = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    events = relationship("Event", back_populates="venue", cascade="all, delete-orphan")


class EventType(Base):
    __tablename__ = "event_types"

    id = Column(String(36), primary_key=True, default=_uuid)
    label = Column(String(200), nullable=False, unique=True)
    created_at = Column(DateTime, default=_now, nullable=False)


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        Index("events_start_id_idx", "start_at", "id"),
        Index("events_status_idx", "status"),
        Index("events_venue_idx", "venue_id"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    venue_id = Column(String(36), ForeignKey("venues.id"), nullable=False)
    title = Column(String(255), nullable=False)
    event_type = Column(String(200), nullable=False)
    status = Column(String(32), nullable=False, default="draft")
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=True)
    venue_space = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=True)
    wet_promo = Column(Text, nullable=True)
    food_promo = Column(Text, nullable=True)

    public_title = Column(Text, nullable=True)
    public_teaser = Column(Text, nullable=True)
    public_description = Column(Text, nullable=True)
    public_highlights = Column(JSON, nullable=True)

    booking_type = Column(String(32), nullable=True)
    ticket_price = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    check_in_cutoff_minutes = Column(Integer, nullable=True)
    age_policy = Column(Text, nullable=True)
    accessibility_notes = Column(Text, nullable=True)
    cancellation_window_hours = Column(Integer, nullable=True)
    terms_and_conditions = Column(Text, nullable=True)
    booking_url = Column(Text, nullable=True)
    event_image_path = Column(Text, nullable=True)

    seo_title = Column(Text, nullable=True)
    seo_description = Column(Text, nullable=True)
    seo_slug = Column(Text, nullable=True)

    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    venue = relationship("Venue", back_populates="events")
