"""Query and write helpers for venues, event types and events."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, joinedload

from .models import BOOKING_TYPES, EVENT_STATUSES, Event, EventType, Venue
from .publishing import PUBLIC_EVENT_STATUSES, EventCursor
from .utils import (
    normalise_event_datetime_for_storage,
    parse_iso_datetime,
    to_naive_utc,
    utcnow,
)

CHECK_IN_CUTOFF_RANGE = (0, 1440)
CANCELLATION_WINDOW_RANGE = (0, 720)

EVENT_DETAIL_FIELDS = (
    "notes",
    "wet_promo",
    "food_promo",
    "public_title",
    "public_teaser",
    "public_description",
    "public_highlights",
    "booking_type",
    "ticket_price",
    "check_in_cutoff_minutes",
    "age_policy",
    "accessibility_notes",
    "cancellation_window_hours",
    "terms_and_conditions",
    "booking_url",
    "event_image_path",
    "seo_title",
    "seo_description",
    "seo_slug",
)


def _now() -> datetime:
    return utcnow()


def _coerce_datetime(value: datetime | str | None, *, field: str) -> datetime | None:
    """Accept datetimes or London wall-clock / ISO strings and return naive UTC."""
    if value is None or isinstance(value, datetime):
        return to_naive_utc(value)
    try:
        return parse_iso_datetime(normalise_event_datetime_for_storage(value))
    except ValueError as exc:
        raise ValueError(f"Invalid {field}") from exc


def _check_range(name: str, value: int | None, bounds: tuple[int, int]) -> None:
    if value is None:
        return
    low, high = bounds
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}")


def event_record(event: Event) -> dict[str, Any]:
    """Return the internal record shape consumed by the public projector."""
    record = {
        "id": event.id,
        "title": event.title,
        "event_type": event.event_type,
        "status": event.status,
        "start_at": event.start_at,
        "end_at": event.end_at,
        "venue_space": event.venue_space,
        "updated_at": event.updated_at,
        "venue": None,
    }
    for field in EVENT_DETAIL_FIELDS:
        record[field] = getattr(event, field)
    if event.venue is not None:
        record["venue"] = {
            "id": event.venue.id,
            "name": event.venue.name,
            "address": event.venue.address,
            "capacity": event.venue.capacity,
        }
    return record


def fetch_public_event_rows(
    session: Session,
    *,
    limit: int,
    cursor: EventCursor | None = None,
    start_from: datetime | None = None,
    start_to: datetime | None = None,
    ends_after: datetime | None = None,
    updated_since: datetime | None = None,
    venue_id: str | None = None,
    event_type: str | None = None,
) -> Sequence[Event]:
    """Return up to ``limit`` publishable events after ``cursor``.

    Rows are ordered by ``(start_at, id)`` so the cursor predicate selects a
    stable continuation.
    """
    stmt = (
        select(Event)
        .options(joinedload(Event.venue))
        .where(Event.status.in_(PUBLIC_EVENT_STATUSES))
        .order_by(Event.start_at.asc(), Event.id.asc())
        .limit(limit)
    )
    if start_from is not None:
        stmt = stmt.where(Event.start_at >= start_from)
    if start_to is not None:
        stmt = stmt.where(Event.start_at <= start_to)
    if ends_after is not None:
        stmt = stmt.where(Event.end_at >= ends_after)
    if updated_since is not None:
        stmt = stmt.where(Event.updated_at > updated_since)
    if venue_id:
        stmt = stmt.where(Event.venue_id == venue_id)
    if event_type:
        stmt = stmt.where(Event.event_type == event_type)
    if cursor is not None:
        cursor_start = cursor.start_at_value
        cursor_id = cursor.id.lower()
        stmt = stmt.where(
            or_(
                Event.start_at > cursor_start,
                and_(Event.start_at == cursor_start, Event.id > cursor_id),
            )
        )
    return session.scalars(stmt).unique().all()


def fetch_public_event(session: Session, event_id: str) -> Event | None:
    stmt = (
        select(Event)
        .options(joinedload(Event.venue))
        .where(Event.id == event_id)
        .where(Event.status.in_(PUBLIC_EVENT_STATUSES))
    )
    return session.scalars(stmt).first()


def get_venues(session: Session) -> Sequence[Venue]:
    return session.scalars(select(Venue).order_by(Venue.name.asc())).all()


def get_event_types(session: Session) -> Sequence[EventType]:
    return session.scalars(select(EventType).order_by(EventType.label.asc())).all()


def create_venue(
    session: Session,
    *,
    name: str,
    address: str | None = None,
    capacity: int | None = None,
    timezone: str = "Europe/London",
) -> Venue:
    """Create and persist a new venue."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Venue name is required")
    if capacity is not None and capacity < 0:
        raise ValueError("Capacity cannot be negative")
    venue = Venue(name=cleaned, address=address, capacity=capacity, timezone=timezone)
    session.add(venue)
    session.flush()
    return venue


def ensure_event_type(session: Session, label: str) -> EventType:
    """Return an existing event type or create a new one."""
    cleaned = (label or "").strip()
    if not cleaned:
        raise ValueError("Event type label is required")
    existing = session.scalars(
        select(EventType).where(EventType.label == cleaned)
    ).first()
    if existing:
        return existing
    event_type = EventType(label=cleaned, created_at=_now())
    session.add(event_type)
    session.flush()
    return event_type


def create_event(
    session: Session,
    *,
    venue: Venue,
    title: str,
    event_type: str,
    start_at: datetime | str,
    end_at: datetime | str | None = None,
    status: str = "draft",
    venue_space: str = "",
    **details: Any,
) -> Event:
    """Create and persist a new event.

    String timestamps without an offset are read as Europe/London wall-clock
    time. ``details`` accepts the optional public, booking and SEO fields.
    """
    unknown = set(details) - set(EVENT_DETAIL_FIELDS)
    if unknown:
        raise ValueError(f"Unknown event fields: {', '.join(sorted(unknown))}")
    if status not in EVENT_STATUSES:
        raise ValueError("Invalid event status")
    booking_type = details.get("booking_type")
    if booking_type is not None and booking_type not in BOOKING_TYPES:
        raise ValueError("Invalid booking type")
    _check_range(
        "check_in_cutoff_minutes",
        details.get("check_in_cutoff_minutes"),
        CHECK_IN_CUTOFF_RANGE,
    )
    _check_range(
        "cancellation_window_hours",
        details.get("cancellation_window_hours"),
        CANCELLATION_WINDOW_RANGE,
    )

    normalized_start = _coerce_datetime(start_at, field="start_at")
    if normalized_start is None:
        raise ValueError("start_at is required")
    normalized_end = _coerce_datetime(end_at, field="end_at")
    if normalized_end is not None and normalized_end < normalized_start:
        raise ValueError("end_at must be after start_at")

    timestamp = _now()
    event = Event(
        venue=venue,
        title=title,
        event_type=event_type,
        status=status,
        start_at=normalized_start,
        end_at=normalized_end,
        venue_space=venue_space or "",
        created_at=timestamp,
        updated_at=timestamp,
        **details,
    )
    session.add(event)
    session.flush()
    return event


def set_event_status(session: Session, event: Event, status: str) -> Event:
    """Move an event to ``status`` and bump ``updated_at``."""
    if status not in EVENT_STATUSES:
        raise ValueError("Invalid event status")
    event.status = status
    event.updated_at = _now()
    session.add(event)
    session.flush()
    return event
