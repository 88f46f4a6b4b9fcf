"""Listing and lookup of public events on top of the storage helpers."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud
from .errors import (
    InternalError,
    InvalidCursorError,
    InvalidSlugError,
    NotConfiguredError,
    NotFoundError,
    NotPublicError,
    ProjectionError,
    ValidationError,
)
from .publishing import (
    EventCursor,
    PublicEvent,
    decode_cursor,
    encode_cursor,
    extract_event_id_from_slug,
    is_uuid,
    to_public_event,
)
from .utils import isoformat_utc, parse_iso_datetime

# Use uvicorn's error logger so messages get the level prefix in the default log
# format.
logger = logging.getLogger("uvicorn.error")

MAX_EVENT_TYPE_LENGTH = 200


@dataclass(frozen=True)
class EventListQuery:
    """Validated parameters for a public event listing request."""

    limit: int
    cursor: EventCursor | None = None
    start_from: datetime | None = None
    start_to: datetime | None = None
    ends_after: datetime | None = None
    updated_since: datetime | None = None
    venue_id: str | None = None
    event_type: str | None = None

    @classmethod
    def from_params(
        cls,
        *,
        limit: int | None,
        default_limit: int,
        max_limit: int,
        cursor: str | None = None,
        start_from: str | None = None,
        start_to: str | None = None,
        ends_after: str | None = None,
        updated_since: str | None = None,
        venue_id: str | None = None,
        event_type: str | None = None,
    ) -> EventListQuery:
        """Parse raw request values.

        Raises :class:`ValidationError` listing every bad field, or
        :class:`InvalidCursorError` when only the cursor is unusable. Limits
        above ``max_limit`` are clamped rather than rejected.
        """
        field_errors: dict[str, list[str]] = {}

        if limit is None:
            limit = default_limit
        if limit < 1:
            field_errors["limit"] = ["Must be at least 1"]
        limit = min(limit, max_limit)

        parsed_dates: dict[str, datetime | None] = {}
        for name, raw in (
            ("from", start_from),
            ("to", start_to),
            ("endsAfter", ends_after),
            ("updatedSince", updated_since),
        ):
            parsed_dates[name] = None
            if raw is None:
                continue
            try:
                parsed_dates[name] = parse_iso_datetime(raw)
            except ValueError:
                field_errors[name] = ["Use an ISO date string"]

        if venue_id is not None and not is_uuid(venue_id):
            field_errors["venueId"] = ["Invalid uuid"]
        if event_type is not None and not 1 <= len(event_type) <= MAX_EVENT_TYPE_LENGTH:
            field_errors["eventType"] = [
                f"Must be between 1 and {MAX_EVENT_TYPE_LENGTH} characters"
            ]
        if cursor is not None and not cursor:
            field_errors["cursor"] = ["Must not be empty"]

        if field_errors:
            raise ValidationError(details={"fieldErrors": field_errors})

        decoded = decode_cursor(cursor) if cursor else None
        if cursor and decoded is None:
            raise InvalidCursorError()

        return cls(
            limit=limit,
            cursor=decoded,
            start_from=parsed_dates["from"],
            start_to=parsed_dates["to"],
            ends_after=parsed_dates["endsAfter"],
            updated_since=parsed_dates["updatedSince"],
            venue_id=venue_id,
            event_type=event_type,
        )


@dataclass(frozen=True)
class EventPage:
    data: list[PublicEvent]
    next_cursor: str | None = None

    def to_json(self) -> dict[str, Any]:
        return {
            "data": [event.to_json() for event in self.data],
            "meta": {"nextCursor": self.next_cursor},
        }


@dataclass(frozen=True)
class SlugLookup:
    event: PublicEvent
    requested_slug: str

    @property
    def is_canonical(self) -> bool:
        return self.requested_slug == self.event.slug

    @property
    def meta(self) -> dict[str, Any]:
        return {
            "requestedSlug": self.requested_slug,
            "canonicalSlug": self.event.slug,
            "isCanonical": self.is_canonical,
        }

    def to_json(self) -> dict[str, Any]:
        return {"data": self.event.to_json(), "meta": self.meta}


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate storage failures into API errors, logging only the operation."""
    try:
        yield
    except OperationalError:
        logger.error("Public API: storage unavailable during %s", operation)
        raise NotConfiguredError("Storage is not available") from None
    except SQLAlchemyError:
        logger.exception("Public API: storage query failed during %s", operation)
        raise InternalError(f"Unable to {operation}") from None


def list_public_events(
    session: Session,
    query: EventListQuery,
    *,
    asset_base_url: str | None = None,
) -> EventPage:
    """Return one page of publishable events ordered by ``(start_at, id)``."""
    with storage_errors("load events"):
        rows = crud.fetch_public_event_rows(
            session,
            limit=query.limit + 1,
            cursor=query.cursor,
            start_from=query.start_from,
            start_to=query.start_to,
            ends_after=query.ends_after,
            updated_since=query.updated_since,
            venue_id=query.venue_id,
            event_type=query.event_type,
        )
        records = [crud.event_record(row) for row in rows]

    has_more = len(records) > query.limit
    page = records[: query.limit]

    events: list[PublicEvent] = []
    for record in page:
        try:
            events.append(to_public_event(record, asset_base_url=asset_base_url))
        except (NotPublicError, ProjectionError) as exc:
            # The query already filters on status; reaching this means the
            # stored row and the projector disagree.
            logger.error(
                "Public API: failed to serialise event %s (%s)",
                record.get("id"),
                type(exc).__name__,
            )
            raise InternalError("Unable to serialise events") from None

    next_cursor = None
    if has_more:
        last = page[-1]
        next_cursor = encode_cursor(
            EventCursor(start_at=isoformat_utc(last["start_at"]), id=last["id"])
        )
    return EventPage(data=events, next_cursor=next_cursor)


def get_public_event(
    session: Session, event_id: str, *, asset_base_url: str | None = None
) -> PublicEvent:
    """Return one publishable event by id.

    Raises :class:`ValidationError` for malformed ids and
    :class:`NotFoundError` when the event is missing or not public.
    """
    if not is_uuid(event_id):
        raise ValidationError("Invalid event id")
    event_id = event_id.lower()
    with storage_errors("load event"):
        row = crud.fetch_public_event(session, event_id)
        record = crud.event_record(row) if row is not None else None
    if record is None:
        raise NotFoundError()
    try:
        return to_public_event(record, asset_base_url=asset_base_url)
    except ProjectionError as exc:
        logger.error(
            "Public API: failed to serialise event %s (%s)", event_id, exc.reason
        )
        raise InternalError("Unable to serialise event") from None


def get_public_event_by_slug(
    session: Session, slug: str, *, asset_base_url: str | None = None
) -> SlugLookup:
    event_id = extract_event_id_from_slug(slug)
    if event_id is None:
        raise InvalidSlugError()
    event = get_public_event(session, event_id, asset_base_url=asset_base_url)
    return SlugLookup(event=event, requested_slug=slug)


def list_venues(session: Session) -> list[dict[str, Any]]:
    with storage_errors("load venues"):
        venues = crud.get_venues(session)
        return [
            {
                "id": venue.id,
                "name": venue.name,
                "address": venue.address,
                "capacity": venue.capacity,
            }
            for venue in venues
        ]


def list_event_types(session: Session) -> list[dict[str, Any]]:
    with storage_errors("load event types"):
        event_types = crud.get_event_types(session)
        return [
            {
                "id": event_type.id,
                "label": event_type.label,
                "createdAt": isoformat_utc(event_type.created_at),
            }
            for event_type in event_types
        ]
