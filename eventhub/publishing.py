"""Public projection of events: visibility, field shaping, slugs and cursors.

Everything in this module is a pure function of its arguments. Storage access
lives in :mod:`eventhub.listing`.
"""

from __future__ import annotations

import base64
import json
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .errors import NotPublicError, ProjectionError
from .models import BOOKING_TYPES
from .utils import isoformat_utc, parse_iso_datetime, parse_venue_spaces, slugify

PUBLIC_EVENT_STATUSES: tuple[str, ...] = ("approved", "completed")

PublicEventStatus = Literal["approved", "completed"]
BookingType = Literal["ticketed", "table_booking", "free_entry", "mixed"]

EVENT_IMAGE_BUCKET_PATH = "storage/v1/object/public/event-images"

_uuid_pattern = (
    r"[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}"
)
_uuid_re = re.compile(rf"^{_uuid_pattern}\Z", re.IGNORECASE)
_slug_id_re = re.compile(rf"--({_uuid_pattern})\Z", re.IGNORECASE)
_highlight_bullet = re.compile(r"^\s*[-*•]\s*")


def is_publishable(status: str | None) -> bool:
    """Return whether an event with ``status`` may appear in public output."""
    return status in PUBLIC_EVENT_STATUSES


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(_uuid_re.match(value))


class _PublicModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PublicVenue(_PublicModel):
    id: str
    name: str
    address: str | None = None
    capacity: int | None = None


class PublicEvent(_PublicModel):
    id: str
    slug: str
    title: str
    teaser: str | None
    highlights: list[str]
    event_type: str
    status: PublicEventStatus
    start_at: str
    end_at: str | None
    venue_spaces: list[str]
    description: str | None
    booking_type: BookingType | None
    ticket_price: int | float | None
    check_in_cutoff_minutes: int | None
    age_policy: str | None
    accessibility_notes: str | None
    cancellation_window_hours: int | None
    terms_and_conditions: str | None
    booking_url: str | None
    event_image_url: str | None
    seo_title: str | None
    seo_description: str | None
    seo_slug: str | None
    wet_promo: str | None
    food_promo: str | None
    venue: PublicVenue
    updated_at: str | None


def _optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def _optional_integer(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _optional_number(value: Any) -> float | int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _highlights(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    cleaned = (
        _highlight_bullet.sub("", item).strip() for item in value if isinstance(item, str)
    )
    return [item for item in cleaned if item]


def _timestamp(value: Any) -> str | None:
    if isinstance(value, datetime):
        return isoformat_utc(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _venue(value: Any) -> PublicVenue | None:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return _venue(value[0]) if value else None
    if not isinstance(value, Mapping):
        return None
    venue_id = value.get("id")
    name = value.get("name")
    if not isinstance(venue_id, str) or not isinstance(name, str):
        return None
    return PublicVenue(
        id=venue_id,
        name=name,
        address=value.get("address") if isinstance(value.get("address"), str) else None,
        capacity=_optional_integer(value.get("capacity")),
    )


def build_event_image_url(path: Any, base_url: str | None) -> str | None:
    """Resolve a storage path to its public URL, or ``None`` if either is missing."""
    cleaned = _optional_text(path)
    if not cleaned:
        return None
    base = (base_url or "").strip().rstrip("/")
    if not base:
        return None
    encoded = "/".join(quote(segment, safe="") for segment in cleaned.split("/"))
    return f"{base}/{EVENT_IMAGE_BUCKET_PATH}/{encoded}"


def build_event_slug(event_id: str, title: str, seo_slug: str | None = None) -> str:
    """Return ``<prefix>--<id>``; the prefix is cosmetic, the id suffix is not."""
    if isinstance(seo_slug, str) and seo_slug.strip():
        prefix = slugify(seo_slug)
    else:
        prefix = slugify(title)
    return f"{prefix}--{event_id}"


def extract_event_id_from_slug(slug: str | None) -> str | None:
    """Return the event id embedded at the end of ``slug``, or ``None``."""
    if not slug:
        return None
    match = _slug_id_re.search(slug)
    return match.group(1) if match else None


def to_public_event(
    row: Mapping[str, Any], *, asset_base_url: str | None = None
) -> PublicEvent:
    """Project an internal event record into its public shape.

    Raises :class:`NotPublicError` for non-publishable statuses and
    :class:`ProjectionError` when a publishable record is inconsistent.
    """
    event_id = row.get("id")
    status = row.get("status")
    if not is_publishable(status):
        raise NotPublicError(event_id, status)

    venue = _venue(row.get("venue"))
    if venue is None:
        raise ProjectionError(event_id, "missing venue data")
    start_at = _timestamp(row.get("start_at"))
    if not isinstance(event_id, str) or start_at is None:
        raise ProjectionError(event_id, "missing id or start time")

    internal_title = row.get("title")
    internal_title = internal_title.strip() if isinstance(internal_title, str) else ""
    title = _optional_text(row.get("public_title")) or internal_title
    seo_slug = _optional_text(row.get("seo_slug"))
    booking_type = row.get("booking_type")

    return PublicEvent(
        id=event_id,
        slug=build_event_slug(event_id, title, seo_slug),
        title=title,
        teaser=_optional_text(row.get("public_teaser")),
        highlights=_highlights(row.get("public_highlights")),
        event_type=row.get("event_type") or "",
        status=status,
        start_at=start_at,
        end_at=_timestamp(row.get("end_at")),
        venue_spaces=parse_venue_spaces(row.get("venue_space")),
        description=_optional_text(row.get("public_description"))
        or _optional_text(row.get("notes")),
        booking_type=booking_type if booking_type in BOOKING_TYPES else None,
        ticket_price=_optional_number(row.get("ticket_price")),
        check_in_cutoff_minutes=_optional_integer(row.get("check_in_cutoff_minutes")),
        age_policy=_optional_text(row.get("age_policy")),
        accessibility_notes=_optional_text(row.get("accessibility_notes")),
        cancellation_window_hours=_optional_integer(
            row.get("cancellation_window_hours")
        ),
        terms_and_conditions=_optional_text(row.get("terms_and_conditions")),
        booking_url=_optional_text(row.get("booking_url")),
        event_image_url=build_event_image_url(
            row.get("event_image_path"), asset_base_url
        ),
        seo_title=_optional_text(row.get("seo_title")),
        seo_description=_optional_text(row.get("seo_description")),
        seo_slug=seo_slug,
        wet_promo=_optional_text(row.get("wet_promo")),
        food_promo=_optional_text(row.get("food_promo")),
        venue=venue,
        updated_at=_timestamp(row.get("updated_at")),
    )


@dataclass(frozen=True)
class EventCursor:
    """Sort position ``(start_at, id)`` of the last row on a page."""

    start_at: str
    id: str

    @property
    def start_at_value(self) -> datetime:
        return parse_iso_datetime(self.start_at)


def encode_cursor(cursor: EventCursor) -> str:
    raw = json.dumps(
        {"startAt": cursor.start_at, "id": cursor.id}, separators=(",", ":")
    )
    return base64.urlsafe_b64encode(raw.encode("utf-8")).rstrip(b"=").decode("ascii")


def decode_cursor(value: str | None) -> EventCursor | None:
    """Decode an opaque cursor; any malformed input yields ``None``."""
    if not isinstance(value, str) or not value:
        return None
    try:
        padded = value + "=" * (-len(value) % 4)
        decoded = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
        parsed = json.loads(decoded.decode("utf-8"))
    except (ValueError, TypeError):
        return None
    if not isinstance(parsed, dict):
        return None
    start_at = parsed.get("startAt")
    event_id = parsed.get("id")
    if not isinstance(start_at, str) or not is_uuid(event_id):
        return None
    try:
        parse_iso_datetime(start_at)
    except ValueError:
        return None
    return EventCursor(start_at=start_at, id=event_id)
