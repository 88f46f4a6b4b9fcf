"""Utility helpers for EventHub."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo
import re
import unicodedata

LONDON = ZoneInfo("Europe/London")

_slug_invalid = re.compile(r"[^a-z0-9]+")
_explicit_offset = re.compile(r"(?:[zZ]|[+-]\d{2}:\d{2})$")
_local_datetime = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})(?::(\d{2})(?:\.(\d{1,3}))?)?$"
)


def utcnow() -> datetime:
    """Return a naive UTC datetime."""

    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def parse_iso_datetime(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp into naive UTC.

    Raises ``ValueError`` when the value cannot be parsed.
    """
    cleaned = (raw or "").strip()
    if not cleaned:
        raise ValueError("empty timestamp")
    parsed = datetime.fromisoformat(cleaned)
    try:
        return to_naive_utc(parsed)
    except OverflowError as exc:
        raise ValueError("timestamp out of range") from exc


def isoformat_utc(value: datetime | None) -> str | None:
    """Format a UTC datetime as ``YYYY-MM-DDTHH:MM:SS.sssZ``.

    Sub-millisecond precision is kept so the value sorts and compares exactly
    like the stored timestamp.
    """
    if value is None:
        return None
    naive = to_naive_utc(value)
    timespec = "milliseconds" if naive.microsecond % 1000 == 0 else "microseconds"
    return naive.isoformat(timespec=timespec) + "Z"


def slugify(value: str | None) -> str:
    """Return a canonical slug suitable for URLs."""
    value = (
        unicodedata.normalize("NFKD", value or "")
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    value = value.strip().lower()
    value = _slug_invalid.sub("-", value)
    value = value.strip("-")
    return value


def parse_venue_spaces(value: str | None) -> list[str]:
    """Split a comma separated ``venue_space`` value into trimmed names."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_local_datetime(value: str) -> datetime | None:
    match = _local_datetime.match(value.strip())
    if not match:
        return None
    year, month, day, hour, minute = (int(match.group(i)) for i in range(1, 6))
    second = int(match.group(6) or "0")
    millisecond = int((match.group(7) or "0").ljust(3, "0"))
    try:
        return datetime(year, month, day, hour, minute, second, millisecond * 1000)
    except ValueError:
        return None


def _london_wall_clock(utc_value: datetime) -> datetime:
    return utc_value.replace(tzinfo=UTC).astimezone(LONDON).replace(tzinfo=None)


def _js_iso(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds") + "Z"


def normalise_event_datetime_for_storage(value: str) -> str:
    """Convert a London wall-clock input (``2025-03-30T01:30``) to a UTC ISO string.

    Values that already carry an offset are converted as-is. Input that cannot
    be parsed is returned unchanged so the caller's validation can report it.
    """
    trimmed = value.strip()
    if not trimmed:
        return value

    local = None if _explicit_offset.search(trimmed) else _parse_local_datetime(trimmed)
    if local is None:
        try:
            return _js_iso(parse_iso_datetime(trimmed))
        except ValueError:
            return value

    # Walk the UTC guess towards the instant whose London wall clock matches.
    guess = local
    for _ in range(4):
        delta = local - _london_wall_clock(guess)
        if delta == timedelta(0):
            break
        guess += delta
    return _js_iso(guess)


def to_london_input_value(value: str | None) -> str:
    """Render a stored UTC timestamp as a London ``YYYY-MM-DDTHH:MM`` input value."""
    if not value:
        return ""
    trimmed = value.strip()
    if not trimmed:
        return ""

    if not _explicit_offset.search(trimmed):
        local = _parse_local_datetime(trimmed)
        if local is not None:
            return local.strftime("%Y-%m-%dT%H:%M")

    try:
        parsed = parse_iso_datetime(trimmed)
    except ValueError:
        return ""
    return _london_wall_clock(parsed).strftime("%Y-%m-%dT%H:%M")
