from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from eventhub.utils import (
    isoformat_utc,
    normalise_event_datetime_for_storage,
    parse_iso_datetime,
    parse_venue_spaces,
    to_london_input_value,
    to_naive_utc,
)


def test_parse_venue_spaces():
    assert parse_venue_spaces("Main Bar, Riverside Terrace") == [
        "Main Bar",
        "Riverside Terrace",
    ]
    assert parse_venue_spaces(" Garden ,, ") == ["Garden"]
    assert parse_venue_spaces(None) == []
    assert parse_venue_spaces("") == []


def test_parse_iso_datetime_returns_naive_utc():
    assert parse_iso_datetime("2030-06-01T18:00:00.000Z") == datetime(2030, 6, 1, 18)
    assert parse_iso_datetime("2030-06-01T20:00:00+02:00") == datetime(2030, 6, 1, 18)
    with pytest.raises(ValueError):
        parse_iso_datetime("   ")
    with pytest.raises(ValueError):
        parse_iso_datetime("soon")


def test_to_naive_utc():
    aware = datetime(2030, 6, 1, 20, tzinfo=timezone(timedelta(hours=2)))
    assert to_naive_utc(aware) == datetime(2030, 6, 1, 18)
    assert to_naive_utc(None) is None


def test_isoformat_utc_keeps_precision():
    assert isoformat_utc(datetime(2030, 6, 1, 18)) == "2030-06-01T18:00:00.000Z"
    assert (
        isoformat_utc(datetime(2030, 6, 1, 18, 0, 0, 123000))
        == "2030-06-01T18:00:00.123Z"
    )
    assert (
        isoformat_utc(datetime(2030, 6, 1, 18, 0, 0, 123456))
        == "2030-06-01T18:00:00.123456Z"
    )
    assert isoformat_utc(None) is None


@pytest.mark.parametrize(
    ("local", "expected"),
    [
        ("2025-01-15T19:00", "2025-01-15T19:00:00.000Z"),
        ("2025-07-01T19:00", "2025-07-01T18:00:00.000Z"),
        ("2025-07-01T19:00:30", "2025-07-01T18:00:30.000Z"),
        # Clocks go forward at 01:00; the skipped hour resolves to GMT.
        ("2025-03-30T01:30", "2025-03-30T01:30:00.000Z"),
        ("2025-03-30T02:30", "2025-03-30T01:30:00.000Z"),
        # Clocks go back at 02:00; the repeated hour resolves to GMT.
        ("2025-10-26T01:30", "2025-10-26T01:30:00.000Z"),
    ],
)
def test_normalise_london_wall_clock(local, expected):
    assert normalise_event_datetime_for_storage(local) == expected


def test_normalise_passes_offsets_through():
    assert (
        normalise_event_datetime_for_storage("2025-07-01T19:00:00+02:00")
        == "2025-07-01T17:00:00.000Z"
    )
    assert (
        normalise_event_datetime_for_storage("2025-07-01T19:00:00Z")
        == "2025-07-01T19:00:00.000Z"
    )


def test_normalise_leaves_garbage_unchanged():
    assert normalise_event_datetime_for_storage("next friday") == "next friday"
    assert normalise_event_datetime_for_storage("  ") == "  "


def test_to_london_input_value():
    assert to_london_input_value("2025-07-01T18:00:00.000Z") == "2025-07-01T19:00"
    assert to_london_input_value("2025-01-15T19:00:00Z") == "2025-01-15T19:00"
    assert to_london_input_value("2025-07-01T19:00") == "2025-07-01T19:00"
    assert to_london_input_value("garbage") == ""
    assert to_london_input_value(None) == ""


@pytest.mark.parametrize(
    "raw", ["0001-01-01T00:00:00+01:00", "9999-12-31T23:59:59-01:00"]
)
def test_parse_iso_datetime_rejects_out_of_range_offsets(raw):
    with pytest.raises(ValueError):
        parse_iso_datetime(raw)
