from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from eventhub import crud
from eventhub.errors import (
    InternalError,
    InvalidCursorError,
    InvalidSlugError,
    NotConfiguredError,
    NotFoundError,
    ValidationError,
)
from eventhub.listing import (
    EventListQuery,
    get_public_event_by_slug,
    list_public_events,
    storage_errors,
)
from eventhub.publishing import EventCursor, encode_cursor

EVENT_ID = "aaaaaaa1-0000-4000-8000-000000000003"


def _query(**params):
    params.setdefault("limit", None)
    return EventListQuery.from_params(default_limit=50, max_limit=200, **params)


def test_query_defaults():
    query = _query()
    assert query.limit == 50
    assert query.cursor is None
    assert query.start_from is None


def test_query_clamps_large_limits():
    assert _query(limit=1000).limit == 200
    assert _query(limit=200).limit == 200
    assert _query(limit=1).limit == 1


def test_query_rejects_small_limits():
    with pytest.raises(ValidationError) as excinfo:
        _query(limit=0)
    assert excinfo.value.details == {"fieldErrors": {"limit": ["Must be at least 1"]}}


def test_query_parses_dates_to_naive_utc():
    query = _query(start_from="2030-06-01T19:00:00+01:00", start_to="2030-06-02")
    assert query.start_from == datetime(2030, 6, 1, 18, 0)
    assert query.start_to == datetime(2030, 6, 2, 0, 0)


def test_query_rejects_bad_dates():
    with pytest.raises(ValidationError) as excinfo:
        _query(ends_after="next week", updated_since="")
    field_errors = excinfo.value.details["fieldErrors"]
    assert field_errors["endsAfter"] == ["Use an ISO date string"]
    assert field_errors["updatedSince"] == ["Use an ISO date string"]


def test_query_rejects_out_of_range_dates():
    with pytest.raises(ValidationError) as excinfo:
        _query(start_from="0001-01-01T00:00:00+01:00")
    assert excinfo.value.details == {
        "fieldErrors": {"from": ["Use an ISO date string"]}
    }


def test_query_rejects_empty_cursor():
    with pytest.raises(ValidationError) as excinfo:
        _query(cursor="")
    assert not isinstance(excinfo.value, InvalidCursorError)


def test_query_decodes_cursor():
    cursor = EventCursor(start_at="2030-06-01T18:00:00.000Z", id=EVENT_ID)
    assert _query(cursor=encode_cursor(cursor)).cursor == cursor


def test_query_rejects_undecodable_cursor():
    with pytest.raises(InvalidCursorError):
        _query(cursor="not-a-cursor")


def test_field_errors_win_over_cursor_errors():
    with pytest.raises(ValidationError) as excinfo:
        _query(limit=0, cursor="not-a-cursor")
    assert not isinstance(excinfo.value, InvalidCursorError)


def test_page_json_shape(db_session, make_event):
    event = make_event()
    page = list_public_events(db_session, _query())
    payload = page.to_json()
    assert [item["id"] for item in payload["data"]] == [event.id]
    assert payload["meta"] == {"nextCursor": None}


def test_inconsistent_row_fails_whole_page(db_session, make_event, monkeypatch):
    make_event()
    original = crud.event_record

    def broken_record(event):
        record = original(event)
        record["venue"] = None
        return record

    monkeypatch.setattr(crud, "event_record", broken_record)

    with pytest.raises(InternalError) as excinfo:
        list_public_events(db_session, _query())
    assert excinfo.value.message == "Unable to serialise events"


def test_status_drift_fails_whole_page(db_session, make_event, monkeypatch):
    make_event()
    original = crud.event_record

    def drifted_record(event):
        record = original(event)
        record["status"] = "draft"
        return record

    monkeypatch.setattr(crud, "event_record", drifted_record)

    with pytest.raises(InternalError):
        list_public_events(db_session, _query())


def test_slug_lookup_requires_embedded_id(db_session):
    with pytest.raises(InvalidSlugError):
        get_public_event_by_slug(db_session, "city-tap-jazz-brunch")


def test_slug_lookup_of_missing_event(db_session):
    with pytest.raises(NotFoundError):
        get_public_event_by_slug(db_session, f"gone--{EVENT_ID}")


def test_slug_lookup_is_case_insensitive_for_ids(db_session, make_event):
    event = make_event()
    lookup = get_public_event_by_slug(
        db_session, f"city-tap-jazz-brunch--{event.id.upper()}"
    )
    assert lookup.event.id == event.id
    assert lookup.is_canonical is False


def test_storage_errors_translate_operational_errors():
    with pytest.raises(NotConfiguredError):
        with storage_errors("load events"):
            raise OperationalError("select 1", {}, Exception("database is locked"))


def test_storage_errors_translate_query_errors():
    with pytest.raises(InternalError) as excinfo:
        with storage_errors("load venues"):
            raise SQLAlchemyError("boom")
    assert excinfo.value.message == "Unable to load venues"


def test_storage_errors_leave_api_errors_alone():
    with pytest.raises(NotFoundError):
        with storage_errors("load event"):
            raise NotFoundError()
