"""
Tests for CalendarBackend against a fake discovery client.

What these prove:
- count=0 returns nothing and never calls the API
- results are capped, start at or after `after`, and come back earliest first
- API failures become CalendarBackendError
- inserts go to the configured calendar with the configured timezone
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from gemini_calendar.errors import CalendarBackendError
from gemini_calendar.gcal_tools import CalendarBackend, CalendarEvent
from gemini_calendar.timefmt import parse_rfc3339

from fakes import FIXED_NOW, FakeCalendarService, http_error, make_item


def test_zero_count_returns_empty_without_calling_api(five_upcoming_items):
    service = FakeCalendarService(five_upcoming_items)
    backend = CalendarBackend(service)

    assert backend.list_upcoming_events(FIXED_NOW, 0) == []
    assert service.events().list_calls == []


def test_negative_count_is_a_programming_error():
    with pytest.raises(ValueError):
        CalendarBackend(FakeCalendarService()).list_upcoming_events(FIXED_NOW, -1)


@pytest.mark.parametrize("k", [1, 3, 5, 10])
def test_listing_is_capped_ordered_and_upcoming(five_upcoming_items, k):
    backend = CalendarBackend(FakeCalendarService(five_upcoming_items, honor_max_results=False))

    events = backend.list_upcoming_events(FIXED_NOW, k)

    assert len(events) <= k
    starts = [parse_rfc3339(ev.start) for ev in events]
    assert all(s >= FIXED_NOW for s in starts)
    assert starts == sorted(starts), f"Events not in start order: {[ev.id for ev in events]}"


def test_request_parameters(five_upcoming_items):
    service = FakeCalendarService(five_upcoming_items)
    backend = CalendarBackend(service, calendar_id="team@example.com", num_retries=4)

    backend.list_upcoming_events(FIXED_NOW, 3)

    call = service.events().list_calls[0]
    assert call["calendarId"] == "team@example.com"
    assert call["timeMin"] == "2025-01-10T12:00:00+00:00"
    assert call["maxResults"] == 3
    assert call["singleEvents"] is True
    assert call["orderBy"] == "startTime"


def test_in_progress_events_are_not_upcoming():
    items = [
        make_item("running", "2025-01-10T11:30:00+00:00", "2025-01-10T12:30:00+00:00"),
        make_item("next", "2025-01-10T13:00:00+00:00", "2025-01-10T14:00:00+00:00"),
    ]
    backend = CalendarBackend(FakeCalendarService(items))

    events = backend.list_upcoming_events(FIXED_NOW, 5)

    assert [ev.id for ev in events] == ["next"]


def test_in_progress_event_does_not_shrink_the_listing(five_upcoming_items):
    """
    The API counts an in-progress event against maxResults. Asking for the next
    three must still return three upcoming events, fetched from a second page.
    """
    running = make_item("running", "2025-01-10T11:00:00+00:00", "2025-01-10T13:00:00+00:00", "Meeting")
    service = FakeCalendarService(five_upcoming_items + [running])
    backend = CalendarBackend(service)

    events = backend.list_upcoming_events(FIXED_NOW, 3)

    assert [ev.id for ev in events] == ["e1", "e2", "e3"]
    calls = service.events().list_calls
    assert [c["pageToken"] for c in calls] == [None, "3"]


def test_paging_stops_when_the_calendar_runs_out():
    items = [
        make_item("running", "2025-01-10T11:00:00+00:00", "2025-01-10T13:00:00+00:00"),
        make_item("only", "2025-01-11T09:00:00+00:00", "2025-01-11T10:00:00+00:00"),
    ]
    service = FakeCalendarService(items)

    events = CalendarBackend(service).list_upcoming_events(FIXED_NOW, 1)

    assert [ev.id for ev in events] == ["only"]
    assert len(service.events().list_calls) == 2


def test_all_day_events_use_their_date():
    item = {"id": "holiday", "summary": "Holiday", "start": {"date": "2025-01-11"}, "end": {"date": "2025-01-12"}}
    ev = CalendarEvent.from_api(item)

    assert ev.start == "2025-01-11"
    assert ev.end == "2025-01-12"
    assert ev.description == ""


def test_event_record_shape():
    ev = CalendarEvent.from_api(
        make_item("e1", "2025-01-11T09:00:00+00:00", "2025-01-11T10:00:00+00:00", "Standup", "daily")
    )

    assert ev.as_dict() == {
        "id": "e1",
        "summary": "Standup",
        "description": "daily",
        "start": "2025-01-11T09:00:00+00:00",
        "end": "2025-01-11T10:00:00+00:00",
    }


def test_list_http_error_is_wrapped():
    backend = CalendarBackend(FakeCalendarService(fail=http_error()))

    with pytest.raises(CalendarBackendError, match="failed to retrieve events"):
        backend.list_upcoming_events(FIXED_NOW, 3)


def test_list_transport_error_is_wrapped():
    backend = CalendarBackend(FakeCalendarService(fail=TimeoutError("timed out")))

    with pytest.raises(CalendarBackendError, match="timed out"):
        backend.list_upcoming_events(FIXED_NOW + timedelta(days=1), 3)


def test_insert_uses_configured_calendar_and_timezone():
    service = FakeCalendarService()
    backend = CalendarBackend(service, calendar_id="primary", timezone="Asia/Tokyo")

    link = backend.insert_event(
        summary="Planning",
        description="",
        start="2025-01-20T10:00:00+09:00",
        end="2025-01-20T11:00:00+09:00",
    )

    assert link == "https://www.google.com/calendar/event?eid=evt-1"
    inserted = service.events().inserted[0]
    assert inserted["calendarId"] == "primary"
    assert inserted["body"]["start"] == {"dateTime": "2025-01-20T10:00:00+09:00", "timeZone": "Asia/Tokyo"}
    assert inserted["body"]["end"]["timeZone"] == "Asia/Tokyo"
    assert inserted["body"]["description"] == ""


def test_insert_http_error_is_wrapped():
    backend = CalendarBackend(FakeCalendarService(fail=http_error(400)))

    with pytest.raises(CalendarBackendError, match="failed to create event"):
        backend.insert_event("x", "", "2025-01-20T10:00:00+09:00", "2025-01-20T11:00:00+09:00")
