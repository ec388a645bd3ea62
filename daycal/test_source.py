#!/usr/bin/env python3
"""
Tests for the MCP calendar source, without a running server
"""

import asyncio
import json
import time as systime
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest

from daycal.commands import ViewOptions, load_events
from daycal.events import (
    Calendar,
    FetchQuery,
    STATUS_ACCEPTED,
    STATUS_DECLINED,
    STATUS_NO_RESPONSE,
    STATUS_TENTATIVE,
    TYPE_DEFAULT,
    TYPE_FOCUS_TIME,
    TYPE_OUT_OF_OFFICE,
)
from daycal.source import MCPCalendarSource, MCPClient, SourceError, parse_event

WORK = Calendar('me@example.com', 'Work')


def google_event(**overrides):
    data = {
        'id': 'evt1',
        'iCalUID': 'evt1@google.com',
        'summary': 'Design Review',
        'description': '<p>Agenda</p>',
        'location': 'Room 4',
        'status': 'confirmed',
        'htmlLink': 'https://www.google.com/calendar/event?eid=evt1',
        'start': {'dateTime': '2026-03-10T14:00:00Z'},
        'end': {'dateTime': '2026-03-10T15:00:00Z'},
        'attendees': [
            {'email': 'boss@example.com', 'responseStatus': 'accepted'},
            {'email': 'me@example.com', 'self': True, 'responseStatus': 'tentative'},
        ],
    }
    data.update(overrides)
    return data


def test_parse_event_fields():
    event = parse_event(google_event(), WORK, source_id='google')

    assert event.id == 'evt1'
    assert event.dedupe_key == 'evt1@google.com', "iCalUID is the cross-calendar key"
    assert event.source_id == 'google'
    assert event.calendar == WORK
    assert event.title == 'Design Review'
    assert event.status == STATUS_TENTATIVE, "Status comes from the attendee marked self"
    assert event.start == datetime(2026, 3, 10, 14, tzinfo=timezone.utc)
    assert event.end - event.start == timedelta(hours=1)
    assert not event.is_all_day
    assert event.url.endswith('eid=evt1')


def test_parse_event_statuses():
    assert parse_event(google_event(attendees=[]), WORK).status == STATUS_NO_RESPONSE, \
        "Events without attendees need no response"
    assert parse_event(google_event(attendees=[], status='cancelled'), WORK).status == STATUS_DECLINED
    declined = [{'email': 'me@example.com', 'self': True, 'responseStatus': 'declined'}]
    assert parse_event(google_event(attendees=declined), WORK).status == STATUS_DECLINED
    accepted = [{'email': 'me@example.com', 'self': True, 'responseStatus': 'accepted'}]
    assert parse_event(google_event(attendees=accepted), WORK).status == STATUS_ACCEPTED


def test_parse_event_types():
    assert parse_event(google_event(eventType='outOfOffice'), WORK).event_type == TYPE_OUT_OF_OFFICE
    assert parse_event(google_event(eventType='focusTime'), WORK).event_type == TYPE_FOCUS_TIME
    assert parse_event(google_event(eventType='somethingNew'), WORK).event_type == 'default', \
        "Unknown types are treated as regular events"


def test_parse_event_meeting_link_prefers_conference_data():
    data = google_event(
        hangoutLink='https://meet.google.com/old-link',
        conferenceData={'entryPoints': [
            {'entryPointType': 'phone', 'uri': 'tel:+1-555-0100'},
            {'entryPointType': 'video', 'uri': 'https://zoom.us/j/123'},
        ]},
    )
    assert parse_event(data, WORK).meeting_link == 'https://zoom.us/j/123'
    assert parse_event(google_event(hangoutLink='https://meet.google.com/abc'), WORK).meeting_link == \
        'https://meet.google.com/abc'


def test_parse_event_all_day_and_missing_start():
    all_day = parse_event(google_event(start={'date': '2026-03-10'}, end={'date': '2026-03-11'}), WORK)
    assert all_day.is_all_day
    assert parse_event(google_event(start={}), WORK) is None, "Events without a start are skipped"
    assert parse_event(google_event(summary=''), WORK).title == 'No Title'


def test_parse_event_attachments():
    data = google_event(attachments=[
        {'title': 'Slides', 'fileUrl': 'https://drive.google.com/file/1', 'mimeType': 'application/pdf',
         'fileId': '1'},
    ])
    attachment = parse_event(data, WORK).attachments[0]
    assert attachment.name == 'Slides'
    assert attachment.url == 'https://drive.google.com/file/1'


def make_source(events, timezone='UTC'):
    client = MagicMock()

    async def call_tool(tool_name, arguments):
        if tool_name == 'list_calendars':
            return {'calendars': [{'id': 'me@example.com', 'summary': 'Work'}, {'id': 'empty@example.com'}]}
        return {'events': events}

    client.call_tool = AsyncMock(side_effect=call_tool)
    return client, MCPCalendarSource(client, timezone=timezone)


def test_calendars_are_listed_once():
    client, source = make_source([])

    first = asyncio.run(source.calendars())
    second = asyncio.run(source.calendars())

    assert first == {'me@example.com': 'Work', 'empty@example.com': 'empty@example.com'}, \
        "Calendars without a summary fall back to their id"
    assert first == second
    assert client.call_tool.await_count == 1, "The calendar list is cached"


def test_fetch_events_passes_the_window():
    client, source = make_source([google_event()])
    start = datetime(2026, 3, 10, tzinfo=timezone.utc)
    query = FetchQuery(start=start, end=start + timedelta(days=1))

    events = asyncio.run(source.fetch_events('me@example.com', query))

    assert len(events) == 1
    assert events[0].calendar == Calendar('me@example.com', 'Work')
    tool_name, params = client.call_tool.await_args.args
    assert tool_name == 'list_events'
    assert params['calendar_id'] == 'me@example.com'
    assert params['time_min'] == start.isoformat()
    assert params['time_max'] == (start + timedelta(days=1)).isoformat()


def test_events_spanning_the_window_become_all_day():
    conference = google_event(start={'dateTime': '2026-03-09T08:00:00Z'}, end={'dateTime': '2026-03-12T18:00:00Z'})
    _, source = make_source([conference])
    start = datetime(2026, 3, 10, tzinfo=timezone.utc)
    query = FetchQuery(start=start, end=start + timedelta(days=1))

    events = asyncio.run(source.fetch_events('me@example.com', query))

    assert events[0].is_all_day, "A multi-day timed event covering the whole day shows as all-day"


def mcp_result(text, is_error=False):
    return SimpleNamespace(content=[SimpleNamespace(text=text)], isError=is_error)


def test_call_tool_decodes_json():
    client = MCPClient('gcal-mcp-server')
    client.session = MagicMock()
    client.session.call_tool = AsyncMock(return_value=mcp_result(json.dumps({'events': []})))

    assert asyncio.run(client.call_tool('list_events', {})) == {'events': []}


def test_call_tool_errors():
    client = MCPClient('gcal-mcp-server')
    with pytest.raises(SourceError):
        asyncio.run(client.call_tool('list_events', {}))

    client.session = MagicMock()
    client.session.call_tool = AsyncMock(return_value=mcp_result('not json'))
    with pytest.raises(SourceError):
        asyncio.run(client.call_tool('list_events', {}))

    client.session.call_tool = AsyncMock(return_value=mcp_result('token expired', is_error=True))
    with pytest.raises(SourceError):
        asyncio.run(client.call_tool('list_events', {}))

    client.session.call_tool = AsyncMock(side_effect=ConnectionError('pipe closed'))
    with pytest.raises(SourceError):
        asyncio.run(client.call_tool('list_events', {}))


NEW_YORK = ZoneInfo('America/New_York')


@pytest.fixture
def utc_system_zone(monkeypatch):
    """Run with the machine in UTC, whatever zone the app is told to use"""
    if not hasattr(systime, 'tzset'):
        pytest.skip("needs time.tzset")
    monkeypatch.setenv('TZ', 'UTC')
    systime.tzset()
    yield
    monkeypatch.undo()
    systime.tzset()


def test_all_day_dates_use_the_given_zone(utc_system_zone):
    event = parse_event(google_event(start={'date': '2026-10-17'}, end={'date': '2026-10-18'}), WORK, tz=NEW_YORK)
    assert event.start == datetime(2026, 10, 17, tzinfo=NEW_YORK), "Midnight in the viewer's zone, not the machine's"
    assert event.end == datetime(2026, 10, 18, tzinfo=NEW_YORK)


def test_all_day_ooo_only_hides_its_own_day(utc_system_zone):
    vacation = google_event(id='ooo', iCalUID='ooo@google.com', summary='Vacation', eventType='outOfOffice',
                            attendees=[], start={'date': '2026-10-17'}, end={'date': '2026-10-18'})
    # 7pm to 8pm in New York, the evening before the vacation
    dinner = google_event(id='dinner', iCalUID='dinner@google.com', summary='Team dinner', attendees=[],
                          start={'dateTime': '2026-10-16T23:00:00Z'}, end={'dateTime': '2026-10-17T00:00:00Z'})
    _, source = make_source([vacation, dinner], timezone='America/New_York')

    base = FetchQuery(start=datetime.now(NEW_YORK), end=datetime.now(NEW_YORK),
                      include_types=frozenset({TYPE_DEFAULT, TYPE_OUT_OF_OFFICE}))
    query = base.for_day(date(2026, 10, 16), NEW_YORK)
    options = ViewOptions(query=query, smart_ooo=True, primary_calendar='me@example.com')

    events = asyncio.run(load_events(source, source, query, options, NEW_YORK))

    assert 'dinner' in [e.id for e in events], "The day before the vacation is not an out-of-office day"
    ooo = next(e for e in events if e.id == 'ooo')
    assert ooo.start == datetime(2026, 10, 17, tzinfo=NEW_YORK), "The vacation stays on its own day"
