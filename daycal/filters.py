"""
Visibility rules applied to the aggregated event sequence.
"""

from datetime import datetime, timedelta, tzinfo
from typing import Iterable, List, Mapping, Optional, Sequence

from .events import (
    CalendarEvent,
    FetchQuery,
    OOOPeriod,
    STATUS_DECLINED,
    TYPE_DEFAULT,
    TYPE_OUT_OF_OFFICE,
    local_timezone,
)


def filter_events(events: Iterable[CalendarEvent], query: FetchQuery) -> List[CalendarEvent]:
    """Keep the events matching the query's type, status and all-day rules"""
    include_types = query.include_types or frozenset({TYPE_DEFAULT})

    filtered = []
    for event in events:
        if event.event_type not in include_types:
            continue
        if query.include_statuses and event.status not in query.include_statuses:
            continue
        if query.exclude_all_day and event.is_all_day:
            continue
        filtered.append(event)
    return filtered


def ooo_periods(events: Iterable[CalendarEvent], primary_calendar: str) -> List[OOOPeriod]:
    """Out-of-office periods from the primary calendar's OOO events

    Declined OOO entries are ignored; every other status counts, since OOO
    events usually need no response.
    """
    if not primary_calendar:
        return []
    return [
        OOOPeriod(start=e.start, end=e.end)
        for e in events
        if e.calendar.id == primary_calendar
        and e.event_type == TYPE_OUT_OF_OFFICE
        and e.status != STATUS_DECLINED
    ]


def is_event_on_ooo_day(event: CalendarEvent, periods: Iterable[OOOPeriod], tz: Optional[tzinfo] = None) -> bool:
    """Check if an event overlaps any calendar day touched by an OOO period"""
    tz = tz or local_timezone()
    for ooo in periods:
        # Walk the period one local day at a time
        current = ooo.start.astimezone(tz)
        end = ooo.end.astimezone(tz)

        while current < end:
            day_start = datetime(current.year, current.month, current.day, tzinfo=tz)
            day_end = day_start + timedelta(hours=24)

            if event.start < day_end and event.end > day_start:
                return True

            current += timedelta(hours=24)
    return False


def filter_events_outside_ooo(events: Iterable[CalendarEvent], periods: Sequence[OOOPeriod],
                              primary_calendar: str, tz: Optional[tzinfo] = None) -> List[CalendarEvent]:
    """Hide everything on out-of-office days except the OOO event itself"""
    if not periods:
        return list(events)

    filtered = []
    for event in events:
        if is_event_on_ooo_day(event, periods, tz):
            # Only the OOO entry itself survives, other primary calendar events are hidden too
            if event.calendar.id == primary_calendar and event.event_type == TYPE_OUT_OF_OFFICE:
                filtered.append(event)
            continue
        filtered.append(event)
    return filtered


def resolve_calendar_names(names: Iterable[str], calendars: Mapping[str, str]) -> List[str]:
    """Turn user supplied calendar ids or (partial) names into calendar ids"""
    ids = []
    for name in names:
        name = name.strip()
        if not name:
            continue

        if name in calendars:
            ids.append(name)
            continue

        name_lower = name.lower()
        for cal_id, cal_name in calendars.items():
            if name_lower in cal_name.lower():
                ids.append(cal_id)
                break
    return ids


def detect_primary_calendar(configured: str, calendars: Mapping[str, str]) -> str:
    """Find the user's primary calendar

    Uses the configured value when given, otherwise prefers the calendar keyed
    'primary', then one named 'Calendar', then a personal address (not a group
    calendar), then whatever comes first.
    """
    if configured:
        ids = resolve_calendar_names([configured], calendars)
        return ids[0] if ids else configured

    if 'primary' in calendars:
        return 'primary'

    for cal_id, name in calendars.items():
        if name == 'Calendar':
            return cal_id

    for cal_id in calendars:
        if '@' in cal_id and '@group.calendar.google.com' not in cal_id:
            return cal_id

    for cal_id in calendars:
        return cal_id

    return ''
