"""
Aggregation of per-calendar event lists into one deduplicated, time-ordered sequence.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping

from .events import CalendarEvent, FetchQuery
from .source import CalendarDirectory, CalendarSource

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Nothing could be retrieved for the requested window"""


def aggregate_events(per_calendar: Mapping[str, Iterable[CalendarEvent]]) -> List[CalendarEvent]:
    """Merge events that share a dedupe key and sort the result by start time

    The first occurrence of a key becomes the representative; later occurrences
    only add their (calendar, status, url) to its affiliation list. Events
    without a dedupe key are never merged. Input records are not modified.
    """
    seen: Dict[str, int] = {}  # dedupe key -> index in result
    result: List[CalendarEvent] = []

    for events in per_calendar.values():
        for event in events:
            if event.dedupe_key and event.dedupe_key in seen:
                result[seen[event.dedupe_key]].calendars.append(event.affiliation())
                continue

            merged = replace(event, calendars=[event.affiliation()], attachments=list(event.attachments))
            if event.dedupe_key:
                seen[event.dedupe_key] = len(result)
            result.append(merged)

    # sorted() is stable, simultaneous events keep their arrival order
    return sorted(result, key=lambda e: e.start)


async def fetch_per_calendar(source: CalendarSource, query: FetchQuery,
                             calendars: Mapping[str, str]) -> Dict[str, List[CalendarEvent]]:
    """Fetch the query window from every selected calendar concurrently

    A calendar that fails contributes no events. Only when every calendar
    fails is the whole fetch considered failed.
    """
    if query.calendar_ids:
        calendar_ids = [cal_id for cal_id in calendars if cal_id in query.calendar_ids]
        unknown = query.calendar_ids - set(calendar_ids)
        if unknown:
            logger.debug("Skipping unknown calendars: %s", ', '.join(sorted(unknown)))
    else:
        calendar_ids = list(calendars)

    if not calendar_ids:
        return {}

    results = await asyncio.gather(
        *(source.fetch_events(cal_id, query) for cal_id in calendar_ids),
        return_exceptions=True,
    )

    per_calendar: Dict[str, List[CalendarEvent]] = {}
    failures = []
    for cal_id, result in zip(calendar_ids, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.warning("Failed to fetch calendar %s: %s", cal_id, result)
            failures.append(f"{cal_id}: {result}")
            per_calendar[cal_id] = []
        else:
            per_calendar[cal_id] = list(result)

    if len(failures) == len(calendar_ids):
        raise FetchError("Could not fetch any calendar (" + "; ".join(failures) + ")")
    return per_calendar


async def fetch_calendars(directory: CalendarDirectory) -> Dict[str, str]:
    """Calendar id -> name, turning lookup failures into a FetchError"""
    try:
        return await directory.calendars()
    except Exception as e:
        raise FetchError(f"Could not list calendars: {e}") from e
