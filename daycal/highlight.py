"""
Where the NOW marker goes, and which row is selected and visible around it.

The list panel draws one row per event plus, on today's view, one divider row
for the NOW marker placed right before the event at `now_marker_index`.
"""

from datetime import date, datetime
from typing import Optional, Sequence

from .events import CalendarEvent, is_same_day

# Rows of context kept above the NOW marker when scrolling to it
NOW_CONTEXT_ROWS = 2


def now_marker_index(events: Sequence[CalendarEvent], now: datetime) -> int:
    """Index of the first timed event starting after now, or len(events)"""
    for i, event in enumerate(events):
        if not event.is_all_day and event.start > now:
            return i
    return len(events)


def marker_row(events: Sequence[CalendarEvent], view_date: date, now: datetime) -> Optional[int]:
    """List row of the NOW divider, None when the view is not today"""
    if not is_same_day(view_date, now):
        return None
    return now_marker_index(events, now)


def default_selection(events: Sequence[CalendarEvent], view_date: date, now: datetime) -> int:
    """Select the first upcoming event on today's view, the first event otherwise"""
    if not events or not is_same_day(view_date, now):
        return 0
    # All events are past or in progress: select the last one
    return min(now_marker_index(events, now), len(events) - 1)


def scroll_to_now(events: Sequence[CalendarEvent], view_date: date, now: datetime) -> int:
    """List offset that puts the NOW marker near the top of the panel"""
    row = marker_row(events, view_date, now)
    if row is None or not events:
        return 0
    return max(row - NOW_CONTEXT_ROWS, 0)


def selection_row(events: Sequence[CalendarEvent], selected: int, view_date: date, now: datetime) -> int:
    """Row of the selected event, counting the NOW divider above it"""
    row = marker_row(events, view_date, now)
    if row is not None and selected >= row:
        return selected + 1
    return selected


def scroll_to_selection(events: Sequence[CalendarEvent], selected: int, offset: int, viewport_height: int,
                        view_date: date, now: datetime) -> int:
    """Smallest change to `offset` that keeps the selected row visible"""
    if not events:
        return 0

    top = selection_row(events, selected, view_date, now)
    bottom = top + 1

    if top < offset:
        return top
    if bottom > offset + viewport_height:
        return bottom - viewport_height
    return offset


def clamp_selection(selected: int, count: int) -> int:
    """Keep a selection index inside [0, count)"""
    if count <= 0:
        return 0
    return min(max(selected, 0), count - 1)


def list_row_count(events: Sequence[CalendarEvent], view_date: date, now: datetime) -> int:
    """Total rows in the list panel, NOW divider included"""
    if not events:
        return 1
    return len(events) + (1 if is_same_day(view_date, now) else 0)
