#!/usr/bin/env python3
"""
Tests for the presentation state machine: apply a message, check the next state
"""

from datetime import datetime, timedelta, timezone

from daycal import commands as cmd
from daycal.commands import FetchCommand, FetchCompletedMsg, KeyMsg, OpenURLCommand, ResizeMsg, TickCommand, TickMsg
from daycal.events import Calendar, CalendarEvent
from daycal.state import (
    FOCUS_DETAIL,
    FOCUS_LIST,
    MODE_ERRORED,
    MODE_LOADING,
    MODE_READY,
    initial_state,
    update,
)

UTC = timezone.utc
NOW = datetime(2026, 3, 10, 11, 30, tzinfo=UTC)
TODAY = NOW.date()
CAL = Calendar('me@example.com', 'Me')


def meeting(event_id, hour, link='', url=''):
    start = datetime(2026, 3, 10, hour, tzinfo=UTC)
    return CalendarEvent(id=event_id, calendar=CAL, start=start, end=start + timedelta(minutes=45),
                         title=f"Meeting {event_id}", meeting_link=link, url=url)


def day_of_meetings(count=5):
    return [meeting(f"m{i}", 8 + i * 2) for i in range(count)]


def loaded_state(events, width=120, height=40):
    """A session that has been sized and finished its first fetch"""
    state, _ = initial_state(NOW, UTC)
    state, _ = update(state, ResizeMsg(width, height), NOW)
    state, _ = update(state, FetchCompletedMsg(state.fetch_generation, state.view_date, events=events), NOW)
    return state


def press(state, action, now=NOW):
    return update(state, KeyMsg(action), now)


def test_initial_state_fetches_today_and_ticks():
    state, commands = initial_state(NOW, UTC)

    assert state.view_date == TODAY
    assert state.mode == MODE_LOADING, "A new session starts loading"
    assert len(commands) == 2
    fetch, tick = commands
    assert isinstance(fetch, FetchCommand) and fetch.view_date == TODAY
    assert fetch.generation == state.fetch_generation
    assert isinstance(tick, TickCommand)


def test_first_fetch_selects_next_upcoming_event():
    # Meetings at 8, 10, 12, 14, 16 -> 12:00 is next after 11:30
    state = loaded_state(day_of_meetings())

    assert state.mode == MODE_READY
    assert state.selected == 2, f"Expected the 12:00 meeting to be selected, got {state.selected}"
    assert state.selected_event.id == 'm2'


def test_stale_fetch_is_discarded():
    state = loaded_state(day_of_meetings())
    stale_generation = state.fetch_generation

    state, commands = press(state, cmd.ACTION_NEXT_DAY)
    assert commands[0].generation != stale_generation

    late = FetchCompletedMsg(stale_generation, TODAY, events=day_of_meetings(2))
    after, _ = update(state, late, NOW)

    assert after is state, "A completion for an old request must not change anything"
    assert after.loading, "Still waiting for the current fetch"


def test_failed_fetch_keeps_events():
    events = day_of_meetings()
    state = loaded_state(events)

    state, commands = press(state, cmd.ACTION_REFRESH)
    assert state.loading
    failed = FetchCompletedMsg(commands[0].generation, TODAY, error="server went away", reason=cmd.REASON_REFRESH)
    state, _ = update(state, failed, NOW)

    assert state.mode == MODE_ERRORED
    assert state.error == "server went away"
    assert state.events == events, "The last good events stay on screen"


def test_selection_clamped_when_events_shrink():
    state = loaded_state(day_of_meetings(5))
    for _ in range(5):
        state, _ = press(state, cmd.ACTION_DOWN)
    assert state.selected == 4, "Selection should stop at the last event"

    state, commands = press(state, cmd.ACTION_REFRESH)
    shrunk = FetchCompletedMsg(commands[0].generation, TODAY, events=day_of_meetings(3), reason=cmd.REASON_REFRESH)
    state, _ = update(state, shrunk, NOW)
    assert state.selected == 2, f"Selection should be clamped to M-1, got {state.selected}"

    state, commands = press(state, cmd.ACTION_REFRESH)
    empty = FetchCompletedMsg(commands[0].generation, TODAY, events=[], reason=cmd.REASON_REFRESH)
    state, _ = update(state, empty, NOW)
    assert state.selected == 0, "An empty day selects 0"
    assert state.selected_event is None


def test_refresh_keeps_selection():
    state = loaded_state(day_of_meetings())
    state, _ = press(state, cmd.ACTION_UP)
    assert state.selected == 1

    state, commands = press(state, cmd.ACTION_REFRESH)
    assert len(commands) == 1 and isinstance(commands[0], FetchCommand)
    assert commands[0].reason == cmd.REASON_REFRESH
    done = FetchCompletedMsg(commands[0].generation, TODAY, events=day_of_meetings(), reason=cmd.REASON_REFRESH)
    state, _ = update(state, done, NOW)

    assert state.selected == 1, "Refreshing should not move the selection"


def test_day_change_clears_and_fetches():
    state = loaded_state(day_of_meetings())

    state, commands = press(state, cmd.ACTION_NEXT_DAY)

    assert state.view_date == TODAY + timedelta(days=1)
    assert state.events == [], "Events of the old day are cleared"
    assert state.selected == 0 and state.list_offset == 0 and state.detail_offset == 0
    assert state.mode == MODE_LOADING
    assert len(commands) == 1
    assert isinstance(commands[0], FetchCommand) and commands[0].view_date == state.view_date

    state, commands = press(state, cmd.ACTION_PREV_DAY)
    state, commands = press(state, cmd.ACTION_PREV_DAY)
    assert state.view_date == TODAY - timedelta(days=1)


def test_other_day_selects_first_event():
    state = loaded_state(day_of_meetings())
    state, commands = press(state, cmd.ACTION_NEXT_DAY)
    tomorrow = [meeting('t1', 9), meeting('t2', 13)]
    state, _ = update(state, FetchCompletedMsg(commands[0].generation, state.view_date, events=tomorrow), NOW)
    assert state.selected == 0, "Days other than today start at the first event"


def test_today_key():
    state = loaded_state(day_of_meetings())
    state, _ = press(state, cmd.ACTION_DOWN)
    state, commands = press(state, cmd.ACTION_TODAY)
    assert commands == [], "Already on today: no fetch"
    assert state.selected == 2, "Jump back to the next upcoming event"

    state, _ = press(state, cmd.ACTION_NEXT_DAY)
    state, commands = press(state, cmd.ACTION_TODAY)
    assert state.view_date == TODAY
    assert len(commands) == 1 and isinstance(commands[0], FetchCommand), "Coming back from another day fetches"


def test_focus_and_scroll_never_fetch():
    state = loaded_state(day_of_meetings(), width=60)
    assert not state.layout.paired

    state, commands = press(state, cmd.ACTION_TAB)
    assert commands == []
    assert state.focus == FOCUS_DETAIL

    for action in (cmd.ACTION_SCROLL_DOWN, cmd.ACTION_SCROLL_UP, cmd.ACTION_TAB):
        state, commands = press(state, action)
        assert commands == [], f"{action} should not issue commands"
    assert state.focus == FOCUS_LIST


def test_tick_keeps_selection():
    state = loaded_state(day_of_meetings())
    state, _ = press(state, cmd.ACTION_UP)

    later = NOW + timedelta(hours=3)
    after, commands = update(state, TickMsg(later), later)

    assert after.selected == state.selected, "Ticks never move the selection"
    assert after.list_offset == state.list_offset
    assert len(commands) == 1 and isinstance(commands[0], TickCommand), "Ticks schedule the next tick"


def test_resize_recomputes_layout():
    state = loaded_state(day_of_meetings())
    assert state.layout.paired

    state, commands = update(state, ResizeMsg(50, 20), NOW)
    assert commands == []
    assert not state.layout.paired
    assert state.layout.content_height == 14


def test_help_overlay_swallows_next_key():
    state = loaded_state(day_of_meetings())
    state, _ = press(state, cmd.ACTION_HELP)
    assert state.show_help

    state, commands = press(state, cmd.ACTION_NEXT_DAY)
    assert not state.show_help, "Any key closes the help"
    assert state.view_date == TODAY, "The key that closes help does nothing else"
    assert commands == []


def test_quit():
    state = loaded_state(day_of_meetings())
    state, commands = press(state, cmd.ACTION_QUIT)
    assert state.quitting
    assert commands == []


def test_open_links():
    events = [meeting('a', 12, link='https://meet.google.com/abc-defg-hij',
                      url='https://www.google.com/calendar/event?eid=a'),
              meeting('b', 13)]
    state = loaded_state(events)
    assert state.selected_event.id == 'a'

    _, commands = press(state, cmd.ACTION_OPEN_MEETING)
    assert len(commands) == 1 and isinstance(commands[0], OpenURLCommand)
    assert commands[0].url == 'https://meet.google.com/abc-defg-hij'

    _, commands = press(state, cmd.ACTION_OPEN_EVENT)
    assert commands[0].url == 'https://www.google.com/calendar/event?eid=a'

    state, _ = press(state, cmd.ACTION_DOWN)
    _, commands = press(state, cmd.ACTION_OPEN_MEETING)
    assert commands == [], "No link, nothing to open"


def test_navigation_on_empty_day():
    state = loaded_state([])
    for action in (cmd.ACTION_UP, cmd.ACTION_DOWN, cmd.ACTION_SCROLL_DOWN, cmd.ACTION_OPEN_MEETING):
        state, commands = press(state, action)
        assert commands == []
    assert state.selected == 0
