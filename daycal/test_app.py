#!/usr/bin/env python3
"""
Tests for the interactive runtime, with a fake terminal
"""

import asyncio
import curses
from datetime import datetime, time, timedelta, timezone
from unittest.mock import MagicMock

from daycal import commands as cmd
from daycal.app import CalendarApp, key_to_action
from daycal.commands import FetchCommand, FetchCompletedMsg, KeyMsg, OpenURLCommand, ViewOptions
from daycal.events import Calendar, CalendarEvent, FetchQuery
from daycal.state import initial_state, update

UTC = timezone.utc
WORK = Calendar('me@example.com', 'Work')


class FakeCalendar:
    id = 'fake'
    name = 'Fake'

    def __init__(self, events):
        self.events = events

    async def calendars(self):
        return {WORK.id: WORK.name}

    async def fetch_events(self, calendar_id, query):
        return list(self.events)


def todays_event():
    start = datetime.combine(datetime.now(UTC).date(), time(12), tzinfo=UTC)
    return CalendarEvent(id='lunch', calendar=WORK, start=start, end=start + timedelta(hours=1), title='Lunch')


def make_app(events=()):
    stdscr = MagicMock()
    stdscr.getmaxyx.return_value = (40, 120)
    stdscr.getch.return_value = -1
    options = ViewOptions(query=FetchQuery(start=datetime.now(UTC), end=datetime.now(UTC)))
    source = FakeCalendar(list(events))
    return CalendarApp(stdscr, source, source, options, UTC)


def test_key_bindings():
    assert key_to_action(ord('j')) == cmd.ACTION_DOWN
    assert key_to_action(curses.KEY_UP) == cmd.ACTION_UP
    assert key_to_action(curses.KEY_RIGHT) == cmd.ACTION_NEXT_DAY
    assert key_to_action(ord('h')) == cmd.ACTION_PREV_DAY
    assert key_to_action(4) == cmd.ACTION_SCROLL_DOWN, "Ctrl+D scrolls down"
    assert key_to_action(21) == cmd.ACTION_SCROLL_UP, "Ctrl+U scrolls up"
    assert key_to_action(ord('\n')) == cmd.ACTION_OPEN_MEETING
    assert key_to_action(ord('v')) == cmd.ACTION_OPEN_EVENT
    assert key_to_action(ord('q')) == cmd.ACTION_QUIT
    assert key_to_action(ord('x')) is None


def test_dispatch_binds_fetches_and_queues_results():
    app = make_app([todays_event()])

    async def scenario():
        app.dispatch([FetchCommand(3, datetime.now(UTC).date())])
        return await asyncio.wait_for(app.queue.get(), timeout=5)

    msg = asyncio.run(scenario())

    assert isinstance(msg, FetchCompletedMsg)
    assert msg.generation == 3
    assert [e.id for e in msg.events] == ['lunch']


def test_dispatch_fire_and_forget_queues_nothing():
    app = make_app()
    command = OpenURLCommand('https://example.com')

    async def fake_run():
        return None

    command.run = fake_run

    async def scenario():
        app.dispatch([command])
        await asyncio.gather(*app.tasks)
        return app.queue.qsize()

    assert asyncio.run(scenario()) == 0


def test_run_loads_then_quits():
    app = make_app([todays_event()])

    pressed = []

    def getch():
        # Quit once the first fetch has landed
        if not pressed and app.state is not None and app.state.events:
            pressed.append(ord('q'))
            return ord('q')
        return -1

    app.stdscr.getch.side_effect = getch

    asyncio.run(asyncio.wait_for(app.run(), timeout=5))

    assert app.state.quitting
    assert [e.id for e in app.state.events] == ['lunch']
    assert app.state.layout is not None, "The terminal size is applied on start"
    app.stdscr.nodelay.assert_called_once_with(True)


def test_any_key_closes_help():
    app = make_app()
    app.state, _ = initial_state(datetime.now(UTC), UTC)
    seen = []
    keys = [ord('?'), ord('x')]

    def getch():
        # The second key only arrives once help is showing
        if keys and (len(keys) == 2 or app.state.show_help):
            return keys.pop(0)
        return -1

    app.stdscr.getch.side_effect = getch

    async def scenario():
        reader = asyncio.create_task(app.read_keys())
        try:
            for _ in range(2):
                msg = await asyncio.wait_for(app.queue.get(), timeout=5)
                seen.append(msg)
                app.state, _ = update(app.state, msg)
        finally:
            reader.cancel()

    asyncio.run(scenario())

    assert seen == [KeyMsg(cmd.ACTION_HELP), KeyMsg(cmd.ACTION_HELP)], \
        "An unbound key closes help while it is shown"
    assert not app.state.show_help
