"""
Messages consumed by the state machine, and the commands that produce them.

A command is a unit of background work. The runtime runs it as a task and
queues whatever message it returns; the state machine never awaits one.
"""

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import List, Optional

from .events import CalendarEvent, FetchQuery
from .filters import detect_primary_calendar, filter_events, filter_events_outside_ooo, ooo_periods
from .pipeline import FetchError, aggregate_events, fetch_calendars, fetch_per_calendar
from .source import CalendarDirectory, CalendarSource

logger = logging.getLogger(__name__)

TICK_SECONDS = 60

# Why a fetch was issued
REASON_LOAD = 'load'
REASON_REFRESH = 'refresh'

# Input actions
ACTION_UP = 'up'
ACTION_DOWN = 'down'
ACTION_SCROLL_UP = 'scroll_up'
ACTION_SCROLL_DOWN = 'scroll_down'
ACTION_PREV_DAY = 'prev_day'
ACTION_NEXT_DAY = 'next_day'
ACTION_TODAY = 'today'
ACTION_TAB = 'tab'
ACTION_REFRESH = 'refresh'
ACTION_OPEN_MEETING = 'open_meeting'
ACTION_OPEN_EVENT = 'open_event'
ACTION_HELP = 'help'
ACTION_QUIT = 'quit'


# Messages

@dataclass(frozen=True)
class ResizeMsg:
    width: int
    height: int


@dataclass(frozen=True)
class FetchCompletedMsg:
    generation: int
    view_date: date
    events: List[CalendarEvent] = field(default_factory=list)
    error: Optional[str] = None
    reason: str = REASON_LOAD


@dataclass(frozen=True)
class TickMsg:
    at: datetime


@dataclass(frozen=True)
class KeyMsg:
    action: str


# Commands

@dataclass(frozen=True)
class ViewOptions:
    """Everything a fetch needs besides the day being viewed"""
    query: FetchQuery
    smart_ooo: bool = False
    primary_calendar: str = ''


class Command:
    """Background work that may produce one message"""

    async def run(self):
        raise NotImplementedError


class FetchCommand(Command):
    """Load one day's events through the aggregation pipeline and filters"""

    def __init__(self, generation: int, view_date: date, reason: str = REASON_LOAD):
        self.generation = generation
        self.view_date = view_date
        self.reason = reason
        # Bound by the runtime before the command runs
        self.source: Optional[CalendarSource] = None
        self.directory: Optional[CalendarDirectory] = None
        self.options: Optional[ViewOptions] = None
        self.tz: Optional[tzinfo] = None

    def bind(self, source: CalendarSource, directory: CalendarDirectory, options: ViewOptions, tz: tzinfo):
        self.source = source
        self.directory = directory
        self.options = options
        self.tz = tz
        return self

    async def run(self) -> FetchCompletedMsg:
        query = self.options.query.for_day(self.view_date, self.tz)
        try:
            events = await load_events(self.source, self.directory, query, self.options, self.tz)
        except FetchError as e:
            logger.debug("Fetch %d for %s failed: %s", self.generation, self.view_date, e)
            return FetchCompletedMsg(self.generation, self.view_date, error=str(e), reason=self.reason)
        return FetchCompletedMsg(self.generation, self.view_date, events=events, reason=self.reason)

    def __repr__(self):
        return f"FetchCommand(generation={self.generation}, view_date={self.view_date}, reason={self.reason!r})"


class TickCommand(Command):
    """Wake the UI up once a minute so countdowns stay current"""

    def __init__(self, seconds: float = TICK_SECONDS):
        self.seconds = seconds

    async def run(self) -> TickMsg:
        await asyncio.sleep(self.seconds)
        return TickMsg(at=datetime.now().astimezone())

    def __repr__(self):
        return f"TickCommand(seconds={self.seconds})"


class OpenURLCommand(Command):
    """Open a link with the platform's default handler, fire and forget"""

    def __init__(self, url: str):
        self.url = url

    async def run(self) -> None:
        argv = opener_command(self.url)
        if argv is None:
            logger.warning("Don't know how to open links on %s", sys.platform)
            return None
        try:
            await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.warning("Failed to open %s: %s", self.url, e)
        return None

    def __repr__(self):
        return f"OpenURLCommand({self.url!r})"


def opener_command(url: str, platform: str = None) -> Optional[List[str]]:
    """argv that opens url in the default browser, None if unsupported"""
    platform = platform or sys.platform
    if platform == 'darwin':
        return ['open', url]
    if platform.startswith('linux') or 'bsd' in platform:
        return ['xdg-open', url]
    if platform in ('win32', 'cygwin'):
        return ['rundll32', 'url.dll,FileProtocolHandler', url]
    return None


async def load_events(source: CalendarSource, directory: CalendarDirectory, query: FetchQuery,
                      options: ViewOptions, tz: tzinfo) -> List[CalendarEvent]:
    """Fetch, deduplicate and filter the events of one window

    Raises FetchError when nothing could be retrieved.
    """
    calendars = await fetch_calendars(directory)
    per_calendar = await fetch_per_calendar(source, query, calendars)
    events = filter_events(aggregate_events(per_calendar), query)

    if options.smart_ooo:
        primary = detect_primary_calendar(options.primary_calendar, calendars)
        periods = ooo_periods(await _primary_calendar_events(source, query, primary, per_calendar), primary)
        if periods:
            logger.debug("Hiding events on %d out-of-office period(s)", len(periods))
            events = filter_events_outside_ooo(events, periods, primary, tz)

    return events


async def _primary_calendar_events(source: CalendarSource, query: FetchQuery, primary: str,
                                   per_calendar) -> List[CalendarEvent]:
    """Raw events of the primary calendar, fetched separately if it was filtered out"""
    if not primary:
        return []
    if primary in per_calendar:
        return per_calendar[primary]
    try:
        return await source.fetch_events(primary, query)
    except Exception as e:
        # OOO detection is best effort
        logger.warning("Failed to fetch out-of-office events from %s: %s", primary, e)
        return []
