"""
The presentation state machine.

`update` is the only place the session's state changes. It takes the current
state and one message, and returns the next state together with the commands
(background work) to start. It never blocks and never does I/O itself.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, tzinfo
from typing import List, Optional, Tuple

from . import commands as cmd
from .commands import Command, FetchCommand, FetchCompletedMsg, KeyMsg, OpenURLCommand, ResizeMsg, TickCommand, TickMsg
from .events import CalendarEvent, is_same_day, local_timezone
from .highlight import (
    clamp_selection,
    default_selection,
    list_row_count,
    scroll_to_now,
    scroll_to_selection,
)
from .layout import Layout, compute_layout
from .render import detail_lines

logger = logging.getLogger(__name__)

# Panel focus, only visible in single-panel layouts
FOCUS_LIST = 'list'
FOCUS_DETAIL = 'detail'

MODE_LOADING = 'loading'
MODE_READY = 'ready'
MODE_ERRORED = 'errored'


@dataclass
class PresentationState:
    """Everything the UI shows, for one session"""

    view_date: date
    tz: tzinfo
    events: List[CalendarEvent] = field(default_factory=list)
    selected: int = 0
    list_offset: int = 0
    detail_offset: int = 0
    layout: Optional[Layout] = None
    focus: str = FOCUS_LIST
    loading: bool = True
    error: Optional[str] = None
    fetch_generation: int = 0
    show_help: bool = False
    quitting: bool = False

    @property
    def mode(self) -> str:
        if self.loading:
            return MODE_LOADING
        if self.error:
            return MODE_ERRORED
        return MODE_READY

    @property
    def selected_event(self) -> Optional[CalendarEvent]:
        if not self.events:
            return None
        return self.events[clamp_selection(self.selected, len(self.events))]


def initial_state(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> Tuple[PresentationState, List[Command]]:
    """State for a fresh session viewing today, plus the first fetch and tick"""
    tz = tz or local_timezone()
    now = (now or datetime.now(tz)).astimezone(tz)
    state = PresentationState(view_date=now.date(), tz=tz, loading=True, fetch_generation=1)
    return state, [FetchCommand(state.fetch_generation, state.view_date), TickCommand()]


def update(state: PresentationState, msg, now: Optional[datetime] = None) -> Tuple[PresentationState, List[Command]]:
    """Apply one message to the state"""
    now = (now or datetime.now(state.tz)).astimezone(state.tz)

    if isinstance(msg, ResizeMsg):
        return _on_resize(state, msg, now), []
    if isinstance(msg, FetchCompletedMsg):
        return _on_fetch_completed(state, msg, now), []
    if isinstance(msg, TickMsg):
        # Only the rendered countdowns change; selection and marker stay put
        return state, [TickCommand()]
    if isinstance(msg, KeyMsg):
        return _on_key(state, msg.action, now)

    logger.debug("Ignoring unknown message %r", msg)
    return state, []


def _on_resize(state: PresentationState, msg: ResizeMsg, now: datetime) -> PresentationState:
    state = replace(state, layout=compute_layout(msg.width, msg.height))
    state = replace(state, list_offset=_clamp_list_offset(state, state.list_offset, now))
    state = replace(state, list_offset=_follow_selection(state, now))
    return replace(state, detail_offset=_clamp_detail_offset(state, state.detail_offset, now))


def _on_fetch_completed(state: PresentationState, msg: FetchCompletedMsg, now: datetime) -> PresentationState:
    if msg.generation != state.fetch_generation:
        logger.debug("Discarding stale fetch %d for %s (current is %d)",
                     msg.generation, msg.view_date, state.fetch_generation)
        return state

    if msg.error is not None:
        # Keep showing whatever we had, with the error on top
        logger.debug("Fetch for %s failed: %s", msg.view_date, msg.error)
        return replace(state, loading=False, error=msg.error,
                       selected=clamp_selection(state.selected, len(state.events)))

    events = list(msg.events)
    state = replace(state, events=events, loading=False, error=None)

    if msg.reason == cmd.REASON_REFRESH:
        # Stay on the same row, clamped if the day lost events
        state = replace(state, selected=clamp_selection(state.selected, len(events)))
        state = replace(state, list_offset=_clamp_list_offset(state, state.list_offset, now))
        state = replace(state, list_offset=_follow_selection(state, now))
        return replace(state, detail_offset=_clamp_detail_offset(state, state.detail_offset, now))

    return _jump_to_now(state, now)


def _on_key(state: PresentationState, action: str, now: datetime) -> Tuple[PresentationState, List[Command]]:
    # When the help overlay is shown, any key dismisses it
    if state.show_help:
        return replace(state, show_help=False), []

    if action == cmd.ACTION_QUIT:
        return replace(state, quitting=True), []

    if action == cmd.ACTION_HELP:
        return replace(state, show_help=True), []

    if action in (cmd.ACTION_UP, cmd.ACTION_DOWN):
        return _move_selection(state, -1 if action == cmd.ACTION_UP else 1, now), []

    if action in (cmd.ACTION_SCROLL_UP, cmd.ACTION_SCROLL_DOWN):
        return _scroll(state, -1 if action == cmd.ACTION_SCROLL_UP else 1, now), []

    if action == cmd.ACTION_PREV_DAY:
        return _change_day(state, state.view_date - timedelta(days=1))

    if action == cmd.ACTION_NEXT_DAY:
        return _change_day(state, state.view_date + timedelta(days=1))

    if action == cmd.ACTION_TODAY:
        if is_same_day(state.view_date, now):
            # Already on today, just scroll to now
            return _jump_to_now(state, now), []
        return _change_day(state, now.date())

    if action == cmd.ACTION_TAB:
        focus = FOCUS_DETAIL if state.focus == FOCUS_LIST else FOCUS_LIST
        return replace(state, focus=focus), []

    if action == cmd.ACTION_REFRESH:
        generation = state.fetch_generation + 1
        state = replace(state, loading=True, fetch_generation=generation)
        return state, [FetchCommand(generation, state.view_date, reason=cmd.REASON_REFRESH)]

    if action in (cmd.ACTION_OPEN_MEETING, cmd.ACTION_OPEN_EVENT):
        event = state.selected_event
        if event is None:
            return state, []
        url = event.meeting_link if action == cmd.ACTION_OPEN_MEETING else event.url
        if not url:
            return state, []
        return state, [OpenURLCommand(url)]

    logger.debug("Ignoring unknown action %r", action)
    return state, []


def _change_day(state: PresentationState, day: date) -> Tuple[PresentationState, List[Command]]:
    """View another day: drop the current events and fetch the new day's"""
    generation = state.fetch_generation + 1
    state = replace(
        state,
        view_date=day,
        events=[],
        selected=0,
        list_offset=0,
        detail_offset=0,
        loading=True,
        error=None,
        fetch_generation=generation,
    )
    return state, [FetchCommand(generation, day)]


def _jump_to_now(state: PresentationState, now: datetime) -> PresentationState:
    """Select the next upcoming event and scroll the NOW marker into view"""
    events = state.events
    state = replace(
        state,
        selected=default_selection(events, state.view_date, now),
        list_offset=scroll_to_now(events, state.view_date, now),
        detail_offset=0,
    )
    state = replace(state, list_offset=_clamp_list_offset(state, state.list_offset, now))
    return replace(state, list_offset=_follow_selection(state, now))


def _move_selection(state: PresentationState, step: int, now: datetime) -> PresentationState:
    if not state.events:
        return state
    selected = clamp_selection(state.selected + step, len(state.events))
    if selected == state.selected:
        return state
    state = replace(state, selected=selected, detail_offset=0)
    return replace(state, list_offset=_follow_selection(state, now))


def _scroll(state: PresentationState, direction: int, now: datetime) -> PresentationState:
    """Scroll one page: the list when it is the visible single panel, the details otherwise"""
    page = state.layout.viewport_height if state.layout else 1
    if state.layout is not None and not state.layout.paired and state.focus == FOCUS_LIST:
        return replace(state, list_offset=_clamp_list_offset(state, state.list_offset + direction * page, now))
    return replace(state, detail_offset=_clamp_detail_offset(state, state.detail_offset + direction * page, now))


def _viewport_height(state: PresentationState) -> int:
    return state.layout.viewport_height if state.layout else 1


def _follow_selection(state: PresentationState, now: datetime) -> int:
    return scroll_to_selection(state.events, state.selected, state.list_offset,
                               _viewport_height(state), state.view_date, now)


def _clamp_list_offset(state: PresentationState, offset: int, now: datetime) -> int:
    rows = list_row_count(state.events, state.view_date, now)
    return min(max(offset, 0), max(rows - _viewport_height(state), 0))


def _clamp_detail_offset(state: PresentationState, offset: int, now: datetime) -> int:
    event = state.selected_event
    if event is None or state.layout is None:
        return 0
    lines = detail_lines(event, state.layout.detail_viewport_width, now, state.tz)
    return min(max(offset, 0), max(len(lines) - _viewport_height(state), 0))
