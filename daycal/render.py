"""
Text for the panels, header and help, independent of curses.

Every function here is pure: it turns events (and the clock) into lines of
text tagged with a style name. `screen.py` maps style names to curses
attributes; the CLI prints the plain-text listings directly.
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import List, NamedTuple, Optional, Sequence

from .events import (
    CalendarEvent,
    STATUS_ACCEPTED,
    STATUS_AWAITING,
    STATUS_DECLINED,
    STATUS_NO_RESPONSE,
    STATUS_TENTATIVE,
    TYPE_FOCUS_TIME,
    TYPE_OUT_OF_OFFICE,
    TYPE_WORKING_LOCATION,
    format_clock,
    is_same_day,
)
from .highlight import marker_row
from .textutil import (
    format_countdown,
    format_duration,
    html_to_text,
    make_hyperlink,
    truncate_text,
    wrap_text_lines,
)

# Style names understood by the screen painter
STYLE_NORMAL = 'normal'
STYLE_SELECTED = 'selected'
STYLE_PAST = 'past'
STYLE_SELECTED_PAST = 'selected_past'
STYLE_NOW = 'now'
STYLE_MUTED = 'muted'
STYLE_TITLE = 'title'
STYLE_LABEL = 'label'
STYLE_IN_PROGRESS = 'in_progress'
STYLE_UPCOMING = 'upcoming'
STYLE_ERROR = 'error'
STYLE_LINK = 'link'


class Line(NamedTuple):
    text: str
    style: str = STYLE_NORMAL


HELP_KEYS = [
    ("↑/↓", "nav"),
    ("←/→", "day"),
    ("tab", "panel"),
    ("t", "now"),
    ("enter", "meet"),
    ("v", "view"),
    ("r", "refresh"),
    ("q", "quit"),
]

HELP_LINES = [
    ("↑ / k", "Move up"),
    ("↓ / j", "Move down"),
    ("ctrl+u/d", "Scroll detail panel (list in single-panel view)"),
    ("→ / l", "Next day"),
    ("← / h", "Previous day"),
    ("t", "Jump to now / today"),
    ("tab", "Switch panel"),
    ("enter", "Start meeting"),
    ("v", "View event in calendar"),
    ("r", "Refresh events"),
    ("q", "Quit"),
]


def format_status(status: str) -> str:
    return {
        STATUS_ACCEPTED: "Accepted ✓",
        STATUS_DECLINED: "Declined ✗",
        STATUS_TENTATIVE: "Tentative ?",
        STATUS_AWAITING: "Awaiting response",
        STATUS_NO_RESPONSE: "No response needed",
    }.get(status, "Unknown")


def format_event_type(event_type: str) -> str:
    return {
        TYPE_OUT_OF_OFFICE: "🏖️ OOO",
        TYPE_FOCUS_TIME: "🎯 Focus",
        TYPE_WORKING_LOCATION: "🏠 Location",
    }.get(event_type, "")


def short_date(moment) -> str:
    """Tue, Mar 3 style date, without platform specific strftime flags"""
    return f"{moment:%a, %b} {moment.day}"


def format_event_time(start: datetime, end: datetime, is_all_day: bool, tz: tzinfo) -> str:
    """Human readable time range in the viewer's timezone"""
    local_start = start.astimezone(tz)
    local_end = end.astimezone(tz)

    if is_all_day:
        # All-day end dates are exclusive
        days = (local_end.date() - local_start.date()).days
        if days <= 1:
            return short_date(local_start) + " (all day)"
        last_day = local_end.date() - timedelta(days=1)
        return f"{short_date(local_start)} - {short_date(last_day)} (all day)"

    if local_start.date() == local_end.date():
        return f"{short_date(local_start)}, {format_clock(local_start)} - {format_clock(local_end)}"
    return (f"{short_date(local_start)} {format_clock(local_start)} - "
            f"{short_date(local_end)} {format_clock(local_end)}")


def header_text(view_date: date, now: datetime, paired: bool = True, focus: str = 'list') -> str:
    """App title, viewed date, and which panel is up in single-panel mode"""
    date_str = f"{view_date:%A, %B} {view_date.day}, {view_date.year}"
    if is_same_day(view_date, now):
        date_str = "Today • " + date_str

    text = f"📅 daycal  {date_str}"
    if not paired:
        text += " [Events]" if focus == 'list' else " [Details]"
    return text


def help_bar(width: int) -> str:
    full_line = "  •  ".join(f"{key} {label}" for key, label in HELP_KEYS)
    if len(full_line) > width - 4:
        # Doesn't fit, show a minimal hint
        return "? help"
    return full_line


def help_panel_lines() -> List[Line]:
    lines = [Line("Keyboard Shortcuts", STYLE_TITLE), Line("")]
    for key, label in HELP_LINES:
        lines.append(Line(f"  {key:<11} {label}"))
    lines.append(Line(""))
    lines.append(Line("  Press any key to close", STYLE_MUTED))
    return lines


def now_divider(now: datetime, width: int) -> str:
    """The centered ─── ▶ NOW 3:04 PM ◀ ─── line"""
    now_text = f" ▶ NOW {format_clock(now)} ◀ "
    left_pad = max((width - len(now_text)) // 2, 0)
    right_pad = max(width - len(now_text) - left_pad, 0)
    return "─" * left_pad + now_text + "─" * right_pad


def list_item_text(event: CalendarEvent, now: datetime, tz: tzinfo, width: int) -> str:
    """One list row: time, duration, title and status icons"""
    time_str = event.get_time_str(tz)
    if event.is_past(now):
        time_str = "✓ " + time_str

    duration = format_duration(event.duration)

    # Time (10) + duration (7) + icons (~6) + spaces
    title_width = max(width - 27, 10)
    title = truncate_text(event.title, title_width)

    icons = ""
    response = event.get_response_char()
    if response:
        icons += " " + response
    if event.meeting_link:
        icons += " 📹"
    if event.in_progress(now) and not event.is_all_day:
        icons += " 🟢"

    return f"{time_str:<10} {duration:<6} {title}{icons}"


def list_lines(events: Sequence[CalendarEvent], selected: int, view_date: date, now: datetime,
               tz: tzinfo, width: int) -> List[Line]:
    """All rows of the list panel, NOW divider included on today's view"""
    if not events:
        return [Line("No events", STYLE_MUTED)]

    marker = marker_row(events, view_date, now)
    lines = []
    for i, event in enumerate(events):
        if marker == i:
            lines.append(Line(now_divider(now, width), STYLE_NOW))

        past = event.is_past(now)
        if i == selected:
            style = STYLE_SELECTED_PAST if past else STYLE_SELECTED
        else:
            style = STYLE_PAST if past else STYLE_NORMAL
        lines.append(Line(list_item_text(event, now, tz, width), style))

    # Every timed event has started (or only all-day events): NOW goes last
    if marker == len(events):
        lines.append(Line(now_divider(now, width), STYLE_NOW))
    return lines


def _field(label: str, value: str, width: int, style: str = STYLE_NORMAL) -> List[Line]:
    """A label: value field, wrapping the value under itself"""
    prefix = f"{label} "
    value_width = max(width - len(prefix), 10)
    wrapped = wrap_text_lines(value, value_width) or [""]
    lines = [Line(prefix + wrapped[0], style)]
    indent = " " * len(prefix)
    lines.extend(Line(indent + part, style) for part in wrapped[1:])
    return lines


def detail_lines(event: CalendarEvent, width: int, now: datetime, tz: tzinfo) -> List[Line]:
    """Everything the detail panel shows for one event"""
    lines = [Line(part, STYLE_TITLE) for part in wrap_text_lines(event.title, width)]
    lines.append(Line(""))

    type_label = format_event_type(event.event_type)
    if type_label:
        lines.extend(_field("🏷️  Type", type_label, width))

    if len(event.calendars) > 1:
        names = ", ".join(aff.calendar.name or aff.calendar.id for aff in event.calendars)
        lines.extend(_field("📅 Calendars", names, width))
    elif event.calendar.name or event.calendar.id:
        lines.extend(_field("📅 Calendar", event.calendar.name or event.calendar.id, width))

    lines.extend(_field("🕐 When", format_event_time(event.start, event.end, event.is_all_day, tz), width))
    if not event.is_all_day:
        lines.extend(_field("⏱️  Duration", format_duration(event.duration), width))

    # Past / in progress / upcoming, refreshed on every tick
    lines.append(Line(""))
    if event.is_past(now):
        lines.append(Line(f"✓ Ended {format_duration(now - event.end)} ago", STYLE_MUTED))
    elif event.in_progress(now):
        lines.append(Line(f"🟢 IN PROGRESS • {format_duration(event.end - now)} remaining", STYLE_IN_PROGRESS))
    elif event.start > now:
        lines.append(Line(f"⏳ Starts in {format_duration(event.start - now)}", STYLE_UPCOMING))
    lines.append(Line(""))

    if event.location:
        lines.extend(_field("📍 Location", event.location, width))

    if event.meeting_link:
        lines.extend(_field("📹 Join", event.meeting_link, width, STYLE_LINK))

    if len(event.calendars) > 1:
        lines.append(Line("📊 Responses", STYLE_LABEL))
        for aff in event.calendars:
            lines.append(Line(f"   {aff.calendar.name or aff.calendar.id}: {format_status(aff.status)}"))
    else:
        lines.extend(_field("📊 Response", format_status(event.status), width))

    if event.url:
        lines.extend(_field("🔗 Event", event.url, width, STYLE_LINK))

    if event.description:
        lines.append(Line(""))
        lines.append(Line("📝 Description", STYLE_LABEL))
        for part in wrap_text_lines(html_to_text(event.description, width), width):
            lines.append(Line(part))

    if event.attachments:
        lines.append(Line(""))
        lines.append(Line("📎 Attachments", STYLE_LABEL))
        max_len = max(width - 5, 1)
        for att in event.attachments:
            lines.append(Line(f"   • {truncate_text(att.name, max_len)}", STYLE_LINK if att.url else STYLE_NORMAL))

    return lines


# Plain-text listings for the non-interactive commands

RULE = "─" * 49


def describe_event(event: CalendarEvent, now: datetime, tz: tzinfo, detailed: bool = False,
                   indent: str = "  ") -> List[str]:
    """Event summary for terminal output, with clickable links"""
    type_label = format_event_type(event.event_type)
    out = [f"{indent}[{type_label}] {event.title}" if type_label else f"{indent}{event.title}"]

    if len(event.calendars) > 1:
        names = ", ".join(aff.calendar.name or aff.calendar.id for aff in event.calendars)
        out.append(f"{indent}📅 Calendars:   {names}")
    else:
        out.append(f"{indent}📅 Calendar:    {event.calendar.name or event.calendar.id}")

    out.append(f"{indent}🕐 When:        {format_event_time(event.start, event.end, event.is_all_day, tz)}")
    out.append(f"{indent}⏱️  Duration:    {format_duration(event.duration)}")

    if event.location:
        out.append(f"{indent}📍 Location:    {event.location}")
    if event.meeting_link:
        display, url = event.get_meet_link_display()
        out.append(f"{indent}📹 Join:        {make_hyperlink(url, display)}")

    if event.description:
        if detailed:
            out.append(f"{indent}📝 Description:")
            desc = html_to_text(event.description, 60, hyperlinks=True)
            for line in wrap_text_lines(desc, 60):
                if line.strip():
                    out.append(f"{indent}   {line}")
        else:
            desc = html_to_text(event.description, 80).replace("\n", " ")
            out.append(f"{indent}📝 Description: {truncate_text(desc, 80)}")

    if len(event.calendars) > 1:
        out.append(f"{indent}📊 Responses:")
        for aff in event.calendars:
            out.append(f"{indent}   {aff.calendar.name or aff.calendar.id}: {format_status(aff.status)}")
    else:
        out.append(f"{indent}📊 Response:    {format_status(event.status)}")

    if event.url:
        out.append(f"{indent}🔗 Event:       {make_hyperlink(event.url, event.url)}")

    if detailed and event.attachments:
        out.append(f"{indent}📎 Attachments:")
        for att in event.attachments:
            name = make_hyperlink(att.url, att.name) if att.url else att.name
            out.append(f"{indent}   • {name}")

    if not detailed and event.in_progress(now):
        out.append(f"{indent}🟢 IN PROGRESS ({format_duration(event.end - now)} remaining)")

    if detailed:
        out.append(f"{indent}🆔 ID:          {event.id}")
    return out


def agenda_lines(events: Sequence[CalendarEvent], start: datetime, end: datetime,
                 now: datetime, tz: tzinfo) -> List[str]:
    """Output of the `list` command"""
    local_start = start.astimezone(tz)
    local_end = end.astimezone(tz)
    out = [f"📅 Events from {local_start:%b} {local_start.day} to {local_end:%b} {local_end.day}:", RULE]
    if not events:
        out.append("No upcoming events found.")
        return out

    for event in events:
        out.append("")
        out.extend(describe_event(event, now, tz))

    out.append(RULE)
    out.append(f"Total: {len(events)} events")
    return out


def upcoming_events(events: Sequence[CalendarEvent], now: datetime) -> List[CalendarEvent]:
    """The next event and any others starting at the same instant

    In-progress timed events count as upcoming; all-day events only once they
    have not started yet.
    """
    eligible = [e for e in events if e.start > now or (e.in_progress(now) and not e.is_all_day)]
    if not eligible:
        return []
    first_start = eligible[0].start
    return [e for e in eligible if e.start == first_start]


def next_event_lines(events: Sequence[CalendarEvent], now: datetime, tz: tzinfo) -> List[str]:
    """Output of the `next` command"""
    concurrent = upcoming_events(events, now)
    if not concurrent:
        return ["No upcoming events found."]

    first = concurrent[0]
    if len(concurrent) > 1:
        out = [RULE, f"  ⚠️  CONFLICT: {len(concurrent)} EVENTS AT THE SAME TIME", RULE]
    else:
        out = [RULE, "  NEXT EVENT", RULE]

    out.append("")
    if first.in_progress(now):
        out.append(f"  🟢 IN PROGRESS - {format_duration(first.end - now)} remaining")
    else:
        out.append(f"  ⏳ STARTS IN: {format_countdown(first.start - now)}")

    if len(concurrent) > 1:
        for i, event in enumerate(concurrent, 1):
            out.append("")
            out.append(f"  EVENT {i} of {len(concurrent)}")
            out.append("  " + "─" * 45)
            out.extend(describe_event(event, now, tz))
    else:
        out.append("")
        out.extend(describe_event(first, now, tz, detailed=True))

    out.append("")
    out.append(RULE)
    return out


def panel_title(title: str, events_count: int, selected: int, scrollable: bool) -> str:
    if scrollable and events_count:
        return f"{title} ({selected + 1}/{events_count})"
    return title


def error_text(error: Optional[str]) -> str:
    return f"Error: {error}" if error else ""
