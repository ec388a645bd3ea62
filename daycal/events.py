"""
Unified calendar event records and fetch queries.

Every calendar source converts its own schema into these types; the
aggregation pipeline, the visibility filters and the UI only ever see them.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, tzinfo
from typing import FrozenSet, List, Optional, Tuple

# Event types (Google Calendar vocabulary)
TYPE_DEFAULT = 'default'
TYPE_OUT_OF_OFFICE = 'outOfOffice'
TYPE_FOCUS_TIME = 'focusTime'
TYPE_WORKING_LOCATION = 'workingLocation'

EVENT_TYPES = (TYPE_DEFAULT, TYPE_OUT_OF_OFFICE, TYPE_FOCUS_TIME, TYPE_WORKING_LOCATION)

# The user's response to an invitation
STATUS_ACCEPTED = 'accepted'
STATUS_DECLINED = 'declined'
STATUS_TENTATIVE = 'tentative'
STATUS_AWAITING = 'needsAction'
STATUS_NO_RESPONSE = 'noResponseNeeded'

EVENT_STATUSES = (STATUS_ACCEPTED, STATUS_DECLINED, STATUS_TENTATIVE, STATUS_AWAITING, STATUS_NO_RESPONSE)


@dataclass(frozen=True)
class Calendar:
    """A calendar an event lives in"""
    id: str
    name: str = ''


@dataclass(frozen=True)
class Attachment:
    """A file linked from an event. Only the link is kept, never the content."""
    name: str
    url: str = ''
    mime_type: str = ''
    id: str = ''


@dataclass(frozen=True)
class CalendarAffiliation:
    """One calendar's view of a (possibly shared) event"""
    calendar: Calendar
    status: str
    url: str = ''


@dataclass
class CalendarEvent:
    """Represents a calendar event, independent of the source it came from"""

    id: str
    calendar: Calendar
    start: datetime
    end: datetime
    title: str = 'No Title'
    event_type: str = TYPE_DEFAULT
    description: str = ''
    location: str = ''
    status: str = STATUS_NO_RESPONSE
    url: str = ''
    meeting_link: str = ''
    is_all_day: bool = False
    dedupe_key: str = ''
    source_id: str = ''
    attachments: List[Attachment] = field(default_factory=list)
    calendars: List[CalendarAffiliation] = field(default_factory=list)

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Event {self.id!r} ends before it starts ({self.start} > {self.end})")

    def affiliation(self) -> CalendarAffiliation:
        """The event's own (calendar, status, url) triple"""
        return CalendarAffiliation(calendar=self.calendar, status=self.status, url=self.url)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def in_progress(self, now: datetime) -> bool:
        """Check if this event is happening at the given instant"""
        return self.start < now < self.end

    def is_past(self, now: datetime) -> bool:
        return self.end < now

    def get_time_str(self, tz: tzinfo) -> str:
        """Start time in the given zone, or All day"""
        if self.is_all_day:
            return "All day"
        return format_clock(self.start.astimezone(tz))

    def get_response_char(self) -> str:
        """Get character representing RSVP status or event type"""
        if self.event_type == TYPE_OUT_OF_OFFICE:
            return '🏖️'
        if self.event_type == TYPE_FOCUS_TIME:
            return '🎧'
        if self.event_type == TYPE_WORKING_LOCATION:
            return '📍'

        status_map = {
            STATUS_ACCEPTED: '✅',
            STATUS_DECLINED: '❌',
            STATUS_TENTATIVE: '⏳',
            STATUS_AWAITING: '❓',
            STATUS_NO_RESPONSE: '',
        }
        return status_map.get(self.status, '❓')

    def get_meet_link_display(self) -> Tuple[str, Optional[str]]:
        """Get meet link for display - returns (display_text, full_url)

        For Google Meet links, returns https://g.co/meet/xxx-yyyy-zzz format.
        """
        if not self.meeting_link:
            return ('', None)

        # Format: https://meet.google.com/xxx-yyyy-zzz -> https://g.co/meet/xxx-yyyy-zzz
        if 'meet.google.com/' in self.meeting_link:
            meeting_id = self.meeting_link.split('meet.google.com/')[1].split('?')[0]
            if meeting_id:
                return (f"https://g.co/meet/{meeting_id}", self.meeting_link)

        return (self.meeting_link, self.meeting_link)


@dataclass(frozen=True)
class FetchQuery:
    """Which events to retrieve and show for a time window [start, end)"""

    start: datetime
    end: datetime
    # Empty means all calendars
    calendar_ids: FrozenSet[str] = frozenset()
    # Empty means only default events; other types must be added explicitly
    include_types: FrozenSet[str] = frozenset({TYPE_DEFAULT})
    # Empty means all statuses
    include_statuses: FrozenSet[str] = frozenset()
    exclude_all_day: bool = False

    def for_window(self, start: datetime, end: datetime) -> 'FetchQuery':
        return replace(self, start=start, end=end)

    def for_day(self, day: date, tz: tzinfo) -> 'FetchQuery':
        start, end = day_bounds(day, tz)
        return self.for_window(start, end)


@dataclass(frozen=True)
class OOOPeriod:
    """A time range when the user is out of office"""
    start: datetime
    end: datetime


def day_bounds(day: date, tz: tzinfo) -> Tuple[datetime, datetime]:
    """Local midnight of `day` and the instant 24h later"""
    start = datetime.combine(day, time.min, tzinfo=tz)
    return start, start + timedelta(hours=24)


def local_timezone() -> tzinfo:
    return datetime.now().astimezone().tzinfo


def is_same_day(view_date: date, now: datetime) -> bool:
    return view_date == now.date()


def format_clock(moment: datetime) -> str:
    """3:04 PM style clock time"""
    return moment.strftime('%I:%M %p').lstrip('0')