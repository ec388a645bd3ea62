"""
Calendar sources.

The aggregation pipeline only depends on the two protocols below. The
concrete source talks to the Google Calendar MCP server over stdio and maps
its JSON output into CalendarEvent records.
"""

import json
import logging
from datetime import date, datetime, time, tzinfo
from typing import Dict, List, Optional, Protocol
from zoneinfo import ZoneInfo

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from .events import (
    Attachment,
    Calendar,
    CalendarEvent,
    FetchQuery,
    STATUS_ACCEPTED,
    STATUS_AWAITING,
    STATUS_DECLINED,
    STATUS_NO_RESPONSE,
    STATUS_TENTATIVE,
    TYPE_DEFAULT,
    TYPE_FOCUS_TIME,
    TYPE_OUT_OF_OFFICE,
    TYPE_WORKING_LOCATION,
    local_timezone,
)

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """A calendar source could not be reached or returned garbage"""


class CalendarSource(Protocol):
    """A provider of raw, per-calendar events"""

    id: str
    name: str

    async def fetch_events(self, calendar_id: str, query: FetchQuery) -> List[CalendarEvent]:
        """Return every event of one calendar inside the query window"""
        ...


class CalendarDirectory(Protocol):
    """Maps calendar identity to display name"""

    async def calendars(self) -> Dict[str, str]:
        ...


class MCPClient:
    """Client for interacting with MCP server via stdio"""

    def __init__(self, server_path: str):
        self.server_path = server_path
        self.session: Optional[ClientSession] = None
        self.stdio_context = None
        self.session_context = None

    async def connect(self):
        """Connect to MCP server"""
        server_params = StdioServerParameters(
            command=self.server_path,
            args=[],
            env=None
        )

        try:
            self.stdio_context = stdio_client(server_params)
            stdio, write = await self.stdio_context.__aenter__()

            self.session_context = ClientSession(stdio, write)
            self.session = await self.session_context.__aenter__()

            await self.session.initialize()
        except Exception as e:
            raise SourceError(f"Could not connect to MCP server {self.server_path}: {e}") from e
        logger.debug("Connected to MCP server %s", self.server_path)

    async def disconnect(self):
        """Disconnect from MCP server"""
        # Exit contexts in reverse order
        if self.session_context:
            await self.session_context.__aexit__(None, None, None)
            self.session_context = None
            self.session = None

        if self.stdio_context:
            await self.stdio_context.__aexit__(None, None, None)
            self.stdio_context = None

    async def call_tool(self, tool_name: str, arguments: Dict) -> Dict:
        """Call an MCP tool and return its decoded JSON result"""
        if not self.session:
            raise SourceError("Not connected to MCP server")

        try:
            result = await self.session.call_tool(tool_name, arguments)
        except Exception as e:
            raise SourceError(f"{tool_name} failed: {e}") from e

        if getattr(result, 'isError', False):
            text = result.content[0].text if result.content else 'unknown error'
            raise SourceError(f"{tool_name} failed: {text}")
        if not result.content:
            return {}

        content_text = result.content[0].text
        if not isinstance(content_text, str):
            return content_text
        try:
            return json.loads(content_text)
        except json.JSONDecodeError as e:
            raise SourceError(f"{tool_name} returned invalid JSON: {content_text[:200]}") from e


class MCPCalendarSource:
    """Google Calendar, as served by the gcal MCP server"""

    def __init__(self, client: MCPClient, source_id: str = 'google', name: str = 'Google Calendar',
                 timezone: str = 'UTC', tz: Optional[tzinfo] = None):
        self.client = client
        self.id = source_id
        self.name = name
        self.timezone = timezone
        # All-day dates are anchored to midnight in this zone
        self.tz = tz or ZoneInfo(timezone)
        self._calendars: Optional[Dict[str, str]] = None

    async def calendars(self) -> Dict[str, str]:
        """Fetch (once) every calendar the account has access to"""
        if self._calendars is None:
            data = await self.client.call_tool("list_calendars", {"output_format": "json"})
            calendars = {}
            for entry in data.get('calendars', []):
                cal_id = entry.get('id', '')
                if not cal_id:
                    continue
                calendars[cal_id] = entry.get('summary') or cal_id
            self._calendars = calendars
        return self._calendars

    async def fetch_events(self, calendar_id: str, query: FetchQuery) -> List[CalendarEvent]:
        calendars = await self.calendars()
        params = {
            "calendar_id": calendar_id,
            "time_filter": "custom",
            "time_min": query.start.isoformat(),
            "time_max": query.end.isoformat(),
            "timezone": self.timezone,
            "show_declined": True,
            "max_results": 250,
            "output_format": "json"
        }
        data = await self.client.call_tool("list_events", params)

        calendar = Calendar(id=calendar_id, name=calendars.get(calendar_id, calendar_id))
        events = []
        for item in data.get('events', []):
            event = parse_event(item, calendar, source_id=self.id, tz=self.tz)
            if event is None:
                continue

            # Multi-day timed events that cover the whole window behave like all-day ones
            if not event.is_all_day and event.start <= query.start and event.end >= query.end:
                event.is_all_day = True
            events.append(event)
        logger.debug("Fetched %d events from calendar %s", len(events), calendar_id)
        return events


_EVENT_TYPES = {
    'outOfOffice': TYPE_OUT_OF_OFFICE,
    'focusTime': TYPE_FOCUS_TIME,
    'workingLocation': TYPE_WORKING_LOCATION,
}

_RESPONSE_STATUSES = {
    'accepted': STATUS_ACCEPTED,
    'declined': STATUS_DECLINED,
    'tentative': STATUS_TENTATIVE,
    'needsAction': STATUS_AWAITING,
}


def parse_event(event_data: Dict, calendar: Calendar, source_id: str = '',
                tz: Optional[tzinfo] = None) -> Optional[CalendarEvent]:
    """Convert a Google Calendar event dict into a CalendarEvent

    All-day dates become midnight in `tz` (the local zone when not given).
    Returns None for events without a usable start time.
    """
    tz = tz or local_timezone()
    start = event_data.get('start', {})
    end = event_data.get('end', {})

    is_all_day = bool(
        (start.get('date') and not start.get('dateTime')) or
        (end.get('date') and not end.get('dateTime'))
    )

    start_time = _parse_time(start, tz)
    end_time = _parse_time(end, tz) or start_time
    if start_time is None:
        return None

    attachments = [
        Attachment(
            name=att.get('title', ''),
            url=att.get('fileUrl', ''),
            mime_type=att.get('mimeType', ''),
            id=att.get('fileId', ''),
        )
        for att in event_data.get('attachments', [])
    ]

    return CalendarEvent(
        id=event_data.get('id', ''),
        dedupe_key=event_data.get('iCalUID', ''),
        source_id=source_id,
        calendar=calendar,
        event_type=_EVENT_TYPES.get(event_data.get('eventType', 'default'), TYPE_DEFAULT),
        title=event_data.get('summary') or 'No Title',
        description=event_data.get('description', ''),
        location=event_data.get('location', ''),
        status=_get_response_status(event_data),
        url=event_data.get('htmlLink', ''),
        meeting_link=_extract_meeting_link(event_data),
        start=start_time,
        end=end_time,
        is_all_day=is_all_day,
        attachments=attachments,
    )


def _parse_time(time_obj: Dict, tz: tzinfo) -> Optional[datetime]:
    """Parse datetime from event time object"""
    if time_obj.get('dateTime'):
        return datetime.fromisoformat(time_obj['dateTime'].replace('Z', '+00:00'))
    elif time_obj.get('date'):
        # All-day dates are midnights in the viewer's zone; the end date is exclusive
        return datetime.combine(date.fromisoformat(time_obj['date']), time.min, tzinfo=tz)
    return None


def _get_response_status(event_data: Dict) -> str:
    """Extract the user's own response from the attendee list"""
    attendees = event_data.get('attendees', [])

    for attendee in attendees:
        if attendee.get('self', False):
            status = attendee.get('responseStatus', 'needsAction')
            if status in _RESPONSE_STATUSES:
                return _RESPONSE_STATUSES[status]

    # Self-created events and subscribed calendars need no response
    if not attendees and event_data.get('status') == 'cancelled':
        return STATUS_DECLINED
    return STATUS_NO_RESPONSE


def _extract_meeting_link(event_data: Dict) -> str:
    """Video conferencing link, preferring conference data over the legacy hangout link"""
    conference = event_data.get('conferenceData') or {}
    for entry in conference.get('entryPoints', []):
        if entry.get('entryPointType') == 'video' and entry.get('uri'):
            return entry['uri']
    return event_data.get('hangoutLink', '')
