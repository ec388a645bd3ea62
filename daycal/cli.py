"""
Command line entry point: the interactive day view plus a few plain-text commands.
"""

import argparse
import asyncio
import curses
import logging
import os
import sys
from datetime import date, datetime, time, timedelta, tzinfo
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .app import CalendarApp
from .commands import ViewOptions, load_events
from .config import ConfigError, Settings, active_profile_name, load_config, profiles, resolve_settings
from .pipeline import FetchError
from .render import RULE, agenda_lines, next_event_lines
from .screen import Screen
from .source import MCPCalendarSource, MCPClient, SourceError

logger = logging.getLogger(__name__)

COMMANDS = ('ui', 'list', 'next', 'calendars', 'profiles')

WEEKDAYS = {
    'monday': 0, 'mon': 0,
    'tuesday': 1, 'tue': 1,
    'wednesday': 2, 'wed': 2,
    'thursday': 3, 'thu': 3,
    'friday': 4, 'fri': 4,
    'saturday': 5, 'sat': 5,
    'sunday': 6, 'sun': 6,
}

# Settings that can be given as flags, by argparse dest
FLAG_SETTINGS = ('server_path', 'timezone', 'days', 'calendars', 'ooo', 'focus', 'workloc', 'all_types',
                 'accepted', 'subscribed', 'smart_ooo', 'primary_calendar', 'no_allday')


def parse_date(value: str, today: date) -> date:
    """Parse a user supplied date relative to today

    Accepts today, tomorrow, yesterday, weekday names (optionally prefixed
    with "next"), YYYY-MM-DD, MM-DD, MM/DD and MM/DD/YYYY. Raises ValueError
    for anything else.
    """
    s = value.strip().lower()

    if s == 'today':
        return today
    if s == 'tomorrow':
        return today + timedelta(days=1)
    if s == 'yesterday':
        return today - timedelta(days=1)

    # A weekday is always in the future, so "monday" on a Monday is next week
    day_name = s[len('next '):] if s.startswith('next ') else s
    if day_name in WEEKDAYS:
        days_ahead = WEEKDAYS[day_name] - today.weekday()
        if days_ahead <= 0:
            days_ahead += 7
        return today + timedelta(days=days_ahead)

    for fmt in ('%Y-%m-%d', '%m/%d/%Y'):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            pass

    # Month and day only, in the current year
    for sep in ('-', '/'):
        parts = s.split(sep)
        if len(parts) == 2 and all(p.isdigit() and 1 <= len(p) <= 2 for p in parts):
            try:
                return date(today.year, int(parts[0]), int(parts[1]))
            except ValueError:
                break

    raise ValueError(f"unable to parse date: {value} (use YYYY-MM-DD, 'today', 'tomorrow', or weekday names)")


def date_window(settings: Settings, from_str: Optional[str], to_str: Optional[str],
                now: datetime) -> Tuple[datetime, datetime]:
    """Start and end instants for the list and next commands"""
    tz = now.tzinfo
    if not from_str and not to_str:
        return now, now + timedelta(days=settings.days)

    if from_str:
        start = datetime.combine(parse_date(from_str, now.date()), time.min, tzinfo=tz)
    else:
        start = now

    if to_str:
        # Through the end of the given day
        end = datetime.combine(parse_date(to_str, now.date()), time.min, tzinfo=tz)
        end += timedelta(days=1) - timedelta(seconds=1)
    else:
        end = start + timedelta(days=settings.days)

    if end < start:
        raise ValueError(f"end date {to_str} is before start date {from_str or 'now'}")
    return start, end


def get_system_timezone():
    """Get the system timezone from environment or detect from system"""
    # First check TZ environment variable
    tz = os.environ.get('TZ')
    if tz:
        return tz

    local_tz = datetime.now().astimezone().tzinfo
    # Zone name when the platform exposes one
    if hasattr(local_tz, 'zone'):
        return local_tz.zone
    if hasattr(local_tz, 'key'):
        return local_tz.key

    # Fallback to UTC if we can't detect
    return 'UTC'


def load_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown timezone: {name}") from e


def setup_logging(debug: bool):
    """Debug output goes to stderr so it can be redirected while curses owns the screen"""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--config', type=Path, default=None,
                        help='Config file (default: ~/.config/daycal/config.yaml)')
    common.add_argument('-p', '--profile', default=None, help='Config profile to use (e.g. work, personal)')
    common.add_argument('--timezone', default=None, help='Timezone for events (default: system timezone)')
    common.add_argument('--server-path', dest='server_path', default=None,
                        help='Path to gcal-mcp-server binary')
    common.add_argument('--debug', action='store_true', help='Enable debug logging to stderr')

    filters = common.add_argument_group('filters')
    filters.add_argument('-d', '--days', type=int, default=None,
                         help='Number of days to fetch (ignored if --from/--to specified)')
    filters.add_argument('--from', dest='from_date', default=None,
                         help="Start date (YYYY-MM-DD, 'today', 'tomorrow', 'monday', ...)")
    filters.add_argument('--to', dest='to_date', default=None,
                         help="End date (YYYY-MM-DD, 'today', 'tomorrow', 'monday', ...)")
    filters.add_argument('-c', '--calendars', default=None,
                         help='Comma-separated list of calendar names to show')
    filters.add_argument('--ooo', action=argparse.BooleanOptionalAction, default=None,
                         help='Include out-of-office events')
    filters.add_argument('--focus', action=argparse.BooleanOptionalAction, default=None,
                         help='Include focus time events')
    filters.add_argument('--workloc', action=argparse.BooleanOptionalAction, default=None,
                         help='Include working location events')
    filters.add_argument('--all-types', dest='all_types', action=argparse.BooleanOptionalAction, default=None,
                         help='Include all event types')
    filters.add_argument('--accepted', action=argparse.BooleanOptionalAction, default=None,
                         help='Only show accepted events')
    filters.add_argument('--subscribed', action=argparse.BooleanOptionalAction, default=None,
                         help='With --accepted, also show events that need no response')
    filters.add_argument('--smart-ooo', dest='smart_ooo', action=argparse.BooleanOptionalAction, default=None,
                         help="Hide events on days you're out of office")
    filters.add_argument('--primary-calendar', dest='primary_calendar', default=None,
                         help='Primary calendar for smart OOO detection (default: auto-detect)')
    filters.add_argument('--no-allday', dest='no_allday', action='store_true', default=None,
                         help='Exclude all-day events')

    parser = argparse.ArgumentParser(prog='daycal', description='Day-at-a-glance calendar for the terminal')
    subparsers = parser.add_subparsers(dest='command')
    subparsers.add_parser('ui', parents=[common], help='Interactive day view (default)')
    subparsers.add_parser('list', parents=[common], help='List upcoming events')
    subparsers.add_parser('next', parents=[common], help='Show the next upcoming event')
    subparsers.add_parser('calendars', parents=[common], help='List available calendars')
    subparsers.add_parser('profiles', parents=[common], help='List configured profiles')
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    argv = list(sys.argv[1:] if argv is None else argv)
    # No subcommand means the interactive view
    if not argv or (argv[0] not in COMMANDS and argv[0] not in ('-h', '--help')):
        argv.insert(0, 'ui')
    return build_parser().parse_args(argv)


def flag_overrides(args: argparse.Namespace) -> Dict[str, object]:
    return {name: getattr(args, name, None) for name in FLAG_SETTINGS}


async def run_with_source(settings: Settings, tz: tzinfo, action):
    """Connect to the MCP server, run `action(source)`, always disconnect"""
    client = MCPClient(settings.server_path)
    await client.connect()
    try:
        source = MCPCalendarSource(client, timezone=str(tz), tz=tz)
        return await action(source)
    finally:
        await client.disconnect()


async def fetch_window(source: MCPCalendarSource, settings: Settings, start: datetime, end: datetime, tz: tzinfo):
    calendars = await source.calendars()
    query = settings.fetch_query(start, end, calendars)
    options = ViewOptions(query=query, smart_ooo=settings.smart_ooo, primary_calendar=settings.primary_calendar)
    return await load_events(source, source, query, options, tz)


def cmd_list(settings: Settings, args: argparse.Namespace, tz: tzinfo) -> int:
    now = datetime.now(tz)
    start, end = date_window(settings, args.from_date, args.to_date, now)

    async def action(source):
        return await fetch_window(source, settings, start, end, tz)

    events = asyncio.run(run_with_source(settings, tz, action))
    print("\n".join(agenda_lines(events, start, end, now, tz)))
    return 0


def cmd_next(settings: Settings, args: argparse.Namespace, tz: tzinfo) -> int:
    now = datetime.now(tz)
    start, end = date_window(settings, args.from_date, args.to_date, now)

    async def action(source):
        return await fetch_window(source, settings, start, end, tz)

    events = asyncio.run(run_with_source(settings, tz, action))
    print("\n".join(next_event_lines(events, now, tz)))
    return 0


def cmd_calendars(settings: Settings, args: argparse.Namespace, tz: tzinfo) -> int:
    async def action(source):
        return await source.calendars()

    calendars = asyncio.run(run_with_source(settings, tz, action))
    print("📅 Available calendars:")
    print(RULE)
    for cal_id, name in calendars.items():
        print(f"\n  • {name}")
        print(f"    ID: {cal_id}")
    print()
    print(f"Total: {len(calendars)} calendars")
    print("\nTip: Use 'daycal -c \"calendar name\"' to show only some calendars")
    return 0


def cmd_profiles(config: Dict, args: argparse.Namespace) -> int:
    available = profiles(config)
    if not available:
        print("No profiles configured.")
        return 0

    active = active_profile_name(config, args.profile)
    default = config.get('default_profile')
    print("Profiles:")
    for name, values in available.items():
        markers = []
        if name == default:
            markers.append("default")
        if name == active:
            markers.append("active")
        suffix = f" ({', '.join(markers)})" if markers else ""
        print(f"\n  • {name}{suffix}")
        for key, value in (values or {}).items():
            print(f"    {key}: {value}")
    return 0


def cmd_ui(settings: Settings, args: argparse.Namespace, tz: tzinfo) -> int:
    async def async_run_app(stdscr):
        """Async function that runs inside curses"""
        client = MCPClient(settings.server_path)
        await client.connect()
        try:
            source = MCPCalendarSource(client, timezone=str(tz), tz=tz)
            now = datetime.now(tz)
            calendars = await source.calendars()
            # The window is replaced by the viewed day on every fetch
            query = settings.fetch_query(now, now, calendars)
            options = ViewOptions(query=query, smart_ooo=settings.smart_ooo,
                                  primary_calendar=settings.primary_calendar)

            app = CalendarApp(stdscr, source, source, options, tz, screen=Screen(stdscr))
            await app.run()
        finally:
            await client.disconnect()

    def curses_main(stdscr):
        """Curses wrapper function - runs the async event loop"""
        asyncio.run(async_run_app(stdscr))

    if args.debug:
        print("Debug logs are being written to stderr; run with 2>debug.log to keep them.", file=sys.stderr)

    try:
        curses.wrapper(curses_main)
    except KeyboardInterrupt:
        pass
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.debug)

    try:
        config = load_config(args.config)
        if args.command == 'profiles':
            return cmd_profiles(config, args)

        settings = resolve_settings(config, args.profile, flag_overrides(args))
        tz = load_timezone(settings.timezone or get_system_timezone())

        if args.command == 'list':
            return cmd_list(settings, args, tz)
        if args.command == 'next':
            return cmd_next(settings, args, tz)
        if args.command == 'calendars':
            return cmd_calendars(settings, args, tz)
        return cmd_ui(settings, args, tz)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except (FetchError, SourceError) as e:
        print(f"Failed to fetch events: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
