"""
The interactive runtime: one asyncio loop feeding messages to `state.update`.
"""

import asyncio
import curses
import logging
from datetime import datetime, tzinfo
from typing import List, Optional, Set

from . import commands as cmd
from .commands import Command, FetchCommand, KeyMsg, ResizeMsg, ViewOptions
from .source import CalendarDirectory, CalendarSource
from .state import PresentationState, initial_state, update

logger = logging.getLogger(__name__)

# How often the keyboard is polled
KEY_POLL_SECONDS = 0.05

CTRL_D = 4
CTRL_U = 21
TAB = 9
ESC = 27

KEY_ACTIONS = {
    curses.KEY_UP: cmd.ACTION_UP,
    ord('k'): cmd.ACTION_UP,
    curses.KEY_DOWN: cmd.ACTION_DOWN,
    ord('j'): cmd.ACTION_DOWN,
    curses.KEY_PPAGE: cmd.ACTION_SCROLL_UP,
    CTRL_U: cmd.ACTION_SCROLL_UP,
    curses.KEY_NPAGE: cmd.ACTION_SCROLL_DOWN,
    CTRL_D: cmd.ACTION_SCROLL_DOWN,
    curses.KEY_LEFT: cmd.ACTION_PREV_DAY,
    ord('h'): cmd.ACTION_PREV_DAY,
    curses.KEY_RIGHT: cmd.ACTION_NEXT_DAY,
    ord('l'): cmd.ACTION_NEXT_DAY,
    ord('t'): cmd.ACTION_TODAY,
    TAB: cmd.ACTION_TAB,
    ord('r'): cmd.ACTION_REFRESH,
    ord('\n'): cmd.ACTION_OPEN_MEETING,
    curses.KEY_ENTER: cmd.ACTION_OPEN_MEETING,
    ord('v'): cmd.ACTION_OPEN_EVENT,
    ord('?'): cmd.ACTION_HELP,
    ord('q'): cmd.ACTION_QUIT,
}


def key_to_action(key: int) -> Optional[str]:
    """Input action for a curses key code, None for unbound keys"""
    return KEY_ACTIONS.get(key)


class CalendarApp:
    """Runs one interactive session"""

    def __init__(self, stdscr, source: CalendarSource, directory: CalendarDirectory, options: ViewOptions,
                 tz: tzinfo, screen=None):
        self.stdscr = stdscr
        self.source = source
        self.directory = directory
        self.options = options
        self.tz = tz
        self.screen = screen
        self.queue: asyncio.Queue = asyncio.Queue()
        self.tasks: Set[asyncio.Task] = set()
        self.state: Optional[PresentationState] = None

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def dispatch(self, commands: List[Command]):
        """Start each command as a task; its message, if any, goes on the queue"""
        for command in commands:
            if isinstance(command, FetchCommand):
                command.bind(self.source, self.directory, self.options, self.tz)
            logger.debug("Dispatching %r", command)
            task = asyncio.create_task(self._run_command(command))
            self.tasks.add(task)
            task.add_done_callback(self.tasks.discard)

    async def _run_command(self, command: Command):
        try:
            msg = await command.run()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Command %r failed", command)
            return
        if msg is not None:
            await self.queue.put(msg)

    async def read_keys(self):
        """Poll the keyboard and queue key and resize messages"""
        while True:
            try:
                key = self.stdscr.getch()
            except curses.error:
                key = -1

            if key == -1:
                # Small delay to prevent busy-waiting
                await asyncio.sleep(KEY_POLL_SECONDS)
                continue

            if key == curses.KEY_RESIZE:
                height, width = self.stdscr.getmaxyx()
                await self.queue.put(ResizeMsg(width, height))
                continue

            action = key_to_action(key)
            if action is None and self.state is not None and self.state.show_help:
                # Any key closes the help overlay
                action = cmd.ACTION_HELP
            if action is not None:
                await self.queue.put(KeyMsg(action))

    def draw(self):
        if self.screen is not None:
            self.screen.draw(self.state, self.now())

    async def run(self):
        """Main event loop, returns when the user quits"""
        self.stdscr.nodelay(True)
        self.stdscr.keypad(True)

        self.state, commands = initial_state(self.now(), self.tz)
        height, width = self.stdscr.getmaxyx()
        await self.queue.put(ResizeMsg(width, height))
        self.dispatch(commands)

        key_task = asyncio.create_task(self.read_keys())
        try:
            while not self.state.quitting:
                self.draw()
                msg = await self.queue.get()
                self.state, commands = update(self.state, msg, self.now())
                self.dispatch(commands)
        finally:
            key_task.cancel()
            for task in list(self.tasks):
                task.cancel()
            await asyncio.gather(key_task, *self.tasks, return_exceptions=True)
