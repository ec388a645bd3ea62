"""
Curses painter: draws a PresentationState onto the terminal.

All the text comes from `render.py`; this module only decides where it goes
and which colors it gets.
"""

import curses
from datetime import datetime
from typing import List, Sequence

from . import render
from .highlight import clamp_selection
from .layout import PANEL_CHROME
from .render import Line
from .state import FOCUS_DETAIL, FOCUS_LIST, PresentationState

# First row of the panels, below the header and status lines
PANEL_TOP = 2
PANEL_LEFT = 2

SPINNER_FRAMES = ['⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏']


class Screen:
    """Paints the two panels, header and help bar"""

    def __init__(self, stdscr):
        self.stdscr = stdscr
        self.spinner_index = 0
        self.styles = {}
        self._setup_colors()

    def _setup_colors(self):
        curses.start_color()
        try:
            curses.use_default_colors()
            background = -1
        except curses.error:
            background = curses.COLOR_BLACK

        curses.init_pair(1, curses.COLOR_BLACK, curses.COLOR_WHITE)  # Selection (black on white)
        curses.init_pair(2, curses.COLOR_RED, background)  # Errors
        curses.init_pair(3, curses.COLOR_GREEN, background)  # In progress
        curses.init_pair(4, curses.COLOR_MAGENTA, background)  # NOW marker
        curses.init_pair(5, curses.COLOR_WHITE, background)  # Past events (used with A_DIM)
        curses.init_pair(6, curses.COLOR_YELLOW, background)  # Upcoming
        curses.init_pair(7, curses.COLOR_BLUE, background)  # Links
        curses.init_pair(8, curses.COLOR_CYAN, background)  # Titles and labels

        self.styles = {
            render.STYLE_NORMAL: curses.A_NORMAL,
            render.STYLE_SELECTED: curses.color_pair(1) | curses.A_BOLD,
            render.STYLE_SELECTED_PAST: curses.color_pair(1) | curses.A_DIM,
            render.STYLE_PAST: curses.color_pair(5) | curses.A_DIM,
            render.STYLE_NOW: curses.color_pair(4) | curses.A_BOLD,
            render.STYLE_MUTED: curses.color_pair(5) | curses.A_DIM,
            render.STYLE_TITLE: curses.color_pair(8) | curses.A_BOLD,
            render.STYLE_LABEL: curses.color_pair(8),
            render.STYLE_IN_PROGRESS: curses.color_pair(3) | curses.A_BOLD,
            render.STYLE_UPCOMING: curses.color_pair(6),
            render.STYLE_ERROR: curses.color_pair(2) | curses.A_BOLD,
            render.STYLE_LINK: curses.color_pair(7) | curses.A_UNDERLINE,
        }

        # Hide cursor
        try:
            curses.curs_set(0)
        except curses.error:
            pass

    def size(self):
        """(width, height) of the terminal"""
        height, width = self.stdscr.getmaxyx()
        return width, height

    def addstr(self, y: int, x: int, text: str, attr: int = curses.A_NORMAL):
        try:
            self.stdscr.addstr(y, x, text, attr)
        except curses.error:
            # Text beyond the window edge
            pass

    def draw(self, state: PresentationState, now: datetime):
        """Draw the entire UI"""
        self.stdscr.erase()
        height, width = self.stdscr.getmaxyx()
        layout = state.layout

        if layout is not None:
            self.draw_header(state, now, width)
            self.draw_status(state, width)

            if state.show_help:
                self.draw_help_panel(layout.content_height, width)
            elif layout.paired:
                self.draw_list_panel(state, now, PANEL_LEFT, layout.list_width, layout.content_height, True)
                detail_x = PANEL_LEFT + layout.list_width + 1
                self.draw_detail_panel(state, now, detail_x, layout.detail_width, layout.content_height, False)
            elif state.focus == FOCUS_LIST:
                self.draw_list_panel(state, now, PANEL_LEFT, layout.list_width, layout.content_height, True)
            else:
                self.draw_detail_panel(state, now, PANEL_LEFT, layout.detail_width, layout.content_height, True)

            self.draw_footer(width, height)

        self.stdscr.refresh()

    def draw_header(self, state: PresentationState, now: datetime, width: int):
        layout = state.layout
        text = render.header_text(state.view_date, now, layout.paired, state.focus)
        self.addstr(0, PANEL_LEFT, text[:width - 4], curses.A_BOLD)

    def draw_status(self, state: PresentationState, width: int):
        """Loading spinner or error banner under the header"""
        if state.loading:
            self.spinner_index = (self.spinner_index + 1) % len(SPINNER_FRAMES)
            msg = f"{SPINNER_FRAMES[self.spinner_index]} Loading events..."
            self.addstr(1, PANEL_LEFT, msg[:width - 4], self.styles[render.STYLE_UPCOMING])
        elif state.error:
            msg = render.error_text(state.error)
            self.addstr(1, PANEL_LEFT, msg[:width - 4], self.styles[render.STYLE_ERROR])

    def draw_footer(self, width: int, height: int):
        self.addstr(height - 2, 0, "─" * max(width - 1, 0))
        self.addstr(height - 1, PANEL_LEFT, render.help_bar(width), self.styles[render.STYLE_MUTED])

    def draw_box(self, x: int, width: int, height: int, title: str, focused: bool):
        """Panel border with the title set into the top edge"""
        if width < 2 or height < 2:
            return
        attr = curses.A_BOLD if focused else self.styles[render.STYLE_MUTED]
        top = PANEL_TOP
        bottom = PANEL_TOP + height - 1

        self.addstr(top, x, "╭" + "─" * (width - 2) + "╮", attr)
        for y in range(top + 1, bottom):
            self.addstr(y, x, "│", attr)
            self.addstr(y, x + width - 1, "│", attr)
        self.addstr(bottom, x, "╰" + "─" * (width - 2) + "╯", attr)

        if title:
            self.addstr(top, x + 2, f" {title} "[:max(width - 4, 0)], attr)

    def draw_lines(self, lines: Sequence[Line], offset: int, x: int, width: int, height: int):
        """Draw the visible window of lines inside a panel"""
        inner_width = max(width - PANEL_CHROME, 1)
        first_row = PANEL_TOP + 2
        visible = max(height - PANEL_CHROME, 1)

        for i, line in enumerate(lines[offset:offset + visible]):
            text = line.text[:inner_width]
            if line.style in (render.STYLE_SELECTED, render.STYLE_SELECTED_PAST):
                # Selection bar spans the whole row
                text = text.ljust(inner_width)
            self.addstr(first_row + i, x + 2, text, self.styles.get(line.style, curses.A_NORMAL))

    def draw_list_panel(self, state: PresentationState, now: datetime, x: int, width: int, height: int,
                        focused: bool):
        layout = state.layout
        title = render.panel_title("Events", len(state.events), clamp_selection(state.selected, len(state.events)),
                                   not state.loading)
        self.draw_box(x, width, height, title, focused and (state.focus == FOCUS_LIST or layout.paired))

        lines: List[Line] = render.list_lines(state.events, state.selected, state.view_date, now,
                                              state.tz, layout.list_viewport_width)
        if state.loading and not state.events:
            lines = [Line("Loading...", render.STYLE_MUTED)]
        self.draw_lines(lines, state.list_offset, x, width, height)

    def draw_detail_panel(self, state: PresentationState, now: datetime, x: int, width: int, height: int,
                          focused: bool):
        layout = state.layout
        self.draw_box(x, width, height, "Details", focused or state.focus == FOCUS_DETAIL)

        event = state.selected_event
        if event is None:
            lines = [Line("No event selected", render.STYLE_MUTED)]
        else:
            lines = render.detail_lines(event, layout.detail_viewport_width, now, state.tz)
        self.draw_lines(lines, state.detail_offset, x, width, height)

    def draw_help_panel(self, content_height: int, width: int):
        panel_width = max(width - 4, 10)
        self.draw_box(PANEL_LEFT, panel_width, content_height, "Help", True)
        self.draw_lines(render.help_panel_lines(), 0, PANEL_LEFT, panel_width, content_height)
