"""
Plain-text helpers: HTML descriptions, wrapping, durations, terminal links.
"""

import re
import warnings
from datetime import timedelta
from typing import List
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

# Descriptions that are just a URL are still descriptions
warnings.filterwarnings('ignore', category=MarkupResemblesLocatorWarning)

_BLANK_LINES_RE = re.compile(r'\n{3,}')
_SPACES_RE = re.compile(r'[^\S\n]+')

BLOCK_TAGS = ['p', 'div', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'blockquote', 'pre', 'table', 'tr']
BULLET = '  • '


def html_to_text(text: str, width: int = 0, hyperlinks: bool = False) -> str:
    """Convert an HTML event description into readable terminal text

    Links become OSC 8 hyperlinks when `hyperlinks` is set (plain terminals),
    otherwise "text (url)" so they survive curses. Pass width <= 0 to skip
    truncating link text. Plain-text descriptions come through unchanged,
    apart from whitespace cleanup.
    """
    if not text:
        return text

    text = text.replace('\r\n', '\n').replace('\r', '\n')
    soup = BeautifulSoup(text, 'html.parser')

    for anchor in soup.find_all('a'):
        anchor.replace_with(_link_text(anchor, width, hyperlinks))

    # Block-level elements become newlines
    for br in soup.find_all('br'):
        br.replace_with('\n')
    for block in soup.find_all(BLOCK_TAGS):
        block.insert_before('\n')
        block.insert_after('\n\n')
        block.unwrap()

    for item in soup.find_all('li'):
        item.insert_before('\n' + BULLET)
        item.unwrap()
    for list_tag in soup.find_all(['ul', 'ol']):
        list_tag.insert_after('\n')
        list_tag.unwrap()

    text = _SPACES_RE.sub(' ', soup.get_text())

    lines = []
    for line in text.split('\n'):
        stripped = line.strip()
        # Keep list bullets indented
        if stripped.startswith('• '):
            lines.append(BULLET + stripped[2:])
        else:
            lines.append(stripped)
    text = '\n'.join(lines)

    text = _BLANK_LINES_RE.sub('\n\n', text)
    return text.strip()


def _link_text(anchor, max_width: int, hyperlinks: bool) -> str:
    link_text = anchor.get_text().strip()
    href = anchor.get('href', '')
    if not href:
        return link_text

    href = unwrap_redirect(href)
    display = link_text or href
    if max_width > 0:
        display = truncate_text(display, max_width)

    if hyperlinks:
        return make_hyperlink(href, display)
    if display == href:
        return href
    return f"{display} ({href})"


def unwrap_redirect(url: str) -> str:
    """Extract the real target from https://www.google.com/url?q=... wrappers"""
    parsed = urlparse(url)
    if parsed.netloc == 'www.google.com' and parsed.path == '/url':
        target = parse_qs(parsed.query).get('q')
        if target and target[0]:
            return target[0]
    return url


def make_hyperlink(url: str, display_text: str) -> str:
    """Clickable terminal hyperlink (OSC 8, BEL terminated)"""
    return f"\033]8;;{url}\a{display_text}\033]8;;\a"


def truncate_text(text: str, max_len: int) -> str:
    """Truncate to max_len characters, ending with an ellipsis when cut"""
    if max_len <= 0 or len(text) <= max_len:
        return text
    if max_len <= 1:
        return '…'
    return text[:max_len - 1] + '…'


def wrap_text_lines(text: str, max_width: int) -> List[str]:
    """Wrap text lines to fit within max_width, preserving indentation"""
    wrapped_lines = []
    max_width = max(max_width, 1)

    for line in text.split('\n'):
        if len(line) <= max_width:
            wrapped_lines.append(line)
            continue

        leading_spaces = len(line) - len(line.lstrip())
        indent = line[:leading_spaces]
        continuation_indent = indent + "  "
        if len(continuation_indent) >= max_width // 2:
            continuation_indent = ""

        remaining = line
        while remaining:
            if len(remaining) <= max_width:
                wrapped_lines.append(remaining)
                break

            # Break after the last space, dash or comma that fits, else hard break
            wrap_point = max_width
            for i in range(max_width, len(continuation_indent), -1):
                if remaining[i - 1] in (' ', '-', ','):
                    wrap_point = i
                    break

            wrapped_lines.append(remaining[:wrap_point].rstrip())

            remaining = remaining[wrap_point:].lstrip()
            if remaining:
                remaining = continuation_indent + remaining

    return wrapped_lines


def format_duration(delta: timedelta) -> str:
    """Compact duration like 1d 2h, 1h 30m or 45m"""
    total_minutes = int(abs(delta.total_seconds()) // 60)
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)

    if days > 0:
        return f"{days}d {hours}h" if hours > 0 else f"{days}d"
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
    return f"{minutes}m"


def format_countdown(delta: timedelta) -> str:
    """Spelled-out countdown like '1 hour, 5 minutes'"""
    if delta.total_seconds() < 0:
        return "NOW"

    total_minutes = int(delta.total_seconds() // 60)
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)

    def plural(n: int, unit: str) -> str:
        return f"{n} {unit}" if n == 1 else f"{n} {unit}s"

    parts = []
    if days:
        parts.append(plural(days, "day"))
    if hours:
        parts.append(plural(hours, "hour"))
    if minutes:
        parts.append(plural(minutes, "minute"))

    if not parts:
        return "less than a minute"
    return ", ".join(parts)
