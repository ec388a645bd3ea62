"""
Responsive panel geometry for the list + detail view.
"""

from dataclasses import dataclass

# Below this many columns only one panel is shown at a time
PAIRED_THRESHOLD = 70

MIN_HEIGHT = 10
MIN_CONTENT_HEIGHT = 5
MIN_SINGLE_WIDTH = 20
MIN_LIST_WIDTH = 30
MIN_DETAIL_WIDTH = 35
MAX_LIST_WIDTH = 55

# Header, help bar and padding
CHROME_ROWS = 6
# Panel borders and headers inside a panel
PANEL_CHROME = 4
# Space between the two panels
PANEL_GAP = 5


@dataclass(frozen=True)
class Layout:
    paired: bool
    list_width: int
    detail_width: int
    content_height: int

    @property
    def viewport_height(self) -> int:
        """Rows available for panel content"""
        return max(1, self.content_height - PANEL_CHROME)

    @property
    def list_viewport_width(self) -> int:
        return max(10, self.list_width - PANEL_CHROME)

    @property
    def detail_viewport_width(self) -> int:
        return max(10, self.detail_width - PANEL_CHROME)


def list_share(width: int) -> int:
    """List panel width before floors: wider terminals give the list less"""
    if width < 100:
        return width * 40 // 100
    if width < 140:
        return width * 35 // 100
    return min(width * 30 // 100, MAX_LIST_WIDTH)


def compute_layout(width: int, height: int) -> Layout:
    """Calculate panel dimensions for a terminal of the given size"""
    height = max(height, MIN_HEIGHT)
    content_height = max(height - CHROME_ROWS, MIN_CONTENT_HEIGHT)

    if width < PAIRED_THRESHOLD:
        panel_width = max(width - 4, MIN_SINGLE_WIDTH)
        return Layout(paired=False, list_width=panel_width, detail_width=panel_width,
                      content_height=content_height)

    list_width = max(list_share(width), MIN_LIST_WIDTH)
    detail_width = max(width - list_width - PANEL_GAP, MIN_DETAIL_WIDTH)
    return Layout(paired=True, list_width=list_width, detail_width=detail_width,
                  content_height=content_height)
