"""
history.py - Scrollable, sortable view over the interval list

HistoryList keeps a cursor (the highlighted row) and a viewport (the slice
of rows that fits on screen) over a list of intervals it shares with the
Tracker. Sorting reorders that list in place; deleting removes from it.

Forward mode renders indices upwards from `offset`:

    offset, offset+1, ..., offset+rows-1

Reversed mode renders indices downwards from `offset`:

    offset, offset-1, ..., offset-rows+1

so in reversed mode `offset` is the highest index on screen and moving the
cursor DOWN the screen means moving to a LOWER index. Every operation ends
by re-clamping, which keeps the highlighted index inside the rendered window.
"""

from enum import Enum
from typing import Optional

from models import Category, Interval, category_label

DEFAULT_ROWS = 10


class SortMode(Enum):
    BY_START = "start"
    BY_DURATION = "duration"

    def toggled(self) -> "SortMode":
        if self is SortMode.BY_START:
            return SortMode.BY_DURATION
        return SortMode.BY_START


class HistoryList:
    """
    Cursor + viewport state machine for the history screen.

    Args:
        intervals: The list to browse. Shared, not copied.
        rows: How many rows fit on screen
    """

    def __init__(self, intervals: list[Interval], rows: int = DEFAULT_ROWS):
        if rows < 1:
            raise ValueError("rows must be at least 1")
        self.intervals = intervals
        self.rows = rows
        self.sort_mode = SortMode.BY_START
        self.reversed = False
        self.highlight = 0
        self.offset = 0
        self._clamp()

    @property
    def count(self) -> int:
        return len(self.intervals)

    # =========================================================================
    # VIEWPORT
    # =========================================================================

    def window(self) -> list[int]:
        """Indices currently on screen, top row first."""
        if not self.intervals:
            return []
        if self.reversed:
            return list(range(self.offset, max(self.offset - self.rows, -1), -1))
        return list(range(self.offset, min(self.offset + self.rows, self.count)))

    def visible(self) -> list[tuple[int, Interval, bool]]:
        """(index, interval, is_highlighted) for every row on screen."""
        return [
            (idx, self.intervals[idx], idx == self.highlight)
            for idx in self.window()
        ]

    def highlighted(self) -> Optional[Interval]:
        if not self.intervals:
            return None
        return self.intervals[self.highlight]

    def _clamp(self):
        n = self.count
        if n == 0:
            self.highlight = 0
            self.offset = 0
            return

        self.highlight = min(max(self.highlight, 0), n - 1)

        if not self.reversed:
            # Keep the window full when there are enough rows
            self.offset = min(max(self.offset, 0), max(n - self.rows, 0))
            if self.highlight < self.offset:
                self.offset = self.highlight
            elif self.highlight >= self.offset + self.rows:
                self.offset = self.highlight - self.rows + 1
        else:
            self.offset = max(min(self.offset, n - 1), min(self.rows - 1, n - 1))
            if self.highlight > self.offset:
                self.offset = self.highlight
            elif self.highlight <= self.offset - self.rows:
                self.offset = self.highlight + self.rows - 1

    def _index_step(self, screen_direction: int) -> int:
        # Down the screen is +1 in forward mode, -1 in reversed mode
        return -screen_direction if self.reversed else screen_direction

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def move(self, direction: int):
        """
        Move the cursor one row. direction=+1 is down the screen, -1 is up.

        The viewport only scrolls once the cursor would leave it.
        """
        target = self.highlight + self._index_step(direction)
        if 0 <= target < self.count:
            self.highlight = target
        self._clamp()

    def page(self, direction: int):
        """Move the cursor and the viewport by a full screen."""
        shift = self._index_step(direction) * self.rows
        self.highlight += shift
        self.offset += shift
        self._clamp()

    def toggle_sort(self):
        """Switch between start-time and duration order. Cursor stays put."""
        self.set_sort(self.sort_mode.toggled())

    def set_sort(self, mode: SortMode, now: Optional[int] = None):
        self.sort_mode = mode
        if mode is SortMode.BY_START:
            # list.sort() is stable, so equal starts keep their order
            self.intervals.sort(key=lambda interval: interval.start)
        else:
            self.intervals.sort(key=lambda interval: interval.duration_seconds(now))
        self._clamp()

    def toggle_reverse(self):
        """
        Flip the scan direction.

        Entering reversed mode puts the cursor on the last element (now the
        top row); leaving it puts the cursor back on the first.
        """
        self.reversed = not self.reversed
        if self.reversed:
            self.highlight = self.offset = max(self.count - 1, 0)
        else:
            self.highlight = self.offset = 0
        self._clamp()

    def delete_highlighted(self) -> Optional[Interval]:
        """
        Remove the highlighted interval from the shared list.

        Returns:
            The removed interval, or None if the list was empty
        """
        if not self.intervals:
            return None
        removed = self.intervals.pop(self.highlight)
        if self.highlight >= self.count:
            self.highlight = self.count - 1
        self._clamp()
        return removed


# =============================================================================
# ROW FORMATTING
# =============================================================================

def describe(interval: Interval, categories: list[Category], now: Optional[int] = None) -> str:
    """
    One history line, e.g. "Writing: [16/10]09:05-10:35(90m00s)".

    Open intervals show "..." instead of an end time and the time elapsed
    so far.
    """
    name = category_label(categories, interval.category_idx)
    start = interval.start_time
    end = interval.end_time
    end_str = end.strftime("%H:%M") if end is not None else "..."
    seconds = interval.duration_seconds(now)
    return (
        f"{name}: [{start:%d/%m}]{start:%H:%M}-{end_str}"
        f"({seconds // 60:02d}m{seconds % 60:02d}s)"
    )


def render_lines(history: HistoryList, categories: list[Category], now: Optional[int] = None) -> list[str]:
    """Screen lines with the cursor glyph: '>' highlighted, '-' otherwise."""
    return [
        f"{'>' if highlighted else '-'} {describe(interval, categories, now)}"
        for _, interval, highlighted in history.visible()
    ]
