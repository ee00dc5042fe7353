"""
models.py - Data structures for the focus tracker

Categories and intervals are plain dataclasses. A Tracker owns both
collections as ordered lists; positions in those lists ARE the identities,
so deleting an element shifts everything after it down by one.

An interval points at its category by index. Deleting a category therefore
leaves older intervals pointing past the end of the list (or at whatever
category slid into that slot). Those "dangling" references are never
repaired; they show up as [DELETED] instead.
"""

# time: current Unix time for starting and stopping intervals
# Union: methods that return either a new object or AtCapacity
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

# Name buffer size in bytes, one of which is reserved for a terminator
NAME_MAX_LENGTH = 30

MAX_CATEGORIES = 5
MAX_INTERVALS = 1000

# end == OPEN means the interval is still running. Zero is safe as a
# sentinel: no real interval ends at the 1970 epoch.
OPEN = 0

DELETED_LABEL = "[DELETED]"


@dataclass
class Category:
    """
    A named bucket that intervals are tagged with.

    Examples: "Writing", "Reading", "Exercise"
    """
    name: str = ""

    def __post_init__(self):
        # Names are bounded; anything longer is cut, not rejected
        self.name = self.name.strip()[:NAME_MAX_LENGTH - 1]
        if not self.name:
            raise ValueError("Category name cannot be empty")


@dataclass
class Interval:
    """
    A single focus block.

    start/end are Unix timestamps in whole seconds. An interval with
    end == OPEN has been started but not stopped yet.
    """
    category_idx: int = 0
    start: int = 0
    end: int = OPEN

    @property
    def is_open(self) -> bool:
        return self.end == OPEN

    @property
    def start_time(self) -> datetime:
        """Start as a local datetime."""
        return datetime.fromtimestamp(self.start)

    @property
    def end_time(self) -> Optional[datetime]:
        """End as a local datetime, None while the interval is open."""
        if self.is_open:
            return None
        return datetime.fromtimestamp(self.end)

    def duration_seconds(self, now: Optional[int] = None) -> int:
        """
        Seconds covered by this interval.

        Open intervals are measured up to `now` (defaults to the current
        time), the same way a running stopwatch would show it.
        """
        if self.is_open:
            if now is None:
                now = int(time.time())
            return max(now - self.start, 0)
        return self.end - self.start

    def close(self, now: int):
        # end >= start holds for every closed interval
        self.end = max(now, self.start)


@dataclass(frozen=True)
class AtCapacity:
    """
    Returned instead of a new object when a collection is full.

    `what` is "categories" or "intervals".
    """
    what: str
    limit: int

    @property
    def message(self) -> str:
        return f"Cannot have more than {self.limit} {self.what}."


class Tracker:
    """
    Owns the category and interval collections.

    Both are ordinary lists so that other components (the history view,
    the store) can read or reorder them in place.
    """

    def __init__(
        self,
        categories: Optional[list[Category]] = None,
        intervals: Optional[list[Interval]] = None,
        max_categories: int = MAX_CATEGORIES,
        max_intervals: int = MAX_INTERVALS
    ):
        self.categories: list[Category] = categories if categories is not None else []
        self.intervals: list[Interval] = intervals if intervals is not None else []
        self.max_categories = max_categories
        self.max_intervals = max_intervals

    # =========================================================================
    # CATEGORY OPERATIONS
    # =========================================================================

    def add_category(self, name: str) -> Union[Category, AtCapacity]:
        """
        Append a new category.

        Raises:
            ValueError: If the name is empty
        """
        if len(self.categories) >= self.max_categories:
            return AtCapacity("categories", self.max_categories)
        category = Category(name)
        self.categories.append(category)
        return category

    def find_category(self, name: str) -> Optional[int]:
        """Index of the category with this name (case-insensitive), or None."""
        wanted = name.strip()[:NAME_MAX_LENGTH - 1].lower()
        for idx, category in enumerate(self.categories):
            if category.name.lower() == wanted:
                return idx
        return None

    def delete_category(self, idx: int) -> bool:
        """
        Remove a category by index.

        Intervals that referenced it are left alone and become dangling.
        """
        if not 0 <= idx < len(self.categories):
            return False
        del self.categories[idx]
        return True

    def is_dangling(self, interval: Interval) -> bool:
        return not 0 <= interval.category_idx < len(self.categories)

    def category_name(self, idx: int) -> str:
        return category_label(self.categories, idx)

    # =========================================================================
    # INTERVAL OPERATIONS
    # =========================================================================

    def active_interval(self) -> Optional[Interval]:
        """The open interval, if any. Only one can be open at a time."""
        for interval in reversed(self.intervals):
            if interval.is_open:
                return interval
        return None

    def start_interval(self, category_idx: int, now: Optional[int] = None) -> Union[Interval, AtCapacity]:
        """
        Open a new interval for the category at `category_idx`.

        Raises:
            ValueError: If the index is not a current category, or another
                interval is still open
        """
        if len(self.intervals) >= self.max_intervals:
            return AtCapacity("intervals", self.max_intervals)
        if not 0 <= category_idx < len(self.categories):
            raise ValueError(f"No category at index {category_idx}")
        if self.active_interval() is not None:
            raise ValueError("Another interval is still open")

        if now is None:
            now = int(time.time())
        interval = Interval(category_idx=category_idx, start=now, end=OPEN)
        self.intervals.append(interval)
        return interval

    def add_interval(self, category_idx: int, start: int, end: int) -> Union[Interval, AtCapacity]:
        """Append an already closed interval (used by bulk import)."""
        if len(self.intervals) >= self.max_intervals:
            return AtCapacity("intervals", self.max_intervals)
        if end < start:
            raise ValueError("Interval ends before it starts")
        interval = Interval(category_idx=category_idx, start=start, end=end)
        self.intervals.append(interval)
        return interval

    def stop_interval(self, now: Optional[int] = None) -> Optional[Interval]:
        """Close the open interval. Returns None if nothing was running."""
        active = self.active_interval()
        if active is None:
            return None
        active.close(int(time.time()) if now is None else now)
        return active

    def cancel_interval(self) -> Optional[Interval]:
        """Drop the open interval without keeping it."""
        active = self.active_interval()
        if active is None:
            return None
        # Remove by identity; equal-valued intervals may exist
        for idx, interval in enumerate(self.intervals):
            if interval is active:
                del self.intervals[idx]
                break
        return active

    def delete_interval(self, idx: int) -> bool:
        if not 0 <= idx < len(self.intervals):
            return False
        del self.intervals[idx]
        return True


def category_label(categories: list[Category], idx: int) -> str:
    """Name for `idx`, or [DELETED] when the index no longer exists."""
    if 0 <= idx < len(categories):
        return categories[idx].name
    return DELETED_LABEL
