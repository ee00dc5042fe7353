"""
periods.py - Calendar periods and the period navigator

A period is a calendar bucket: a day, a Monday-to-Sunday week, a month or
a year, always in local civil time. Each period instance is identified by a
PeriodKey, a small (year, index) tuple that compares chronologically within
one kind:

    DAY    (year, day-of-year)             e.g. (2026, 289)
    WEEK   (year, day-of-year of Monday)   e.g. (2026, 285)
    MONTH  (year, month)                   e.g. (2026, 10)
    YEAR   (year, 0)                       e.g. (2026, 0)

The navigator walks a cursor date backwards and forwards one period at a
time but never past the period that contains "now".
"""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import NamedTuple, Optional, Union

DateLike = Union[date, datetime]


class PeriodKind(Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @classmethod
    def parse(cls, text: str) -> "PeriodKind":
        """
        Turn user input like "week" or "M" into a PeriodKind.

        Accepts the full name or its first letter, case-insensitive.

        Raises:
            ValueError: If the text names no period kind
        """
        value = text.strip().lower()
        for kind in cls:
            if value in (kind.value, kind.value[0]):
                return kind
        raise ValueError(f"Unknown period: {text}")


class PeriodKey(NamedTuple):
    year: int
    index: int


def _as_date(value: DateLike) -> date:
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.date()
    return value


def _yday(d: date) -> int:
    return d.timetuple().tm_yday


def _civil(year: int, month: int, day: int) -> date:
    """
    Build a date the way mktime() normalizes a struct tm.

    Month and day may be out of range: month 13 is January of the next
    year, February 31 is early March.
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return date(year, month, 1) + timedelta(days=day - 1)


# =============================================================================
# PER-KIND CALENDAR RULES
# =============================================================================

class _Day:
    def key(self, d: date) -> PeriodKey:
        return PeriodKey(d.year, _yday(d))

    def shift(self, d: date, direction: int) -> date:
        return d + timedelta(days=direction)

    def start(self, d: date) -> date:
        return d

    def next_start(self, d: date) -> date:
        return d + timedelta(days=1)

    def label(self, d: date) -> str:
        return d.strftime("%d/%m/%Y")


class _Week:
    def key(self, d: date) -> PeriodKey:
        monday = self.start(d)
        return PeriodKey(monday.year, _yday(monday))

    def shift(self, d: date, direction: int) -> date:
        return d + timedelta(days=7 * direction)

    def start(self, d: date) -> date:
        # weekday() is 0 for Monday
        return d - timedelta(days=d.weekday())

    def next_start(self, d: date) -> date:
        return self.start(d) + timedelta(days=7)

    def label(self, d: date) -> str:
        return "Week of " + self.start(d).strftime("%d/%m/%Y")


class _Month:
    def key(self, d: date) -> PeriodKey:
        return PeriodKey(d.year, d.month)

    def shift(self, d: date, direction: int) -> date:
        moved = _civil(d.year, d.month + direction, d.day)
        target = _civil(d.year, d.month + direction, 1)
        if (moved.year, moved.month) != (target.year, target.month):
            # Jan 31 + 1 month normalizes into March; take that back
            # one month so the cursor lands in February
            moved = _civil(moved.year, moved.month - 1, moved.day)
        return moved

    def start(self, d: date) -> date:
        return d.replace(day=1)

    def next_start(self, d: date) -> date:
        return _civil(d.year, d.month + 1, 1)

    def label(self, d: date) -> str:
        return d.strftime("%m/%Y")


class _Year:
    def key(self, d: date) -> PeriodKey:
        return PeriodKey(d.year, 0)

    def shift(self, d: date, direction: int) -> date:
        # Feb 29 into a common year becomes Mar 1 of that year
        return _civil(d.year + direction, d.month, d.day)

    def start(self, d: date) -> date:
        return date(d.year, 1, 1)

    def next_start(self, d: date) -> date:
        return date(d.year + 1, 1, 1)

    def label(self, d: date) -> str:
        return str(d.year)


_CALENDARS = {
    PeriodKind.DAY: _Day(),
    PeriodKind.WEEK: _Week(),
    PeriodKind.MONTH: _Month(),
    PeriodKind.YEAR: _Year(),
}


def _calendar(kind: PeriodKind):
    try:
        return _CALENDARS[kind]
    except KeyError:
        raise ValueError(f"Not a period kind: {kind!r}") from None


# =============================================================================
# PUBLIC FUNCTIONS
# =============================================================================

def period_of(now: DateLike, kind: PeriodKind) -> PeriodKey:
    """Key of the period of `kind` that contains `now`."""
    return _calendar(kind).key(_as_date(now))


def step(basis: DateLike, anchor_now: DateLike, kind: PeriodKind, direction: int) -> date:
    """
    Move the cursor date `basis` one period in `direction` (-1 or +1).

    Forward moves that would land in a period later than the one holding
    `anchor_now` are rejected: the old cursor comes back unchanged.
    Backward moves are never clamped.

    Returns:
        The new cursor date
    """
    if direction not in (-1, 1):
        raise ValueError(f"direction must be -1 or +1, got {direction}")

    calendar = _calendar(kind)
    basis = _as_date(basis)
    moved = calendar.shift(basis, direction)

    if direction > 0 and calendar.key(moved) > calendar.key(_as_date(anchor_now)):
        return basis
    return moved


def advance(basis: DateLike, anchor_now: DateLike, kind: PeriodKind, direction: int) -> PeriodKey:
    """Like step(), but returns the key of the period the cursor lands in."""
    return period_of(step(basis, anchor_now, kind, direction), kind)


def period_bounds(basis: DateLike, kind: PeriodKind) -> tuple[datetime, datetime]:
    """
    Half-open [start, end) range of the period containing `basis`.

    Using the start of the next period as the end bound keeps ranges
    exclusive, the same convention as the rest of the app.
    """
    calendar = _calendar(kind)
    d = _as_date(basis)
    start = calendar.start(d)
    end = calendar.next_start(d)
    return datetime(start.year, start.month, start.day), datetime(end.year, end.month, end.day)


def period_label(basis: DateLike, kind: PeriodKind) -> str:
    return _calendar(kind).label(_as_date(basis))


# =============================================================================
# NAVIGATOR
# =============================================================================

class Navigator:
    """
    Cursor over periods of one kind.

    The anchor is the moment the navigator was created ("now" when the
    screen was opened). The cursor starts in the anchor's period and can
    never move past it.
    """

    def __init__(self, kind: PeriodKind, anchor: Optional[datetime] = None):
        self.kind = kind
        self.anchor = anchor if anchor is not None else datetime.now()
        self.cursor: date = _as_date(self.anchor)

    @property
    def key(self) -> PeriodKey:
        return period_of(self.cursor, self.kind)

    @property
    def at_latest(self) -> bool:
        """True while the cursor sits in the anchor's own period."""
        return self.key == period_of(self.anchor, self.kind)

    def advance(self, direction: int) -> PeriodKey:
        self.cursor = step(self.cursor, self.anchor, self.kind, direction)
        return self.key

    def label(self) -> str:
        return period_label(self.cursor, self.kind)

    def bounds(self) -> tuple[datetime, datetime]:
        return period_bounds(self.cursor, self.kind)
