"""
stats.py - Totals and per-category breakdowns over calendar periods

Everything here is read-only over the interval list. An interval belongs to
a period when its START maps to that period's key; an interval that runs
past midnight is counted entirely on the day it started.

Dangling category references (left behind when a category is deleted) are
real focused time, so they count towards the flat total. They are not
attributed to any category in the distribution, because the slot they
point at is either gone or now belongs to a different category.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import NamedTuple

from models import Category, Interval
from periods import Navigator, PeriodKey, PeriodKind, period_of

SECONDS_PER_HOUR = 3600


class Share(NamedTuple):
    """One row of a distribution: category name and seconds focused."""
    name: str
    seconds: int

    @property
    def formatted(self) -> str:
        return format_duration(self.seconds)


def format_duration(seconds: int) -> str:
    """
    Format seconds for the stats screens.

    One hour or more shows hours and minutes, anything shorter shows
    minutes and seconds:

        5400 -> "1h30m"
        307  -> "05m07s"
    """
    if seconds >= SECONDS_PER_HOUR:
        hours = seconds // SECONDS_PER_HOUR
        minutes = (seconds % SECONDS_PER_HOUR) // 60
        return f"{hours}h{minutes:02d}m"
    minutes = seconds // 60
    secs = seconds % 60
    return f"{minutes:02d}m{secs:02d}s"


def _in_period(interval: Interval, kind: PeriodKind, period_key: PeriodKey) -> bool:
    # Open intervals have no duration yet and never count
    if interval.is_open:
        return False
    return period_of(datetime.fromtimestamp(interval.start), kind) == period_key


def total_duration(intervals: list[Interval], kind: PeriodKind, period_key: PeriodKey) -> int:
    """
    Seconds focused in one period, across all categories.

    Includes intervals whose category has since been deleted.
    """
    return sum(
        interval.end - interval.start
        for interval in intervals
        if _in_period(interval, kind, period_key)
    )


def distribution(
    intervals: list[Interval],
    categories: list[Category],
    kind: PeriodKind,
    period_key: PeriodKey
) -> list[Share]:
    """
    Per-category seconds for one period.

    Returns:
        Shares in category order (not sorted by size). Categories with
        nothing logged in the period are left out.
    """
    buckets = [0] * len(categories)

    for interval in intervals:
        if not _in_period(interval, kind, period_key):
            continue
        idx = interval.category_idx
        if not 0 <= idx < len(categories):
            continue  # dangling
        buckets[idx] += interval.end - interval.start

    return [
        Share(category.name, seconds)
        for category, seconds in zip(categories, buckets)
        if seconds > 0
    ]


def unattributed_duration(
    intervals: list[Interval],
    categories: list[Category],
    kind: PeriodKind,
    period_key: PeriodKey
) -> int:
    """Seconds in the period that belong to deleted categories."""
    return sum(
        interval.end - interval.start
        for interval in intervals
        if _in_period(interval, kind, period_key)
        and not 0 <= interval.category_idx < len(categories)
    )


@dataclass
class PeriodSummary:
    """Everything the stats screen shows for one period."""
    kind: PeriodKind
    key: PeriodKey
    label: str
    total: int = 0
    unattributed: int = 0
    shares: list[Share] = field(default_factory=list)

    @property
    def attributed(self) -> int:
        return self.total - self.unattributed


def summarize(intervals: list[Interval], categories: list[Category], navigator: Navigator) -> PeriodSummary:
    """Compute the summary for the navigator's current period."""
    kind, key = navigator.kind, navigator.key
    return PeriodSummary(
        kind=kind,
        key=key,
        label=navigator.label(),
        total=total_duration(intervals, kind, key),
        unattributed=unattributed_duration(intervals, categories, kind, key),
        shares=distribution(intervals, categories, kind, key),
    )
