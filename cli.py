#!/usr/bin/env python3
"""
cli.py - Command-line interface for the focus tracker

Every command follows the same shape: load the snapshot, do one thing,
save the snapshot. Saving is an unconditional overwrite of both data
files; if it fails the command reports it and exits with status 1.

Two commands have interactive screens that read single key presses:
    stats --browse     walk periods with the arrow keys (or h/l)
    history --browse   scroll, sort, reverse and delete intervals
"""

# Standard library imports
import logging
import time
from datetime import datetime, timedelta
from typing import Optional

# Typer: CLI framework; also provides getchar() for the browse screens
import typer

# Rich: styled terminal output
# Live: redraws one renderable in place (the watch screen)
# escape: category names are user text and may contain [brackets]
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

# Our local modules
from config import Settings, load_settings, setup_logging
from history import HistoryList, SortMode, render_lines
from models import DELETED_LABEL, AtCapacity, Interval, Tracker
from periods import Navigator, PeriodKind
from stats import PeriodSummary, format_duration, summarize
from store import ImportFailed, StoreError, export_csv, import_csv, load_tracker, save_tracker


# =============================================================================
# APP SETUP
# =============================================================================

app = typer.Typer(
    name="focuslog",
    help="Track focus intervals by category and review them by period",
    add_completion=False
)

console = Console()

logger = logging.getLogger(__name__)

# Seconds between redraws of the watch screen
WATCH_REFRESH_SECONDS = 1.0


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Optional[str] = typer.Option(
        None,
        "--data-dir",
        help="Directory holding the data files (default: $FOCUSLOG_HOME or ~/.focuslog)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")
):
    """
    Track focus intervals by category and review them by period.
    """
    setup_logging(verbose)
    ctx.obj = load_settings(data_dir)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _fail(message: str):
    # Typer turns Exit into the process exit status
    console.print(f"[red]✗[/red]  {message}")
    raise typer.Exit(code=1)


def _load(ctx: typer.Context) -> Tracker:
    settings: Settings = ctx.obj
    try:
        return load_tracker(settings.categories_path, settings.intervals_path)
    except StoreError as e:
        _fail(f"Cannot load data: {e}")


def _save(ctx: typer.Context, tracker: Tracker):
    settings: Settings = ctx.obj
    try:
        save_tracker(tracker, settings.categories_path, settings.intervals_path)
    except StoreError as e:
        # No retry and no fallback location
        _fail(f"Cannot save data: {e}")


def _now() -> int:
    # Whole seconds; the data files store no fractions
    return int(time.time())


def format_time(ts: int) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")


def _label(tracker: Tracker, idx: int) -> str:
    """Category name, safe to embed in Rich markup."""
    return escape(tracker.category_name(idx))


def _category_index(tracker: Tracker, ref: str) -> Optional[int]:
    """
    Resolve a category given by name or by its 1-based number.

    Names win over numbers, so a category literally called "2" is still
    reachable.
    """
    idx = tracker.find_category(ref)
    if idx is not None:
        return idx
    if ref.isdigit() and 1 <= int(ref) <= len(tracker.categories):
        return int(ref) - 1
    return None


def _active_panel(tracker: Tracker, active: Interval) -> Panel:
    elapsed = active.duration_seconds(_now())
    minutes, seconds = divmod(elapsed, 60)
    return Panel(
        f"[bold]{_label(tracker, active.category_idx)}[/bold]\n\n"
        f"[green]{minutes:02d}:{seconds:02d}[/green]",
        title="Focusing",
        subtitle="Ctrl+C to stop",
        expand=False
    )


# Key sequences as returned by typer.getchar(). POSIX terminals send ANSI
# escape sequences, Windows sends a 0xe0 or 0x00 prefix plus a scan code.
# The letters are vi-style alternatives (u/n page up and down).
KEYS = {
    "\x1b[A": "up", "\xe0H": "up", "\x00H": "up", "k": "up",
    "\x1b[B": "down", "\xe0P": "down", "\x00P": "down", "j": "down",
    "\x1b[D": "left", "\xe0K": "left", "\x00K": "left", "h": "left",
    "\x1b[C": "right", "\xe0M": "right", "\x00M": "right", "l": "right",
    "\x1b[5~": "page_up", "\xe0I": "page_up", "\x00I": "page_up", "u": "page_up",
    "\x1b[6~": "page_down", "\xe0Q": "page_down", "\x00Q": "page_down", "n": "page_down",
    "\x1b": "quit", "q": "quit",
}


def _read_key() -> str:
    """
    Block for one key press and name it.

    End of input counts as "quit" so a closed stdin can't spin forever.
    """
    key = typer.getchar()
    if not key:
        return "quit"
    name = KEYS.get(key, key)
    logger.debug("Key %r -> %s", key, name)
    return name


# =============================================================================
# TRACKING COMMANDS
# =============================================================================

@app.command()
def start(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="Category name or number")
):
    """
    Start a focus interval.

    A category that doesn't exist yet is created first.
    Only one interval can run at a time.
    """
    tracker = _load(ctx)

    active = tracker.active_interval()
    if active is not None:
        console.print(
            f"[yellow]⚠[/yellow]  [bold]{_label(tracker, active.category_idx)}[/bold] "
            f"is already running (started {format_time(active.start)})"
        )
        raise typer.Exit(code=1)

    idx = _category_index(tracker, category)
    if idx is None:
        try:
            added = tracker.add_category(category)
        except ValueError as e:
            _fail(str(e))
        if isinstance(added, AtCapacity):
            _fail(added.message)
        idx = len(tracker.categories) - 1
        console.print(f"[green]+[/green]  Created category [bold]{escape(added.name)}[/bold]")

    interval = tracker.start_interval(idx, _now())
    if isinstance(interval, AtCapacity):
        _fail(interval.message)

    _save(ctx, tracker)
    console.print(
        f"[green]▶[/green]  Started [bold]{_label(tracker, idx)}[/bold] "
        f"at {format_time(interval.start)}"
    )


@app.command()
def stop(ctx: typer.Context):
    """
    Stop the running interval.
    """
    tracker = _load(ctx)

    interval = tracker.stop_interval(_now())
    if interval is None:
        console.print("[yellow]⚠[/yellow]  No running interval to stop")
        raise typer.Exit(code=1)

    _save(ctx, tracker)
    console.print(
        f"[red]■[/red]  Stopped [bold]{_label(tracker, interval.category_idx)}[/bold] — "
        f"Duration: [bold]{format_duration(interval.duration_seconds())}[/bold]"
    )


@app.command()
def cancel(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt")
):
    """
    Throw away the running interval without keeping it.
    """
    tracker = _load(ctx)

    active = tracker.active_interval()
    if active is None:
        console.print("[yellow]⚠[/yellow]  No running interval to cancel")
        return

    name = tracker.category_name(active.category_idx)
    if not yes and not typer.confirm(
        f"Cancel interval for '{name}' ({format_duration(active.duration_seconds(_now()))})?"
    ):
        console.print("[dim]Cancelled[/dim]")
        return

    tracker.cancel_interval()
    _save(ctx, tracker)
    console.print(f"[yellow]✗[/yellow]  Discarded interval for [bold]{escape(name)}[/bold]")


@app.command()
def status(ctx: typer.Context):
    """
    Show the running interval, if any.
    """
    tracker = _load(ctx)

    active = tracker.active_interval()
    if active is None:
        console.print("[dim]●[/dim]  Nothing running — you're idle")
        return

    console.print(
        f"[green]●[/green]  [bold]{_label(tracker, active.category_idx)}[/bold] "
        f"since {format_time(active.start)} "
        f"([green]{format_duration(active.duration_seconds(_now()))}[/green])"
    )


@app.command()
def watch(ctx: typer.Context):
    """
    Show a live timer for the running interval.

    Ctrl+C stops the interval and saves it.
    """
    tracker = _load(ctx)

    active = tracker.active_interval()
    if active is None:
        console.print("[yellow]⚠[/yellow]  No running interval to watch")
        raise typer.Exit(code=1)

    with Live(_active_panel(tracker, active), console=console, auto_refresh=False) as live:
        try:
            while True:
                time.sleep(WATCH_REFRESH_SECONDS)
                live.update(_active_panel(tracker, active), refresh=True)
        except KeyboardInterrupt:
            pass

    tracker.stop_interval(_now())
    _save(ctx, tracker)
    console.print(
        f"[red]■[/red]  Stopped [bold]{_label(tracker, active.category_idx)}[/bold] — "
        f"Duration: [bold]{format_duration(active.duration_seconds())}[/bold]"
    )


# =============================================================================
# CATEGORY COMMANDS
# =============================================================================

@app.command()
def categories(ctx: typer.Context):
    """
    List categories with their interval counts.
    """
    tracker = _load(ctx)

    if not tracker.categories:
        console.print("[dim]No categories yet[/dim]")
        return

    counts = [0] * len(tracker.categories)
    for interval in tracker.intervals:
        if not tracker.is_dangling(interval):
            counts[interval.category_idx] += 1

    table = Table(title="Categories")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Intervals", justify="right", style="cyan")

    for number, (category, count) in enumerate(zip(tracker.categories, counts), start=1):
        table.add_row(str(number), escape(category.name), str(count))

    console.print(table)


@app.command("add-category")
def add_category(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the new category")
):
    """
    Create a category.
    """
    tracker = _load(ctx)

    if tracker.find_category(name) is not None:
        _fail(f"Category [bold]{escape(name)}[/bold] already exists")

    try:
        added = tracker.add_category(name)
    except ValueError as e:
        _fail(str(e))
    if isinstance(added, AtCapacity):
        _fail(added.message)

    _save(ctx, tracker)
    console.print(f"[green]✓[/green]  Added category [bold]{escape(added.name)}[/bold]")


@app.command("delete-category")
def delete_category(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="Category name or number"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt")
):
    """
    Delete a category.

    Intervals are kept. Categories after the deleted one move up a slot,
    so intervals pointing past the end show up as [DELETED].
    """
    tracker = _load(ctx)

    idx = _category_index(tracker, category)
    if idx is None:
        _fail(f"Category [bold]{escape(category)}[/bold] not found")

    name = tracker.categories[idx].name
    if not yes and not typer.confirm(f"Delete category '{name}'?"):
        console.print("[dim]Cancelled[/dim]")
        return

    tracker.delete_category(idx)
    _save(ctx, tracker)
    console.print(f"[green]✓[/green]  Deleted category [bold]{escape(name)}[/bold]")


# =============================================================================
# HISTORY COMMANDS
# =============================================================================

def _history_table(history: HistoryList, tracker: Tracker) -> Table:
    now = _now()
    arrow = "↑" if history.reversed else "↓"
    table = Table(title=f"History — by {history.sort_mode.value} {arrow}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Category", style="bold")
    table.add_column("Date", style="cyan")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Duration", justify="right", style="green")

    for idx, interval, _ in history.visible():
        end = interval.end_time
        table.add_row(
            str(idx + 1),
            _label(tracker, interval.category_idx),
            interval.start_time.strftime("%Y-%m-%d"),
            interval.start_time.strftime("%H:%M"),
            end.strftime("%H:%M") if end is not None else "[green]running[/green]",
            format_duration(interval.duration_seconds(now))
        )
    return table


def _browse_history(history: HistoryList, tracker: Tracker):
    actions = {
        "down": lambda: history.move(1),
        "up": lambda: history.move(-1),
        "page_down": lambda: history.page(1),
        "page_up": lambda: history.page(-1),
        "s": history.toggle_sort,
        "r": history.toggle_reverse,
        # No confirmation here; the browse screen deletes on the key press
        "d": history.delete_highlighted,
    }

    while True:
        console.clear()
        console.print(f"[bold]HISTORY[/bold] — by {history.sort_mode.value}"
                      f"{' (reversed)' if history.reversed else ''}")
        if not history.count:
            console.print("[dim]-- No intervals to display --[/dim]")
        for line in render_lines(history, tracker.categories, _now()):
            style = "bold" if line.startswith(">") else "dim"
            console.print(line, style=style, markup=False, highlight=False)
        console.print(escape("[j/k] Move  [u/n] Page  [s] Sort  [r] Reverse  [d] Delete  [q] Back"), style="dim")

        key = _read_key()
        if key == "quit":
            return
        action = actions.get(key)
        if action is not None:
            action()


@app.command()
def history(
    ctx: typer.Context,
    sort: str = typer.Option("start", "--sort", "-s", help="Order by: start or duration"),
    reverse: bool = typer.Option(False, "--reverse", "-r", help="Scan from the end of the list"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Rows to show (default: $FOCUSLOG_ROWS or 10)"),
    browse: bool = typer.Option(False, "--browse", "-b", help="Interactive screen")
):
    """
    Show recorded intervals.

    Sorting reorders the stored list, so interval numbers follow the
    chosen order afterwards.
    """
    settings: Settings = ctx.obj
    try:
        mode = SortMode(sort.lower())
    except ValueError:
        _fail(f"Unknown sort order: {sort}. Use: start or duration")

    rows = limit if limit is not None else settings.history_rows
    if rows < 1:
        _fail("--limit must be at least 1")

    tracker = _load(ctx)
    listing = HistoryList(tracker.intervals, rows=rows)
    listing.set_sort(mode, _now())
    if reverse:
        listing.toggle_reverse()

    if browse:
        _browse_history(listing, tracker)
    elif not listing.count:
        console.print("[dim]No intervals found[/dim]")
    else:
        console.print(_history_table(listing, tracker))

    _save(ctx, tracker)


@app.command()
def delete(
    ctx: typer.Context,
    number: int = typer.Argument(..., help="Interval number as shown by `history`"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt")
):
    """
    Delete one interval by its number.
    """
    tracker = _load(ctx)

    if not 1 <= number <= len(tracker.intervals):
        _fail(f"Interval {number} not found")

    target = tracker.intervals[number - 1]
    console.print(
        f"Interval: [bold]{_label(tracker, target.category_idx)}[/bold] on "
        f"{format_time(target.start)} ({format_duration(target.duration_seconds(_now()))})"
    )
    if not yes and not typer.confirm("Delete this interval?"):
        console.print("[dim]Cancelled[/dim]")
        return

    tracker.delete_interval(number - 1)
    _save(ctx, tracker)
    console.print(f"[green]✓[/green]  Deleted interval {number}")


# =============================================================================
# STATS COMMANDS
# =============================================================================

def _stats_table(summary: PeriodSummary, navigator: Navigator) -> Table:
    # bounds() is half-open, so the caption shows the last day it covers
    first, after = navigator.bounds()
    last = after - timedelta(days=1)
    table = Table(
        title=f"{summary.kind.value.upper()} STATS — {summary.label}",
        caption=f"{first:%d/%m/%Y} to {last:%d/%m/%Y}"
    )
    table.add_column("Category", style="bold")
    table.add_column("Time", justify="right", style="green")
    table.add_column("Share", justify="right", style="cyan")

    for share in summary.shares:
        percent = 100 * share.seconds / summary.total if summary.total else 0
        table.add_row(escape(share.name), share.formatted, f"{percent:.0f}%")

    if summary.unattributed > 0:
        percent = 100 * summary.unattributed / summary.total
        table.add_row(f"[dim]{escape(DELETED_LABEL)}[/dim]", format_duration(summary.unattributed), f"{percent:.0f}%")

    table.add_section()
    table.add_row("[bold]TOTAL[/bold]", f"[bold]{format_duration(summary.total)}[/bold]", "")
    return table


def _browse_stats(navigator: Navigator, tracker: Tracker):
    kinds = {kind.value[0]: kind for kind in PeriodKind}

    while True:
        console.clear()
        console.print(_stats_table(summarize(tracker.intervals, tracker.categories, navigator), navigator))
        hint = "<- older" + ("" if navigator.at_latest else "   newer ->")
        console.print(escape(f"{hint}   [d/w/m/y] Period   [q] Back"), style="dim")

        key = _read_key()
        if key == "quit":
            return
        if key == "left":
            navigator.advance(-1)
        elif key == "right":
            navigator.advance(1)
        elif key in kinds:
            navigator = Navigator(kinds[key], navigator.anchor)


@app.command()
def stats(
    ctx: typer.Context,
    period: str = typer.Option("day", "--period", "-p", help="Period: day, week, month or year"),
    back: int = typer.Option(0, "--back", min=0, help="How many periods to go back from the current one"),
    browse: bool = typer.Option(False, "--browse", "-b", help="Interactive screen")
):
    """
    Show total focus time and per-category breakdown for a period.
    """
    try:
        kind = PeriodKind.parse(period)
    except ValueError:
        _fail(f"Unknown period: {period}. Use: day, week, month or year")

    tracker = _load(ctx)
    navigator = Navigator(kind)
    for _ in range(back):
        navigator.advance(-1)

    if browse:
        _browse_stats(navigator, tracker)
        return

    summary = summarize(tracker.intervals, tracker.categories, navigator)
    if summary.total == 0:
        console.print(f"[dim]No focus time for {summary.label}[/dim]")
        return
    console.print(_stats_table(summary, navigator))


# =============================================================================
# IMPORT / EXPORT
# =============================================================================

@app.command("import")
def import_(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="CSV file with start,end,category rows")
):
    """
    Import closed intervals from a CSV file.

    Stops at the first bad row; rows before it are kept.
    """
    tracker = _load(ctx)

    try:
        count = import_csv(tracker, path)
    except OSError as e:
        _fail(f"Cannot open {path}: {e}")
    except ImportFailed as e:
        _save(ctx, tracker)
        console.print(f"[red]✗[/red]  Import stopped: {e}")
        console.print(f"   {e.imported} row(s) imported before the error were kept")
        raise typer.Exit(code=1)

    _save(ctx, tracker)
    console.print(f"[green]✓[/green]  Imported {count} interval(s)")


@app.command()
def export(
    ctx: typer.Context,
    output: str = typer.Option("focuslog_export.csv", "--output", "-o", help="Output file path")
):
    """
    Export closed intervals to a CSV file that `import` can read back.
    """
    tracker = _load(ctx)

    try:
        count = export_csv(tracker, output)
    except OSError as e:
        _fail(f"Cannot write {output}: {e}")

    console.print(f"[green]✓[/green]  Exported {count} interval(s) to: {output}")


# =============================================================================
# ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    app()
