"""End-to-end tests for the Typer commands."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

from cli import app
from store import load_tracker

runner = CliRunner()


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "focuslog"


@pytest.fixture()
def invoke(data_dir):
    def _invoke(*args: str, input: str = None):
        return runner.invoke(app, ["--data-dir", str(data_dir), *args], input=input)
    return _invoke


def stored(data_dir: Path):
    return load_tracker(data_dir / "categories.dat", data_dir / "intervals.dat")


def write_today_csv(path: Path) -> str:
    today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
    rows = [
        (today + timedelta(minutes=1), today + timedelta(minutes=61), "Writing"),
        (today + timedelta(hours=2), today + timedelta(hours=2, minutes=30), "Writing"),
        (today + timedelta(hours=3), today + timedelta(hours=3, minutes=5), "Reading"),
    ]
    lines = ["start,end,category"] + [f"{s.isoformat()},{e.isoformat()},{c}" for s, e, c in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(path)


# ---- tracking ----


def test_start_status_stop(invoke, data_dir):
    result = invoke("start", "Writing")
    assert result.exit_code == 0
    assert "Created category" in result.output
    assert "Started" in result.output

    result = invoke("status")
    assert "Writing" in result.output

    result = invoke("stop")
    assert result.exit_code == 0
    assert "Stopped" in result.output

    tracker = stored(data_dir)
    assert len(tracker.intervals) == 1
    assert not tracker.intervals[0].is_open


def test_start_twice_is_refused(invoke):
    invoke("start", "Writing")
    result = invoke("start", "Reading")
    assert result.exit_code == 1
    assert "already running" in result.output


def test_stop_without_running_interval(invoke):
    result = invoke("stop")
    assert result.exit_code == 1
    assert "No running interval" in result.output


def test_cancel_discards_interval(invoke, data_dir):
    invoke("start", "Writing")
    result = invoke("cancel", "--yes")
    assert result.exit_code == 0
    assert stored(data_dir).intervals == []


# ---- categories ----


def test_category_capacity_message(invoke, data_dir):
    for name in ["A", "B", "C", "D", "E"]:
        assert invoke("add-category", name).exit_code == 0

    result = invoke("add-category", "F")

    assert result.exit_code == 1
    assert "Cannot have more than 5 categories" in result.output
    assert len(stored(data_dir).categories) == 5


def test_duplicate_category_refused(invoke):
    invoke("add-category", "Writing")
    result = invoke("add-category", "writing")
    assert result.exit_code == 1


def test_deleted_category_shows_in_history(invoke, tmp_path):
    invoke("import", write_today_csv(tmp_path / "in.csv"))

    result = invoke("delete-category", "Reading", "--yes")
    assert result.exit_code == 0

    result = invoke("history")
    assert "[DELETED]" in result.output

    result = invoke("categories")
    assert "Writing" in result.output
    assert "Reading" not in result.output


# ---- stats ----


def test_stats_for_today(invoke, tmp_path):
    invoke("import", write_today_csv(tmp_path / "in.csv"))

    result = invoke("stats", "--period", "day")

    assert result.exit_code == 0
    assert "1h30m" in result.output
    assert "05m00s" in result.output
    assert "1h35m" in result.output
    today = datetime.now().strftime("%d/%m/%Y")
    assert f"{today} to {today}" in result.output


def test_stats_without_data(invoke):
    result = invoke("stats", "--period", "week", "--back", "2")
    assert result.exit_code == 0
    assert "No focus time" in result.output


def test_stats_rejects_unknown_period(invoke):
    result = invoke("stats", "--period", "fortnight")
    assert result.exit_code == 1


def test_stats_browse_quits(invoke, tmp_path):
    invoke("import", write_today_csv(tmp_path / "in.csv"))
    result = invoke("stats", "--browse", input="hlmq")
    assert result.exit_code == 0
    assert "MONTH STATS" in result.output


# ---- history ----


def test_history_sorted_by_duration(invoke, data_dir, tmp_path):
    invoke("import", write_today_csv(tmp_path / "in.csv"))

    result = invoke("history", "--sort", "duration")

    assert result.exit_code == 0
    durations = [i.duration_seconds() for i in stored(data_dir).intervals]
    assert durations == sorted(durations)


def test_history_browse_deletes_highlighted(invoke, data_dir, tmp_path):
    invoke("import", write_today_csv(tmp_path / "in.csv"))

    # down, down, delete, quit
    result = invoke("history", "--browse", input="jjdq")

    assert result.exit_code == 0
    remaining = stored(data_dir).intervals
    assert len(remaining) == 2
    assert all(i.duration_seconds() != 300 for i in remaining)


def test_delete_interval_by_number(invoke, data_dir, tmp_path):
    invoke("import", write_today_csv(tmp_path / "in.csv"))

    result = invoke("delete", "1", "--yes")

    assert result.exit_code == 0
    assert len(stored(data_dir).intervals) == 2


def test_delete_unknown_interval(invoke):
    result = invoke("delete", "9", "--yes")
    assert result.exit_code == 1


# ---- import / export / storage errors ----


def test_import_stops_at_bad_row(invoke, data_dir, tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text(
        "start,end,category\n"
        "2026-10-14T09:00:00,2026-10-14T10:00:00,Writing\n"
        "garbage\n",
        encoding="utf-8",
    )

    result = invoke("import", str(path))

    assert result.exit_code == 1
    assert "Import stopped" in result.output
    assert len(stored(data_dir).intervals) == 1


def test_export_writes_csv(invoke, tmp_path):
    invoke("import", write_today_csv(tmp_path / "in.csv"))
    out = tmp_path / "out.csv"

    result = invoke("export", "--output", str(out))

    assert result.exit_code == 0
    assert len(out.read_text(encoding="utf-8").splitlines()) == 4


def test_corrupt_data_file_is_reported(invoke, data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "intervals.dat").write_bytes(b"\x09garbage")

    result = invoke("status")

    assert result.exit_code == 1
    assert "Cannot load data" in result.output
    # Left alone for the user to inspect
    assert (data_dir / "intervals.dat").read_bytes() == b"\x09garbage"
