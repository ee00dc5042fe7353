"""Tests for snapshot files and CSV import/export."""

import struct
from datetime import datetime
from pathlib import Path

import pytest

from models import Category, Interval, Tracker
from periods import PeriodKind, period_of
from stats import distribution, total_duration, unattributed_duration
from store import (
    SCHEMA_VERSION,
    ImportFailed,
    StoreError,
    decode_records,
    export_csv,
    import_csv,
    load_tracker,
    save_tracker,
)
import store


@pytest.fixture()
def paths(tmp_path: Path) -> tuple[Path, Path]:
    return tmp_path / "data" / "categories.dat", tmp_path / "data" / "intervals.dat"


def write_csv(path: Path, *lines: str) -> str:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(path)


def ts(*args) -> int:
    return int(datetime(*args).timestamp())


# ---- snapshot files ----


def test_missing_files_mean_empty_tracker(paths):
    tracker = load_tracker(*paths)
    assert tracker.categories == []
    assert tracker.intervals == []


def test_save_then_load(paths):
    tracker = Tracker()
    tracker.add_category("Writing")
    tracker.add_category("Lesen ü")
    tracker.add_interval(1, 1_700_000_000, 1_700_003_600)
    tracker.start_interval(0, now=1_700_010_000)

    save_tracker(tracker, *paths)
    loaded = load_tracker(*paths)

    assert [c.name for c in loaded.categories] == ["Writing", "Lesen ü"]
    assert loaded.intervals == tracker.intervals
    assert loaded.active_interval() is not None


def test_file_starts_with_version_and_count(paths):
    tracker = Tracker()
    tracker.add_category("Writing")
    save_tracker(tracker, *paths)

    data = paths[0].read_bytes()

    assert data[0] == SCHEMA_VERSION
    assert struct.unpack_from("<I", data, 1) == (1,)


def test_unknown_trailing_bytes_are_ignored():
    payload = struct.pack("<iqq", 2, 100, 200) + b"future field"
    data = struct.pack("<BI", 1, 1) + struct.pack("<H", len(payload)) + payload

    intervals = decode_records(data, store._decode_interval)

    assert intervals == [Interval(2, 100, 200)]


def test_newer_version_is_rejected():
    data = struct.pack("<BI", SCHEMA_VERSION + 1, 0)
    with pytest.raises(StoreError):
        decode_records(data, store._decode_interval)


def test_truncated_file_is_rejected(paths):
    tracker = Tracker()
    tracker.add_category("Writing")
    tracker.add_interval(0, 100, 200)
    save_tracker(tracker, *paths)

    data = paths[1].read_bytes()
    paths[1].write_bytes(data[:-3])

    with pytest.raises(StoreError):
        load_tracker(*paths)


def test_interval_ending_before_start_is_rejected():
    payload = struct.pack("<iqq", 0, 200, 100)
    data = struct.pack("<BI", 1, 1) + struct.pack("<H", len(payload)) + payload
    with pytest.raises(StoreError):
        decode_records(data, store._decode_interval)


def test_open_interval_record_is_accepted():
    payload = struct.pack("<iqq", 0, 200, 0)
    data = struct.pack("<BI", 1, 1) + struct.pack("<H", len(payload)) + payload
    assert decode_records(data, store._decode_interval) == [Interval(0, 200, 0)]


def test_short_record_is_rejected():
    payload = struct.pack("<iq", 0, 100)
    data = struct.pack("<BI", 1, 1) + struct.pack("<H", len(payload)) + payload
    with pytest.raises(StoreError):
        decode_records(data, store._decode_interval)


def test_empty_category_record_is_rejected():
    payload = struct.pack("<B", 0)
    data = struct.pack("<BI", 1, 1) + struct.pack("<H", len(payload)) + payload
    with pytest.raises(StoreError):
        decode_records(data, store._decode_category)


def test_unwritable_location_raises(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    with pytest.raises(StoreError):
        save_tracker(Tracker(), blocker / "categories.dat", blocker / "intervals.dat")


# ---- CSV import ----


def test_import_creates_categories_and_ignores_subfields(tmp_path):
    path = write_csv(
        tmp_path / "in.csv",
        "start,end,category",
        "2026-10-14T09:00:00 Wed,2026-10-14T10:00:00 Wed,Writing",
        "2026-10-14T11:00:00, 2026-10-14T11:30:00 Wed, Reading",
        "2026-10-15T09:00:00,2026-10-15T09:10:00,writing",
    )
    tracker = Tracker()

    assert import_csv(tracker, path) == 3

    assert [c.name for c in tracker.categories] == ["Writing", "Reading"]
    assert tracker.intervals[0] == Interval(0, ts(2026, 10, 14, 9, 0), ts(2026, 10, 14, 10, 0))
    assert [i.category_idx for i in tracker.intervals] == [0, 1, 0]


def test_bad_row_aborts_but_keeps_earlier_rows(tmp_path):
    path = write_csv(
        tmp_path / "in.csv",
        "start,end,category",
        "2026-10-14T09:00:00,2026-10-14T10:00:00,Writing",
        "2026-10-14T11:00:00,Reading",
        "2026-10-15T09:00:00,2026-10-15T09:10:00,Writing",
    )
    tracker = Tracker()

    with pytest.raises(ImportFailed) as excinfo:
        import_csv(tracker, path)

    assert excinfo.value.line == 3
    assert excinfo.value.imported == 1
    assert len(tracker.intervals) == 1


def test_bad_timestamp_aborts(tmp_path):
    path = write_csv(
        tmp_path / "in.csv",
        "start,end,category",
        "yesterday,2026-10-14T10:00:00,Writing",
    )
    with pytest.raises(ImportFailed):
        import_csv(Tracker(), path)


def test_import_respects_category_capacity(tmp_path):
    path = write_csv(
        tmp_path / "in.csv",
        "start,end,category",
        "2026-10-14T09:00:00,2026-10-14T10:00:00,Writing",
        "2026-10-14T11:00:00,2026-10-14T12:00:00,Reading",
    )
    tracker = Tracker(max_categories=1)

    with pytest.raises(ImportFailed) as excinfo:
        import_csv(tracker, path)

    assert "categories" in str(excinfo.value)
    assert len(tracker.intervals) == 1


# ---- CSV export ----


def test_export_can_be_imported_again(tmp_path):
    tracker = Tracker()
    tracker.add_category("Writing")
    tracker.add_category("Reading")
    tracker.add_interval(1, ts(2026, 10, 14, 9, 0), ts(2026, 10, 14, 9, 45))
    tracker.add_interval(0, ts(2026, 10, 14, 10, 0), ts(2026, 10, 14, 11, 0))
    tracker.start_interval(0, now=ts(2026, 10, 14, 12, 0))
    out = str(tmp_path / "out.csv")

    assert export_csv(tracker, out) == 2

    again = Tracker()
    assert import_csv(again, out) == 2
    assert [c.name for c in again.categories] == ["Reading", "Writing"]
    assert [(i.start, i.end) for i in again.intervals] == [
        (i.start, i.end) for i in tracker.intervals if not i.is_open
    ]


def test_export_labels_dangling_intervals(tmp_path):
    tracker = Tracker(categories=[Category("Writing")])
    tracker.add_interval(4, ts(2026, 10, 14, 9, 0), ts(2026, 10, 14, 9, 45))
    out = tmp_path / "out.csv"

    export_csv(tracker, str(out))

    assert out.read_text(encoding="utf-8").splitlines()[1].endswith(",[DELETED]")


def test_deleted_rows_stay_dangling_after_import(tmp_path):
    tracker = Tracker()
    tracker.add_category("Writing")
    tracker.add_category("Reading")
    tracker.add_interval(0, ts(2026, 10, 14, 9, 0), ts(2026, 10, 14, 10, 0))
    tracker.add_interval(1, ts(2026, 10, 14, 11, 0), ts(2026, 10, 14, 11, 30))
    tracker.delete_category(1)
    out = str(tmp_path / "out.csv")
    export_csv(tracker, out)

    again = Tracker()
    assert import_csv(again, out) == 2

    key = period_of(datetime(2026, 10, 14), PeriodKind.DAY)
    assert [c.name for c in again.categories] == ["Writing"]
    assert again.is_dangling(again.intervals[1])
    assert unattributed_duration(again.intervals, again.categories, PeriodKind.DAY, key) == 1800
    assert [s.name for s in distribution(again.intervals, again.categories, PeriodKind.DAY, key)] == ["Writing"]
    assert total_duration(again.intervals, PeriodKind.DAY, key) == 5400


def test_dangling_rows_survive_a_snapshot(tmp_path, paths):
    path = write_csv(
        tmp_path / "in.csv",
        "start,end,category",
        "2026-10-14T09:00:00,2026-10-14T09:30:00,[DELETED]",
    )
    tracker = Tracker()
    import_csv(tracker, path)

    save_tracker(tracker, *paths)
    loaded = load_tracker(*paths)

    assert loaded.categories == []
    assert loaded.is_dangling(loaded.intervals[0])
