"""
store.py - Loading and saving the category and interval collections

Both collections are kept in small binary snapshot files that are
overwritten in full when a command finishes. The layout is the same for
both files (little-endian):

    version  u8           currently 1
    count    u32
    records  count x { length u16, payload[length] }

Category payload:  name_len u8, name (UTF-8)
Interval payload:  category_idx i32, start i64, end i64

Each record carries its own length, so a newer writer may append fields to
a payload: older readers skip bytes they don't know about.

A missing file is simply an empty collection. Anything else that doesn't
decode is a StoreError; we never guess at damaged data.

This module also handles CSV import and export of intervals.
"""

import csv
import logging
import struct
from datetime import datetime
from pathlib import Path
from typing import Callable, TypeVar

from models import DELETED_LABEL, OPEN, AtCapacity, Category, Interval, Tracker, category_label

SCHEMA_VERSION = 1

_HEADER = struct.Struct("<BI")
_RECORD_LENGTH = struct.Struct("<H")
_NAME_LENGTH = struct.Struct("<B")
_INTERVAL = struct.Struct("<iqq")

CSV_HEADER = ["start", "end", "category"]

# Never a valid category position, so it reads back as [DELETED]
DANGLING_IDX = -1

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreError(Exception):
    """A snapshot file could not be read or written."""


class ImportFailed(Exception):
    """
    A CSV row could not be imported.

    `imported` is how many rows were added before the bad one; those rows
    stay in the tracker.
    """

    def __init__(self, message: str, line: int, imported: int):
        super().__init__(f"Line {line}: {message}")
        self.line = line
        self.imported = imported


# =============================================================================
# RECORD CODECS
# =============================================================================

def _encode_category(category: Category) -> bytes:
    name = category.name.encode("utf-8")[:255]
    return _NAME_LENGTH.pack(len(name)) + name


def _decode_category(payload: bytes) -> Category:
    if len(payload) < _NAME_LENGTH.size:
        raise StoreError("Category record too short")
    (length,) = _NAME_LENGTH.unpack_from(payload)
    end = _NAME_LENGTH.size + length
    if len(payload) < end:
        raise StoreError("Category name runs past its record")
    try:
        name = payload[_NAME_LENGTH.size:end].decode("utf-8")
        return Category(name)
    except (UnicodeDecodeError, ValueError) as e:
        raise StoreError(f"Bad category record: {e}") from e


def _encode_interval(interval: Interval) -> bytes:
    return _INTERVAL.pack(interval.category_idx, interval.start, interval.end)


def _decode_interval(payload: bytes) -> Interval:
    if len(payload) < _INTERVAL.size:
        raise StoreError("Interval record too short")
    category_idx, start, end = _INTERVAL.unpack_from(payload)
    if end != OPEN and end < start:
        raise StoreError(f"Interval ends before it starts ({start} > {end})")
    return Interval(category_idx=category_idx, start=start, end=end)


def encode_records(items: list[T], encode: Callable[[T], bytes]) -> bytes:
    parts = [_HEADER.pack(SCHEMA_VERSION, len(items))]
    for item in items:
        payload = encode(item)
        parts.append(_RECORD_LENGTH.pack(len(payload)))
        parts.append(payload)
    return b"".join(parts)


def decode_records(data: bytes, decode: Callable[[bytes], T]) -> list[T]:
    if len(data) < _HEADER.size:
        raise StoreError("File too short for its header")
    version, count = _HEADER.unpack_from(data)
    if version == 0 or version > SCHEMA_VERSION:
        raise StoreError(f"Unsupported file version {version}")

    items = []
    pos = _HEADER.size
    for _ in range(count):
        if pos + _RECORD_LENGTH.size > len(data):
            raise StoreError(f"File truncated: expected {count} records, found {len(items)}")
        (length,) = _RECORD_LENGTH.unpack_from(data, pos)
        pos += _RECORD_LENGTH.size
        payload = data[pos:pos + length]
        if len(payload) < length:
            raise StoreError("File truncated inside a record")
        items.append(decode(payload))
        pos += length
    return items


# =============================================================================
# SNAPSHOT FILES
# =============================================================================

def _read(path: Path, decode: Callable[[bytes], T]) -> list[T]:
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        logger.debug("%s not found, starting empty", path)
        return []
    except OSError as e:
        raise StoreError(f"Cannot read {path}: {e}") from e

    try:
        return decode_records(data, decode)
    except StoreError as e:
        raise StoreError(f"{path}: {e}") from e


def _write(path: Path, items: list[T], encode: Callable[[T], bytes]):
    data = encode_records(items, encode)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        raise StoreError(f"Cannot write {path}: {e}") from e


def load_tracker(categories_path: Path, intervals_path: Path) -> Tracker:
    """
    Read both snapshot files into a Tracker.

    Raises:
        StoreError: If a file exists but cannot be decoded
    """
    categories = _read(categories_path, _decode_category)
    intervals = _read(intervals_path, _decode_interval)
    logger.debug("Loaded %d categories and %d intervals", len(categories), len(intervals))
    return Tracker(categories=categories, intervals=intervals)


def save_tracker(tracker: Tracker, categories_path: Path, intervals_path: Path):
    """
    Overwrite both snapshot files with the tracker's contents.

    Raises:
        StoreError: If either file cannot be written
    """
    _write(categories_path, tracker.categories, _encode_category)
    _write(intervals_path, tracker.intervals, _encode_interval)
    logger.debug("Saved %d categories and %d intervals", len(tracker.categories), len(tracker.intervals))


# =============================================================================
# CSV IMPORT / EXPORT
# =============================================================================

def _parse_timestamp(field: str) -> int:
    # "2026-10-16T09:05:00 Fri": only the first token is the timestamp
    tokens = field.split()
    if not tokens:
        raise ValueError("empty timestamp")
    return int(datetime.fromisoformat(tokens[0]).timestamp())


def import_csv(tracker: Tracker, filepath: str) -> int:
    """
    Add closed intervals from a CSV file.

    Expected rows (after one header line):
        start, end, category

    Start and end are ISO-8601 timestamps, optionally followed by a space
    and an ignored extra value. Category names that don't exist yet are
    created, except [DELETED]: those rows come from an export of intervals
    whose category is gone, and stay dangling.

    Returns:
        Number of rows imported

    Raises:
        ImportFailed: On the first bad row. Earlier rows are kept.
        OSError: If the file cannot be opened
    """
    imported = 0

    with open(filepath, newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        next(reader, None)  # header

        for row in reader:
            line = reader.line_num
            if not row:
                continue
            if len(row) != len(CSV_HEADER):
                raise ImportFailed(f"expected {len(CSV_HEADER)} fields, got {len(row)}", line, imported)

            try:
                start = _parse_timestamp(row[0])
                end = _parse_timestamp(row[1])
            except ValueError as e:
                raise ImportFailed(f"bad timestamp ({e})", line, imported) from e
            if end < start:
                raise ImportFailed("end is before start", line, imported)

            name = row[2].strip()
            if not name:
                raise ImportFailed("empty category name", line, imported)

            if name == DELETED_LABEL:
                idx = DANGLING_IDX
            else:
                idx = tracker.find_category(name)
            if idx is None:
                added = tracker.add_category(name)
                if isinstance(added, AtCapacity):
                    raise ImportFailed(added.message, line, imported)
                idx = len(tracker.categories) - 1
                logger.info("Created category %r while importing", added.name)

            result = tracker.add_interval(idx, start, end)
            if isinstance(result, AtCapacity):
                raise ImportFailed(result.message, line, imported)
            imported += 1

    return imported


def export_csv(tracker: Tracker, filepath: str) -> int:
    """
    Write every closed interval in the import format.

    Returns:
        Number of rows written
    """
    written = 0

    # newline='' is required for the csv module to avoid blank rows on Windows
    with open(filepath, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)

        for interval in tracker.intervals:
            if interval.is_open:
                continue
            writer.writerow([
                interval.start_time.isoformat(),
                interval.end_time.isoformat(),
                category_label(tracker.categories, interval.category_idx),
            ])
            written += 1

    return written
