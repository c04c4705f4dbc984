"""SQLite database layer for time entries, process samples and screenshots."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .errors import EntryNotFoundError, InvalidEntryError, MinDurationError, OverlapError
from .models import DAY, Category, ProcessSample, TimeEntry, start_of_day


DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"

UNSET = object()


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Hold the database write lock from the first read until commit.

    Overlap checks and the write that depends on them must not interleave
    with another connection's command.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS categories (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            color TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS time_entries (
            id INTEGER PRIMARY KEY,
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            label TEXT NOT NULL,
            color TEXT,
            category_id INTEGER REFERENCES categories(id) ON DELETE SET NULL
        );

        CREATE INDEX IF NOT EXISTS idx_entries_start_time
            ON time_entries(start_time);

        CREATE TABLE IF NOT EXISTS process_samples (
            timestamp TEXT PRIMARY KEY,
            process_name TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS screenshots (
            id INTEGER PRIMARY KEY,
            timestamp TEXT NOT NULL,
            file_path TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_screenshots_timestamp
            ON screenshots(timestamp);
        """
    )


def format_timestamp(value: datetime) -> str:
    return value.strftime(DATETIME_FMT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, DATETIME_FMT)


def _day_bounds(day: datetime) -> tuple[str, str]:
    start = start_of_day(day)
    return format_timestamp(start), format_timestamp(start + DAY)


def row_to_entry(row: sqlite3.Row) -> TimeEntry:
    return TimeEntry(
        id=row["id"],
        start_time=parse_timestamp(row["start_time"]),
        end_time=parse_timestamp(row["end_time"]),
        label=row["label"],
        category_id=row["category_id"],
        color=row["color"],
    )


def fetch_entries_for_day(conn: sqlite3.Connection, day: datetime) -> list[TimeEntry]:
    """Entries whose start lies on ``day``, ordered by start."""
    start_iso, end_iso = _day_bounds(day)
    rows = conn.execute(
        """
        SELECT id, start_time, end_time, label, color, category_id
        FROM time_entries
        WHERE start_time >= ? AND start_time < ?
        ORDER BY start_time, id;
        """,
        (start_iso, end_iso),
    )
    return [row_to_entry(row) for row in rows]


def fetch_entry(conn: sqlite3.Connection, entry_id: int) -> TimeEntry:
    row = conn.execute(
        """
        SELECT id, start_time, end_time, label, color, category_id
        FROM time_entries
        WHERE id = ?
        """,
        (entry_id,),
    ).fetchone()
    if row is None:
        raise EntryNotFoundError(f"No time entry found for id={entry_id}")
    return row_to_entry(row)


def _validate_range(start_time: datetime, end_time: datetime) -> None:
    if end_time <= start_time:
        raise MinDurationError("end_time must be after start_time")


def _check_overlap(
    conn: sqlite3.Connection,
    start_time: datetime,
    end_time: datetime,
    exclude_id: Optional[int] = None,
) -> None:
    row = conn.execute(
        """
        SELECT COUNT(1) AS overlapping
        FROM time_entries
        WHERE start_time < ? AND end_time > ? AND (? IS NULL OR id != ?)
        """,
        (
            format_timestamp(end_time),
            format_timestamp(start_time),
            exclude_id,
            exclude_id,
        ),
    ).fetchone()
    if row["overlapping"]:
        raise OverlapError("Time entry overlaps with an existing entry")


def _check_category(conn: sqlite3.Connection, category_id: object) -> None:
    if category_id is None:
        return
    row = conn.execute("SELECT 1 FROM categories WHERE id = ?", (category_id,)).fetchone()
    if row is None:
        raise InvalidEntryError(f"Unknown category id={category_id}")


def insert_entry(
    conn: sqlite3.Connection,
    start_time: datetime,
    end_time: datetime,
    label: str,
    *,
    category_id: Optional[int] = None,
    color: Optional[str] = None,
) -> TimeEntry:
    _validate_range(start_time, end_time)
    label = label.strip()
    if not label:
        raise InvalidEntryError("Label cannot be empty")
    with transaction(conn):
        _check_category(conn, category_id)
        _check_overlap(conn, start_time, end_time)
        cur = conn.execute(
            """
            INSERT INTO time_entries (start_time, end_time, label, color, category_id)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                format_timestamp(start_time),
                format_timestamp(end_time),
                label,
                color,
                category_id,
            ),
        )
        return fetch_entry(conn, int(cur.lastrowid))


def update_entry_range(
    conn: sqlite3.Connection,
    entry_id: int,
    start_time: datetime,
    end_time: datetime,
) -> TimeEntry:
    with transaction(conn):
        fetch_entry(conn, entry_id)
        _validate_range(start_time, end_time)
        _check_overlap(conn, start_time, end_time, exclude_id=entry_id)
        conn.execute(
            "UPDATE time_entries SET start_time = ?, end_time = ? WHERE id = ?",
            (format_timestamp(start_time), format_timestamp(end_time), entry_id),
        )
        return fetch_entry(conn, entry_id)


def update_entry_details(
    conn: sqlite3.Connection,
    entry_id: int,
    *,
    label: object = UNSET,
    category_id: object = UNSET,
    color: object = UNSET,
) -> TimeEntry:
    """Update label, category or colour of a single entry."""
    fields: list[str] = []
    params: list[object] = []

    if label is not UNSET:
        text = str(label or "").strip()
        if not text:
            raise InvalidEntryError("Label cannot be empty")
        fields.append("label = ?")
        params.append(text)
    if category_id is not UNSET:
        fields.append("category_id = ?")
        params.append(category_id)
    if color is not UNSET:
        fields.append("color = ?")
        params.append(color)

    if not fields:
        return fetch_entry(conn, entry_id)

    params.append(entry_id)
    with transaction(conn):
        if category_id is not UNSET:
            _check_category(conn, category_id)
        cur = conn.execute(
            f"UPDATE time_entries SET {', '.join(fields)} WHERE id = ?",
            params,
        )
        if cur.rowcount == 0:
            raise EntryNotFoundError(f"No time entry found for id={entry_id}")
        return fetch_entry(conn, entry_id)


def delete_entry(conn: sqlite3.Connection, entry_id: int) -> None:
    cur = conn.execute("DELETE FROM time_entries WHERE id = ?", (entry_id,))
    if cur.rowcount == 0:
        raise EntryNotFoundError(f"No time entry found for id={entry_id}")


def insert_process_samples(
    conn: sqlite3.Connection, samples: Iterable[ProcessSample]
) -> None:
    conn.executemany(
        "INSERT OR REPLACE INTO process_samples (timestamp, process_name) VALUES (?, ?)",
        [(format_timestamp(sample.timestamp), sample.process_name) for sample in samples],
    )


def _row_to_sample(row: sqlite3.Row) -> ProcessSample:
    return ProcessSample(
        timestamp=parse_timestamp(row["timestamp"]), process_name=row["process_name"]
    )


def fetch_process_samples_between(
    conn: sqlite3.Connection, start: datetime, end: datetime
) -> list[ProcessSample]:
    rows = conn.execute(
        """
        SELECT timestamp, process_name
        FROM process_samples
        WHERE timestamp >= ? AND timestamp < ?
        ORDER BY timestamp;
        """,
        (format_timestamp(start), format_timestamp(end)),
    )
    return [_row_to_sample(row) for row in rows]


def fetch_process_samples_covering(
    conn: sqlite3.Connection, start: datetime, end: datetime
) -> list[ProcessSample]:
    """Samples needed to forward-fill ``[start, end)``.

    Includes the last sample before ``start`` and the first one at or after
    ``end`` so the spans at both edges get their true length.
    """
    before = conn.execute(
        """
        SELECT timestamp, process_name FROM process_samples
        WHERE timestamp < ? ORDER BY timestamp DESC LIMIT 1;
        """,
        (format_timestamp(start),),
    ).fetchall()
    after = conn.execute(
        """
        SELECT timestamp, process_name FROM process_samples
        WHERE timestamp >= ? ORDER BY timestamp LIMIT 1;
        """,
        (format_timestamp(end),),
    ).fetchall()
    edges = [_row_to_sample(row) for row in [*before, *after]]
    inside = fetch_process_samples_between(conn, start, end)
    return sorted([*edges, *inside], key=lambda sample: sample.timestamp)


def fetch_process_samples_for_day(
    conn: sqlite3.Connection, day: datetime
) -> list[ProcessSample]:
    start = start_of_day(day)
    return fetch_process_samples_between(conn, start, start + DAY)


def delete_process_samples_before(conn: sqlite3.Connection, cutoff: datetime) -> int:
    cur = conn.execute(
        "DELETE FROM process_samples WHERE timestamp < ?",
        (format_timestamp(cutoff),),
    )
    return cur.rowcount


def insert_screenshot(conn: sqlite3.Connection, timestamp: datetime, file_path: str) -> int:
    cur = conn.execute(
        "INSERT INTO screenshots (timestamp, file_path) VALUES (?, ?)",
        (format_timestamp(timestamp), file_path),
    )
    return int(cur.lastrowid)


def fetch_screenshot_near(
    conn: sqlite3.Connection, timestamp: datetime, tolerance: timedelta
) -> Optional[str]:
    """Return the screenshot closest to ``timestamp`` within ``tolerance``."""
    rows = conn.execute(
        """
        SELECT timestamp, file_path
        FROM screenshots
        WHERE timestamp >= ? AND timestamp <= ?
        ORDER BY timestamp;
        """,
        (format_timestamp(timestamp - tolerance), format_timestamp(timestamp + tolerance)),
    ).fetchall()
    if not rows:
        return None
    closest = min(rows, key=lambda row: abs(parse_timestamp(row["timestamp"]) - timestamp))
    return closest["file_path"]


def fetch_screenshot_timestamps_for_day(
    conn: sqlite3.Connection, day: datetime
) -> list[datetime]:
    start_iso, end_iso = _day_bounds(day)
    rows = conn.execute(
        """
        SELECT timestamp FROM screenshots
        WHERE timestamp >= ? AND timestamp < ?
        ORDER BY timestamp;
        """,
        (start_iso, end_iso),
    )
    return [parse_timestamp(row["timestamp"]) for row in rows]


def insert_category(conn: sqlite3.Connection, name: str, color: str) -> Category:
    name = name.strip()
    if not name:
        raise InvalidEntryError("Category name cannot be empty")
    try:
        cur = conn.execute(
            "INSERT INTO categories (name, color) VALUES (?, ?)", (name, color)
        )
    except sqlite3.IntegrityError as exc:
        raise InvalidEntryError(f"Category {name!r} already exists") from exc
    return Category(id=int(cur.lastrowid), name=name, color=color)


def fetch_categories(conn: sqlite3.Connection) -> list[Category]:
    rows = conn.execute("SELECT id, name, color FROM categories ORDER BY name COLLATE NOCASE;")
    return [Category(id=row["id"], name=row["name"], color=row["color"]) for row in rows]
