"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from .activity import ActivityAggregator, ProcessUsage, derive_process_runs
from .config import TimelineSettings
from .db import (
    database_connection,
    fetch_entries_for_day,
    fetch_process_samples_covering,
)
from .intervals import IntervalSet
from .models import DAY, start_of_day


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, db_path: Path, settings: Optional[TimelineSettings] = None) -> None:
        self.db_path = Path(db_path)
        self.settings = settings or TimelineSettings()

    def print_daily_summary(self, day: datetime) -> None:
        day_start = start_of_day(day)
        with database_connection(self.db_path) as conn:
            entries = fetch_entries_for_day(conn, day_start)
            samples = fetch_process_samples_covering(conn, day_start, day_start + DAY)
        intervals = IntervalSet(day_start, entries)
        aggregator = ActivityAggregator(samples, last_sample_fill=self.settings.last_sample_fill)

        print(f"Summary for {day_start.strftime('%Y-%m-%d')}")
        print("-" * 40)
        if not entries and not samples:
            print("No activity recorded for the selected day.")
            return

        tracked = sum((entry.duration.total_seconds() for entry in entries), 0.0)
        print(f"Tracked time: {format_duration(tracked)}")
        print()

        if entries:
            print("Time entries:")
            for entry in intervals:
                print(
                    f"  {_clock(entry.start_time)}-{_clock(entry.end_time)}"
                    f"  {entry.label[:40]:<40} {format_duration(entry.duration.total_seconds())}"
                )
            print()

        gaps = intervals.gaps()
        print("Free gaps:")
        for gap in gaps:
            duration = format_duration(gap.duration.total_seconds())
            print(f"  {_clock(gap.start)}-{_clock(gap.end)}  {duration}")

        runs = derive_process_runs(entries, aggregator, day_start, day_start + DAY)
        if runs:
            print()
            print("Untracked activity:")
            for run in runs:
                print(f"  {_clock(run.start_time)}-{_clock(run.end_time)}  {run.process_name}")

        top = aggregator.top_processes(day_start, day_start + DAY, limit=5)
        if top:
            print()
            print("Top processes:")
            print_usage(top)

    def print_usage(self, start: datetime, end: datetime, limit: int = 3) -> None:
        with database_connection(self.db_path) as conn:
            samples = fetch_process_samples_covering(conn, start, end)
        aggregator = ActivityAggregator(samples, last_sample_fill=self.settings.last_sample_fill)
        usage = aggregator.top_processes(start, end, limit)
        if not usage:
            print("No process samples in the selected range.")
            return
        print_usage(usage)


def print_usage(usage: Iterable[ProcessUsage]) -> None:
    for item in usage:
        print(
            f"  {item.process_name:<30} {format_duration(item.seconds)} ({item.percent:.1f}%)"
        )


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _clock(value: datetime) -> str:
    return value.strftime("%H:%M")
