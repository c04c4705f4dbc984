"""Aggregate sparse foreground-process samples into usage totals."""

from __future__ import annotations

import colorsys
import zlib
from bisect import bisect_right
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Iterator, Optional

from .intervals import gaps_within
from .models import ProcessRun, ProcessSample, TimeEntry

_ONE_SECOND_MS = 1000.0


@dataclass(frozen=True, slots=True)
class ProcessUsage:
    process_name: str
    seconds: int
    percent: float


class ActivityAggregator:
    """Time-weighted histogram over forward-filled process samples.

    Sample ``i`` is considered active from its own timestamp until the next
    sample's timestamp; the last sample is active for ``last_sample_fill``.
    """

    def __init__(
        self,
        samples: Iterable[ProcessSample],
        *,
        last_sample_fill: timedelta = timedelta(seconds=1),
    ) -> None:
        self._samples = sorted(samples, key=lambda sample: sample.timestamp)
        self._timestamps = [sample.timestamp for sample in self._samples]
        self.last_sample_fill = last_sample_fill

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> tuple[ProcessSample, ...]:
        return tuple(self._samples)

    def spans(
        self, range_start: Optional[datetime] = None
    ) -> Iterator[tuple[datetime, datetime, str]]:
        """Yield ``(start, end, process_name)`` forward-filled spans."""
        first = 0
        if range_start is not None:
            first = max(0, bisect_right(self._timestamps, range_start) - 1)
        last_index = len(self._samples) - 1
        for index in range(first, len(self._samples)):
            sample = self._samples[index]
            if index < last_index:
                end = self._samples[index + 1].timestamp
            else:
                end = sample.timestamp + self.last_sample_fill
            yield sample.timestamp, end, sample.process_name

    def aggregate_usage(self, range_start: datetime, range_end: datetime) -> dict[str, int]:
        """Return seconds per process inside ``[range_start, range_end)``.

        Keys keep first-seen order. Any positive overlap counts as at least
        one second.
        """
        buckets: defaultdict[str, int] = defaultdict(int)
        if range_end <= range_start:
            return {}
        for start, end, process_name in self.spans(range_start):
            if start >= range_end:
                break
            overlap = min(end, range_end) - max(start, range_start)
            if overlap <= timedelta(0):
                continue
            overlap_ms = overlap / timedelta(milliseconds=1)
            buckets[process_name] += max(1, round(overlap_ms / _ONE_SECOND_MS))
        return dict(buckets)

    def top_processes(
        self, range_start: datetime, range_end: datetime, limit: int = 3
    ) -> list[ProcessUsage]:
        buckets = self.aggregate_usage(range_start, range_end)
        total = sum(buckets.values())
        if total <= 0:
            return []
        ranked = sorted(buckets.items(), key=lambda item: item[1], reverse=True)
        return [
            ProcessUsage(process_name=name, seconds=seconds, percent=100.0 * seconds / total)
            for name, seconds in ranked[: max(0, limit)]
        ]

    def dominant_process(self, range_start: datetime, range_end: datetime) -> Optional[str]:
        top = self.top_processes(range_start, range_end, limit=1)
        return top[0].process_name if top else None


def derive_process_runs(
    time_entries: Iterable[TimeEntry],
    process_samples: Iterable[ProcessSample] | ActivityAggregator,
    window_start: datetime,
    window_end: datetime,
    *,
    last_sample_fill: timedelta = timedelta(seconds=1),
) -> list[ProcessRun]:
    """Summarise every free gap between entries by its dominant process.

    One run is produced per gap that has any sampled usage; process switches
    inside a gap are not split into separate runs.
    """
    if isinstance(process_samples, ActivityAggregator):
        aggregator = process_samples
    else:
        aggregator = ActivityAggregator(process_samples, last_sample_fill=last_sample_fill)

    runs: list[ProcessRun] = []
    occupied = [entry.range for entry in time_entries]
    for gap in gaps_within(window_start, window_end, occupied):
        process_name = aggregator.dominant_process(gap.start, gap.end)
        if process_name is None:
            continue
        runs.append(
            ProcessRun(
                start_time=gap.start,
                end_time=gap.end,
                process_name=process_name,
                color=color_hint(process_name),
            )
        )
    return runs


def color_hint(process_name: str) -> str:
    """Stable display colour derived from the process name."""
    digest = zlib.crc32(process_name.strip().lower().encode("utf-8"))
    hue = (digest % 360) / 360.0
    red, green, blue = colorsys.hls_to_rgb(hue, 0.5, 0.65)
    return "#{:02x}{:02x}{:02x}".format(
        int(round(red * 255)), int(round(green * 255)), int(round(blue * 255))
    )
