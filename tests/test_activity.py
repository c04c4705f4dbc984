"""Forward-filled usage aggregation and per-gap process runs."""

from __future__ import annotations

from datetime import timedelta

import pytest

from daylog.activity import ActivityAggregator, color_hint, derive_process_runs
from daylog.models import ProcessSample

from tests.conftest import DAY_START, at, entry


def sample(hour: int, minute: int, second: int, name: str) -> ProcessSample:
    return ProcessSample(timestamp=at(hour, minute, second), process_name=name)


def test_forward_fill_splits_time_between_samples() -> None:
    aggregator = ActivityAggregator(
        [
            sample(9, 0, 0, "chrome"),
            sample(9, 0, 20, "code"),
            sample(9, 0, 50, "chrome"),
            sample(9, 1, 0, "code"),
        ]
    )

    assert aggregator.aggregate_usage(at(9), at(9, 1)) == {"chrome": 30, "code": 30}
    top = aggregator.top_processes(at(9), at(9, 1))
    assert [(item.process_name, item.seconds, item.percent) for item in top] == [
        ("chrome", 30, 50.0),
        ("code", 30, 50.0),
    ]


def test_last_sample_is_filled_for_one_second() -> None:
    aggregator = ActivityAggregator(
        [sample(9, 0, 0, "chrome"), sample(9, 0, 20, "code"), sample(9, 0, 50, "chrome")]
    )
    assert aggregator.aggregate_usage(at(9), at(9, 1)) == {"chrome": 21, "code": 30}


def test_short_overlap_counts_as_one_second() -> None:
    aggregator = ActivityAggregator([sample(9, 0, 0, "shell"), sample(9, 0, 10, "mail")])
    usage = aggregator.aggregate_usage(at(9, 0, 9) + timedelta(milliseconds=800), at(9, 0, 10))
    assert usage == {"shell": 1}


def test_usage_starts_from_sample_before_range() -> None:
    aggregator = ActivityAggregator([sample(8, 0, 0, "slack"), sample(9, 0, 30, "code")])
    assert aggregator.aggregate_usage(at(9), at(9, 1)) == {"slack": 30, "code": 1}


def test_ties_keep_first_seen_order_and_limit() -> None:
    aggregator = ActivityAggregator(
        [
            sample(9, 0, 0, "b"),
            sample(9, 0, 10, "a"),
            sample(9, 0, 20, "c"),
            sample(9, 0, 40, "d"),
        ]
    )
    top = aggregator.top_processes(at(9), at(9, 0, 40), limit=2)
    assert [item.process_name for item in top] == ["c", "b"]
    assert sum(item.percent for item in top) < 100


def test_empty_range_has_no_top_processes() -> None:
    aggregator = ActivityAggregator([sample(9, 0, 0, "code")])
    assert aggregator.top_processes(at(10), at(11)) == []
    assert aggregator.aggregate_usage(at(11), at(10)) == {}


def test_percentages_sum_to_hundred_when_unlimited() -> None:
    aggregator = ActivityAggregator(
        [sample(9, 0, 0, "a"), sample(9, 0, 7, "b"), sample(9, 0, 19, "c"), sample(9, 0, 30, "a")]
    )
    top = aggregator.top_processes(at(9), at(9, 0, 30), limit=10)
    assert sum(item.percent for item in top) == pytest.approx(100.0)


def test_one_run_per_gap_labelled_by_dominant_process() -> None:
    entries = [entry(1, at(9), at(10)), entry(2, at(11), at(12))]
    samples = [
        sample(8, 30, 0, "mail"),
        sample(8, 40, 0, "code"),
        sample(9, 15, 0, "chrome"),
        sample(10, 0, 0, "slack"),
        sample(10, 10, 0, "code"),
        sample(10, 20, 0, "slack"),
        sample(10, 59, 0, "slack"),
    ]

    runs = derive_process_runs(entries, samples, DAY_START, DAY_START + timedelta(days=1))

    assert [(run.start_time, run.end_time, run.process_name) for run in runs] == [
        (DAY_START, at(9), "code"),
        (at(10), at(11), "slack"),
    ]
    assert runs[0].color == color_hint("code")


def test_gap_without_samples_produces_no_run() -> None:
    runs = derive_process_runs([entry(1, at(9), at(10))], [], at(8), at(12))
    assert runs == []


def test_color_hint_is_stable_hex() -> None:
    assert color_hint("Code.exe") == color_hint("code.exe ")
    assert color_hint("code.exe").startswith("#")
    assert len(color_hint("code.exe")) == 7
