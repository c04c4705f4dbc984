"""Console summaries and the typer command line."""

from __future__ import annotations

from typer.testing import CliRunner

from daylog.cli import app
from daylog.db import database_connection, insert_process_samples
from daylog.models import ProcessSample
from daylog.reporting import SummaryPrinter, format_duration

from tests.conftest import DAY_START, at

runner = CliRunner()


def _seed_day(db_path, seed_entry) -> None:
    seed_entry(at(9), at(10), "Standup")
    with database_connection(db_path) as conn:
        insert_process_samples(
            conn, [ProcessSample(at(10), "code"), ProcessSample(at(10, 30), "chrome")]
        )


def test_format_duration() -> None:
    assert format_duration(0) == "00:00:00"
    assert format_duration(3725.4) == "01:02:05"


def test_daily_summary_lists_entries_gaps_and_processes(db_path, seed_entry, capsys) -> None:
    _seed_day(db_path, seed_entry)

    SummaryPrinter(db_path).print_daily_summary(DAY_START)
    output = capsys.readouterr().out

    assert "Summary for 2024-05-06" in output
    assert "Tracked time: 01:00:00" in output
    assert "09:00-10:00  Standup" in output
    assert "00:00-09:00" in output
    assert "10:00-00:00  code" in output
    assert "code" in output.split("Top processes:")[1]


def test_empty_day_summary(db_path, capsys) -> None:
    SummaryPrinter(db_path).print_daily_summary(DAY_START)
    assert "No activity recorded" in capsys.readouterr().out


def test_cli_summary_and_usage(db_path, seed_entry) -> None:
    _seed_day(db_path, seed_entry)

    result = runner.invoke(app, ["summary", "--date", "2024-05-06", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "Standup" in result.output

    result = runner.invoke(
        app,
        [
            "usage",
            "--start",
            "2024-05-06T10:00",
            "--end",
            "2024-05-06T11:00",
            "--db",
            str(db_path),
        ],
    )
    assert result.exit_code == 0, result.output
    assert "code" in result.output
    assert "00:30:00 (99.9%)" in result.output


def test_cli_rejects_bad_dates(db_path) -> None:
    result = runner.invoke(app, ["summary", "--date", "yesterday", "--db", str(db_path)])
    assert result.exit_code != 0

    result = runner.invoke(
        app,
        ["usage", "--start", "2024-05-06T11:00", "--end", "2024-05-06T10:00", "--db", str(db_path)],
    )
    assert result.exit_code != 0


def test_cli_zoom_reads_and_writes(tmp_path) -> None:
    prefs = tmp_path / "prefs.json"

    result = runner.invoke(app, ["zoom", "30", "--preferences", str(prefs)])
    assert result.exit_code == 0, result.output
    assert "Visible hours: 24" in result.output

    runner.invoke(app, ["zoom", "6", "--preferences", str(prefs)])
    result = runner.invoke(app, ["zoom", "--preferences", str(prefs)])
    assert "Visible hours: 6" in result.output
