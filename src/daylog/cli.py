"""Command-line interface for the timeline engine."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from .config import TimelineSettings
from .paths import get_db_path, get_log_path, get_preferences_path
from .server_runner import run_dashboard

app = typer.Typer(help="Local-first day timeline for time entries and process activity.")


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_file: bool = typer.Option(
        False, "--log-file", help="Also append logs to the application log file."
    ),
) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(get_log_path(), encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )


@app.command()
def summary(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the timeline SQLite database.",
    ),
) -> None:
    """Print entries, free gaps and top processes for a specific day."""
    from .reporting import SummaryPrinter

    target = _parse_date_option(date, "--date") if date else datetime.now()
    summary_printer = SummaryPrinter(db_path=db_path or get_db_path())
    summary_printer.print_daily_summary(target)


@app.command()
def usage(
    start: str = typer.Option(..., "--start", help="Range start, e.g. 2024-05-01T09:00."),
    end: str = typer.Option(..., "--end", help="Range end, e.g. 2024-05-01T12:00."),
    limit: int = typer.Option(3, "--limit", min=1, help="Number of processes to list."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the timeline SQLite database."
    ),
) -> None:
    """Print the processes that dominated a time range."""
    from .reporting import SummaryPrinter

    range_start = _parse_datetime_option(start, "--start")
    range_end = _parse_datetime_option(end, "--end")
    if range_end <= range_start:
        raise typer.BadParameter("--end must be after --start")
    SummaryPrinter(db_path=db_path or get_db_path()).print_usage(range_start, range_end, limit)


@app.command()
def zoom(
    hours: Optional[int] = typer.Argument(
        None, help="Visible hours to store (clamped to 4-24). Omit to show the current value."
    ),
    preferences_path: Optional[Path] = typer.Option(
        None, "--preferences", path_type=Path, help="Location of the preferences file."
    ),
) -> None:
    """Show or change the persisted zoom level."""
    from .preferences import JsonPreferences, get_zoom_preference, set_zoom_preference

    settings = TimelineSettings()
    preferences = JsonPreferences(preferences_path or get_preferences_path(), settings)
    if hours is None:
        value = get_zoom_preference(preferences, settings)
    else:
        value = set_zoom_preference(preferences, hours, settings)
    typer.echo(f"Visible hours: {value}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the timeline SQLite database."
    ),
    preferences_path: Optional[Path] = typer.Option(
        None, "--preferences", path_type=Path, help="Location of the preferences file."
    ),
    min_entry_seconds: float = typer.Option(
        60.0,
        "--min-entry",
        min=1.0,
        help="Shortest entry, in seconds, the API accepts on create.",
    ),
    open_browser: bool = typer.Option(
        True,
        "--open-browser/--no-open-browser",
        help="Automatically launch the API docs in your default browser.",
    ),
    log_level: str = typer.Option("info", "--log-level", help="Uvicorn log level."),
) -> None:
    """Serve the timeline API locally."""
    settings = TimelineSettings.from_values(min_entry_seconds=min_entry_seconds)
    run_dashboard(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        preferences_path=preferences_path or get_preferences_path(),
        settings=settings,
        open_browser=open_browser,
        log_level=log_level,
    )


def _parse_date_option(value: str, name: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise typer.BadParameter(f"{name} must use YYYY-MM-DD") from exc


def _parse_datetime_option(value: str, name: str) -> datetime:
    try:
        return datetime.fromisoformat(value).replace(tzinfo=None)
    except ValueError as exc:
        raise typer.BadParameter(f"{name} must be an ISO 8601 timestamp") from exc
