"""FastAPI application exposing the entry-store commands and derived timeline views."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .activity import ActivityAggregator, derive_process_runs
from .config import TimelineSettings
from .db import (
    UNSET,
    database_connection,
    delete_entry,
    fetch_categories,
    fetch_entries_for_day,
    fetch_process_samples_covering,
    fetch_process_samples_for_day,
    fetch_screenshot_near,
    fetch_screenshot_timestamps_for_day,
    insert_category,
    insert_entry,
    insert_process_samples,
    update_entry_details,
    update_entry_range,
)
from .errors import (
    EntryNotFoundError,
    InvalidEntryError,
    MinDurationError,
    OverlapError,
    StoreError,
)
from .intervals import IntervalSet
from .models import DAY, ProcessSample, TimeEntry, start_of_day
from .paths import get_db_path, get_preferences_path
from .preferences import JsonPreferences, get_zoom_preference, set_zoom_preference

logger = logging.getLogger(__name__)


class EntryCreate(BaseModel):
    start_time: datetime
    end_time: datetime
    label: str
    category_id: Optional[int] = None
    color: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class EntryRangeUpdate(BaseModel):
    start_time: datetime
    end_time: datetime

    model_config = ConfigDict(extra="forbid")


class EntryDetailsUpdate(BaseModel):
    label: Optional[str] = None
    category_id: Optional[int] = None
    color: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class ProcessSamplePayload(BaseModel):
    timestamp: datetime
    process_name: str

    model_config = ConfigDict(extra="forbid")


class ZoomPayload(BaseModel):
    visible_hours: int = Field(ge=1)

    model_config = ConfigDict(extra="forbid")


class CategoryPayload(BaseModel):
    name: str
    color: str = "#6b7280"

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    preferences_path: Optional[Path] = None,
    settings: Optional[TimelineSettings] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or TimelineSettings()
    preferences = JsonPreferences(
        Path(preferences_path or get_preferences_path()), resolved_settings
    )

    app = FastAPI(title="Daylog", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.preferences = preferences

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        logger.info("Serving timeline data from %s", resolved_db_path)

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return {
            "database_path": str(request.app.state.db_path),
            "visible_hours": get_zoom_preference(request.app.state.preferences, resolved_settings),
            "min_entry_seconds": resolved_settings.min_entry_duration.total_seconds(),
            "poll_seconds": resolved_settings.poll_interval.total_seconds(),
        }

    @app.get("/api/entries")
    def list_entries(
        request: Request,
        date: Optional[str] = Query(default=None, description="Target date in YYYY-MM-DD format."),
    ) -> Dict[str, Any]:
        day = _parse_date(date)
        with _store_command(request.app.state.db_path) as conn:
            entries = fetch_entries_for_day(conn, day)
        return {
            "date": day.strftime("%Y-%m-%d"),
            "entries": [_entry_to_payload(entry) for entry in entries],
        }

    @app.post("/api/entries", status_code=201)
    def create_entry(payload: EntryCreate, request: Request) -> Dict[str, Any]:
        if payload.end_time - payload.start_time < resolved_settings.min_entry_duration:
            logger.info("Rejecting create shorter than %s", resolved_settings.min_entry_duration)
            raise _http_error(
                MinDurationError(
                    f"Entries must last at least {resolved_settings.min_entry_duration}"
                )
            )
        with _store_command(request.app.state.db_path) as conn:
            entry = insert_entry(
                conn,
                payload.start_time,
                payload.end_time,
                payload.label,
                category_id=payload.category_id,
                color=payload.color,
            )
        return _entry_to_payload(entry)

    @app.patch("/api/entries/{entry_id}/range")
    def update_range(entry_id: int, payload: EntryRangeUpdate, request: Request) -> Dict[str, Any]:
        with _store_command(request.app.state.db_path) as conn:
            entry = update_entry_range(conn, entry_id, payload.start_time, payload.end_time)
        return _entry_to_payload(entry)

    @app.patch("/api/entries/{entry_id}")
    def update_details(
        entry_id: int, payload: EntryDetailsUpdate, request: Request
    ) -> Dict[str, Any]:
        updates = payload.model_dump(exclude_unset=True)
        with _store_command(request.app.state.db_path) as conn:
            entry = update_entry_details(
                conn,
                entry_id,
                label=updates.get("label", UNSET),
                category_id=updates.get("category_id", UNSET),
                color=updates.get("color", UNSET),
            )
        return _entry_to_payload(entry)

    @app.delete("/api/entries/{entry_id}", status_code=204)
    def remove_entry(entry_id: int, request: Request) -> None:
        with _store_command(request.app.state.db_path) as conn:
            delete_entry(conn, entry_id)

    @app.get("/api/process-samples")
    def list_process_samples(
        request: Request,
        date: Optional[str] = Query(default=None, description="Target date in YYYY-MM-DD format."),
    ) -> Dict[str, Any]:
        day = _parse_date(date)
        with _store_command(request.app.state.db_path) as conn:
            samples = fetch_process_samples_for_day(conn, day)
        return {
            "date": day.strftime("%Y-%m-%d"),
            "samples": [
                {"timestamp": sample.timestamp.isoformat(), "process_name": sample.process_name}
                for sample in samples
            ],
        }

    @app.post("/api/process-samples", status_code=201)
    def record_process_samples(
        payload: list[ProcessSamplePayload], request: Request
    ) -> Dict[str, Any]:
        samples = [
            ProcessSample(timestamp=item.timestamp, process_name=item.process_name.strip())
            for item in payload
            if item.process_name.strip()
        ]
        with _store_command(request.app.state.db_path) as conn:
            insert_process_samples(conn, samples)
        return {"inserted": len(samples)}

    @app.get("/api/screenshot")
    def screenshot_for_time(
        request: Request,
        timestamp: str = Query(description="ISO 8601 instant to look up."),
    ) -> Dict[str, Any]:
        instant = _parse_datetime(timestamp, "timestamp")
        with _store_command(request.app.state.db_path) as conn:
            file_path = fetch_screenshot_near(
                conn, instant, resolved_settings.screenshot_tolerance
            )
        return {"timestamp": instant.isoformat(), "file_path": file_path}

    @app.get("/api/screenshots")
    def screenshot_markers(
        request: Request,
        date: Optional[str] = Query(default=None, description="Target date in YYYY-MM-DD format."),
    ) -> Dict[str, Any]:
        day = _parse_date(date)
        with _store_command(request.app.state.db_path) as conn:
            timestamps = fetch_screenshot_timestamps_for_day(conn, day)
        return {
            "date": day.strftime("%Y-%m-%d"),
            "timestamps": [value.isoformat() for value in timestamps],
        }

    @app.get("/api/gaps")
    def gaps(
        request: Request,
        date: Optional[str] = Query(default=None, description="Target date in YYYY-MM-DD format."),
    ) -> Dict[str, Any]:
        day = _parse_date(date)
        with _store_command(request.app.state.db_path) as conn:
            entries = fetch_entries_for_day(conn, day)
        intervals = IntervalSet(day, entries)
        return {
            "date": day.strftime("%Y-%m-%d"),
            "gaps": [
                {
                    "start_time": gap.start.isoformat(),
                    "end_time": gap.end.isoformat(),
                    "duration_seconds": gap.duration.total_seconds(),
                }
                for gap in intervals.gaps()
            ],
        }

    @app.get("/api/process-runs")
    def process_runs(
        request: Request,
        date: Optional[str] = Query(default=None, description="Target date in YYYY-MM-DD format."),
    ) -> Dict[str, Any]:
        day = _parse_date(date)
        with _store_command(request.app.state.db_path) as conn:
            entries = fetch_entries_for_day(conn, day)
            samples = fetch_process_samples_for_day(conn, day)
        runs = derive_process_runs(
            entries,
            samples,
            day,
            day + DAY,
            last_sample_fill=resolved_settings.last_sample_fill,
        )
        return {
            "date": day.strftime("%Y-%m-%d"),
            "runs": [
                {
                    "start_time": run.start_time.isoformat(),
                    "end_time": run.end_time.isoformat(),
                    "process_name": run.process_name,
                    "color": run.color,
                }
                for run in runs
            ],
        }

    @app.get("/api/usage")
    def usage(
        request: Request,
        start: str = Query(description="Range start, ISO 8601."),
        end: str = Query(description="Range end, ISO 8601."),
        limit: int = Query(default=3, ge=1, le=50),
    ) -> Dict[str, Any]:
        range_start = _parse_datetime(start, "start")
        range_end = _parse_datetime(end, "end")
        if range_end <= range_start:
            raise HTTPException(status_code=400, detail="end must be after start")
        with _store_command(request.app.state.db_path) as conn:
            samples = fetch_process_samples_covering(conn, range_start, range_end)
        aggregator = ActivityAggregator(
            samples, last_sample_fill=resolved_settings.last_sample_fill
        )
        buckets = aggregator.aggregate_usage(range_start, range_end)
        top = aggregator.top_processes(range_start, range_end, limit)
        return {
            "start": range_start.isoformat(),
            "end": range_end.isoformat(),
            "total_seconds": sum(buckets.values()),
            "processes": [
                {
                    "process_name": item.process_name,
                    "seconds": item.seconds,
                    "percent": round(item.percent, 1),
                }
                for item in top
            ],
        }

    @app.get("/api/preferences/zoom")
    def get_zoom(request: Request) -> Dict[str, Any]:
        return {
            "visible_hours": get_zoom_preference(request.app.state.preferences, resolved_settings)
        }

    @app.put("/api/preferences/zoom")
    def put_zoom(payload: ZoomPayload, request: Request) -> Dict[str, Any]:
        stored = set_zoom_preference(
            request.app.state.preferences, payload.visible_hours, resolved_settings
        )
        return {"visible_hours": stored}

    @app.get("/api/categories")
    def list_categories(request: Request) -> Dict[str, Any]:
        with _store_command(request.app.state.db_path) as conn:
            categories = fetch_categories(conn)
        return {
            "categories": [
                {"id": category.id, "name": category.name, "color": category.color}
                for category in categories
            ]
        }

    @app.post("/api/categories", status_code=201)
    def create_category(payload: CategoryPayload, request: Request) -> Dict[str, Any]:
        with _store_command(request.app.state.db_path) as conn:
            category = insert_category(conn, payload.name, payload.color)
        return {"id": category.id, "name": category.name, "color": category.color}

    return app


@contextmanager
def _store_command(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Open a connection and turn store failures into HTTP errors."""
    try:
        with database_connection(db_path) as conn:
            yield conn
    except StoreError as exc:
        raise _http_error(exc) from exc
    except sqlite3.Error as exc:
        logger.exception("Entry store command failed")
        wrapped = StoreError("The entry store could not complete the request.")
        raise _http_error(wrapped) from exc


def _http_error(exc: StoreError) -> HTTPException:
    if isinstance(exc, OverlapError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (MinDurationError, InvalidEntryError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, EntryNotFoundError):
        return HTTPException(status_code=404, detail="Entry not found")
    logger.error("Store command failed: %s", exc)
    return HTTPException(status_code=500, detail="The entry store could not complete the request.")


def _parse_date(value: Optional[str]) -> datetime:
    if not value:
        return start_of_day(datetime.now())
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc
    return start_of_day(parsed)


def _parse_datetime(value: str, name: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name} timestamp") from exc
    return parsed.replace(tzinfo=None)


def _entry_to_payload(entry: TimeEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "start_time": entry.start_time.isoformat(),
        "end_time": entry.end_time.isoformat(),
        "label": entry.label,
        "category_id": entry.category_id,
        "color": entry.color,
        "duration_seconds": entry.duration.total_seconds(),
    }
