"""Shared fixtures: a manual scheduler, fixed days and temporary storage."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest
import pytest_asyncio

from daylog.config import TimelineSettings
from daylog.db import database_connection, insert_entry
from daylog.models import TimeEntry
from daylog.preferences import JsonPreferences
from daylog.store import SqliteEntryStore

DAY_START = datetime(2024, 5, 6)


def at(hour: int, minute: int = 0, second: int = 0) -> datetime:
    """Instant on the fixture day."""
    return DAY_START.replace(hour=hour, minute=minute, second=second)


def entry(entry_id: int, start: datetime, end: datetime, label: str = "work") -> TimeEntry:
    return TimeEntry(id=entry_id, start_time=start, end_time=end, label=label)


class FakeTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler whose clock only moves when a test calls ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[FakeTimer] = []

    def call_soon(self, callback: Callable[[], None]) -> FakeTimer:
        return self.call_later(0.0, callback)

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self._timers if not timer.cancelled]

    def advance(self, seconds: float = 0.0) -> None:
        target = self.now + seconds
        while True:
            due = [timer for timer in self.pending if timer.due <= target]
            if not due:
                break
            timer = min(due, key=lambda item: item.due)
            self._timers.remove(timer)
            self.now = max(self.now, timer.due)
            timer.callback()
        self.now = target


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture()
def settings() -> TimelineSettings:
    return TimelineSettings()


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(at(9))


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "daylog.sqlite3"


@pytest.fixture()
def preferences(tmp_path: Path, settings: TimelineSettings) -> JsonPreferences:
    return JsonPreferences(tmp_path / "preferences.json", settings)


@pytest.fixture()
def store(db_path: Path) -> SqliteEntryStore:
    return SqliteEntryStore(db_path)


@pytest.fixture()
def seed_entry(db_path: Path) -> Callable[..., TimeEntry]:
    def _seed(
        start: datetime,
        end: datetime,
        label: str = "work",
        category_id: Optional[int] = None,
    ) -> TimeEntry:
        with database_connection(db_path) as conn:
            return insert_entry(conn, start, end, label, category_id=category_id)

    return _seed


@pytest_asyncio.fixture()
async def client(db_path: Path, tmp_path: Path):
    """Async httpx client bound to the FastAPI app with a temporary database."""
    from daylog.webapp import create_app

    app = create_app(db_path=db_path, preferences_path=tmp_path / "preferences.json")
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
