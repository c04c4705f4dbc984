"""Entry-store port consumed by the timeline core, and its SQLite adapter."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional, Protocol, TypeVar

from . import db
from .errors import StoreError
from .models import Category, ProcessSample, TimeEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntryStore(Protocol):
    """Authoritative owner of entries, samples and screenshots.

    Every command either applies fully or raises a ``StoreError`` subclass.
    """

    async def list_entries(self, day: datetime) -> list[TimeEntry]: ...

    async def propose_create(
        self,
        start: datetime,
        end: datetime,
        label: str,
        category_id: Optional[int] = None,
    ) -> TimeEntry: ...

    async def propose_update_range(
        self, entry_id: int, start: datetime, end: datetime
    ) -> TimeEntry: ...

    async def update_details(
        self, entry_id: int, *, label: object = db.UNSET, category_id: object = db.UNSET
    ) -> TimeEntry: ...

    async def propose_delete(self, entry_id: int) -> None: ...

    async def list_process_samples(self, day: datetime) -> list[ProcessSample]: ...

    async def list_screenshot_timestamps(self, day: datetime) -> list[datetime]: ...

    async def lookup_screenshot(self, timestamp: datetime) -> Optional[str]: ...

    async def list_categories(self) -> list[Category]: ...


class SqliteEntryStore:
    """Run the synchronous SQLite layer in a worker thread per command."""

    def __init__(
        self,
        db_path: Path,
        *,
        screenshot_tolerance: timedelta = timedelta(minutes=5),
    ) -> None:
        self.db_path = Path(db_path)
        self.screenshot_tolerance = screenshot_tolerance

    async def list_entries(self, day: datetime) -> list[TimeEntry]:
        return await self._call(db.fetch_entries_for_day, day)

    async def propose_create(
        self,
        start: datetime,
        end: datetime,
        label: str,
        category_id: Optional[int] = None,
    ) -> TimeEntry:
        return await self._call(db.insert_entry, start, end, label, category_id=category_id)

    async def propose_update_range(
        self, entry_id: int, start: datetime, end: datetime
    ) -> TimeEntry:
        return await self._call(db.update_entry_range, entry_id, start, end)

    async def update_details(
        self, entry_id: int, *, label: object = db.UNSET, category_id: object = db.UNSET
    ) -> TimeEntry:
        return await self._call(
            db.update_entry_details, entry_id, label=label, category_id=category_id
        )

    async def propose_delete(self, entry_id: int) -> None:
        await self._call(db.delete_entry, entry_id)

    async def list_process_samples(self, day: datetime) -> list[ProcessSample]:
        return await self._call(db.fetch_process_samples_for_day, day)

    async def list_screenshot_timestamps(self, day: datetime) -> list[datetime]:
        return await self._call(db.fetch_screenshot_timestamps_for_day, day)

    async def lookup_screenshot(self, timestamp: datetime) -> Optional[str]:
        return await self._call(db.fetch_screenshot_near, timestamp, self.screenshot_tolerance)

    async def list_categories(self) -> list[Category]:
        return await self._call(db.fetch_categories)

    async def _call(self, func: Callable[..., T], *args: object, **kwargs: object) -> T:
        return await asyncio.to_thread(self._run, func, args, kwargs)

    def _run(self, func: Callable[..., T], args: tuple, kwargs: dict) -> T:
        try:
            with db.database_connection(self.db_path, check_same_thread=False) as conn:
                return func(conn, *args, **kwargs)
        except sqlite3.Error as exc:
            logger.exception("Entry store command %s failed", func.__name__)
            raise StoreError("The entry store could not complete the request.") from exc
