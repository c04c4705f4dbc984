"""Persisted user preferences: zoom level and the running stopwatch."""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol

from .config import TimelineSettings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ActiveTimer:
    entry_id: int
    start_time: datetime
    label: str
    category_id: Optional[int] = None


@dataclass(slots=True)
class PreferenceState:
    visible_hours: int = 24
    active_timer: Optional[ActiveTimer] = None


class Preferences(Protocol):
    def load(self) -> PreferenceState: ...

    def save(self, state: PreferenceState) -> None: ...


class JsonPreferences:
    """Store preferences as a small JSON document."""

    def __init__(self, path: Path, settings: Optional[TimelineSettings] = None) -> None:
        self.path = Path(path)
        self.settings = settings or TimelineSettings()

    def load(self) -> PreferenceState:
        default = PreferenceState(visible_hours=self.settings.default_visible_hours)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return default
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable preferences file %s", self.path)
            return default
        if not isinstance(raw, dict):
            return default
        return PreferenceState(
            visible_hours=_parse_visible_hours(raw.get("visible_hours"), self.settings),
            active_timer=_parse_timer(raw.get("active_timer")),
        )

    def save(self, state: PreferenceState) -> None:
        payload: dict[str, Any] = {"visible_hours": state.visible_hours, "active_timer": None}
        if state.active_timer is not None:
            timer = state.active_timer
            payload["active_timer"] = {
                "entry_id": timer.entry_id,
                "start_time": timer.start_time.isoformat(),
                "label": timer.label,
                "category_id": timer.category_id,
            }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)


def get_zoom_preference(
    preferences: Preferences, settings: Optional[TimelineSettings] = None
) -> int:
    settings = settings or TimelineSettings()
    return settings.clamp_visible_hours(preferences.load().visible_hours)


def set_zoom_preference(
    preferences: Preferences, visible_hours: int, settings: Optional[TimelineSettings] = None
) -> int:
    settings = settings or TimelineSettings()
    state = preferences.load()
    state.visible_hours = settings.clamp_visible_hours(visible_hours)
    preferences.save(state)
    return state.visible_hours


def _parse_visible_hours(value: Any, settings: TimelineSettings) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return settings.default_visible_hours
    if not math.isfinite(value):
        return settings.default_visible_hours
    return settings.clamp_visible_hours(value)


def _parse_timer(value: Any) -> Optional[ActiveTimer]:
    if not isinstance(value, dict):
        return None
    try:
        return ActiveTimer(
            entry_id=int(value["entry_id"]),
            start_time=datetime.fromisoformat(value["start_time"]),
            label=str(value["label"]),
            category_id=value.get("category_id"),
        )
    except (KeyError, TypeError, ValueError):
        logger.warning("Discarding malformed active timer preference")
        return None
