"""Exceptions raised by the entry store and the timeline core."""


class DaylogError(Exception):
    """Base class for all daylog errors."""


class StoreError(DaylogError):
    """The entry store could not complete a command."""


class OverlapError(StoreError):
    """A proposed range collides with an existing time entry."""


class MinDurationError(StoreError):
    """A proposed range is empty or shorter than allowed."""


class EntryNotFoundError(StoreError):
    """No time entry exists for the given id."""


class InvalidEntryError(StoreError):
    """A proposed entry failed validation (for example an empty label)."""


class TimerStateError(DaylogError):
    """The stopwatch cannot perform the requested transition."""
