"""Timeline interval and activity aggregation engine for a personal time tracker."""

__version__ = "0.3.0"
