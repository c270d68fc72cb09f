"""Shared utility helpers for dates, debouncing, and logging."""

from hospcast.utils.calendar import file_date_for, iso_day, parse_day, shift_days
from hospcast.utils.debounce import Debouncer
from hospcast.utils.logs import configure_logging

__all__ = [
    "file_date_for",
    "iso_day",
    "parse_day",
    "shift_days",
    "Debouncer",
    "configure_logging",
]
