"""Utility functions for clocks and UTC time handling."""

from .clock import Clock, FrozenClock, SystemClock
from .timestamps import (
    coerce_datetime,
    ensure_utc,
    format_timestamp,
    parse_iso_datetime,
    to_epoch_millis,
    utc_now,
)

__all__ = [
    # Clocks
    "Clock",
    "SystemClock",
    "FrozenClock",
    # Timestamps
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "coerce_datetime",
    "format_timestamp",
    "to_epoch_millis",
]
