"""Scheduling module for periodic queue status reporting."""

from .service import QueueStatusReporter

__all__ = [
    "QueueStatusReporter",
]
