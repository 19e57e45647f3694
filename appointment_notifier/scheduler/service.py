"""Periodic queue status reporting."""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from appointment_notifier.logging import get_logger
from appointment_notifier.notifications.models import QueueStatus

logger = get_logger(__name__, component="scheduler")

JOB_ID = "queue-status"


class QueueStatusReporter:
    """
    Wraps APScheduler to log the deferred queue status at a fixed interval.

    Uses BackgroundScheduler so reports are produced on a worker thread
    while the main thread waits for signals.
    """

    def __init__(
        self,
        status_callable: Callable[[], QueueStatus],
        interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the reporter.

        Args:
            status_callable: Returns the current queue status (e.g., service.get_queue_status)
            interval_seconds: Interval between reports in seconds
            shutdown_event: Optional event to set on shutdown for coordination
        """
        self.status_callable = status_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """
        Start the scheduler and register the report job.

        The first report is produced one interval after startup.
        """
        trigger = IntervalTrigger(
            seconds=self.interval_seconds,
            timezone=timezone.utc,
        )

        self.scheduler.add_job(
            func=self.report,
            trigger=trigger,
            id=JOB_ID,
            name="Notification Queue Status",
            replace_existing=True,
        )

        self.scheduler.start()

        logger.info(
            f"Queue status reporter started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
            },
        )

    def report(self) -> QueueStatus:
        """Log the current queue status and return it."""
        status = self.status_callable()
        logger.info(
            f"Notification queue: {status.queue_length} pending, "
            f"processing={status.is_processing}",
            extra={
                "event": "queue.status",
                "queue_length": status.queue_length,
                "is_processing": status.is_processing,
            },
        )
        return status

    def shutdown(self, wait: bool = False) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: If True, wait for a running report to complete before returning
        """
        logger.info(
            "Shutting down queue status reporter",
            extra={
                "event": "scheduler.stopping",
                "wait_for_jobs": wait,
            },
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info(
            "Queue status reporter shutdown complete",
            extra={"event": "scheduler.stopped"}
        )

    def trigger_now(self) -> QueueStatus:
        """Produce a report immediately in the current thread."""
        return self.report()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        """
        Get the next scheduled report time.

        Returns:
            Next run time as a datetime, or None if not scheduled
        """
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None
