"""In-memory queue of deferred notifications and its dispatcher.

Jobs wait in a FIFO deque. A single dispatcher thread drains it: due jobs
are delivered, jobs that are not yet due go back to the tail, and failed
jobs are rescheduled with the shared retry policy until attempts run out.
The dispatcher exits when the deque is empty and is restarted by the next
enqueue. Nothing survives a process restart.
"""

import itertools
import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, List, Optional, Union

from appointment_notifier.domain.models import Appointment
from appointment_notifier.logging import get_logger
from appointment_notifier.logging.context import log_context
from appointment_notifier.utils.clock import Clock, SystemClock
from appointment_notifier.utils.timestamps import format_timestamp, to_epoch_millis

from .models import (
    NotificationJob,
    NotificationOptions,
    NotificationTemplateError,
    NotificationType,
    PendingNotification,
    QueueStatus,
    coerce_notification_type,
)
from .retry import RetryPolicy

logger = get_logger(__name__, component="queue")

DEFAULT_IDLE_INTERVAL = 0.1


def type_name(notification_type: Union[NotificationType, str]) -> str:
    """Plain string form of a job type, known or not."""
    if isinstance(notification_type, NotificationType):
        return notification_type.value
    return str(notification_type)


class NotificationQueue:
    """Deferred notification queue with a single draining dispatcher.

    All queue state (the deque, the processing flag and the drain
    generation) is guarded by one lock, so enqueue() may be called from any
    thread. clear() bumps the generation, which makes a drain that is still
    running stop at its next iteration and discard its in-flight job. A
    drain started after clear() waits for the abandoned one to return, so
    deliveries never overlap.
    """

    def __init__(
        self,
        deliver: Callable[[NotificationJob], Any],
        retry_policy: Optional[RetryPolicy] = None,
        clock: Optional[Clock] = None,
        idle_interval: float = DEFAULT_IDLE_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize the queue.

        Args:
            deliver: Makes one delivery attempt for a job, raising on failure
            retry_policy: Retry rules shared with synchronous sends
            clock: Source of "now" (system clock if None)
            idle_interval: Pause between dispatcher iterations, in seconds
            sleep: Blocking wait used for the idle pause
            logger_instance: Logger instance (uses module logger if None)
        """
        self._deliver = deliver
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock or SystemClock()
        self.idle_interval = idle_interval
        self._sleep = sleep
        self.logger = logger_instance or logger

        self._jobs: Deque[NotificationJob] = deque()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._processing = False
        self._generation = 0
        self._worker: Optional[threading.Thread] = None
        self._sequence = itertools.count(1)

    def create_job(
        self,
        notification_type: Union[NotificationType, str],
        appointment: Appointment,
        options: Optional[NotificationOptions] = None,
    ) -> NotificationJob:
        """Build a job stamped with the current time.

        The job runs at options.scheduled_for, or immediately when that is
        absent or already in the past.
        """
        options = options or NotificationOptions()
        notification_type = coerce_notification_type(notification_type)
        now = self.clock.now()

        scheduled_for = options.scheduled_for or now
        if scheduled_for < now:
            scheduled_for = now

        job_id = (
            f"{appointment.id}-{type_name(notification_type)}-"
            f"{to_epoch_millis(now)}-{next(self._sequence)}"
        )

        return NotificationJob(
            id=job_id,
            type=notification_type,
            appointment=appointment,
            options=options,
            created_at=now,
            scheduled_for=scheduled_for,
        )

    def enqueue(self, job: NotificationJob) -> None:
        """Append a job and start the dispatcher if it is idle."""
        with self._lock:
            self._jobs.append(job)
            if not self._processing:
                self._processing = True
                self._start_worker()

        self.logger.info(
            f"Queued {type_name(job.type)} notification for appointment {job.appointment_id}",
            extra={
                "event": "notification.queued",
                "notification_id": job.id,
                "appointment_id": job.appointment_id,
                "scheduled_for": format_timestamp(job.scheduled_for),
            },
        )

    def _start_worker(self) -> None:
        """Start a drain thread; caller holds the lock.

        A drain abandoned by clear() may still be inside a delivery, so the
        new thread joins it before touching the queue.
        """
        previous = self._worker
        self._worker = threading.Thread(
            target=self._drain,
            args=(self._generation, previous),
            name="notification-dispatcher",
            daemon=True,
        )
        self._worker.start()

    def status(self) -> QueueStatus:
        """Snapshot of queued jobs and dispatcher state."""
        with self._lock:
            pending = [
                PendingNotification(
                    id=job.id,
                    type=type_name(job.type),
                    appointment_id=job.appointment_id,
                    attempts=job.attempts,
                    scheduled_for=job.scheduled_for,
                )
                for job in self._jobs
            ]
            return QueueStatus(
                queue_length=len(pending),
                is_processing=self._processing,
                pending_notifications=pending,
            )

    def clear(self) -> None:
        """Drop every queued job and reset the dispatcher state."""
        with self._lock:
            dropped = len(self._jobs)
            self._jobs.clear()
            self._generation += 1
            self._processing = False
            self._idle.notify_all()

        self.logger.info(
            f"Notification queue cleared ({dropped} jobs dropped)",
            extra={"event": "queue.cleared", "dropped": dropped},
        )

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no drain is active.

        Returns:
            True if the dispatcher went idle, False on timeout
        """
        with self._idle:
            return self._idle.wait_for(lambda: not self._processing, timeout)

    def _drain(self, generation: int, previous: Optional[threading.Thread] = None) -> None:
        """Dispatcher loop; runs on its own thread until the queue empties."""
        if previous is not None:
            previous.join()

        self.logger.info("Starting notification queue processing", extra={"event": "queue.drain.started"})
        delivered = 0
        finished = False

        try:
            while True:
                with self._lock:
                    if generation != self._generation:
                        return
                    if not self._jobs:
                        self._processing = False
                        self._idle.notify_all()
                        finished = True
                        break
                    # A job that is not yet due moves from head to tail in one
                    # step, so status() never sees it missing
                    job = self._jobs.popleft()
                    due = job.is_due(self.clock.now())
                    if not due:
                        self._jobs.append(job)

                if due and self._dispatch(job, generation):
                    delivered += 1

                self._sleep(self.idle_interval)
        finally:
            if not finished:
                # Stopped by clear() or by an unexpected error; only the latter
                # still owns the processing flag
                with self._lock:
                    if generation == self._generation and self._processing:
                        self._processing = False
                        self._idle.notify_all()

        self.logger.info(
            f"Notification queue processing completed ({delivered} delivered)",
            extra={"event": "queue.drain.completed", "delivered": delivered},
        )

    def _dispatch(self, job: NotificationJob, generation: int) -> bool:
        """Attempt one delivery; reschedule or drop the job on failure.

        Returns:
            True if the job was delivered
        """
        with log_context(
            notification_id=job.id,
            appointment_id=job.appointment_id,
            notification_type=type_name(job.type),
        ):
            try:
                self._deliver(job)
            except NotificationTemplateError as e:
                job.attempts += 1
                self.logger.error(
                    f"Dropping notification {job.id}: template failure is not retryable: {e}",
                    extra={"event": "notification.dispatch.failed", "attempts": job.attempts},
                )
                return False
            except Exception as e:
                job.attempts += 1
                if self.retry_policy.should_retry(job.attempts):
                    job.scheduled_for = self.clock.now() + self.retry_policy.next_delay_timedelta(job.attempts)
                    self._requeue(job, generation)
                    self.logger.warning(
                        f"Failed to process notification {job.id} (attempt {job.attempts}): {e}; "
                        f"requeued for {format_timestamp(job.scheduled_for)}",
                        extra={
                            "event": "notification.dispatch.retry",
                            "attempts": job.attempts,
                            "error_type": type(e).__name__,
                        },
                    )
                else:
                    self.logger.error(
                        f"Max retry attempts reached for notification {job.id}: {e}",
                        extra={
                            "event": "notification.dispatch.failed",
                            "attempts": job.attempts,
                            "error_type": type(e).__name__,
                        },
                    )
                return False

            self.logger.info(
                f"Delivered {type_name(job.type)} notification {job.id}",
                extra={"event": "notification.dispatch.delivered", "attempts": job.attempts + 1},
            )
            return True

    def _requeue(self, job: NotificationJob, generation: int) -> None:
        with self._lock:
            if generation == self._generation:
                self._jobs.append(job)

    def pending_jobs(self) -> List[NotificationJob]:
        """Copy of the queued jobs, head first."""
        with self._lock:
            return list(self._jobs)
