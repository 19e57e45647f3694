"""Retry policy shared by synchronous sends and the deferred dispatcher.

Backoff is linear: the Nth retry waits base_delay * N.
"""

from dataclasses import dataclass
from datetime import timedelta

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 5.0


@dataclass(frozen=True)
class RetryPolicy:
    """Stateless retry rules.

    Attributes:
        max_attempts: Total delivery attempts allowed, first one included
        base_delay: Backoff unit in seconds
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay cannot be negative, got {self.base_delay}")

    def should_retry(self, attempts_so_far: int) -> bool:
        """Whether another attempt is allowed after attempts_so_far failures."""
        return attempts_so_far < self.max_attempts

    def next_delay(self, attempts_so_far: int) -> float:
        """Seconds to wait before the next attempt."""
        return self.base_delay * attempts_so_far

    def next_delay_timedelta(self, attempts_so_far: int) -> timedelta:
        return timedelta(seconds=self.next_delay(attempts_so_far))
