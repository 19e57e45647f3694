"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for settings that are valid but probably unintended.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    retry = config_dict.get("retry", {})
    if isinstance(retry, dict):
        max_attempts = retry.get("max_attempts", 3)
        if isinstance(max_attempts, int) and max_attempts == 1:
            warning_messages.append(
                "retry.max_attempts is 1; failed notifications will never be retried"
            )

        base_delay = retry.get("base_delay")
        if isinstance(base_delay, str) and max_attempts and isinstance(max_attempts, int):
            # Synchronous sends block the caller for the whole backoff
            worst_case = _safe_seconds(base_delay) * sum(range(1, max_attempts))
            if worst_case > 60:
                warning_messages.append(
                    f"Synchronous sends may block callers for up to {int(worst_case)}s "
                    f"(base_delay={base_delay}, max_attempts={max_attempts})"
                )

    queue = config_dict.get("queue", {})
    if isinstance(queue, dict):
        idle_interval = queue.get("idle_interval")
        if isinstance(idle_interval, str) and 0 < _safe_seconds(idle_interval) < 0.01:
            warning_messages.append(
                f"Short queue.idle_interval ({idle_interval}) makes the dispatcher spin while waiting"
            )

    booking = config_dict.get("booking", {})
    if isinstance(booking, dict):
        default_url = booking.get("default_url")
        if isinstance(default_url, str) and default_url.strip().startswith("http://"):
            warning_messages.append(
                f"booking.default_url uses plain http: {default_url.strip()}"
            )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)


def _safe_seconds(value: str) -> float:
    try:
        return parse_duration(value)
    except DurationParseError:
        # Reported properly by model validation
        return 0.0
