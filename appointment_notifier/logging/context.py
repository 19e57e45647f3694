"""Context propagation for structured logging.

Fields pushed here (appointment_id, notification_id, appointment_event, ...)
are merged into every log record emitted inside the scope by the
ContextualFilter. Backed by contextvars, so the dispatcher thread and the
threads handling booking events each see their own context.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional


# Context fields for the current call chain; replaced, never mutated in place
LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Get the current logging context.

    Returns:
        Copy of the current context fields; safe to modify
    """
    return LogContextVar.get().copy()


def push_log_context(**kwargs) -> Token:
    """Merge fields into the logging context.

    Later values win over fields already in the context. Pair every push
    with pop_log_context(), or use the log_context manager instead.

    Args:
        **kwargs: Fields to attach to every log record (e.g., appointment_id)

    Returns:
        Token for pop_log_context() to restore the previous state

    Example:
        >>> token = push_log_context(appointment_id="appt-1")
        >>> # ... every log record now carries appointment_id ...
        >>> pop_log_context(token)
    """
    current = LogContextVar.get()
    return LogContextVar.set({**current, **kwargs})


def pop_log_context(token: Token) -> None:
    """Restore the logging context to the state captured by token.

    Args:
        token: Token returned from push_log_context()
    """
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Clear all logging context fields.

    Used by tests to isolate context between cases.
    """
    LogContextVar.set({})


class log_context:
    """Context manager for scoped logging context.

    Pushes fields on entry and restores the previous context on exit, also
    when the block raises. Exceptions are never suppressed.

    Example:
        >>> with log_context(appointment_id="appt-1", notification_type="reminder"):
        ...     logger.info("Sending reminder")  # carries both fields
    """

    def __init__(self, **kwargs):
        """Store the fields to push on entry.

        Args:
            **kwargs: Fields to attach to log records inside the block
        """
        self.kwargs = kwargs
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
        return False
