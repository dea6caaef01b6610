"""Context propagation for structured logging.

Fields pushed here (request_id, offer_id, project_id, actor_id) are merged into
every log record emitted inside the scope. Backed by contextvars so that
notification worker threads and request handlers keep separate contexts.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current logging context."""
    return LogContextVar.get().copy()


def push_log_context(**kwargs) -> Token:
    """Merge fields into the logging context.

    Returns:
        Token for pop_log_context()
    """
    current = LogContextVar.get()
    return LogContextVar.set({**current, **kwargs})


def pop_log_context(token: Token) -> None:
    """Restore the logging context to the state captured by ``token``."""
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Clear all logging context fields (mainly for tests)."""
    LogContextVar.set({})


class log_context:
    """Context manager for scoped logging context.

    Example:
        >>> with log_context(offer_id="abc123", actor_id="user-1"):
        ...     logger.info("Accepting offer")
    """

    def __init__(self, **kwargs):
        # None values are dropped so optional ids don't clutter records
        self.kwargs = {key: value for key, value in kwargs.items() if value is not None}
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
        return False
