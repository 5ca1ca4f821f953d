"""Per-session log correlation for booking wizards.

Each wizard owns a session id. While one of its public methods runs, the id
is bound to the current context with :func:`session_scope`, so every record
emitted by the wizard, the submission step or the backend during that call
carries ``record.session_id``. Several wizards can live in one thread or
event loop without overwriting each other's id, because the binding is
undone when the call returns.

Usage:
    from courtbook.logging_context import get_session_logger, session_scope

    logger = get_session_logger(__name__)
    with session_scope("SES-abc123"):
        logger.info("Venue picked")  # record.session_id == "SES-abc123"
"""

import functools
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator, TypeVar

NO_SESSION = "-"

_current_session: ContextVar[str] = ContextVar("booking_session", default=NO_SESSION)

F = TypeVar("F", bound=Callable)


def current_session_id() -> str:
    """Session bound to the running call, or ``NO_SESSION`` outside any wizard call."""
    return _current_session.get()


@contextmanager
def session_scope(session_id: str) -> Iterator[str]:
    """Bind ``session_id`` for the duration of the block and restore the previous one."""
    token = _current_session.set(session_id)
    try:
        yield session_id
    finally:
        _current_session.reset(token)


def bound_to_session(method: F) -> F:
    """Run a wizard method inside ``session_scope(self.session_id)``."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with session_scope(self.session_id):
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class SessionIdFilter(logging.Filter):
    """Stamps records with the bound session id, keeping one set explicitly via ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = _current_session.get()  # type: ignore[attr-defined]
        return True


def get_session_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)`` with a single SessionIdFilter attached."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, SessionIdFilter) for f in logger.filters):
        logger.addFilter(SessionIdFilter())
    return logger
