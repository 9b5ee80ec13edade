"""Session correlation ids for log records.

Every record that passes through the root handler carries a
``session_id`` attribute: the id bound by the session controller for the
current async context, or ``-`` outside any session. Sign-in, slot
lookups and booking writes made on behalf of one visitor therefore share
one id in the log output.

Usage:
    from realty_booking.logging_context import bind_session_id, get_session_logger

    logger = get_session_logger(__name__)
    bind_session_id("SESS-1a2b3c4d")
    logger.info("Resolving slots")  # ... [SESS-1a2b3c4d] ...: Resolving slots
"""

import logging
from contextvars import ContextVar

NO_SESSION = "-"

LOG_FORMAT = "%(asctime)s [%(session_id)s] [%(name)s] %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_session_id: ContextVar[str] = ContextVar("session_id", default=NO_SESSION)


def bind_session_id(session_id: str) -> None:
    """Bind ``session_id`` to the current async context."""
    _session_id.set(session_id)


def current_session_id() -> str:
    return _session_id.get()


class SessionIdFilter(logging.Filter):
    """Stamps ``session_id`` on records that do not already carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def get_session_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)`` with a SessionIdFilter attached.

    Logger-level filtering stamps the id before the record propagates, so
    handlers added later (for example by a test harness) see it too.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, SessionIdFilter) for f in logger.filters):
        logger.addFilter(SessionIdFilter())
    return logger


def configure_logging(level: str) -> None:
    """Install the root handler with the correlation-aware format.

    A SessionIdFilter on the handler covers records from plain
    ``logging.getLogger`` loggers and third-party libraries.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    for root_handler in logging.getLogger().handlers:
        if not any(isinstance(f, SessionIdFilter) for f in root_handler.filters):
            root_handler.addFilter(SessionIdFilter())
