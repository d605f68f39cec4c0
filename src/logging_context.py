"""Correlation ID logging context for tracing a booking across modules.

Provides a booking_id-aware logger that attaches the booking currently
being processed to every log message, making it easy to follow a single
booking through the state machine, the decision functions and the
drop-off detector.

Usage:
    from src.logging_context import get_booking_logger, set_booking_id

    set_booking_id("BK-1001")
    logger = get_booking_logger(__name__)
    logger.info("Processing update")  # record.booking_id == "BK-1001"
"""

import logging
from contextvars import ContextVar

_booking_id: ContextVar[str] = ContextVar("booking_id", default="NO_BOOKING_ID")


def set_booking_id(booking_id: str) -> None:
    """Set the correlation ID for the current context."""
    _booking_id.set(booking_id)


def get_booking_id() -> str:
    """Retrieve the current correlation ID."""
    return _booking_id.get()


class BookingIdFilter(logging.Filter):
    """Injects booking_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.booking_id = _booking_id.get()  # type: ignore[attr-defined]
        return True


def attach_booking_id_filter(logger: logging.Logger) -> None:
    """Add a BookingIdFilter to every handler of ``logger``.

    Handler filters see records propagated from child loggers too, so a
    ``%(booking_id)s`` format works for modules that use plain
    ``logging.getLogger``.
    """
    for handler in logger.handlers:
        if not any(isinstance(f, BookingIdFilter) for f in handler.filters):
            handler.addFilter(BookingIdFilter())


def get_booking_logger(name: str) -> logging.Logger:
    """Return a logger with the BookingIdFilter attached.

    The filter adds ``booking_id`` to each record so formatters can
    include ``%(booking_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, BookingIdFilter) for f in logger.filters):
        logger.addFilter(BookingIdFilter())
    return logger
