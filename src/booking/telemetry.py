"""Telemetry event construction and fan-out to analytics listeners."""

import logging
from collections.abc import Callable
from typing import Any, Optional

from src.booking.states import EVENT_IMPORTANCE, BookingEvent, category_for_event
from src.schemas.telemetry_schema import EventSource, TelemetryEvent

logger = logging.getLogger(__name__)

Listener = Callable[[TelemetryEvent], None]


def create_event(
    event_type: BookingEvent,
    payload: Optional[dict[str, Any]] = None,
    source: EventSource = EventSource.SYSTEM,
) -> TelemetryEvent:
    """Build a TelemetryEvent with importance and category filled in."""
    return TelemetryEvent(
        type=event_type,
        source=source,
        importance=EVENT_IMPORTANCE[event_type],
        category=category_for_event(event_type),
        payload=dict(payload or {}),
    )


class TelemetryEmitter:
    """Delivers events to subscribed listeners.

    A failing listener is logged and skipped; it never fails the booking
    operation that produced the event.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener and return a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: TelemetryEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Telemetry listener failed for event %s (%s)", event.event_id, event.type.value
                )

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
