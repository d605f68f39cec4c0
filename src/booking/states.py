"""
Shared vocabulary of booking states and telemetry event types.

Everything above this module (state machine, decision functions, drop-off
detector, engine) speaks in these enums. The risk table is static: risk is a
function of the current state only, never of how the booking got there.
"""

from enum import Enum
from typing import Optional


class BookingState(str, Enum):
    """Lifecycle states of a single booking."""
    INITIATED = "initiated"
    VALIDATING = "validating"
    TECHNICIAN_MATCH = "technician-match"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    CONFIRMED = "confirmed"
    ESCROW_PENDING = "escrow-pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RiskLevel(str, Enum):
    """Coarse likelihood that a booking fails to convert."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


HAPPY_PATH: tuple[BookingState, ...] = (
    BookingState.INITIATED,
    BookingState.VALIDATING,
    BookingState.TECHNICIAN_MATCH,
    BookingState.ASSIGNED,
    BookingState.ACCEPTED,
    BookingState.CONFIRMED,
    BookingState.ESCROW_PENDING,
    BookingState.COMPLETED,
)

TERMINAL_STATES: frozenset[BookingState] = frozenset(
    {BookingState.COMPLETED, BookingState.CANCELLED}
)

# CANCELLED has no risk level.
STATE_RISK: dict[BookingState, RiskLevel] = {
    BookingState.INITIATED: RiskLevel.LOW,
    BookingState.VALIDATING: RiskLevel.LOW,
    BookingState.TECHNICIAN_MATCH: RiskLevel.HIGH,
    BookingState.ASSIGNED: RiskLevel.MEDIUM,
    BookingState.ACCEPTED: RiskLevel.MEDIUM,
    BookingState.CONFIRMED: RiskLevel.LOW,
    BookingState.ESCROW_PENDING: RiskLevel.LOW,
    BookingState.COMPLETED: RiskLevel.LOW,
}


def risk_for_state(state: BookingState) -> Optional[RiskLevel]:
    """Static risk lookup; ``None`` for CANCELLED."""
    return STATE_RISK.get(state)


def is_terminal(state: BookingState) -> bool:
    return state in TERMINAL_STATES


class BookingEvent(str, Enum):
    """Telemetry event types recorded on a booking."""
    BOOKING_STARTED = "booking_started"
    STATE_CHANGED = "state_changed"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_CANCELLED = "booking_cancelled"
    CONFIDENCE_UPDATED = "confidence_updated"
    CONFIDENCE_DROP = "confidence_drop"
    HESITATION_DETECTED = "hesitation_detected"
    PAGE_VIEWED = "page_viewed"
    TRUST_INJECTION = "trust_injection"
    CONVERSION_HOOK_TRIGGERED = "conversion_hook_triggered"
    DROP_OFF_DETECTED = "drop_off_detected"


class EventImportance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EventCategory(str, Enum):
    BOOKING_FLOW = "booking_flow"
    CONVERSION_OPTIMIZATION = "conversion_optimization"


EVENT_IMPORTANCE: dict[BookingEvent, EventImportance] = {
    BookingEvent.BOOKING_STARTED: EventImportance.MEDIUM,
    BookingEvent.STATE_CHANGED: EventImportance.MEDIUM,
    BookingEvent.BOOKING_COMPLETED: EventImportance.CRITICAL,
    BookingEvent.BOOKING_CANCELLED: EventImportance.HIGH,
    BookingEvent.CONFIDENCE_UPDATED: EventImportance.LOW,
    BookingEvent.CONFIDENCE_DROP: EventImportance.HIGH,
    BookingEvent.HESITATION_DETECTED: EventImportance.HIGH,
    BookingEvent.PAGE_VIEWED: EventImportance.LOW,
    BookingEvent.TRUST_INJECTION: EventImportance.MEDIUM,
    BookingEvent.CONVERSION_HOOK_TRIGGERED: EventImportance.MEDIUM,
    BookingEvent.DROP_OFF_DETECTED: EventImportance.HIGH,
}

EVENT_CATEGORIES: dict[EventCategory, tuple[BookingEvent, ...]] = {
    EventCategory.BOOKING_FLOW: (
        BookingEvent.BOOKING_STARTED,
        BookingEvent.STATE_CHANGED,
        BookingEvent.BOOKING_COMPLETED,
        BookingEvent.BOOKING_CANCELLED,
        BookingEvent.PAGE_VIEWED,
    ),
    EventCategory.CONVERSION_OPTIMIZATION: (
        BookingEvent.CONFIDENCE_UPDATED,
        BookingEvent.CONFIDENCE_DROP,
        BookingEvent.HESITATION_DETECTED,
        BookingEvent.TRUST_INJECTION,
        BookingEvent.CONVERSION_HOOK_TRIGGERED,
        BookingEvent.DROP_OFF_DETECTED,
    ),
}


def category_for_event(event: BookingEvent) -> EventCategory:
    for category, events in EVENT_CATEGORIES.items():
        if event in events:
            return category
    raise ValueError(f"Event {event.value!r} has no category")
