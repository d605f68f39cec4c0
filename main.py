"""
Scripted booking walkthrough.

Drives one booking through the BookingFlowEngine with in-memory storage and
prints every decision the core makes: state changes, trust interventions,
conversion hooks and drop-off detection. No network, no persistence.

Usage:
    python main.py
    python main.py --scenario bounce
    python main.py --scenario happy
"""

import argparse
import logging
import sys

from src.booking.context import InMemoryContextStore
from src.booking.drop_off_detector import DropOffDetector
from src.booking.engine import BookingFlowEngine
from src.booking.results import FlowResult
from src.booking.states import BookingState
from src.config import settings

logger = logging.getLogger(__name__)

HAPPY_PATH_STEPS = (
    BookingState.VALIDATING,
    BookingState.TECHNICIAN_MATCH,
    BookingState.ASSIGNED,
    BookingState.ACCEPTED,
    BookingState.CONFIRMED,
    BookingState.ESCROW_PENDING,
)

SCENARIOS = ("happy", "bounce")


def _describe(result: FlowResult) -> list[str]:
    lines = []
    if result.error is not None:
        lines.append(f"  !! {result.error.code.value}: {result.error.message}")
    trust = result.trust_intervention
    if trust is not None and trust.should_inject:
        point = trust.injection_point.value if trust.injection_point else "none"
        lines.append(f"  >> trust [{trust.priority.value}] at {point}: {trust.reason}")
    for hook in result.conversion_hooks or []:
        lines.append(f"  >> hook {hook.action_type.value}: {hook.message}")
    drop_off = result.drop_off
    if drop_off is not None and drop_off.is_drop_off_detected:
        lines.append(
            f"  >> drop-off {drop_off.type.value} ({drop_off.risk_level.value}): {drop_off.details}"
        )
    return lines


def _run_happy(engine: BookingFlowEngine, booking_id: str) -> list[str]:
    lines = []
    for target in HAPPY_PATH_STEPS[:2]:
        result = engine.transition_booking_state(booking_id, target)
        lines.append(f"State: {result.new_state.value}")

    result = engine.update_customer_confidence(booking_id, 45, ["price"])
    lines.append("Confidence: 45 (hesitation: price)")
    lines.extend(_describe(result))

    result = engine.record_page_view(booking_id, "/booking/technician", "technician-assignment")
    lines.append("Viewed: /booking/technician")
    lines.extend(_describe(result))

    for target in HAPPY_PATH_STEPS[2:]:
        result = engine.transition_booking_state(booking_id, target)
        lines.append(f"State: {result.new_state.value}")

    result = engine.complete_booking_flow(booking_id)
    lines.append(f"State: {result.new_state.value}")
    return lines


def _run_bounce(engine: BookingFlowEngine, booking_id: str) -> list[str]:
    lines = []
    engine.transition_booking_state(booking_id, BookingState.VALIDATING)
    result = engine.update_customer_confidence(booking_id, 25, ["price", "payment"])
    lines.append("Confidence: 25 (hesitation: price, payment)")
    lines.extend(_describe(result))

    for _ in range(settings.drop_off.bounce_visit_count):
        result = engine.record_page_view(booking_id, "/checkout", "checkout")
        lines.append("Viewed: /checkout")
        lines.extend(_describe(result))

    result = engine.update_customer_confidence(booking_id, 20)
    lines.append("Confidence: 20")
    lines.extend(_describe(result))

    result = engine.cancel_booking_flow(booking_id, reason="customer left")
    lines.append(f"State: {result.new_state.value}")
    return lines


def run_demo(scenario: str = "happy") -> list[str]:
    """Play one scenario against a fresh engine and return the printed lines."""
    if scenario not in SCENARIOS:
        raise ValueError(f"Unknown scenario: {scenario!r}. Choose from {SCENARIOS}")

    engine = BookingFlowEngine(
        store=InMemoryContextStore(),
        drop_off_detector=DropOffDetector(),
    )
    booking_id = f"BK-DEMO-{scenario.upper()}"
    engine.initialize_booking_flow(booking_id, "CUST-DEMO", f"SESS-{scenario}", "mobile", "apple")

    lines = [f"Scenario: {scenario}", f"State: {BookingState.INITIATED.value}"]
    if scenario == "happy":
        lines.extend(_run_happy(engine, booking_id))
    else:
        lines.extend(_run_bounce(engine, booking_id))

    events = engine.get_booking_telemetry_events(booking_id)
    trace = engine.get_booking_context(booking_id).state_machine.get_state_trace()
    lines.append(f"State trace: {' -> '.join(trace)}")
    lines.append(f"Telemetry events: {len(events)}")
    lines.append(f"Session stats: {engine.get_session_stats()}")
    return lines


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Booking control walkthrough")
    parser.add_argument("--scenario", choices=SCENARIOS, default="happy")
    args = parser.parse_args(argv)

    for line in run_demo(args.scenario):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
