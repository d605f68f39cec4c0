"""Shared test fixtures and helpers."""

from dataclasses import replace
from typing import Optional

import pytest

from src.booking.context import InMemoryContextStore
from src.booking.drop_off_detector import DropOffDetector
from src.booking.engine import BookingFlowEngine
from src.booking.state_machine import BookingStateMachine
from src.booking.states import HAPPY_PATH, BookingState
from src.config import settings


@pytest.fixture
def state_machine():
    return BookingStateMachine()


@pytest.fixture
def detector():
    return DropOffDetector()


@pytest.fixture
def engine():
    return BookingFlowEngine(
        store=InMemoryContextStore(),
        drop_off_detector=DropOffDetector(),
    )


@pytest.fixture
def overwrite_engine():
    config = replace(settings, engine=replace(settings.engine, reinit_policy="overwrite"))
    return BookingFlowEngine(
        store=InMemoryContextStore(),
        drop_off_detector=DropOffDetector(config.drop_off),
        config=config,
    )


def start_booking(
    engine: BookingFlowEngine,
    booking_id: str = "BK-1",
    customer_id: str = "CUST-1",
    session_id: Optional[str] = None,
) -> str:
    """Initialize a booking with sensible defaults and return its id."""
    result = engine.initialize_booking_flow(
        booking_id, customer_id, session_id or f"SESS-{booking_id}", "mobile", "apple"
    )
    assert result.success
    return booking_id


def advance_to(engine: BookingFlowEngine, booking_id: str, target: BookingState) -> None:
    """Walk the happy path until the booking reaches ``target``."""
    for state in HAPPY_PATH[1:]:
        result = engine.transition_booking_state(booking_id, state)
        assert result.success
        if state == target:
            return
    raise AssertionError(f"{target} is not on the happy path")


def event_types(engine: BookingFlowEngine, booking_id: str) -> list[str]:
    return [event.type.value for event in engine.get_booking_telemetry_events(booking_id)]
