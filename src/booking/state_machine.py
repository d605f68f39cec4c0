"""
Finite state machine for a single booking's lifecycle.

The happy path is strictly ordered: each state may only advance to its
immediate successor. Any non-terminal state may also move to CANCELLED.
COMPLETED and CANCELLED have no outgoing transitions.

Usage:
    sm = BookingStateMachine()
    result = sm.transition(BookingState.VALIDATING)
    assert result.success and sm.current_state == BookingState.VALIDATING
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from src.booking.results import BookingError, ErrorCode, TransitionResult
from src.booking.states import (
    HAPPY_PATH,
    TERMINAL_STATES,
    BookingState,
    RiskLevel,
    risk_for_state,
)
from src.utils import utc_now

logger = logging.getLogger(__name__)


def _build_transitions() -> dict[BookingState, frozenset[BookingState]]:
    transitions: dict[BookingState, frozenset[BookingState]] = {}
    for current, successor in zip(HAPPY_PATH, HAPPY_PATH[1:]):
        transitions[current] = frozenset({successor, BookingState.CANCELLED})
    for terminal in TERMINAL_STATES:
        transitions[terminal] = frozenset()
    return transitions


VALID_TRANSITIONS: dict[BookingState, frozenset[BookingState]] = _build_transitions()


def is_valid_transition(current: BookingState, target: BookingState) -> bool:
    return target in VALID_TRANSITIONS[current]


@dataclass(frozen=True)
class StateEntry:
    """Recorded history entry for a state visit."""
    state: BookingState
    entered_at: datetime


class BookingStateMachine:
    """
    Deterministic state machine for one booking.

    State only changes through ``transition``. Rejected transitions leave
    both the current state and the history untouched.
    """

    def __init__(self) -> None:
        self._current_state = BookingState.INITIATED
        self._history: list[StateEntry] = [
            StateEntry(state=BookingState.INITIATED, entered_at=utc_now())
        ]

    @property
    def current_state(self) -> BookingState:
        return self._current_state

    @property
    def history(self) -> tuple[StateEntry, ...]:
        return tuple(self._history)

    def transition(self, target: BookingState) -> TransitionResult:
        """
        Move to ``target`` if it is adjacent to the current state.

        Returns:
            A TransitionResult; on failure the error code is INVALID_TRANSITION.
        """
        if not is_valid_transition(self._current_state, target):
            valid = sorted(s.value for s in self.get_valid_targets())
            logger.debug(
                "Rejected transition: %s -> %s", self._current_state.value, target.value
            )
            return TransitionResult(
                success=False,
                new_state=self._current_state,
                rejected_target=target,
                error=BookingError(
                    code=ErrorCode.INVALID_TRANSITION,
                    message=(
                        f"invalid_transition: '{self._current_state.value}' -> "
                        f"'{target.value}'. Valid targets: {valid}"
                    ),
                ),
            )

        old_state = self._current_state
        self._current_state = target
        self._history.append(StateEntry(state=target, entered_at=utc_now()))
        logger.debug("State transition: %s -> %s", old_state.value, target.value)
        return TransitionResult(success=True, new_state=target)

    def get_risk_level(self) -> Optional[RiskLevel]:
        """Static risk for the current state; ``None`` once cancelled."""
        return risk_for_state(self._current_state)

    def get_valid_targets(self) -> frozenset[BookingState]:
        """Return all states reachable from the current state."""
        return VALID_TRANSITIONS[self._current_state]

    def get_history(self) -> list[StateEntry]:
        """Return the full state history."""
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def previous_state(self) -> Optional[BookingState]:
        if len(self._history) < 2:
            return None
        return self._history[-2].state

    def time_in_current_state(self, now: Optional[datetime] = None) -> timedelta:
        return (now or utc_now()) - self._history[-1].entered_at

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES
