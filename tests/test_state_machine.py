"""Tests for the booking state machine."""

import pytest

from src.booking.results import ErrorCode
from src.booking.state_machine import VALID_TRANSITIONS, BookingStateMachine, is_valid_transition
from src.booking.states import HAPPY_PATH, BookingState, RiskLevel


class TestInitialState:
    def test_starts_in_initiated(self, state_machine):
        assert state_machine.current_state == BookingState.INITIATED

    def test_initial_history_has_one_entry(self, state_machine):
        assert len(state_machine.get_history()) == 1

    def test_initial_risk_is_low(self, state_machine):
        assert state_machine.get_risk_level() == RiskLevel.LOW

    def test_not_terminal_at_start(self, state_machine):
        assert not state_machine.is_terminal()

    def test_no_previous_state(self, state_machine):
        assert state_machine.previous_state() is None


class TestHappyPath:
    def test_walks_every_state_in_order(self, state_machine):
        for target in HAPPY_PATH[1:]:
            result = state_machine.transition(target)
            assert result.success
            assert result.new_state == target
        assert state_machine.current_state == BookingState.COMPLETED

    def test_state_trace_records_every_visit(self, state_machine):
        for target in HAPPY_PATH[1:4]:
            state_machine.transition(target)
        assert state_machine.get_state_trace() == [
            "initiated", "validating", "technician-match", "assigned",
        ]

    def test_previous_state_after_transition(self, state_machine):
        state_machine.transition(BookingState.VALIDATING)
        assert state_machine.previous_state() == BookingState.INITIATED

    def test_completed_is_terminal(self, state_machine):
        for target in HAPPY_PATH[1:]:
            state_machine.transition(target)
        assert state_machine.is_terminal()


class TestInvalidTransitions:
    def test_cannot_skip_a_state(self, state_machine):
        result = state_machine.transition(BookingState.TECHNICIAN_MATCH)
        assert not result.success
        assert result.new_state == BookingState.INITIATED
        assert result.rejected_target == BookingState.TECHNICIAN_MATCH
        assert result.error.code == ErrorCode.INVALID_TRANSITION
        assert result.error.message.startswith("invalid_transition")

    def test_cannot_go_backwards(self, state_machine):
        state_machine.transition(BookingState.VALIDATING)
        result = state_machine.transition(BookingState.INITIATED)
        assert not result.success
        assert state_machine.current_state == BookingState.VALIDATING

    def test_self_transition_rejected(self, state_machine):
        result = state_machine.transition(BookingState.INITIATED)
        assert not result.success

    def test_rejection_leaves_history_untouched(self, state_machine):
        state_machine.transition(BookingState.CONFIRMED)
        assert len(state_machine.get_history()) == 1

    def test_nothing_leaves_completed(self, state_machine):
        for target in HAPPY_PATH[1:]:
            state_machine.transition(target)
        for target in BookingState:
            assert not state_machine.transition(target).success

    def test_nothing_leaves_cancelled(self, state_machine):
        state_machine.transition(BookingState.CANCELLED)
        for target in BookingState:
            assert not state_machine.transition(target).success
        assert state_machine.current_state == BookingState.CANCELLED


class TestCancellation:
    @pytest.mark.parametrize("state", HAPPY_PATH[:-1])
    def test_every_non_terminal_state_can_cancel(self, state):
        assert is_valid_transition(state, BookingState.CANCELLED)

    def test_cancelled_has_no_risk_level(self, state_machine):
        state_machine.transition(BookingState.CANCELLED)
        assert state_machine.get_risk_level() is None

    def test_cancel_mid_flow(self, state_machine):
        state_machine.transition(BookingState.VALIDATING)
        state_machine.transition(BookingState.TECHNICIAN_MATCH)
        result = state_machine.transition(BookingState.CANCELLED)
        assert result.success
        assert state_machine.is_terminal()


class TestTransitionTable:
    def test_every_state_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(BookingState)

    def test_non_terminal_states_have_two_targets(self):
        for state in HAPPY_PATH[:-1]:
            assert len(VALID_TRANSITIONS[state]) == 2

    def test_terminal_states_have_no_targets(self):
        assert VALID_TRANSITIONS[BookingState.COMPLETED] == frozenset()
        assert VALID_TRANSITIONS[BookingState.CANCELLED] == frozenset()

    def test_valid_targets_from_initiated(self, state_machine):
        assert state_machine.get_valid_targets() == frozenset(
            {BookingState.VALIDATING, BookingState.CANCELLED}
        )


class TestRiskLevels:
    @pytest.mark.parametrize(
        "target, expected",
        [
            (BookingState.VALIDATING, RiskLevel.LOW),
            (BookingState.TECHNICIAN_MATCH, RiskLevel.HIGH),
            (BookingState.ASSIGNED, RiskLevel.MEDIUM),
            (BookingState.ACCEPTED, RiskLevel.MEDIUM),
            (BookingState.CONFIRMED, RiskLevel.LOW),
            (BookingState.ESCROW_PENDING, RiskLevel.LOW),
            (BookingState.COMPLETED, RiskLevel.LOW),
        ],
    )
    def test_risk_follows_state(self, target, expected):
        sm = BookingStateMachine()
        for state in HAPPY_PATH[1:]:
            sm.transition(state)
            if state == target:
                break
        assert sm.get_risk_level() == expected


class TestHistory:
    def test_history_is_read_only_copy(self, state_machine):
        history = state_machine.get_history()
        history.clear()
        assert len(state_machine.get_history()) == 1

    def test_history_property_is_tuple(self, state_machine):
        assert isinstance(state_machine.history, tuple)

    def test_time_in_current_state_is_non_negative(self, state_machine):
        assert state_machine.time_in_current_state().total_seconds() >= 0
