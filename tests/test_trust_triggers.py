"""Tests for the trust-intervention decision table."""

from dataclasses import replace

import pytest

from src.booking.states import BookingState
from src.booking.trust_triggers import (
    InterventionType,
    TrustInjectionPoint,
    TrustPriority,
    TrustSignal,
    evaluate_trust,
    get_trust_injection_points,
    priority_for_confidence,
)
from src.config import settings


class TestConfidenceSignal:
    def test_low_confidence_injects_high_priority(self):
        result = evaluate_trust(BookingState.VALIDATING, 35, ["price"])
        assert result.should_inject
        assert result.priority == TrustPriority.HIGH
        assert result.signals == (TrustSignal.CONFIDENCE_THRESHOLD,)

    def test_hesitation_selects_injection_point(self):
        result = evaluate_trust(BookingState.VALIDATING, 35, ["price"])
        assert result.injection_point == TrustInjectionPoint.PRICE_HESITATION
        assert result.intervention_type == InterventionType.TRANSPARENCY

    def test_first_known_hesitation_wins(self):
        result = evaluate_trust(BookingState.VALIDATING, 30, ["weather", "delay", "price"])
        assert result.injection_point == TrustInjectionPoint.DELAY_FEARS

    def test_threshold_is_exclusive(self):
        assert not evaluate_trust(BookingState.INITIATED, 50, []).should_inject
        assert evaluate_trust(BookingState.INITIATED, 49.9, []).should_inject

    def test_triggered_by_carries_hesitation_tags(self):
        result = evaluate_trust(BookingState.VALIDATING, 20, ["price", "sla"])
        assert result.triggered_by == ("price", "sla")

    def test_reason_mentions_confidence(self):
        result = evaluate_trust(BookingState.VALIDATING, 35, [])
        assert "confidence 35" in result.reason


class TestStateRiskSignal:
    def test_high_risk_state_injects_even_when_confident(self):
        result = evaluate_trust(BookingState.TECHNICIAN_MATCH, 90, [])
        assert result.should_inject
        assert result.signals == (TrustSignal.STATE_RISK,)
        assert result.priority == TrustPriority.LOW

    def test_state_point_used_without_hesitation(self):
        result = evaluate_trust(BookingState.TECHNICIAN_MATCH, 90, [])
        assert result.injection_point == TrustInjectionPoint.TECHNICIAN_UNCERTAINTY

    def test_medium_risk_state_alone_does_not_inject(self):
        assert not evaluate_trust(BookingState.ASSIGNED, 90, []).should_inject

    def test_cancelled_state_alone_does_not_inject(self):
        assert not evaluate_trust(BookingState.CANCELLED, 90, []).should_inject


class TestViewTagSignal:
    def test_sensitive_view_injects(self):
        result = evaluate_trust(BookingState.INITIATED, 80, [], view_tag="checkout")
        assert result.should_inject
        assert result.signals == (TrustSignal.VIEW_TAG,)
        assert result.injection_point == TrustInjectionPoint.CHECKOUT
        assert result.intervention_type == InterventionType.REASSURANCE

    def test_hyphenated_view_maps_to_injection_point(self):
        result = evaluate_trust(
            BookingState.INITIATED, 80, [], view_tag="technician-assignment"
        )
        assert result.injection_point == TrustInjectionPoint.TECHNICIAN_ASSIGNMENT

    def test_ordinary_view_does_not_inject(self):
        assert not evaluate_trust(BookingState.INITIATED, 80, [], view_tag="home").should_inject

    def test_all_signals_can_fire_together(self):
        result = evaluate_trust(
            BookingState.TECHNICIAN_MATCH, 20, ["price"], view_tag="checkout"
        )
        assert result.signals == (
            TrustSignal.CONFIDENCE_THRESHOLD,
            TrustSignal.STATE_RISK,
            TrustSignal.VIEW_TAG,
        )
        assert result.injection_point == TrustInjectionPoint.CHECKOUT


class TestNoSignal:
    def test_confident_customer_in_safe_state(self):
        result = evaluate_trust(BookingState.INITIATED, 80, [])
        assert not result.should_inject
        assert result.reason == "no trust signal fired"
        assert result.injection_point is None
        assert result.signals == ()

    def test_priority_still_reported(self):
        result = evaluate_trust(BookingState.INITIATED, 55, [])
        assert not result.should_inject
        assert result.priority == TrustPriority.MEDIUM


class TestPurity:
    def test_same_inputs_give_equal_results(self):
        first = evaluate_trust(BookingState.ACCEPTED, 42, ["sla"], view_tag="sla-view")
        second = evaluate_trust(BookingState.ACCEPTED, 42, ["sla"], view_tag="sla-view")
        assert first == second

    def test_input_list_not_mutated(self):
        tags = ["price"]
        evaluate_trust(BookingState.VALIDATING, 30, tags)
        assert tags == ["price"]


class TestPriority:
    @pytest.mark.parametrize(
        "confidence, expected",
        [
            (0, TrustPriority.HIGH),
            (39.9, TrustPriority.HIGH),
            (40, TrustPriority.MEDIUM),
            (59, TrustPriority.MEDIUM),
            (60, TrustPriority.LOW),
            (100, TrustPriority.LOW),
        ],
    )
    def test_priority_bands(self, confidence, expected):
        assert priority_for_confidence(confidence) == expected

    def test_custom_thresholds(self):
        cfg = replace(settings.trust, inject_below_confidence=70)
        assert evaluate_trust(BookingState.INITIATED, 65, [], config=cfg).should_inject


class TestInjectionPoints:
    def test_every_state_has_points(self):
        for state in BookingState:
            assert get_trust_injection_points(state)

    def test_validating_points(self):
        assert TrustInjectionPoint.BOOKING_VALIDATION in get_trust_injection_points(
            BookingState.VALIDATING
        )
