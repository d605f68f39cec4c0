"""
Trust-intervention decision table.

``evaluate_trust`` is a pure function of its arguments: the same state,
confidence, hesitation set and view tag always yield an equal result. It
never reads engine state and never records timestamps.

Three independent signals can recommend an intervention:
1. CONFIDENCE_THRESHOLD - latest confidence below the injection threshold
2. STATE_RISK           - the booking sits in a high-risk state
3. VIEW_TAG             - the customer is looking at a sensitive view
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.booking.states import BookingState, RiskLevel, risk_for_state
from src.config import TrustConfig, settings


class TrustSignal(str, Enum):
    CONFIDENCE_THRESHOLD = "confidence_threshold"
    STATE_RISK = "state_risk"
    VIEW_TAG = "view_tag"


class TrustPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InterventionType(str, Enum):
    REASSURANCE = "reassurance"
    TRANSPARENCY = "transparency"
    CONFIDENCE = "confidence"


class TrustInjectionPoint(str, Enum):
    """Places in the booking journey where trust content can be shown."""
    CHECKOUT = "checkout"
    TECHNICIAN_ASSIGNMENT = "technician_assignment"
    PART_UNAVAILABILITY = "part_unavailability"
    PRICE_CONFIRMATION = "price_confirmation"
    SLA_VIEW = "sla_view"
    PRICE_HESITATION = "price_hesitation"
    SLA_AMBIGUITY = "sla_ambiguity"
    TECHNICIAN_UNCERTAINTY = "technician_uncertainty"
    DELAY_FEARS = "delay_fears"
    PAYMENT_UNCERTAINTY = "payment_uncertainty"
    BOOKING_STARTED = "booking_started"
    BOOKING_VALIDATION = "booking_validation"
    CONFIDENCE_DROP = "confidence_drop"
    CONTACT_INITIATION = "contact_initiation"


STATE_TRUST_MAPPINGS: dict[BookingState, tuple[TrustInjectionPoint, ...]] = {
    BookingState.INITIATED: (
        TrustInjectionPoint.BOOKING_STARTED,
        TrustInjectionPoint.BOOKING_VALIDATION,
        TrustInjectionPoint.CONTACT_INITIATION,
    ),
    BookingState.VALIDATING: (
        TrustInjectionPoint.BOOKING_VALIDATION,
        TrustInjectionPoint.SLA_AMBIGUITY,
        TrustInjectionPoint.PAYMENT_UNCERTAINTY,
    ),
    BookingState.TECHNICIAN_MATCH: (
        TrustInjectionPoint.TECHNICIAN_UNCERTAINTY,
        TrustInjectionPoint.TECHNICIAN_ASSIGNMENT,
        TrustInjectionPoint.DELAY_FEARS,
    ),
    BookingState.ASSIGNED: (
        TrustInjectionPoint.TECHNICIAN_ASSIGNMENT,
        TrustInjectionPoint.CONFIDENCE_DROP,
    ),
    BookingState.ACCEPTED: (
        TrustInjectionPoint.CONFIDENCE_DROP,
        TrustInjectionPoint.SLA_VIEW,
    ),
    BookingState.CONFIRMED: (
        TrustInjectionPoint.PRICE_CONFIRMATION,
        TrustInjectionPoint.SLA_VIEW,
        TrustInjectionPoint.CONTACT_INITIATION,
    ),
    BookingState.ESCROW_PENDING: (
        TrustInjectionPoint.PAYMENT_UNCERTAINTY,
        TrustInjectionPoint.CONFIDENCE_DROP,
    ),
    BookingState.COMPLETED: (
        TrustInjectionPoint.CONTACT_INITIATION,
        TrustInjectionPoint.CONFIDENCE_DROP,
    ),
    BookingState.CANCELLED: (
        TrustInjectionPoint.CONFIDENCE_DROP,
        TrustInjectionPoint.CONTACT_INITIATION,
    ),
}

_HESITATION_POINTS: dict[str, TrustInjectionPoint] = {
    "price": TrustInjectionPoint.PRICE_HESITATION,
    "sla": TrustInjectionPoint.SLA_AMBIGUITY,
    "technician": TrustInjectionPoint.TECHNICIAN_UNCERTAINTY,
    "delay": TrustInjectionPoint.DELAY_FEARS,
    "payment": TrustInjectionPoint.PAYMENT_UNCERTAINTY,
    "parts": TrustInjectionPoint.PART_UNAVAILABILITY,
}

_INTERVENTION_TYPES: dict[TrustInjectionPoint, InterventionType] = {
    TrustInjectionPoint.CHECKOUT: InterventionType.REASSURANCE,
    TrustInjectionPoint.TECHNICIAN_ASSIGNMENT: InterventionType.CONFIDENCE,
    TrustInjectionPoint.PART_UNAVAILABILITY: InterventionType.TRANSPARENCY,
    TrustInjectionPoint.PRICE_CONFIRMATION: InterventionType.TRANSPARENCY,
    TrustInjectionPoint.SLA_VIEW: InterventionType.CONFIDENCE,
    TrustInjectionPoint.PRICE_HESITATION: InterventionType.TRANSPARENCY,
    TrustInjectionPoint.SLA_AMBIGUITY: InterventionType.TRANSPARENCY,
    TrustInjectionPoint.TECHNICIAN_UNCERTAINTY: InterventionType.REASSURANCE,
    TrustInjectionPoint.DELAY_FEARS: InterventionType.REASSURANCE,
    TrustInjectionPoint.PAYMENT_UNCERTAINTY: InterventionType.TRANSPARENCY,
    TrustInjectionPoint.BOOKING_STARTED: InterventionType.CONFIDENCE,
    TrustInjectionPoint.BOOKING_VALIDATION: InterventionType.TRANSPARENCY,
    TrustInjectionPoint.CONFIDENCE_DROP: InterventionType.REASSURANCE,
    TrustInjectionPoint.CONTACT_INITIATION: InterventionType.REASSURANCE,
}


@dataclass(frozen=True)
class TrustInterventionResult:
    """A single trust decision, kept on the booking for audit."""
    should_inject: bool
    priority: TrustPriority
    reason: str
    triggered_by: tuple[str, ...] = ()
    signals: tuple[TrustSignal, ...] = ()
    injection_point: Optional[TrustInjectionPoint] = None
    intervention_type: Optional[InterventionType] = None


def get_trust_injection_points(state: BookingState) -> tuple[TrustInjectionPoint, ...]:
    """Injection points relevant to a booking state."""
    return STATE_TRUST_MAPPINGS.get(state, ())


def priority_for_confidence(
    confidence: float, config: Optional[TrustConfig] = None
) -> TrustPriority:
    cfg = config or settings.trust
    if confidence < cfg.high_priority_below:
        return TrustPriority.HIGH
    if confidence < cfg.medium_priority_below:
        return TrustPriority.MEDIUM
    return TrustPriority.LOW


def _view_injection_point(view_tag: str) -> Optional[TrustInjectionPoint]:
    try:
        return TrustInjectionPoint(view_tag.replace("-", "_"))
    except ValueError:
        return None


def _choose_injection_point(
    state: BookingState,
    signals: tuple[TrustSignal, ...],
    hesitation_points: tuple[str, ...],
    view_tag: Optional[str],
) -> Optional[TrustInjectionPoint]:
    if TrustSignal.VIEW_TAG in signals and view_tag:
        point = _view_injection_point(view_tag)
        if point is not None:
            return point
    if TrustSignal.CONFIDENCE_THRESHOLD in signals:
        for tag in hesitation_points:
            if tag in _HESITATION_POINTS:
                return _HESITATION_POINTS[tag]
    state_points = get_trust_injection_points(state)
    return state_points[0] if state_points else None


def evaluate_trust(
    state: BookingState,
    latest_confidence: float,
    hesitation_points: Iterable[str],
    view_tag: Optional[str] = None,
    config: Optional[TrustConfig] = None,
) -> TrustInterventionResult:
    """
    Decide whether trust content should be shown right now.

    Args:
        state: Current booking state.
        latest_confidence: Most recent confidence score (0-100).
        hesitation_points: Cumulative hesitation tags, in detection order.
        view_tag: Optional tag of the view the customer is on.
        config: Threshold overrides; defaults to ``settings.trust``.
    """
    cfg = config or settings.trust
    tags = tuple(hesitation_points)
    signals: list[TrustSignal] = []
    reasons: list[str] = []

    if latest_confidence < cfg.inject_below_confidence:
        signals.append(TrustSignal.CONFIDENCE_THRESHOLD)
        reasons.append(
            f"confidence {latest_confidence:g} below {cfg.inject_below_confidence:g}"
        )
    if risk_for_state(state) == RiskLevel.HIGH:
        signals.append(TrustSignal.STATE_RISK)
        reasons.append(f"state '{state.value}' is high risk")
    if view_tag is not None and view_tag in cfg.sensitive_views:
        signals.append(TrustSignal.VIEW_TAG)
        reasons.append(f"sensitive view '{view_tag}'")

    priority = priority_for_confidence(latest_confidence, cfg)

    if not signals:
        return TrustInterventionResult(
            should_inject=False,
            priority=priority,
            reason="no trust signal fired",
            triggered_by=tags,
        )

    fired = tuple(signals)
    point = _choose_injection_point(state, fired, tags, view_tag)
    return TrustInterventionResult(
        should_inject=True,
        priority=priority,
        reason="; ".join(reasons),
        triggered_by=tags,
        signals=fired,
        injection_point=point,
        intervention_type=_INTERVENTION_TYPES.get(point) if point else None,
    )
