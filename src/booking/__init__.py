from src.booking.conversion_hooks import (
    ActionType,
    ConversionHookResult,
    generate_conversion_hooks,
)
from src.booking.drop_off_detector import DropOffDetector, DropOffResult, DropOffType
from src.booking.results import BookingError, ErrorCode, FlowResult, TransitionResult
from src.booking.state_machine import BookingStateMachine, VALID_TRANSITIONS
from src.booking.states import BookingEvent, BookingState, RiskLevel
from src.booking.trust_triggers import (
    TrustInterventionResult,
    TrustPriority,
    TrustSignal,
    evaluate_trust,
)

__all__ = [
    "BookingState",
    "BookingEvent",
    "RiskLevel",
    "BookingStateMachine",
    "VALID_TRANSITIONS",
    "BookingError",
    "ErrorCode",
    "FlowResult",
    "TransitionResult",
    "TrustInterventionResult",
    "TrustPriority",
    "TrustSignal",
    "evaluate_trust",
    "ActionType",
    "ConversionHookResult",
    "generate_conversion_hooks",
    "DropOffDetector",
    "DropOffResult",
    "DropOffType",
]
