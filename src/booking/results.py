"""Result and error types shared by every mutating operation.

Operations never raise for unknown ids, bad transitions or bad input; they
return one of these objects with ``success=False`` and a ``BookingError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from src.booking.states import BookingState

if TYPE_CHECKING:
    from src.booking.conversion_hooks import ConversionHookResult
    from src.booking.drop_off_detector import DropOffResult
    from src.booking.trust_triggers import TrustInterventionResult


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INVALID_INPUT = "INVALID_INPUT"
    ALREADY_EXISTS = "ALREADY_EXISTS"


@dataclass(frozen=True)
class BookingError:
    """Why an operation failed."""
    code: ErrorCode
    message: str


@dataclass(frozen=True)
class OperationResult:
    """Outcome of an operation with no payload."""
    success: bool
    error: Optional[BookingError] = None


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a single state machine transition.

    On failure ``new_state`` is the unchanged current state and
    ``rejected_target`` names the state that was refused.
    """
    success: bool
    new_state: BookingState
    rejected_target: Optional[BookingState] = None
    error: Optional[BookingError] = None


@dataclass(frozen=True)
class FlowResult:
    """Outcome of a BookingFlowEngine operation."""
    success: bool
    new_state: Optional[BookingState] = None
    error: Optional[BookingError] = None
    trust_intervention: Optional[TrustInterventionResult] = None
    conversion_hooks: Optional[list[ConversionHookResult]] = field(default=None)
    drop_off: Optional[DropOffResult] = None


def failure(code: ErrorCode, message: str, **kwargs) -> FlowResult:
    """Build a failed FlowResult."""
    return FlowResult(success=False, error=BookingError(code=code, message=message), **kwargs)
