"""
Booking flow orchestrator.

The BookingFlowEngine is the only entry point used by the surrounding
application. It owns one BookingContext per booking, drives the state
machine, runs the trust and conversion decision functions against the
context, feeds page visits to the drop-off detector and records telemetry.

Every mutating operation validates its input and looks up its context
before touching anything, so a failed call leaves all contexts unchanged.

Usage:
    engine = BookingFlowEngine()
    engine.initialize_booking_flow("BK-1", "CUST-1", "SESS-1", "mobile", "apple")
    result = engine.update_customer_confidence("BK-1", 35, ["price"], [])
    if result.trust_intervention.should_inject:
        ...
"""

from collections.abc import Callable, Iterable
from typing import Any, Optional, Union

from pydantic import ValidationError

from src.booking.context import (
    BookingContext,
    BookingContextStore,
    ConfidenceSample,
    InMemoryContextStore,
)
from src.booking.conversion_hooks import generate_conversion_hooks
from src.booking.drop_off_detector import DropOffDetector, DropOffResult
from src.booking.results import ErrorCode, FlowResult, failure
from src.booking.state_machine import BookingStateMachine
from src.booking.states import BookingEvent, BookingState, RiskLevel, is_terminal
from src.booking.telemetry import Listener, TelemetryEmitter, create_event
from src.booking.trust_triggers import TrustInterventionResult, evaluate_trust
from src.config import AppConfig, settings
from src.logging_context import get_booking_logger, set_booking_id
from src.schemas.telemetry_schema import (
    ConfidenceUpdate,
    EventSource,
    PageView,
    TelemetryEvent,
)
from src.utils import utc_now

logger = get_booking_logger(__name__)


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err["loc"]) or "input"
        parts.append(f"{location}: {err['msg']}")
    return "; ".join(parts)


def _tag_input(values: Iterable[str]) -> Union[list[str], str, bytes]:
    # A bare string is passed through whole so the schema can reject it.
    if isinstance(values, (str, bytes)):
        return values
    return list(values)


class BookingFlowEngine:
    """Orchestrates state, trust, conversion and drop-off for every booking."""

    def __init__(
        self,
        store: Optional[BookingContextStore] = None,
        drop_off_detector: Optional[DropOffDetector] = None,
        emitter: Optional[TelemetryEmitter] = None,
        config: Optional[AppConfig] = None,
    ) -> None:
        self.config = config or settings
        self._store = store if store is not None else InMemoryContextStore()
        self._detector = drop_off_detector or DropOffDetector(self.config.drop_off)
        self._emitter = emitter or TelemetryEmitter()
        # Several bookings may share one navigation session.
        self._session_bookings: dict[str, set[str]] = {}

    @property
    def drop_off_detector(self) -> DropOffDetector:
        return self._detector

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Forward every recorded telemetry event to ``listener``."""
        return self._emitter.subscribe(listener)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _record(
        self,
        context: BookingContext,
        event_type: BookingEvent,
        payload: Optional[dict[str, Any]] = None,
        source: EventSource = EventSource.SYSTEM,
    ) -> TelemetryEvent:
        event = create_event(
            event_type,
            {
                "booking_id": context.booking_id,
                "customer_id": context.customer_id,
                "session_id": context.session_id,
                **(payload or {}),
            },
            source,
        )
        context.telemetry_events.append(event)
        self._emitter.emit(event)
        return event

    def _lookup(self, booking_id: str) -> Optional[BookingContext]:
        set_booking_id(booking_id)
        return self._store.get(booking_id)

    @staticmethod
    def _not_found(booking_id: str) -> FlowResult:
        return failure(ErrorCode.NOT_FOUND, f"Booking context not found for ID: {booking_id}")

    def _attach_session(self, context: BookingContext) -> None:
        owners = self._session_bookings.setdefault(context.session_id, set())
        if not owners or self._detector.get_session(context.session_id) is None:
            self._detector.start_session(
                context.session_id, context.state_machine.current_state
            )
        owners.add(context.booking_id)

    def _release_session(self, context: BookingContext) -> None:
        """Detach a replaced context; drop its session once no booking uses it."""
        owners = self._session_bookings.get(context.session_id, set())
        owners.discard(context.booking_id)
        if not owners:
            self._session_bookings.pop(context.session_id, None)
            self._detector.remove_session(context.session_id)

    def _siblings_active(self, context: BookingContext) -> bool:
        for other_id in self._session_bookings.get(context.session_id, ()):
            if other_id == context.booking_id:
                continue
            other = self._store.get(other_id)
            if other is not None and not other.state_machine.is_terminal():
                return True
        return False

    def _record_trust(
        self, context: BookingContext, decision: TrustInterventionResult, view_tag: Optional[str]
    ) -> None:
        context.trust_history.append(decision)
        if decision.should_inject:
            self._record(
                context,
                BookingEvent.TRUST_INJECTION,
                {
                    "priority": decision.priority.value,
                    "reason": decision.reason,
                    "signals": [s.value for s in decision.signals],
                    "injection_point": (
                        decision.injection_point.value if decision.injection_point else None
                    ),
                    "view_tag": view_tag,
                },
            )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def initialize_booking_flow(
        self,
        booking_id: str,
        customer_id: str,
        session_id: str,
        device_category: Optional[str] = None,
        device_brand: Optional[str] = None,
    ) -> FlowResult:
        """Create a fresh context in INITIATED and start its drop-off session."""
        set_booking_id(booking_id)
        for name, value in [
            ("booking_id", booking_id),
            ("customer_id", customer_id),
            ("session_id", session_id),
        ]:
            if not isinstance(value, str) or not value.strip():
                return failure(ErrorCode.INVALID_INPUT, f"{name} must be a non-empty string.")

        previous = self._store.get(booking_id)
        if previous is not None:
            if self.config.engine.reinit_policy == "reject":
                return failure(
                    ErrorCode.ALREADY_EXISTS,
                    f"Booking context already exists for ID: {booking_id}",
                )
            logger.warning("Overwriting existing context for booking %s", booking_id)

        context = BookingContext(
            booking_id=booking_id,
            customer_id=customer_id,
            session_id=session_id,
            device_category=device_category,
            device_brand=device_brand,
            state_machine=BookingStateMachine(),
        )
        if previous is not None:
            self._release_session(previous)
        self._store.put(context)
        self._attach_session(context)
        self._record(
            context,
            BookingEvent.BOOKING_STARTED,
            {"device_category": device_category, "device_brand": device_brand},
            EventSource.CUSTOMER,
        )
        logger.info("Booking flow initialized for customer %s", customer_id)
        return FlowResult(success=True, new_state=context.state_machine.current_state)

    def transition_booking_state(
        self,
        booking_id: str,
        target: Union[BookingState, str],
        reason: Optional[str] = None,
    ) -> FlowResult:
        """Move the booking to ``target`` if the state machine allows it."""
        context = self._lookup(booking_id)
        if context is None:
            return self._not_found(booking_id)

        try:
            target_state = BookingState(target)
        except ValueError:
            return failure(
                ErrorCode.INVALID_INPUT,
                f"Unknown booking state: {target!r}",
                new_state=context.state_machine.current_state,
            )

        from_state = context.state_machine.current_state
        result = context.state_machine.transition(target_state)
        if not result.success:
            logger.info("Rejected transition %s -> %s", from_state.value, target_state.value)
            return FlowResult(success=False, new_state=result.new_state, error=result.error)

        self._record(
            context,
            BookingEvent.STATE_CHANGED,
            {"from_state": from_state.value, "to_state": target_state.value, "reason": reason},
        )
        if target_state == BookingState.COMPLETED:
            self._record(
                context,
                BookingEvent.BOOKING_COMPLETED,
                {
                    "final_confidence": context.latest_confidence(),
                    "total_trust_decisions": len(context.trust_history),
                },
            )
        elif target_state == BookingState.CANCELLED:
            self._record(
                context,
                BookingEvent.BOOKING_CANCELLED,
                {"reason": reason, "final_confidence": context.latest_confidence()},
            )
        if is_terminal(target_state) and self._siblings_active(context):
            logger.debug("Session %s still used by another booking", context.session_id)
        else:
            self._detector.record_state_change(context.session_id, target_state)
        logger.info("Booking moved %s -> %s", from_state.value, target_state.value)
        return FlowResult(success=True, new_state=target_state)

    def complete_booking_flow(self, booking_id: str) -> FlowResult:
        """Drive the booking to COMPLETED; repeated calls are no-ops."""
        context = self._lookup(booking_id)
        if context is None:
            return self._not_found(booking_id)

        if context.state_machine.current_state != BookingState.COMPLETED:
            result = self.transition_booking_state(booking_id, BookingState.COMPLETED)
            if not result.success:
                return result

        if not self._siblings_active(context):
            self._detector.mark_session_complete(context.session_id)
        return FlowResult(success=True, new_state=BookingState.COMPLETED)

    def cancel_booking_flow(self, booking_id: str, reason: Optional[str] = None) -> FlowResult:
        """Cancel a booking that has not reached a terminal state."""
        return self.transition_booking_state(booking_id, BookingState.CANCELLED, reason)

    # ------------------------------------------------------------------ #
    # Signals
    # ------------------------------------------------------------------ #

    def update_customer_confidence(
        self,
        booking_id: str,
        score: float,
        hesitation_points: Iterable[str] = (),
        risk_factors: Iterable[str] = (),
    ) -> FlowResult:
        """
        Record a confidence score and re-run the trust and conversion decisions.

        Hesitation points and risk factors are merged into the cumulative sets
        before either decision runs, so both see the full history.
        """
        context = self._lookup(booking_id)
        if context is None:
            return self._not_found(booking_id)

        try:
            update = ConfidenceUpdate(
                score=score,
                hesitation_points=_tag_input(hesitation_points),
                risk_factors=_tag_input(risk_factors),
            )
        except (ValidationError, TypeError) as exc:
            message = (
                _validation_message(exc) if isinstance(exc, ValidationError) else str(exc)
            )
            return failure(
                ErrorCode.INVALID_INPUT,
                f"Invalid confidence update: {message}",
                new_state=context.state_machine.current_state,
            )

        state = context.state_machine.current_state
        previous = context.latest_confidence()
        context.confidence_history.append(
            ConfidenceSample(score=update.score, timestamp=utc_now())
        )
        new_hesitations = context.detected_hesitation_points.update(update.hesitation_points)
        context.risk_factors.update(update.risk_factors)
        for risk in update.risk_factors:
            self._detector.record_risk_factor(context.session_id, risk)

        self._record(
            context,
            BookingEvent.CONFIDENCE_UPDATED,
            {"score": update.score, "previous_score": previous},
            EventSource.CUSTOMER,
        )
        if new_hesitations:
            self._record(
                context, BookingEvent.HESITATION_DETECTED, {"hesitation_points": new_hesitations}
            )
        if previous is not None and previous - update.score >= self.config.engine.confidence_drop_alert:
            self._record(
                context,
                BookingEvent.CONFIDENCE_DROP,
                {"from_score": previous, "to_score": update.score},
            )

        hesitations = list(context.detected_hesitation_points)
        decision = evaluate_trust(state, update.score, hesitations, config=self.config.trust)
        self._record_trust(context, decision, None)

        hooks = generate_conversion_hooks(
            hesitations,
            update.score,
            state,
            repeated_visits=self._detector.count_repeated_exit_visits(context.session_id),
            config=self.config.conversion,
        )
        for hook in hooks:
            self._record(
                context,
                BookingEvent.CONVERSION_HOOK_TRIGGERED,
                {
                    "hook_id": hook.hook_id,
                    "action_type": hook.action_type.value,
                    "target_hesitation": hook.target_hesitation,
                },
            )

        logger.debug(
            "Confidence %s recorded (inject=%s, hooks=%d)",
            update.score, decision.should_inject, len(hooks),
        )
        return FlowResult(
            success=True,
            new_state=state,
            trust_intervention=decision,
            conversion_hooks=hooks,
        )

    def record_page_view(self, booking_id: str, path: str, view_tag: str = "") -> FlowResult:
        """Record a page view, re-run the trust decision and check for drop-off."""
        context = self._lookup(booking_id)
        if context is None:
            return self._not_found(booking_id)

        try:
            view = PageView(path=path, view_tag=view_tag)
        except ValidationError as exc:
            return failure(
                ErrorCode.INVALID_INPUT,
                f"Invalid page view: {_validation_message(exc)}",
                new_state=context.state_machine.current_state,
            )

        state = context.state_machine.current_state
        latest = context.latest_confidence()
        confidence = latest if latest is not None else self.config.engine.baseline_confidence

        self._record(
            context,
            BookingEvent.PAGE_VIEWED,
            {"path": view.path, "view_tag": view.view_tag, "state": state.value},
            EventSource.CUSTOMER,
        )

        if self._detector.get_session(context.session_id) is None:
            logger.warning("Drop-off session %s missing; restarting it", context.session_id)
            self._detector.start_session(context.session_id, state)
        self._detector.record_page_visit(context.session_id, view.path, state, confidence)

        tag = view.view_tag or None
        decision = evaluate_trust(
            state,
            confidence,
            list(context.detected_hesitation_points),
            view_tag=tag,
            config=self.config.trust,
        )
        self._record_trust(context, decision, tag)

        drop_off = self._detector.check_drop_off(context.session_id)
        if drop_off.is_drop_off_detected:
            self._record(
                context,
                BookingEvent.DROP_OFF_DETECTED,
                {
                    "type": drop_off.type.value,
                    "risk_level": drop_off.risk_level.value,
                    "details": drop_off.details,
                },
            )
        return FlowResult(
            success=True,
            new_state=state,
            trust_intervention=decision,
            drop_off=drop_off,
        )

    # ------------------------------------------------------------------ #
    # Read-only accessors
    # ------------------------------------------------------------------ #

    def get_booking_context(self, booking_id: str) -> Optional[BookingContext]:
        return self._store.get(booking_id)

    def get_booking_risk_level(self, booking_id: str) -> Optional[RiskLevel]:
        context = self._store.get(booking_id)
        return context.state_machine.get_risk_level() if context else None

    def get_booking_telemetry_events(self, booking_id: str) -> tuple[TelemetryEvent, ...]:
        context = self._store.get(booking_id)
        return tuple(context.telemetry_events) if context else ()

    def get_booking_trust_history(self, booking_id: str) -> tuple[TrustInterventionResult, ...]:
        context = self._store.get(booking_id)
        return tuple(context.trust_history) if context else ()

    def check_booking_drop_off(self, booking_id: str) -> Optional[DropOffResult]:
        """Run the session drop-off check for a booking's session."""
        context = self._store.get(booking_id)
        if context is None:
            return None
        return self._detector.check_drop_off(context.session_id)

    def get_session_stats(self) -> dict[str, Any]:
        return self._detector.get_detection_stats()
