"""
Session-level drop-off detection from raw navigation telemetry.

Tracks page visits per session, independent of the booking state machine,
and classifies abandonment patterns, first match wins:

1. ABANDONED          - no activity for longer than the abandon timeout (high)
2. BOUNCE_ATTEMPT     - the last N visits hit the same exit-risk page (medium)
3. CONFIDENCE_DECLINE - confidence fell on each of the last N visits (high)
4. HESITATED          - too long in a hesitation-prone state (high)

Each rule has the same shape: measure visits or elapsed time ->
classification -> risk level. The detector never sees a BookingContext; the
engine correlates sessions back to bookings.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from src.booking.results import BookingError, ErrorCode, OperationResult
from src.booking.states import BookingState, RiskLevel, is_terminal
from src.config import DropOffConfig, settings
from src.utils import utc_now

logger = logging.getLogger(__name__)

HESITATION_PRONE_STATES: frozenset[BookingState] = frozenset(
    {BookingState.VALIDATING, BookingState.TECHNICIAN_MATCH, BookingState.ASSIGNED}
)


class DropOffType(str, Enum):
    ABANDONED = "abandoned"
    BOUNCE_ATTEMPT = "bounce_attempt"
    CONFIDENCE_DECLINE = "confidence_decline"
    HESITATED = "hesitated"


@dataclass(frozen=True)
class PageVisit:
    """One recorded page visit."""
    path: str
    state: BookingState
    confidence_at_visit: float
    timestamp: datetime


@dataclass
class SessionRecord:
    """Visit log and status for one session."""
    session_id: str
    current_state: BookingState
    visits: deque[PageVisit]
    started_at: datetime
    state_entered_at: datetime
    is_complete: bool = False
    risk_factors: list[str] = field(default_factory=list)

    def last_activity(self) -> datetime:
        return self.visits[-1].timestamp if self.visits else self.started_at

    def enter_state(self, state: BookingState, at: datetime) -> None:
        if state != self.current_state:
            self.current_state = state
            self.state_entered_at = at


@dataclass(frozen=True)
class DropOffEvent:
    """A detection recorded for later analysis."""
    type: DropOffType
    session_id: str
    state: BookingState
    details: str
    timestamp: datetime


@dataclass(frozen=True)
class DropOffResult:
    """Outcome of a drop-off check."""
    is_drop_off_detected: bool
    type: Optional[DropOffType] = None
    risk_level: Optional[RiskLevel] = None
    details: str = ""
    error: Optional[BookingError] = None


class DropOffDetector:
    """Detects abandonment, bounce and hesitation patterns in session page visits."""

    def __init__(self, config: Optional[DropOffConfig] = None) -> None:
        self.config = config or settings.drop_off
        self._sessions: dict[str, SessionRecord] = {}
        self._events: list[DropOffEvent] = []

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #

    def start_session(self, session_id: str, initial_state: BookingState) -> None:
        """Create an empty visit log for the session, replacing any previous one."""
        now = utc_now()
        self._sessions[session_id] = SessionRecord(
            session_id=session_id,
            current_state=initial_state,
            visits=deque(maxlen=self.config.lookback_window),
            started_at=now,
            state_entered_at=now,
        )
        logger.debug("Drop-off session started: %s", session_id)

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        return self._sessions.get(session_id)

    def remove_session(self, session_id: str) -> bool:
        """Forget a session and its visit log. Detection events are kept."""
        return self._sessions.pop(session_id, None) is not None

    def record_page_visit(
        self, session_id: str, path: str, state: BookingState, confidence: float
    ) -> OperationResult:
        """Append a visit; the oldest visits fall out of the lookback window."""
        session = self._sessions.get(session_id)
        if session is None:
            logger.warning("Session %s not found for page visit tracking", session_id)
            return OperationResult(
                success=False,
                error=BookingError(ErrorCode.NOT_FOUND, f"Session {session_id} not found."),
            )
        if not 0 <= confidence <= 100:
            return OperationResult(
                success=False,
                error=BookingError(
                    ErrorCode.INVALID_INPUT,
                    f"Confidence must be between 0 and 100, got {confidence}.",
                ),
            )

        now = utc_now()
        session.visits.append(
            PageVisit(path=path, state=state, confidence_at_visit=confidence, timestamp=now)
        )
        session.enter_state(state, now)
        return OperationResult(success=True)

    def record_state_change(self, session_id: str, state: BookingState) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.enter_state(state, utc_now())
        if is_terminal(state):
            session.is_complete = True
        return True

    def record_risk_factor(self, session_id: str, risk_factor: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        if risk_factor not in session.risk_factors:
            session.risk_factors.append(risk_factor)
        return True

    def mark_session_complete(self, session_id: str) -> bool:
        """Mark a session as finished; finished sessions never report drop-off."""
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.is_complete = True
        return True

    def cleanup_sessions(self, max_age: timedelta, now: Optional[datetime] = None) -> int:
        """Remove sessions with no activity for longer than ``max_age``."""
        cutoff = (now or utc_now()) - max_age
        stale = [sid for sid, s in self._sessions.items() if s.last_activity() < cutoff]
        for sid in stale:
            del self._sessions[sid]
        if stale:
            logger.info("Cleaned up %d stale session(s)", len(stale))
        return len(stale)

    # ------------------------------------------------------------------ #
    # Detection
    # ------------------------------------------------------------------ #

    def _is_exit_risk(self, path: str) -> bool:
        lower = path.lower()
        return any(marker in lower for marker in self.config.exit_risk_paths)

    def count_repeated_exit_visits(self, session_id: str) -> int:
        """Length of the trailing run of visits to one exit-risk path."""
        session = self._sessions.get(session_id)
        if session is None or not session.visits:
            return 0
        last_path = session.visits[-1].path
        if not self._is_exit_risk(last_path):
            return 0
        count = 0
        for visit in reversed(session.visits):
            if visit.path != last_path:
                break
            count += 1
        return count

    def _check_abandoned(self, session: SessionRecord, now: datetime) -> Optional[DropOffResult]:
        idle = (now - session.last_activity()).total_seconds()
        if idle <= self.config.abandoned_timeout_seconds:
            return None
        return DropOffResult(
            is_drop_off_detected=True,
            type=DropOffType.ABANDONED,
            risk_level=RiskLevel.HIGH,
            details=f"No activity for {idle:.0f}s",
        )

    def _check_bounce(self, session: SessionRecord, now: datetime) -> Optional[DropOffResult]:
        needed = self.config.bounce_visit_count
        repeated = self.count_repeated_exit_visits(session.session_id)
        if repeated < needed:
            return None
        path = session.visits[-1].path
        return DropOffResult(
            is_drop_off_detected=True,
            type=DropOffType.BOUNCE_ATTEMPT,
            risk_level=RiskLevel.MEDIUM,
            details=f"Last {repeated} visits were to exit-risk page '{path}'",
        )

    def _check_confidence_decline(
        self, session: SessionRecord, now: datetime
    ) -> Optional[DropOffResult]:
        needed = self.config.decline_visit_count
        if len(session.visits) < needed:
            return None
        recent = [v.confidence_at_visit for v in list(session.visits)[-needed:]]
        if not all(later < earlier for earlier, later in zip(recent, recent[1:])):
            return None
        total_drop = recent[0] - recent[-1]
        if total_drop < self.config.decline_min_drop:
            return None
        return DropOffResult(
            is_drop_off_detected=True,
            type=DropOffType.CONFIDENCE_DECLINE,
            risk_level=RiskLevel.HIGH,
            details=(
                f"Confidence fell across the last {needed} visits "
                f"from {recent[0]:g} to {recent[-1]:g}"
            ),
        )

    def _check_hesitation(self, session: SessionRecord, now: datetime) -> Optional[DropOffResult]:
        if session.current_state not in HESITATION_PRONE_STATES:
            return None
        in_state = (now - session.state_entered_at).total_seconds()
        if in_state <= self.config.hesitation_timeout_seconds:
            return None
        return DropOffResult(
            is_drop_off_detected=True,
            type=DropOffType.HESITATED,
            risk_level=RiskLevel.HIGH,
            details=f"Spent {in_state:.0f}s in {session.current_state.value} state",
        )

    def check_drop_off(self, session_id: str, now: Optional[datetime] = None) -> DropOffResult:
        """Classify the session's recent activity; first matching rule wins."""
        session = self._sessions.get(session_id)
        if session is None:
            return DropOffResult(
                is_drop_off_detected=False,
                details="Session not found",
                error=BookingError(ErrorCode.NOT_FOUND, f"Session {session_id} not found."),
            )
        if session.is_complete or is_terminal(session.current_state):
            return DropOffResult(is_drop_off_detected=False, details="Session finished")

        now = now or utc_now()
        rules = (
            self._check_abandoned,
            self._check_bounce,
            self._check_confidence_decline,
            self._check_hesitation,
        )
        for rule in rules:
            result = rule(session, now)
            if result is not None:
                self._events.append(
                    DropOffEvent(
                        type=result.type,
                        session_id=session_id,
                        state=session.current_state,
                        details=result.details,
                        timestamp=now,
                    )
                )
                logger.info(
                    "Drop-off detected: %s in session %s", result.type.value, session_id
                )
                return result

        return DropOffResult(is_drop_off_detected=False, details="No drop-off detected")

    # ------------------------------------------------------------------ #
    # Reporting
    # ------------------------------------------------------------------ #

    def get_session_events(self, session_id: str) -> list[DropOffEvent]:
        return [e for e in self._events if e.session_id == session_id]

    def get_detection_stats(self) -> dict[str, Any]:
        """Summary statistics across all tracked sessions."""
        sessions = list(self._sessions.values())
        completed = sum(1 for s in sessions if s.is_complete)
        flagged = {e.session_id for e in self._events}
        counts = {kind: 0 for kind in DropOffType}
        for event in self._events:
            counts[event.type] += 1
        return {
            "total_sessions": len(sessions),
            "completed_sessions": completed,
            "sessions_flagged": len(flagged),
            "abandonments": counts[DropOffType.ABANDONED],
            "bounce_attempts": counts[DropOffType.BOUNCE_ATTEMPT],
            "confidence_declines": counts[DropOffType.CONFIDENCE_DECLINE],
            "hesitations": counts[DropOffType.HESITATED],
            "completion_rate": completed / len(sessions) if sessions else 0.0,
        }
