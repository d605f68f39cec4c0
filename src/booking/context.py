"""
Booking aggregate and the store that indexes it.

The engine owns every BookingContext. Contexts live in a
``BookingContextStore``; the in-memory backend is the default and has no
eviction. A durable backend only needs ``get``/``put``/``delete``.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, Optional, Protocol, TypeVar

from src.booking.state_machine import BookingStateMachine
from src.booking.trust_triggers import TrustInterventionResult
from src.schemas.telemetry_schema import TelemetryEvent

T = TypeVar("T")


class MonotonicSet(Generic[T]):
    """Insertion-ordered set that can only grow."""

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._items: dict[T, None] = dict.fromkeys(items)

    def add(self, item: T) -> bool:
        """Add ``item``; return True if it was not already present."""
        if item in self._items:
            return False
        self._items[item] = None
        return True

    def update(self, items: Iterable[T]) -> list[T]:
        """Add every item and return the ones that were new, in order."""
        return [item for item in items if self.add(item)]

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __iter__(self) -> Iterator[T]:
        return iter(tuple(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"MonotonicSet({list(self._items)!r})"


@dataclass(frozen=True)
class ConfidenceSample:
    score: float
    timestamp: datetime


@dataclass
class BookingContext:
    """Everything the core knows about one booking."""

    booking_id: str
    customer_id: str
    session_id: str
    device_category: Optional[str] = None
    device_brand: Optional[str] = None
    state_machine: BookingStateMachine = field(default_factory=BookingStateMachine)
    confidence_history: list[ConfidenceSample] = field(default_factory=list)
    detected_hesitation_points: MonotonicSet[str] = field(default_factory=MonotonicSet)
    risk_factors: MonotonicSet[str] = field(default_factory=MonotonicSet)
    trust_history: list[TrustInterventionResult] = field(default_factory=list)
    telemetry_events: list[TelemetryEvent] = field(default_factory=list)

    def latest_confidence(self) -> Optional[float]:
        if not self.confidence_history:
            return None
        return self.confidence_history[-1].score


class BookingContextStore(Protocol):
    """Storage backend for booking contexts, keyed by booking id."""

    def get(self, booking_id: str) -> Optional[BookingContext]: ...

    def put(self, context: BookingContext) -> None: ...

    def delete(self, booking_id: str) -> bool: ...

    def __contains__(self, booking_id: object) -> bool: ...


class InMemoryContextStore:
    """Process-local dict-backed store. No eviction."""

    def __init__(self) -> None:
        self._contexts: dict[str, BookingContext] = {}

    def get(self, booking_id: str) -> Optional[BookingContext]:
        return self._contexts.get(booking_id)

    def put(self, context: BookingContext) -> None:
        self._contexts[context.booking_id] = context

    def delete(self, booking_id: str) -> bool:
        return self._contexts.pop(booking_id, None) is not None

    def __contains__(self, booking_id: object) -> bool:
        return booking_id in self._contexts

    def __len__(self) -> int:
        return len(self._contexts)

    def booking_ids(self) -> list[str]:
        return list(self._contexts)
