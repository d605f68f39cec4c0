"""Telemetry event and validated-input schemas."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.booking.states import BookingEvent, EventCategory, EventImportance
from src.utils import normalize_tag, utc_now


class EventSource(str, Enum):
    CUSTOMER = "customer"
    SYSTEM = "system"


class TelemetryEvent(BaseModel):
    """A single event recorded on a booking."""

    event_id: str = Field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:12]}")
    type: BookingEvent
    timestamp: datetime = Field(default_factory=utc_now)
    source: EventSource = EventSource.SYSTEM
    importance: EventImportance
    category: EventCategory
    payload: dict[str, Any] = Field(default_factory=dict)


def _normalize_tags(values: list[str]) -> list[str]:
    normalized = []
    for value in values:
        tag = normalize_tag(value)
        if not tag:
            raise ValueError("tags must be non-empty strings")
        normalized.append(tag)
    return normalized


class ConfidenceUpdate(BaseModel):
    """Validated input for a confidence update."""

    score: float = Field(ge=0, le=100)
    hesitation_points: list[str] = Field(default_factory=list)
    risk_factors: list[str] = Field(default_factory=list)

    @field_validator("hesitation_points", "risk_factors", mode="before")
    @classmethod
    def _reject_bare_string(cls, value: Any) -> Any:
        if isinstance(value, (str, bytes)):
            raise ValueError("expected a list of tags, not a single string")
        return value

    @field_validator("hesitation_points", "risk_factors")
    @classmethod
    def _check_tags(cls, values: list[str]) -> list[str]:
        return _normalize_tags(values)


class PageView(BaseModel):
    """Validated input for a page view."""

    model_config = ConfigDict(str_strip_whitespace=True)

    path: str = Field(min_length=1)
    view_tag: str = ""
