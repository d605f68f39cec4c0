"""
Centralized configuration with environment variable overrides.

Every threshold used by the trust map, the conversion hooks and the
drop-off detector is configurable here. Nothing is hardcoded in the
decision functions themselves.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from src.logging_context import attach_booking_id_filter

load_dotenv()

logger = logging.getLogger(__name__)

REINIT_POLICIES = ("reject", "overwrite")

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s [%(booking_id)s]: %(message)s"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _csv_tuple(env_var: str, default: str) -> tuple[str, ...]:
    """Parse a comma-separated env var into a tuple of trimmed, non-empty items."""
    raw = os.getenv(env_var, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class TrustConfig:
    """Thresholds for the trust-intervention decision."""

    inject_below_confidence: float = _safe_float("TRUST_INJECT_BELOW", "50")
    high_priority_below: float = _safe_float("TRUST_HIGH_PRIORITY_BELOW", "40")
    medium_priority_below: float = _safe_float("TRUST_MEDIUM_PRIORITY_BELOW", "60")
    sensitive_views: tuple[str, ...] = _csv_tuple(
        "TRUST_SENSITIVE_VIEWS",
        "technician-assignment,checkout,price-confirmation,sla-view,part-unavailability",
    )


@dataclass(frozen=True)
class ConversionConfig:
    """Confidence thresholds for tag-independent conversion hooks."""

    incentive_below_confidence: float = _safe_float("INCENTIVE_BELOW_CONFIDENCE", "50")
    escalation_below_confidence: float = _safe_float("ESCALATION_BELOW_CONFIDENCE", "30")
    escalation_min_repeated_visits: int = _safe_int("ESCALATION_MIN_REPEATED_VISITS", "3")


@dataclass(frozen=True)
class DropOffConfig:
    """Session tracking window and drop-off detection rules."""

    lookback_window: int = _safe_int("DROP_OFF_LOOKBACK_WINDOW", "20")
    bounce_visit_count: int = _safe_int("DROP_OFF_BOUNCE_VISITS", "3")
    exit_risk_paths: tuple[str, ...] = _csv_tuple(
        "DROP_OFF_EXIT_RISK_PATHS", "checkout,cancel,pricing"
    )
    decline_visit_count: int = _safe_int("DROP_OFF_DECLINE_VISITS", "3")
    decline_min_drop: float = _safe_float("DROP_OFF_DECLINE_MIN_DROP", "25")
    abandoned_timeout_seconds: float = _safe_float("DROP_OFF_ABANDONED_TIMEOUT_SEC", "300")
    hesitation_timeout_seconds: float = _safe_float("DROP_OFF_HESITATION_TIMEOUT_SEC", "30")


@dataclass(frozen=True)
class EngineConfig:
    """Booking flow engine behavior."""

    reinit_policy: str = os.getenv("BOOKING_REINIT_POLICY", "reject")
    baseline_confidence: float = _safe_float("BASELINE_CONFIDENCE", "70")
    confidence_drop_alert: float = _safe_float("CONFIDENCE_DROP_ALERT", "20")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    trust: TrustConfig = field(default_factory=TrustConfig)
    conversion: ConversionConfig = field(default_factory=ConversionConfig)
    drop_off: DropOffConfig = field(default_factory=DropOffConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "booking-control")


def _check_confidence(name: str, value: float) -> None:
    if not 0.0 <= value <= 100.0:
        raise ValueError(f"{name} must be between 0 and 100, got {value}")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    for name, value in [
        ("TRUST_INJECT_BELOW", config.trust.inject_below_confidence),
        ("TRUST_HIGH_PRIORITY_BELOW", config.trust.high_priority_below),
        ("TRUST_MEDIUM_PRIORITY_BELOW", config.trust.medium_priority_below),
        ("INCENTIVE_BELOW_CONFIDENCE", config.conversion.incentive_below_confidence),
        ("ESCALATION_BELOW_CONFIDENCE", config.conversion.escalation_below_confidence),
        ("BASELINE_CONFIDENCE", config.engine.baseline_confidence),
    ]:
        _check_confidence(name, value)

    if config.trust.high_priority_below > config.trust.medium_priority_below:
        raise ValueError(
            "TRUST_HIGH_PRIORITY_BELOW must not exceed TRUST_MEDIUM_PRIORITY_BELOW, "
            f"got {config.trust.high_priority_below} > {config.trust.medium_priority_below}"
        )
    if config.conversion.escalation_min_repeated_visits < 1:
        raise ValueError(
            "ESCALATION_MIN_REPEATED_VISITS must be >= 1, "
            f"got {config.conversion.escalation_min_repeated_visits}"
        )
    if config.drop_off.bounce_visit_count < 2:
        raise ValueError(
            f"DROP_OFF_BOUNCE_VISITS must be >= 2, got {config.drop_off.bounce_visit_count}"
        )
    if config.drop_off.decline_visit_count < 2:
        raise ValueError(
            f"DROP_OFF_DECLINE_VISITS must be >= 2, got {config.drop_off.decline_visit_count}"
        )
    longest_rule = max(config.drop_off.bounce_visit_count, config.drop_off.decline_visit_count)
    if config.drop_off.lookback_window < longest_rule:
        raise ValueError(
            f"DROP_OFF_LOOKBACK_WINDOW must be >= {longest_rule}, "
            f"got {config.drop_off.lookback_window}"
        )
    if config.drop_off.decline_min_drop <= 0:
        raise ValueError(
            f"DROP_OFF_DECLINE_MIN_DROP must be > 0, got {config.drop_off.decline_min_drop}"
        )
    for name, value in [
        ("DROP_OFF_ABANDONED_TIMEOUT_SEC", config.drop_off.abandoned_timeout_seconds),
        ("DROP_OFF_HESITATION_TIMEOUT_SEC", config.drop_off.hesitation_timeout_seconds),
    ]:
        if value <= 0:
            raise ValueError(f"{name} must be > 0, got {value}")
    if config.engine.confidence_drop_alert <= 0:
        raise ValueError(
            f"CONFIDENCE_DROP_ALERT must be > 0, got {config.engine.confidence_drop_alert}"
        )
    if config.engine.reinit_policy not in REINIT_POLICIES:
        raise ValueError(
            f"BOOKING_REINIT_POLICY must be one of {REINIT_POLICIES}, "
            f"got {config.engine.reinit_policy!r}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    attach_booking_id_filter(logging.getLogger())
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
