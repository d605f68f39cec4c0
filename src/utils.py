"""Shared utilities used across the booking control core."""

import re
from datetime import datetime, timezone


def normalize_tag(value: str) -> str:
    """Normalize a hesitation-point or risk-factor tag.

    Examples:
        >>> normalize_tag("  Price ")
        'price'
        >>> normalize_tag("High Price  Sensitivity")
        'high_price_sensitivity'
    """
    return re.sub(r"\s+", "_", value.strip().lower())


def utc_now() -> datetime:
    """Timezone-aware current time used for every recorded timestamp."""
    return datetime.now(timezone.utc)
