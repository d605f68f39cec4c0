"""
Conversion hook generator.

Maps each cumulative hesitation point to a structured action, then adds
tag-independent actions driven by confidence thresholds. The output is an
intent for the presentation layer, not final UI copy.

Order is stable: hesitation hooks first, in the order the tags were first
detected, then the incentive hook, then the escalation hook.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.booking.states import BookingState, is_terminal
from src.config import ConversionConfig, settings

logger = logging.getLogger(__name__)


class ActionType(str, Enum):
    REASSURANCE = "reassurance"
    TRANSPARENCY = "transparency"
    INCENTIVE = "incentive"
    ESCALATION = "escalation"


LOW_CONFIDENCE_TARGET = "low_confidence"


@dataclass(frozen=True)
class ConversionHookResult:
    """A single suggested action targeting one hesitation point."""
    action_type: ActionType
    message: str
    target_hesitation: str
    hook_id: str = ""


@dataclass(frozen=True)
class HookDefinition:
    """Static mapping entry from a hesitation tag to an action."""
    hook_id: str
    action_type: ActionType
    message: str


HESITATION_HOOKS: dict[str, HookDefinition] = {
    "price": HookDefinition(
        hook_id="price_reassurance",
        action_type=ActionType.REASSURANCE,
        message="Reassure on price: fixed price with no hidden fees, value backed by guarantee.",
    ),
    "sla": HookDefinition(
        hook_id="sla_reassurance",
        action_type=ActionType.REASSURANCE,
        message="Reassure on turnaround: committed timeline with a service guarantee.",
    ),
    "delay": HookDefinition(
        hook_id="delay_reassurance",
        action_type=ActionType.REASSURANCE,
        message="Reassure on delays: proactive updates if the timeline changes.",
    ),
    "technician": HookDefinition(
        hook_id="technician_reassurance",
        action_type=ActionType.REASSURANCE,
        message="Reassure on technician: verified technician, next best match if unavailable.",
    ),
    "payment": HookDefinition(
        hook_id="payment_transparency",
        action_type=ActionType.TRANSPARENCY,
        message="Explain payment: held in escrow until the service is completed.",
    ),
    "parts": HookDefinition(
        hook_id="parts_transparency",
        action_type=ActionType.TRANSPARENCY,
        message="Explain part sourcing: partner network check with an update within two hours.",
    ),
}

GENERIC_HOOK = HookDefinition(
    hook_id="generic_reassurance",
    action_type=ActionType.REASSURANCE,
    message="Reassure on concern: support team available to answer questions.",
)

INCENTIVE_HOOK = HookDefinition(
    hook_id="price_incentive",
    action_type=ActionType.INCENTIVE,
    message="Offer a price incentive to close the booking.",
)

ESCALATION_HOOK = HookDefinition(
    hook_id="human_contact_escalation",
    action_type=ActionType.ESCALATION,
    message="Escalate to human contact: offer a callback from the support team.",
)


def _from_definition(defn: HookDefinition, target: str) -> ConversionHookResult:
    return ConversionHookResult(
        action_type=defn.action_type,
        message=defn.message,
        target_hesitation=target,
        hook_id=defn.hook_id,
    )


def generate_conversion_hooks(
    hesitation_points: Iterable[str],
    latest_confidence: float,
    state: BookingState,
    repeated_visits: int = 0,
    config: Optional[ConversionConfig] = None,
) -> list[ConversionHookResult]:
    """
    Build the ordered list of conversion actions for a booking.

    Args:
        hesitation_points: Cumulative hesitation tags, in first-detection order.
        latest_confidence: Most recent confidence score (0-100).
        state: Current booking state; terminal states produce no hooks.
        repeated_visits: Consecutive visits to the same exit-risk page.
        config: Threshold overrides; defaults to ``settings.conversion``.
    """
    cfg = config or settings.conversion
    if is_terminal(state):
        return []

    tags = list(dict.fromkeys(hesitation_points))
    hooks = [_from_definition(HESITATION_HOOKS.get(tag, GENERIC_HOOK), tag) for tag in tags]

    if "price" in tags and latest_confidence < cfg.incentive_below_confidence:
        hooks.append(_from_definition(INCENTIVE_HOOK, "price"))

    if (
        latest_confidence < cfg.escalation_below_confidence
        and repeated_visits >= cfg.escalation_min_repeated_visits
    ):
        target = tags[0] if tags else LOW_CONFIDENCE_TARGET
        hooks.append(_from_definition(ESCALATION_HOOK, target))

    if hooks:
        logger.debug(
            "Generated %d conversion hook(s) in state %s", len(hooks), state.value
        )
    return hooks
