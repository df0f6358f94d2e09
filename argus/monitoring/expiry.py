"""Policy watch — per-policy alerts for active policies.

- ``policy_expiring``: the policy ends within the notice horizon
- ``high_premium``: the monthly premium is above the high-premium threshold

Both events are correlated with the policy id, so each policy is deduplicated
on its own while other policies of the same user can still be announced.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from argus.models import PolicyRecord, Priority
from argus.monitoring.trend_detector import TriggerEvent

logger = logging.getLogger("argus.monitoring.expiry")

POLICIES_URL = "/client/policies"
HIGH_PREMIUM_THRESHOLD = Decimal("2000")


def _priority_for(days_until_expiry: int) -> Priority:
    if days_until_expiry <= 7:
        return "urgent"
    if days_until_expiry <= 14:
        return "high"
    return "medium"


def detect_expiring_policies(
    user_id: UUID,
    policies: Iterable[PolicyRecord],
    today: date,
    horizon_days: int = 30,
) -> list[TriggerEvent]:
    """One ``policy_expiring`` event per active policy ending in 1..horizon days."""
    events: list[TriggerEvent] = []
    for policy in policies:
        if policy.status != "active" or policy.end_date is None:
            continue
        days = (policy.end_date - today).days
        if not 0 < days <= horizon_days:
            continue
        events.append(
            TriggerEvent(
                user_id=user_id,
                type="policy_expiring",
                priority=_priority_for(days),
                title=f"Policy {policy.policy_number} is about to expire",
                message=(
                    f"Your {policy.provider} policy expires in {days} days. "
                    f"Renew it soon to stay covered."
                ),
                action_url=POLICIES_URL,
                correlation_id=policy.id,
                policy_id=policy.id,
                metadata={"days_until_expiry": days, "policy_id": str(policy.id)},
            )
        )
    if events:
        logger.debug("User %s: %d policies expiring soon", user_id, len(events))
    return events


def detect_high_premium_policies(
    user_id: UUID,
    policies: Iterable[PolicyRecord],
    threshold: Decimal = HIGH_PREMIUM_THRESHOLD,
) -> list[TriggerEvent]:
    """One ``high_premium`` event per active policy whose premium exceeds ``threshold``."""
    events: list[TriggerEvent] = []
    for policy in policies:
        if policy.status != "active" or policy.premium <= threshold:
            continue
        events.append(
            TriggerEvent(
                user_id=user_id,
                type="high_premium",
                priority="medium",
                title="High premium detected",
                message=(
                    f"Policy {policy.policy_number} has a high monthly premium "
                    f"({policy.premium:,.2f}). Compare offers from other providers "
                    f"to look for savings."
                ),
                action_url=POLICIES_URL,
                correlation_id=policy.id,
                policy_id=policy.id,
                metadata={"premium": float(policy.premium), "policy_id": str(policy.id)},
            )
        )
    if events:
        logger.debug("User %s: %d high-premium policies", user_id, len(events))
    return events
