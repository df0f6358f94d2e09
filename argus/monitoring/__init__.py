"""Argus Monitoring Package — trend detection, policy watch and notifications.

- :class:`TrendDetector` — score/rating transitions and portfolio gaps
- :func:`detect_expiring_policies` — active policies ending soon
- :func:`detect_high_premium_policies` — active policies with a high premium
- :class:`NotificationEmitter` — deduplicated notification writes

These run once per user inside the batch orchestrator.
"""

from argus.monitoring.trend_detector import TrendDetector, TriggerEvent
from argus.monitoring.expiry import detect_expiring_policies, detect_high_premium_policies
from argus.monitoring.notifications import (
    DEDUP_WINDOWS,
    NotificationEmitter,
    dedup_window_for,
)

__all__ = [
    "TrendDetector",
    "TriggerEvent",
    "detect_expiring_policies",
    "detect_high_premium_policies",
    "DEDUP_WINDOWS",
    "NotificationEmitter",
    "dedup_window_for",
]
