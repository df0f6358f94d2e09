"""Argus Notification Emitter — deduplicated, append-only user notifications.

Each :class:`TriggerEvent` becomes a row in the CRM ``notifications`` table
unless a notification with the same (user, type, dedup key) was created within
that type's dedup window.  Windows are a lookup table so new trigger types only
need a new entry here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from argus.models import NotificationRecord
from argus.monitoring.trend_detector import TriggerEvent
from argus.stores import NotificationStore

logger = logging.getLogger("argus.monitoring.notifications")

# Trigger type -> dedup window in days.
DEDUP_WINDOWS: dict[str, int] = {
    "score_drop": 7,
    "rating_downgrade": 7,
    "score_improvement": 7,
    "high_premium_gap": 30,
    "low_coverage_gap": 30,
    "policy_expiring": 7,
    "high_premium": 30,
}

DEFAULT_DEDUP_WINDOW_DAYS = 7


def dedup_window_for(trigger_type: str) -> int:
    return DEDUP_WINDOWS.get(trigger_type, DEFAULT_DEDUP_WINDOW_DAYS)


class NotificationEmitter:
    """Writes notifications for trigger events, skipping recent duplicates.

    Typical usage::

        emitter = NotificationEmitter(SqlNotificationStore(async_session))
        written = await emitter.emit(events)
    """

    def __init__(
        self,
        store: NotificationStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._store = store
        self._clock = clock

    async def emit(
        self,
        events: Iterable[TriggerEvent],
        written: Optional[list[NotificationRecord]] = None,
    ) -> list[NotificationRecord]:
        """Persist each event not already notified within its window.

        The dedup windows and ``created_at`` are measured from a single clock
        reading taken at the start of the call.

        Args:
            events: Trigger events, written in order.
            written: Optional list to append each stored record to as soon as
                it is written, so a caller still sees earlier writes if a
                later append raises.

        Returns:
            The notifications actually written, in event order.
        """
        if written is None:
            written = []
        now = self._clock()
        for event in events:
            window = dedup_window_for(event.type)
            if await self._store.exists_within_window(
                event.user_id, event.type, event.dedup_key, window, now
            ):
                logger.debug(
                    "Suppressed duplicate %s for user=%s (window=%dd)",
                    event.dedup_key,
                    event.user_id,
                    window,
                )
                continue

            record = NotificationRecord(
                user_id=event.user_id,
                type=event.type,
                priority=event.priority,
                title=event.title,
                message=event.message,
                action_url=event.action_url,
                dedup_key=event.dedup_key,
                policy_id=event.policy_id,
                metadata=event.metadata,
                created_at=now,
            )
            await self._store.append(record)
            written.append(record)

        if written:
            logger.info(
                "Created %d notification(s) for user=%s",
                len(written),
                written[0].user_id,
            )
        return written
