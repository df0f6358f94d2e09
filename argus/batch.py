"""Argus Batch Orchestrator — the periodic performance-monitoring run.

For every user holding at least one non-cancelled policy:

  1. fetch policies and profile, derive today's age
  2. score the portfolio against the age benchmark and rate it
  3. read the previous snapshot, append the new one
  4. detect trend / gap / expiry triggers
  5. write deduplicated notifications

Users are processed concurrently up to ``settings.batch_concurrency`` and each
one is bounded by ``settings.user_timeout_seconds``.  Any failure (missing
profile, store error, timeout) is logged and counted against that user only;
the rest of the run continues.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Literal, Optional
from uuid import UUID

from pydantic import BaseModel

from argus.config import settings
from argus.errors import ProfileNotFoundError
from argus.models import NotificationRecord, SnapshotRecord
from argus.monitoring.expiry import detect_expiring_policies, detect_high_premium_policies
from argus.monitoring.notifications import NotificationEmitter
from argus.monitoring.trend_detector import TrendDetector
from argus.scoring.age import age_or_default
from argus.scoring.benchmarks import BenchmarkTable, load_benchmark_table
from argus.scoring.calculator import aggregate_policies, calculate_score, round_half_up
from argus.stores import NotificationStore, PolicyReader, SnapshotStore

logger = logging.getLogger("argus.batch")

UserStatus = Literal["scored", "skipped", "failed"]


class UserOutcome(BaseModel):
    user_id: UUID
    status: UserStatus
    score: Optional[int] = None
    alerts_created: int = 0
    error: Optional[str] = None


class BatchSummary(BaseModel):
    """Result of one batch run.

    Attributes:
        users_processed: Distinct users with non-cancelled policies.
        alerts_created: Notifications written across all users.
        users_scored: Users for whom a snapshot was written.
        users_skipped: Users with no active policy left to score.
        users_failed: Users whose processing raised or timed out.
        duration_seconds: Wall-clock duration of the run.
    """

    users_processed: int = 0
    alerts_created: int = 0
    users_scored: int = 0
    users_skipped: int = 0
    users_failed: int = 0
    duration_seconds: float = 0.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchOrchestrator:
    """Runs scoring, snapshotting and alerting for every eligible user.

    Typical usage::

        orchestrator = BatchOrchestrator.from_session_factory(async_session)
        summary = await orchestrator.run()
    """

    def __init__(
        self,
        reader: PolicyReader,
        snapshots: SnapshotStore,
        notifications: NotificationStore,
        benchmarks: Optional[BenchmarkTable] = None,
        concurrency: Optional[int] = None,
        user_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._reader = reader
        self._snapshots = snapshots
        self._benchmarks = benchmarks or load_benchmark_table(settings.benchmark_table)
        self._concurrency = max(1, concurrency or settings.batch_concurrency)
        self._user_timeout = (
            user_timeout if user_timeout is not None else settings.user_timeout_seconds
        )
        self._clock = clock
        self._detector = TrendDetector()
        self._emitter = NotificationEmitter(notifications, clock=clock)

    @classmethod
    def from_session_factory(cls, session_factory) -> "BatchOrchestrator":
        from argus.stores import SqlNotificationStore, SqlPolicyReader, SqlSnapshotStore

        return cls(
            reader=SqlPolicyReader(session_factory),
            snapshots=SqlSnapshotStore(session_factory),
            notifications=SqlNotificationStore(session_factory),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self) -> BatchSummary:
        start = time.monotonic()
        user_ids = await self._reader.list_users_with_active_policies()
        logger.info(
            "Starting performance monitoring for %d users (concurrency=%d)",
            len(user_ids),
            self._concurrency,
        )

        sem = asyncio.Semaphore(self._concurrency)

        async def process_with_semaphore(user_id: UUID) -> UserOutcome:
            async with sem:
                return await self._guarded(user_id)

        outcomes = await asyncio.gather(
            *(process_with_semaphore(uid) for uid in user_ids)
        )

        summary = BatchSummary(users_processed=len(user_ids))
        for outcome in outcomes:
            summary.alerts_created += outcome.alerts_created
            if outcome.status == "scored":
                summary.users_scored += 1
            elif outcome.status == "skipped":
                summary.users_skipped += 1
            else:
                summary.users_failed += 1
        summary.duration_seconds = round(time.monotonic() - start, 3)

        logger.info(
            "Performance monitoring complete: users=%d scored=%d skipped=%d "
            "failed=%d alerts=%d (%.1fs)",
            summary.users_processed,
            summary.users_scored,
            summary.users_skipped,
            summary.users_failed,
            summary.alerts_created,
            summary.duration_seconds,
        )
        return summary

    async def process_user(
        self,
        user_id: UUID,
        written: Optional[list[NotificationRecord]] = None,
    ) -> UserOutcome:
        """Score one user and persist the snapshot and any notifications.

        Notifications are appended to ``written`` as they are stored.

        Raises:
            ProfileNotFoundError: If the user has policies but no profile.
        """
        policies = await self._reader.list_active_policies(user_id)
        aggregates = aggregate_policies(policies)
        if aggregates.policy_count == 0:
            logger.debug("User %s has no active policies; skipped", user_id)
            return UserOutcome(user_id=user_id, status="skipped")

        profile = await self._reader.get_profile(user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)

        now = self._clock()
        today = now.date()
        age = age_or_default(profile.date_of_birth, today, settings.default_age)
        result = calculate_score(aggregates, self._benchmarks.benchmark_for(age))

        prior = await self._snapshots.latest_before(user_id, now)
        await self._snapshots.append(
            SnapshotRecord(
                user_id=user_id,
                created_at=now,
                performance_score=result.score,
                performance_rating=result.rating,
                premium_score=round_half_up(result.premium_score),
                coverage_score=round_half_up(result.coverage_score),
                policy_score=round_half_up(result.policy_score),
                total_premium=aggregates.total_premium,
                total_coverage=aggregates.total_coverage,
                total_policies=aggregates.policy_count,
            )
        )

        events = self._detector.detect(user_id, result, prior)
        events.extend(
            detect_expiring_policies(
                user_id, policies, today, horizon_days=settings.expiry_horizon_days
            )
        )
        events.extend(
            detect_high_premium_policies(
                user_id, policies, Decimal(str(settings.high_premium_threshold))
            )
        )
        written = await self._emitter.emit(events, written)

        logger.debug(
            "User %s: age=%d score=%d rating=%s prior=%s alerts=%d",
            user_id,
            age,
            result.score,
            result.rating,
            prior.performance_score if prior else None,
            len(written),
        )
        return UserOutcome(
            user_id=user_id,
            status="scored",
            score=result.score,
            alerts_created=len(written),
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _guarded(self, user_id: UUID) -> UserOutcome:
        """Run :meth:`process_user` with a timeout, converting errors to outcomes.

        A failed user still reports the notifications written before the failure.
        """
        written: list[NotificationRecord] = []
        try:
            return await asyncio.wait_for(
                self.process_user(user_id, written), timeout=self._user_timeout
            )
        except asyncio.TimeoutError:
            msg = f"timed out after {self._user_timeout:.1f}s"
            logger.error("Error processing user %s: %s", user_id, msg)
            return UserOutcome(
                user_id=user_id, status="failed", alerts_created=len(written), error=msg
            )
        except Exception as exc:
            logger.error("Error processing user %s: %s", user_id, exc)
            return UserOutcome(
                user_id=user_id,
                status="failed",
                alerts_created=len(written),
                error=str(exc),
            )

