"""Store interfaces and their SQLAlchemy implementations.

The scoring core talks to three collaborators:

- :class:`PolicyReader` — read-only view of the CRM's policies and profiles
- :class:`SnapshotStore` — append-only ``performance_history``
- :class:`NotificationStore` — append-only ``notifications`` with dedup lookup

Each interface is a :class:`typing.Protocol`; the ``Sql*`` classes implement
them over an ``async_sessionmaker`` so tests can swap in in-memory fakes.
None of the snapshot or notification stores expose update or delete.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from argus.db import Notification, PerformanceSnapshot, Policy, Profile
from argus.models import NotificationRecord, PolicyRecord, SnapshotRecord, UserProfile

logger = logging.getLogger("argus.stores")


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------


class PolicyReader(Protocol):
    async def list_users_with_active_policies(self) -> list[UUID]: ...

    async def list_active_policies(self, user_id: UUID) -> list[PolicyRecord]: ...

    async def get_profile(self, user_id: UUID) -> Optional[UserProfile]: ...

    async def list_profiles(self) -> list[UserProfile]: ...


class SnapshotStore(Protocol):
    async def append(self, snapshot: SnapshotRecord) -> None: ...

    async def latest_before(
        self, user_id: UUID, before: datetime
    ) -> Optional[SnapshotRecord]: ...

    async def latest_per_user(
        self, user_ids: Optional[Iterable[UUID]] = None
    ) -> dict[UUID, SnapshotRecord]: ...

    async def recent(self, user_id: UUID, limit: int) -> list[SnapshotRecord]: ...


class NotificationStore(Protocol):
    async def exists_within_window(
        self,
        user_id: UUID,
        type: str,
        dedup_key: str,
        window_days: int,
        now: datetime,
    ) -> bool: ...

    async def append(self, notification: NotificationRecord) -> None: ...


# ---------------------------------------------------------------------------
# SQLAlchemy implementations
# ---------------------------------------------------------------------------


class SqlPolicyReader:
    """Reads policies and profiles from the CRM tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_users_with_active_policies(self) -> list[UUID]:
        async with self._session_factory() as session:
            stmt = (
                select(Policy.user_id)
                .where(Policy.status != "cancelled")
                .distinct()
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_active_policies(self, user_id: UUID) -> list[PolicyRecord]:
        async with self._session_factory() as session:
            stmt = (
                select(Policy)
                .where(Policy.user_id == user_id, Policy.status != "cancelled")
                .order_by(Policy.created_at.desc())
            )
            result = await session.execute(stmt)
            return [PolicyRecord.model_validate(row) for row in result.scalars()]

    async def get_profile(self, user_id: UUID) -> Optional[UserProfile]:
        async with self._session_factory() as session:
            stmt = select(Profile).where(Profile.user_id == user_id)
            row = (await session.execute(stmt)).scalar_one_or_none()
            return UserProfile.model_validate(row) if row is not None else None

    async def list_profiles(self) -> list[UserProfile]:
        async with self._session_factory() as session:
            result = await session.execute(select(Profile))
            return [UserProfile.model_validate(row) for row in result.scalars()]


class SqlSnapshotStore:
    """Append-only access to ``performance_history``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, snapshot: SnapshotRecord) -> None:
        async with self._session_factory() as session:
            session.add(
                PerformanceSnapshot(
                    id=snapshot.id,
                    user_id=snapshot.user_id,
                    performance_score=snapshot.performance_score,
                    performance_rating=snapshot.performance_rating,
                    premium_score=snapshot.premium_score,
                    coverage_score=snapshot.coverage_score,
                    policy_score=snapshot.policy_score,
                    total_premium=snapshot.total_premium,
                    total_coverage=snapshot.total_coverage,
                    total_policies=snapshot.total_policies,
                    created_at=snapshot.created_at,
                )
            )
            await session.commit()
        logger.debug(
            "Snapshot stored: user=%s score=%d", snapshot.user_id, snapshot.performance_score
        )

    async def latest_before(
        self, user_id: UUID, before: datetime
    ) -> Optional[SnapshotRecord]:
        async with self._session_factory() as session:
            stmt = (
                select(PerformanceSnapshot)
                .where(
                    PerformanceSnapshot.user_id == user_id,
                    PerformanceSnapshot.created_at < before,
                )
                .order_by(PerformanceSnapshot.created_at.desc())
                .limit(1)
            )
            row = (await session.execute(stmt)).scalar_one_or_none()
            return SnapshotRecord.model_validate(row) if row is not None else None

    async def latest_per_user(
        self, user_ids: Optional[Iterable[UUID]] = None
    ) -> dict[UUID, SnapshotRecord]:
        """Latest snapshot per user, optionally restricted to ``user_ids``."""
        ranked = select(
            PerformanceSnapshot,
            func.row_number()
            .over(
                partition_by=PerformanceSnapshot.user_id,
                order_by=PerformanceSnapshot.created_at.desc(),
            )
            .label("rn"),
        )
        if user_ids is not None:
            ids = list(user_ids)
            if not ids:
                return {}
            ranked = ranked.where(PerformanceSnapshot.user_id.in_(ids))
        subq = ranked.subquery()
        latest = select(PerformanceSnapshot).join(
            subq, PerformanceSnapshot.id == subq.c.id
        ).where(subq.c.rn == 1)

        async with self._session_factory() as session:
            result = await session.execute(latest)
            return {
                row.user_id: SnapshotRecord.model_validate(row)
                for row in result.scalars()
            }

    async def recent(self, user_id: UUID, limit: int) -> list[SnapshotRecord]:
        async with self._session_factory() as session:
            stmt = (
                select(PerformanceSnapshot)
                .where(PerformanceSnapshot.user_id == user_id)
                .order_by(PerformanceSnapshot.created_at.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [SnapshotRecord.model_validate(row) for row in result.scalars()]


class SqlNotificationStore:
    """Append-only access to ``notifications`` plus the dedup lookup."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def exists_within_window(
        self,
        user_id: UUID,
        type: str,
        dedup_key: str,
        window_days: int,
        now: datetime,
    ) -> bool:
        """True if a matching notification was created in the ``window_days`` before ``now``."""
        cutoff = now - timedelta(days=window_days)
        async with self._session_factory() as session:
            stmt = (
                select(Notification.id)
                .where(
                    Notification.user_id == user_id,
                    Notification.type == type,
                    Notification.dedup_key == dedup_key,
                    Notification.created_at >= cutoff,
                )
                .limit(1)
            )
            return (await session.execute(stmt)).first() is not None

    async def append(self, notification: NotificationRecord) -> None:
        async with self._session_factory() as session:
            session.add(
                Notification(
                    id=notification.id,
                    user_id=notification.user_id,
                    policy_id=notification.policy_id,
                    type=notification.type,
                    priority=notification.priority,
                    title=notification.title,
                    message=notification.message,
                    action_url=notification.action_url,
                    dedup_key=notification.dedup_key,
                    metadata_=notification.metadata,
                    created_at=notification.created_at,
                )
            )
            await session.commit()
