"""Shared fixtures: in-memory stores and record builders."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import pytest

from argus.models import NotificationRecord, PolicyRecord, SnapshotRecord, UserProfile
from argus.scoring.rating import rating_for

NOW = datetime(2025, 6, 15, 3, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


class FixedClock:
    """A settable clock usable wherever a ``() -> datetime`` is accepted."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakePolicyReader:
    def __init__(self) -> None:
        self.policies: list[PolicyRecord] = []
        self.profiles: dict[UUID, UserProfile] = {}

    def add_profile(self, user_id: UUID, date_of_birth: Optional[date]) -> None:
        self.profiles[user_id] = UserProfile(user_id=user_id, date_of_birth=date_of_birth)

    def add_policy(self, policy: PolicyRecord) -> None:
        self.policies.append(policy)

    async def list_users_with_active_policies(self) -> list[UUID]:
        seen: dict[UUID, None] = {}
        for p in self.policies:
            if p.status != "cancelled":
                seen[p.user_id] = None
        return list(seen)

    async def list_active_policies(self, user_id: UUID) -> list[PolicyRecord]:
        return [
            p for p in self.policies if p.user_id == user_id and p.status != "cancelled"
        ]

    async def get_profile(self, user_id: UUID) -> Optional[UserProfile]:
        return self.profiles.get(user_id)

    async def list_profiles(self) -> list[UserProfile]:
        return list(self.profiles.values())


class FakeSnapshotStore:
    def __init__(self) -> None:
        self.rows: list[SnapshotRecord] = []

    async def append(self, snapshot: SnapshotRecord) -> None:
        self.rows.append(snapshot)

    async def latest_before(
        self, user_id: UUID, before: datetime
    ) -> Optional[SnapshotRecord]:
        candidates = [r for r in self.rows if r.user_id == user_id and r.created_at < before]
        return max(candidates, key=lambda r: r.created_at, default=None)

    async def latest_per_user(
        self, user_ids: Optional[Iterable[UUID]] = None
    ) -> dict[UUID, SnapshotRecord]:
        wanted = set(user_ids) if user_ids is not None else None
        latest: dict[UUID, SnapshotRecord] = {}
        for r in self.rows:
            if wanted is not None and r.user_id not in wanted:
                continue
            current = latest.get(r.user_id)
            if current is None or r.created_at > current.created_at:
                latest[r.user_id] = r
        return latest

    async def recent(self, user_id: UUID, limit: int) -> list[SnapshotRecord]:
        mine = sorted(
            (r for r in self.rows if r.user_id == user_id),
            key=lambda r: r.created_at,
            reverse=True,
        )
        return mine[:limit]


class FakeNotificationStore:
    def __init__(self) -> None:
        self.rows: list[NotificationRecord] = []
        self.window_queries: list[datetime] = []

    async def exists_within_window(
        self,
        user_id: UUID,
        type: str,
        dedup_key: str,
        window_days: int,
        now: datetime,
    ) -> bool:
        self.window_queries.append(now)
        cutoff = now - timedelta(days=window_days)
        return any(
            r.user_id == user_id
            and r.type == type
            and r.dedup_key == dedup_key
            and r.created_at >= cutoff
            for r in self.rows
        )

    async def append(self, notification: NotificationRecord) -> None:
        self.rows.append(notification)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_policy(
    user_id: UUID,
    premium: float = 300,
    coverage: float = 200_000,
    status: str = "active",
    end_date: Optional[date] = None,
    policy_number: str = "POL-1",
    provider: str = "Acme Mutual",
) -> PolicyRecord:
    return PolicyRecord(
        id=uuid.uuid4(),
        user_id=user_id,
        policy_number=policy_number,
        type="life",
        provider=provider,
        premium=Decimal(str(premium)),
        coverage_amount=Decimal(str(coverage)),
        status=status,
        start_date=date(2024, 1, 1),
        end_date=end_date,
    )


def make_snapshot(
    user_id: UUID,
    score: int,
    created_at: datetime = NOW - timedelta(days=1),
    rating: Optional[str] = None,
) -> SnapshotRecord:
    return SnapshotRecord(
        user_id=user_id,
        created_at=created_at,
        performance_score=score,
        performance_rating=rating if rating is not None else rating_for(score),
        premium_score=min(score, 40),
        coverage_score=min(max(score - 40, 0), 40),
        policy_score=min(max(score - 80, 0), 20),
        total_premium=Decimal("1000"),
        total_coverage=Decimal("600000"),
        total_policies=3,
    )


def dob_for_age(age: int, today: date = TODAY) -> date:
    """A date of birth giving exactly ``age`` on ``today``."""
    return date(today.year - age, 1, 1)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def reader() -> FakePolicyReader:
    return FakePolicyReader()


@pytest.fixture
def snapshots() -> FakeSnapshotStore:
    return FakeSnapshotStore()


@pytest.fixture
def notifications() -> FakeNotificationStore:
    return FakeNotificationStore()
