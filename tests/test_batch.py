"""Tests for the batch orchestrator run against in-memory stores."""

from __future__ import annotations

import asyncio
import uuid
from datetime import timedelta

from argus.batch import BatchOrchestrator
from conftest import NOW, TODAY, dob_for_age, make_policy, make_snapshot


def _seed_young_portfolio(reader, age=25):
    """Three policies totalling 1000 premium and 600k coverage."""
    user_id = uuid.uuid4()
    reader.add_profile(user_id, dob_for_age(age))
    reader.add_policy(make_policy(user_id, premium=300, coverage=200_000))
    reader.add_policy(make_policy(user_id, premium=300, coverage=200_000))
    reader.add_policy(make_policy(user_id, premium=400, coverage=200_000))
    return user_id


def _orchestrator(reader, snapshots, notifications, clock, **kwargs):
    return BatchOrchestrator(reader, snapshots, notifications, clock=clock, **kwargs)


async def test_run_scores_snapshots_and_alerts(reader, snapshots, notifications, clock):
    user_id = _seed_young_portfolio(reader)

    summary = await _orchestrator(reader, snapshots, notifications, clock).run()

    assert summary.users_processed == 1
    assert summary.users_scored == 1
    assert summary.users_failed == 0
    assert summary.alerts_created == 1

    [snapshot] = snapshots.rows
    assert snapshot.user_id == user_id
    assert snapshot.created_at == NOW
    assert snapshot.performance_score == 76
    assert snapshot.performance_rating == "very good"
    assert (snapshot.premium_score, snapshot.coverage_score, snapshot.policy_score) == (40, 22, 14)
    assert snapshot.total_policies == 3

    [note] = notifications.rows
    assert note.type == "low_coverage_gap"
    assert note.user_id == user_id


async def test_user_with_only_cancelled_policies_is_not_processed(
    reader, snapshots, notifications, clock
):
    ghost = uuid.uuid4()
    reader.add_profile(ghost, dob_for_age(40))
    reader.add_policy(make_policy(ghost, status="cancelled"))
    _seed_young_portfolio(reader)

    summary = await _orchestrator(reader, snapshots, notifications, clock).run()

    assert summary.users_processed == 1
    assert all(s.user_id != ghost for s in snapshots.rows)


async def test_process_user_without_policies_is_skipped(
    reader, snapshots, notifications, clock
):
    user_id = uuid.uuid4()
    reader.add_profile(user_id, dob_for_age(40))

    outcome = await _orchestrator(reader, snapshots, notifications, clock).process_user(user_id)

    assert outcome.status == "skipped"
    assert snapshots.rows == []


async def test_missing_profile_fails_only_that_user(reader, snapshots, notifications, clock):
    orphan = uuid.uuid4()
    reader.add_policy(make_policy(orphan))
    ok = _seed_young_portfolio(reader)

    summary = await _orchestrator(reader, snapshots, notifications, clock).run()

    assert summary.users_processed == 2
    assert summary.users_scored == 1
    assert summary.users_failed == 1
    assert [s.user_id for s in snapshots.rows] == [ok]


async def test_null_date_of_birth_uses_default_age(reader, snapshots, notifications, clock):
    user_id = uuid.uuid4()
    reader.add_profile(user_id, None)
    # age 35 -> benchmark {1200, 800000, 3.5}: below-market premium, on-market coverage
    reader.add_policy(make_policy(user_id, premium=1200 * 3.5 / 4, coverage=800_000))
    for _ in range(3):
        reader.add_policy(make_policy(user_id, premium=1200 * 3.5 / 4, coverage=800_000))

    await _orchestrator(reader, snapshots, notifications, clock).run()

    [snapshot] = snapshots.rows
    assert snapshot.premium_score == 40
    assert snapshot.coverage_score == 40


async def test_slow_user_times_out_without_blocking_others(
    reader, snapshots, notifications, clock
):
    slow = _seed_young_portfolio(reader)
    fast = _seed_young_portfolio(reader)
    original = reader.get_profile

    async def get_profile(user_id):
        if user_id == slow:
            await asyncio.sleep(5)
        return await original(user_id)

    reader.get_profile = get_profile

    summary = await _orchestrator(
        reader, snapshots, notifications, clock, user_timeout=0.05
    ).run()

    assert summary.users_failed == 1
    assert summary.users_scored == 1
    assert [s.user_id for s in snapshots.rows] == [fast]


async def test_score_drop_against_prior_snapshot(reader, snapshots, notifications, clock):
    user_id = _seed_young_portfolio(reader)
    snapshots.rows.append(make_snapshot(user_id, 90, created_at=NOW - timedelta(days=1)))

    summary = await _orchestrator(reader, snapshots, notifications, clock).run()

    assert summary.alerts_created == 2
    assert sorted(n.type for n in notifications.rows) == ["low_coverage_gap", "score_drop"]
    drop = next(n for n in notifications.rows if n.type == "score_drop")
    assert drop.metadata["previous_score"] == 90
    assert drop.metadata["current_score"] == 76


async def test_rerun_next_day_is_deduplicated(reader, snapshots, notifications, clock):
    _seed_young_portfolio(reader)
    orchestrator = _orchestrator(reader, snapshots, notifications, clock)

    first = await orchestrator.run()
    clock.advance(days=1)
    second = await orchestrator.run()

    assert first.alerts_created == 1
    assert second.alerts_created == 0
    assert len(snapshots.rows) == 2
    assert len(notifications.rows) == 1


async def test_expiring_policy_raises_urgent_notification(
    reader, snapshots, notifications, clock
):
    user_id = uuid.uuid4()
    reader.add_profile(user_id, dob_for_age(45))
    policy = make_policy(
        user_id, premium=1500, coverage=1_200_000, end_date=TODAY + timedelta(days=3)
    )
    reader.add_policy(policy)

    await _orchestrator(reader, snapshots, notifications, clock).run()

    expiring = [n for n in notifications.rows if n.type == "policy_expiring"]
    assert len(expiring) == 1
    assert expiring[0].priority == "urgent"
    assert expiring[0].policy_id == policy.id


async def test_empty_run(reader, snapshots, notifications, clock):
    summary = await _orchestrator(reader, snapshots, notifications, clock).run()
    assert summary.users_processed == 0
    assert summary.alerts_created == 0


async def test_high_premium_policy_raises_policy_alert(
    reader, snapshots, notifications, clock
):
    user_id = uuid.uuid4()
    reader.add_profile(user_id, dob_for_age(45))
    pricey = make_policy(user_id, premium=2500, coverage=1_200_000)
    reader.add_policy(pricey)
    reader.add_policy(make_policy(user_id, premium=500, coverage=1_200_000))

    await _orchestrator(reader, snapshots, notifications, clock).run()

    high = [n for n in notifications.rows if n.type == "high_premium"]
    assert len(high) == 1
    assert high[0].policy_id == pricey.id
    assert high[0].dedup_key == f"high_premium:{pricey.id}"
    assert high[0].priority == "medium"


async def test_alerts_written_before_a_store_failure_are_counted(
    reader, snapshots, notifications, clock
):
    user_id = _seed_young_portfolio(reader)
    snapshots.rows.append(make_snapshot(user_id, 90, created_at=NOW - timedelta(days=1)))
    original = notifications.append
    calls = []

    async def append(record):
        calls.append(record)
        if len(calls) == 2:
            raise RuntimeError("connection reset")
        await original(record)

    notifications.append = append

    summary = await _orchestrator(reader, snapshots, notifications, clock).run()

    assert summary.users_failed == 1
    assert summary.users_scored == 0
    assert summary.alerts_created == 1
    assert len(notifications.rows) == 1
