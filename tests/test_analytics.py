"""Tests for the on-demand portfolio analytics view."""

from __future__ import annotations

import uuid

import pytest

from argus.analytics import (
    PortfolioAnalyticsService,
    age_group_for,
    build_portfolio_analytics,
    provider_breakdown,
)
from argus.errors import EmptyPortfolioError
from argus.models import UserProfile
from argus.scoring import DEFAULT_TABLE
from conftest import TODAY, dob_for_age, make_policy


def _portfolio(user_id):
    return [
        make_policy(user_id, premium=300, coverage=200_000),
        make_policy(user_id, premium=300, coverage=200_000),
        make_policy(user_id, premium=400, coverage=200_000, provider="Beta Life"),
        make_policy(user_id, premium=9000, coverage=1, status="cancelled", provider="Gone Co"),
    ]


@pytest.mark.parametrize(
    "age, label",
    [(18, "under 30"), (29, "under 30"), (30, "30-39"), (49, "40-49"), (50, "50+"), (90, "50+")],
)
def test_age_group_follows_benchmark_bands(age, label):
    assert age_group_for(age) == label


def test_kpis_and_market_comparison():
    user_id = uuid.uuid4()
    profile = UserProfile(user_id=user_id, date_of_birth=dob_for_age(25))

    view = build_portfolio_analytics(user_id, _portfolio(user_id), profile, TODAY, DEFAULT_TABLE)

    assert view.total_policies == 3
    assert view.total_premium == 1000
    assert view.total_coverage == 600_000
    assert view.roi == 60_000
    assert view.performance_score == 76
    assert view.performance_rating == "very good"
    assert (view.premium_score, view.coverage_score, view.policy_score) == (40, 22, 14)
    assert view.premium_vs_market == pytest.approx(-58.3)
    assert view.coverage_vs_market == pytest.approx(-60.0)
    assert view.policies_vs_market == pytest.approx(20.0)
    assert view.age == 25
    assert view.age_group == "under 30"
    assert view.benchmark.avg_premium == 800


def test_provider_breakdown_sorted_by_total_premium():
    user_id = uuid.uuid4()

    rows = provider_breakdown(_portfolio(user_id))

    assert [r.provider for r in rows] == ["Acme Mutual", "Beta Life"]
    acme = rows[0]
    assert acme.policy_count == 2
    assert acme.total_premium == 600
    assert acme.avg_premium == pytest.approx(300.0)
    assert acme.avg_coverage == pytest.approx(200_000.0)


def test_missing_profile_uses_default_age():
    user_id = uuid.uuid4()
    view = build_portfolio_analytics(user_id, _portfolio(user_id), None, TODAY, DEFAULT_TABLE)
    assert view.age == 35
    assert view.age_group == "30-39"


def test_only_cancelled_policies_is_empty():
    user_id = uuid.uuid4()
    policies = [make_policy(user_id, status="cancelled")]
    with pytest.raises(EmptyPortfolioError):
        build_portfolio_analytics(user_id, policies, None, TODAY, DEFAULT_TABLE)


async def test_service_reads_policies_and_profile(reader):
    user_id = uuid.uuid4()
    reader.add_profile(user_id, dob_for_age(45))
    reader.add_policy(make_policy(user_id, premium=1500, coverage=1_200_000))
    reader.add_policy(make_policy(uuid.uuid4(), premium=50, coverage=10))

    view = await PortfolioAnalyticsService(reader, DEFAULT_TABLE).current(user_id, TODAY)

    assert view.user_id == user_id
    assert view.total_policies == 1
    assert view.age_group == "40-49"
    assert view.premium_vs_market == pytest.approx(0.0)
    assert view.coverage_vs_market == pytest.approx(0.0)
