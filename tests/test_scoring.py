"""Tests for benchmarks, age derivation, the score calculator and ratings."""

from __future__ import annotations

import json
import random
import uuid
from datetime import date
from decimal import Decimal

import pytest

from argus.errors import EmptyPortfolioError
from argus.scoring import (
    DEFAULT_TABLE,
    RATING_ORDER,
    Benchmark,
    PortfolioAggregates,
    age_on,
    age_or_default,
    aggregate_policies,
    benchmark_for,
    calculate_score,
    load_benchmark_table,
    rating_for,
    rating_rank,
    round_half_up,
)
from conftest import make_policy


def _aggregates(premium: float, coverage: float, count: int) -> PortfolioAggregates:
    return PortfolioAggregates(
        total_premium=Decimal(str(premium)),
        total_coverage=Decimal(str(coverage)),
        policy_count=count,
    )


# ---------------------------------------------------------------------------
# Benchmarks
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "age, expected_premium",
    [(0, 800), (29, 800), (30, 1200), (39, 1200), (40, 1500), (49, 1500), (50, 1800), (99, 1800)],
)
def test_benchmark_band_boundaries(age, expected_premium):
    assert benchmark_for(age).avg_premium == expected_premium


def test_benchmark_for_young_band_values():
    bench = benchmark_for(25)
    assert bench == Benchmark(avg_premium=800, avg_coverage=500_000, avg_policies=2.5)


def test_every_age_maps_to_positive_benchmark():
    for age in range(-5, 130):
        bench = DEFAULT_TABLE.benchmark_for(age)
        assert bench.avg_premium > 0
        assert bench.avg_coverage > 0
        assert bench.avg_policies > 0


def test_load_benchmark_table_defaults_when_unset():
    assert load_benchmark_table(None) is DEFAULT_TABLE
    assert load_benchmark_table("") is DEFAULT_TABLE


def test_load_custom_benchmark_table():
    raw = json.dumps(
        [
            {"upper_age": 45, "avg_premium": 100, "avg_coverage": 1000, "avg_policies": 1},
            {"upper_age": None, "avg_premium": 200, "avg_coverage": 2000, "avg_policies": 2},
        ]
    )
    table = load_benchmark_table(raw)
    assert table.benchmark_for(44).avg_premium == 100
    assert table.benchmark_for(45).avg_premium == 200


@pytest.mark.parametrize(
    "bands",
    [
        [],
        [{"upper_age": 30, "avg_premium": 1, "avg_coverage": 1, "avg_policies": 1}],
        [
            {"upper_age": 40, "avg_premium": 1, "avg_coverage": 1, "avg_policies": 1},
            {"upper_age": 30, "avg_premium": 1, "avg_coverage": 1, "avg_policies": 1},
            {"upper_age": None, "avg_premium": 1, "avg_coverage": 1, "avg_policies": 1},
        ],
        [{"upper_age": None, "avg_premium": 0, "avg_coverage": 1, "avg_policies": 1}],
    ],
)
def test_load_benchmark_table_rejects_bad_tables(bands):
    with pytest.raises(ValueError):
        load_benchmark_table(json.dumps(bands))


# ---------------------------------------------------------------------------
# Age
# ---------------------------------------------------------------------------


def test_age_counts_birthday_only_once_passed():
    dob = date(1990, 6, 20)
    assert age_on(dob, date(2025, 6, 19)) == 34
    assert age_on(dob, date(2025, 6, 20)) == 35


def test_age_or_default_for_missing_dob():
    assert age_or_default(None, date(2025, 1, 1), 35) == 35
    assert age_or_default(date(2000, 1, 1), date(2025, 1, 1), 35) == 25


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------


def test_round_half_up_matches_half_towards_positive_infinity():
    assert round_half_up(0.5) == 1
    assert round_half_up(1.5) == 2
    assert round_half_up(2.5) == 3
    assert round_half_up(-0.5) == 0
    assert round_half_up(75.49) == 75


def test_young_three_policy_portfolio():
    result = calculate_score(_aggregates(1000, 600_000, 3), benchmark_for(25))

    assert result.premium_diff_pct == pytest.approx(-58.333, abs=1e-3)
    assert result.coverage_diff_pct == pytest.approx(-60.0)
    assert result.policies_diff_pct == pytest.approx(20.0)
    assert result.premium_score == pytest.approx(40.0)
    assert result.coverage_score == pytest.approx(22.0)
    assert result.policy_score == pytest.approx(14.0)
    assert result.score == 76
    assert result.rating == "very good"


def test_expensive_thin_portfolio_scores_low():
    # avg premium 3600 vs 1800 (+100%), avg coverage 150k vs 1.5M (-90%)
    result = calculate_score(_aggregates(10_800, 450_000, 3), benchmark_for(55))
    assert result.premium_score == 0
    assert result.coverage_score == pytest.approx(13.0)
    assert result.policy_score == pytest.approx(8.75)
    assert result.score == 22
    assert result.rating == "needs improvement"


def test_zero_policies_raises():
    with pytest.raises(EmptyPortfolioError):
        calculate_score(_aggregates(0, 0, 0), benchmark_for(30))


def test_score_is_bounded_and_deterministic():
    rng = random.Random(1234)
    for _ in range(500):
        aggregates = _aggregates(
            round(rng.uniform(0, 50_000), 2),
            round(rng.uniform(0, 20_000_000), 2),
            rng.randint(1, 25),
        )
        bench = Benchmark(
            avg_premium=rng.uniform(1, 10_000),
            avg_coverage=rng.uniform(1_000, 10_000_000),
            avg_policies=rng.uniform(0.1, 15),
        )
        first = calculate_score(aggregates, bench)
        second = calculate_score(aggregates, bench)

        assert 0 <= first.premium_score <= 40
        assert 0 <= first.coverage_score <= 40
        assert 0 <= first.policy_score <= 20
        assert 0 <= first.score <= 100
        assert first == second


def test_aggregate_policies_skips_cancelled():
    user_id = uuid.uuid4()
    aggregates = aggregate_policies(
        [
            make_policy(user_id, premium=100, coverage=1000),
            make_policy(user_id, premium=200, coverage=2000, status="pending"),
            make_policy(user_id, premium=999, coverage=9999, status="cancelled"),
        ]
    )
    assert aggregates.policy_count == 2
    assert aggregates.total_premium == Decimal("300")
    assert aggregates.total_coverage == Decimal("3000")
    assert aggregates.avg_premium == pytest.approx(150.0)


def test_empty_aggregates_have_no_average():
    with pytest.raises(EmptyPortfolioError):
        _ = aggregate_policies([]).avg_premium


# ---------------------------------------------------------------------------
# Rating
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "score, label",
    [
        (100, "excellent"),
        (85, "excellent"),
        (84, "very good"),
        (70, "very good"),
        (69, "good"),
        (55, "good"),
        (54, "satisfactory"),
        (40, "satisfactory"),
        (39, "needs improvement"),
        (0, "needs improvement"),
    ],
)
def test_rating_thresholds(score, label):
    assert rating_for(score) == label


def test_rating_is_monotonic_in_score():
    ranks = [rating_rank(rating_for(score)) for score in range(0, 101)]
    assert ranks == sorted(ranks, reverse=True)


def test_rating_order_best_first():
    assert RATING_ORDER[0] == "excellent"
    assert RATING_ORDER[-1] == "needs improvement"
    assert rating_rank("excellent") < rating_rank("good")


def test_unknown_rating_rank_raises():
    with pytest.raises(ValueError):
        rating_rank("stellar")
