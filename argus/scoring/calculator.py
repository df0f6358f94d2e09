"""Score calculator — composite 0–100 portfolio performance score.

A portfolio is measured against the market benchmark for the owner's age on
three axes, each expressed as a signed percent deviation from the benchmark:

- 40 pts — premium: paying less than the benchmark is better
- 40 pts — coverage: more coverage per policy than the benchmark is better
- 20 pts — policy count: being close to the benchmark count is better

Each sub-score is clamped to its range before summing, so the composite is
always within [0, 100].  The calculator is a pure function of its inputs.
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, Field

from argus.errors import EmptyPortfolioError
from argus.models import PolicyRecord
from argus.scoring.benchmarks import Benchmark
from argus.scoring.rating import rating_for

logger = logging.getLogger("argus.scoring.calculator")

PREMIUM_MAX = 40.0
COVERAGE_MAX = 40.0
POLICY_MAX = 20.0

_PREMIUM_WEIGHT = 0.5
_COVERAGE_WEIGHT = 0.3
_POLICY_WEIGHT = 0.3


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going towards +infinity."""
    return math.floor(value + 0.5)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class PortfolioAggregates(BaseModel):
    """Totals over a user's active policies."""

    total_premium: Decimal
    total_coverage: Decimal
    policy_count: int = Field(ge=0)

    @property
    def avg_premium(self) -> float:
        if self.policy_count == 0:
            raise EmptyPortfolioError("Average premium of an empty portfolio")
        return float(self.total_premium) / self.policy_count

    @property
    def avg_coverage(self) -> float:
        if self.policy_count == 0:
            raise EmptyPortfolioError("Average coverage of an empty portfolio")
        return float(self.total_coverage) / self.policy_count


class ScoreResult(BaseModel):
    """Full breakdown of one score computation.

    Attributes:
        premium_diff_pct: Signed % deviation of average premium from benchmark.
        coverage_diff_pct: Signed % deviation of average coverage from benchmark.
        policies_diff_pct: Signed % deviation of policy count from benchmark.
        premium_score: Clamped premium sub-score (0–40), unrounded.
        coverage_score: Clamped coverage sub-score (0–40), unrounded.
        policy_score: Clamped policy-count sub-score (0–20), unrounded.
        score: Composite integer score (0–100).
        rating: Rating label for ``score``.
        aggregates: The portfolio totals that were scored.
        benchmark: The benchmark they were scored against.
    """

    premium_diff_pct: float
    coverage_diff_pct: float
    policies_diff_pct: float
    premium_score: float
    coverage_score: float
    policy_score: float
    score: int = Field(ge=0, le=100)
    rating: str
    aggregates: PortfolioAggregates
    benchmark: Benchmark


def aggregate_policies(policies: Iterable[PolicyRecord]) -> PortfolioAggregates:
    """Sum premium and coverage over the non-cancelled policies."""
    total_premium = Decimal("0")
    total_coverage = Decimal("0")
    count = 0
    for policy in policies:
        if policy.status == "cancelled":
            continue
        total_premium += Decimal(policy.premium)
        total_coverage += Decimal(policy.coverage_amount)
        count += 1
    return PortfolioAggregates(
        total_premium=total_premium,
        total_coverage=total_coverage,
        policy_count=count,
    )


def calculate_score(
    aggregates: PortfolioAggregates, benchmark: Benchmark
) -> ScoreResult:
    """Score a portfolio against a benchmark.

    Raises:
        EmptyPortfolioError: If the portfolio has no active policies.
    """
    if aggregates.policy_count == 0:
        raise EmptyPortfolioError("Cannot score a portfolio with zero active policies")

    premium_diff = (
        (aggregates.avg_premium - benchmark.avg_premium) / benchmark.avg_premium * 100
    )
    coverage_diff = (
        (aggregates.avg_coverage - benchmark.avg_coverage) / benchmark.avg_coverage * 100
    )
    policies_diff = (
        (aggregates.policy_count - benchmark.avg_policies) / benchmark.avg_policies * 100
    )

    premium_score = clamp(PREMIUM_MAX - premium_diff * _PREMIUM_WEIGHT, 0, PREMIUM_MAX)
    coverage_score = clamp(COVERAGE_MAX + coverage_diff * _COVERAGE_WEIGHT, 0, COVERAGE_MAX)
    policy_score = clamp(POLICY_MAX - abs(policies_diff) * _POLICY_WEIGHT, 0, POLICY_MAX)

    score = round_half_up(premium_score + coverage_score + policy_score)

    logger.debug(
        "Scored portfolio: policies=%d premium_diff=%.2f%% coverage_diff=%.2f%% "
        "policies_diff=%.2f%% -> %d",
        aggregates.policy_count,
        premium_diff,
        coverage_diff,
        policies_diff,
        score,
    )

    return ScoreResult(
        premium_diff_pct=premium_diff,
        coverage_diff_pct=coverage_diff,
        policies_diff_pct=policies_diff,
        premium_score=premium_score,
        coverage_score=coverage_score,
        policy_score=policy_score,
        score=score,
        rating=rating_for(score),
        aggregates=aggregates,
        benchmark=benchmark,
    )
