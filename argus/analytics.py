"""Portfolio analytics — on-demand view of a user's current portfolio.

Unlike the nightly snapshot, nothing here is persisted.  The view combines:

- KPIs over the non-cancelled policies (totals, count, coverage-to-premium
  ROI, composite score and rating)
- the comparison against the benchmark for the owner's age band
- a per-provider breakdown ordered by total premium, largest first
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from argus.config import settings
from argus.errors import EmptyPortfolioError
from argus.models import PolicyRecord, UserProfile
from argus.scoring.age import age_or_default
from argus.scoring.benchmarks import Benchmark, BenchmarkTable, load_benchmark_table
from argus.scoring.calculator import aggregate_policies, calculate_score, round_half_up
from argus.stores import PolicyReader

logger = logging.getLogger("argus.analytics")


class ProviderStats(BaseModel):
    """Totals and averages for one provider's policies."""

    provider: str
    policy_count: int = Field(ge=1)
    total_premium: Decimal
    total_coverage: Decimal
    avg_premium: float
    avg_coverage: float


class PortfolioAnalytics(BaseModel):
    """The full analytics view returned by :func:`build_portfolio_analytics`."""

    user_id: UUID
    total_policies: int
    total_premium: Decimal
    total_coverage: Decimal
    avg_premium: float
    roi: int = Field(..., description="Total coverage per unit of premium, in percent")
    performance_score: int = Field(ge=0, le=100)
    performance_rating: str
    premium_score: int
    coverage_score: int
    policy_score: int
    premium_vs_market: float
    coverage_vs_market: float
    policies_vs_market: float
    age: int
    age_group: str
    benchmark: Benchmark
    providers: list[ProviderStats]


def _one_decimal(value: float) -> float:
    return round_half_up(value * 10) / 10


def age_group_for(age: int) -> str:
    if age < 30:
        return "under 30"
    if age < 40:
        return "30-39"
    if age < 50:
        return "40-49"
    return "50+"


def provider_breakdown(policies: Iterable[PolicyRecord]) -> list[ProviderStats]:
    """Group non-cancelled policies by provider, largest total premium first."""
    grouped: dict[str, list[PolicyRecord]] = defaultdict(list)
    for policy in policies:
        if policy.status == "cancelled":
            continue
        grouped[policy.provider].append(policy)

    rows = []
    for provider, members in grouped.items():
        total_premium = sum((Decimal(p.premium) for p in members), Decimal("0"))
        total_coverage = sum((Decimal(p.coverage_amount) for p in members), Decimal("0"))
        rows.append(
            ProviderStats(
                provider=provider,
                policy_count=len(members),
                total_premium=total_premium,
                total_coverage=total_coverage,
                avg_premium=float(total_premium) / len(members),
                avg_coverage=float(total_coverage) / len(members),
            )
        )
    rows.sort(key=lambda r: r.total_premium, reverse=True)
    return rows


def build_portfolio_analytics(
    user_id: UUID,
    policies: list[PolicyRecord],
    profile: Optional[UserProfile],
    today: date,
    table: BenchmarkTable,
) -> PortfolioAnalytics:
    """Compute the analytics view for one user.

    A missing profile or date of birth falls back to ``settings.default_age``.

    Raises:
        EmptyPortfolioError: If none of the policies is non-cancelled.
    """
    aggregates = aggregate_policies(policies)
    if aggregates.policy_count == 0:
        raise EmptyPortfolioError(f"No active policies for user_id={user_id}")

    dob = profile.date_of_birth if profile is not None else None
    age = age_or_default(dob, today, settings.default_age)
    benchmark = table.benchmark_for(age)
    result = calculate_score(aggregates, benchmark)

    roi = 0
    if aggregates.total_premium > 0:
        roi = round_half_up(
            float(aggregates.total_coverage) / float(aggregates.total_premium) * 100
        )

    return PortfolioAnalytics(
        user_id=user_id,
        total_policies=aggregates.policy_count,
        total_premium=aggregates.total_premium,
        total_coverage=aggregates.total_coverage,
        avg_premium=aggregates.avg_premium,
        roi=roi,
        performance_score=result.score,
        performance_rating=result.rating,
        premium_score=round_half_up(result.premium_score),
        coverage_score=round_half_up(result.coverage_score),
        policy_score=round_half_up(result.policy_score),
        premium_vs_market=_one_decimal(result.premium_diff_pct),
        coverage_vs_market=_one_decimal(result.coverage_diff_pct),
        policies_vs_market=_one_decimal(result.policies_diff_pct),
        age=age,
        age_group=age_group_for(age),
        benchmark=benchmark,
        providers=provider_breakdown(policies),
    )


class PortfolioAnalyticsService:
    """Reads a user's policies and profile and builds their analytics view."""

    def __init__(
        self,
        reader: PolicyReader,
        table: Optional[BenchmarkTable] = None,
    ) -> None:
        self._reader = reader
        self._table = table or load_benchmark_table(settings.benchmark_table)

    async def current(
        self, user_id: UUID, today: Optional[date] = None
    ) -> PortfolioAnalytics:
        today = today or datetime.now(timezone.utc).date()
        policies = await self._reader.list_active_policies(user_id)
        profile = await self._reader.get_profile(user_id)
        analytics = build_portfolio_analytics(
            user_id, policies, profile, today, self._table
        )
        logger.info(
            "Analytics for user %s: %d policies, score %d",
            user_id,
            analytics.total_policies,
            analytics.performance_score,
        )
        return analytics
