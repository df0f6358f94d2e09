"""Argus Cohort Benchmarking — where a user stands among people their age.

For a requesting user, the engine gathers the latest performance score of
every user within ±5 years of their current age, then reports:

- percentile rank (share of the cohort scoring strictly below the user)
- a five-bin histogram over fixed score ranges
- mean, median, max, min and cohort size
- the user's signed distance from the mean and the median

When fewer than five users fall in the age band, the whole scored population
is used instead.  Every request re-reads the store; nothing is cached, and the
engine never writes.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Literal, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel, Field

from argus.benchmarking.tips import TipsGenerator
from argus.config import settings
from argus.scoring.age import age_on, age_or_default
from argus.scoring.calculator import round_half_up
from argus.stores import PolicyReader, SnapshotStore

logger = logging.getLogger("argus.benchmarking.cohort")

DEFAULT_USER_SCORE = 50

# (label, inclusive min, inclusive max)
HISTOGRAM_BINS: tuple[tuple[str, int, int], ...] = (
    ("0-20", 0, 20),
    ("21-40", 21, 40),
    ("41-60", 41, 60),
    ("61-80", 61, 80),
    ("81-100", 81, 100),
)

CohortScope = Literal["age_cohort", "population"]


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class DistributionBin(BaseModel):
    range: str
    min: int
    max: int
    count: int = 0


class CohortStatistics(BaseModel):
    """Summary statistics over the cohort's latest scores.

    ``average`` and ``median`` are rounded for display; all four are ``None``
    for an empty population.
    """

    average: Optional[int] = None
    median: Optional[int] = None
    max: Optional[int] = None
    min: Optional[int] = None
    total_users: int = 0


class Comparison(BaseModel):
    vs_average: Optional[float] = None
    vs_median: Optional[float] = None


class BenchmarkReport(BaseModel):
    """Read-only benchmark view for one user.

    Attributes:
        user_score: The user's latest score (50 if they have none yet).
        percentile: 0–100 share of the cohort scoring below the user.
        distribution: Histogram over the fixed score bins.
        statistics: Cohort summary statistics.
        comparison: Signed, unrounded user score minus mean / median.
        cohort_scope: ``age_cohort`` or ``population`` when widened.
        ai_tips: Improvement tips, or the static fallback text.
    """

    user_score: int
    percentile: int = Field(ge=0, le=100)
    distribution: list[DistributionBin]
    statistics: CohortStatistics
    comparison: Comparison
    cohort_scope: CohortScope = "age_cohort"
    ai_tips: str = ""


# ---------------------------------------------------------------------------
# Pure statistics
# ---------------------------------------------------------------------------


def percentile_rank(user_score: int, scores: Sequence[int]) -> int:
    """Percent of ``scores`` strictly below ``user_score``; ties do not count."""
    if not scores:
        return 0
    below = sum(1 for s in scores if s < user_score)
    return round_half_up(100 * below / len(scores))


def histogram(scores: Sequence[int]) -> list[DistributionBin]:
    bins = [DistributionBin(range=label, min=lo, max=hi) for label, lo, hi in HISTOGRAM_BINS]
    for score in scores:
        for b in bins:
            if b.min <= score <= b.max:
                b.count += 1
                break
    return bins


def median_of(scores: Sequence[int]) -> int:
    """Element at index ``n // 2`` of the sorted scores; never interpolated."""
    ordered = sorted(scores)
    return ordered[len(ordered) // 2]


def compute_benchmark(
    user_score: int,
    scores: Sequence[int],
    cohort_scope: CohortScope = "age_cohort",
) -> BenchmarkReport:
    """Build the benchmark report for ``user_score`` within ``scores``."""
    distribution = histogram(scores)

    if not scores:
        return BenchmarkReport(
            user_score=user_score,
            percentile=0,
            distribution=distribution,
            statistics=CohortStatistics(total_users=0),
            comparison=Comparison(),
            cohort_scope=cohort_scope,
        )

    mean = sum(scores) / len(scores)
    median = median_of(scores)

    return BenchmarkReport(
        user_score=user_score,
        percentile=percentile_rank(user_score, scores),
        distribution=distribution,
        statistics=CohortStatistics(
            average=round_half_up(mean),
            median=median,
            max=max(scores),
            min=min(scores),
            total_users=len(scores),
        ),
        comparison=Comparison(
            vs_average=user_score - mean,
            vs_median=float(user_score - median),
        ),
        cohort_scope=cohort_scope,
    )


# ---------------------------------------------------------------------------
# CohortBenchmarkingEngine
# ---------------------------------------------------------------------------


class CohortBenchmarkingEngine:
    """Reads the population from the stores and builds a :class:`BenchmarkReport`.

    Typical usage::

        engine = CohortBenchmarkingEngine(reader, snapshots, TipsGenerator())
        report = await engine.benchmark_user(user_id)
    """

    def __init__(
        self,
        reader: PolicyReader,
        snapshots: SnapshotStore,
        tips: Optional[TipsGenerator] = None,
        age_window: Optional[int] = None,
        min_cohort_size: Optional[int] = None,
    ) -> None:
        self._reader = reader
        self._snapshots = snapshots
        self._tips = tips
        self._age_window = age_window if age_window is not None else settings.cohort_age_window
        self._min_cohort_size = (
            min_cohort_size if min_cohort_size is not None else settings.cohort_min_size
        )

    async def benchmark_user(
        self, user_id: UUID, today: Optional[date] = None
    ) -> BenchmarkReport:
        today = today or date.today()

        profile = await self._reader.get_profile(user_id)
        user_age = age_or_default(
            profile.date_of_birth if profile else None, today, settings.default_age
        )
        scores_by_user, scope = await self._cohort_scores(user_age, today)

        user_score = scores_by_user.get(user_id)
        if user_score is None:
            own = await self._snapshots.latest_per_user([user_id])
            snapshot = own.get(user_id)
            user_score = (
                snapshot.performance_score if snapshot is not None else DEFAULT_USER_SCORE
            )

        report = compute_benchmark(user_score, list(scores_by_user.values()), scope)

        if self._tips is not None:
            mean = (
                sum(scores_by_user.values()) / len(scores_by_user)
                if scores_by_user
                else None
            )
            report.ai_tips = await self._tips.generate_tips(
                user_score, mean, report.percentile
            )

        logger.info(
            "Benchmark user=%s age=%d scope=%s cohort=%d score=%d percentile=%d",
            user_id,
            user_age,
            scope,
            report.statistics.total_users,
            user_score,
            report.percentile,
        )
        return report

    async def _cohort_scores(
        self, user_age: int, today: date
    ) -> tuple[dict[UUID, int], CohortScope]:
        """Latest score per cohort member, widened to the population if too small."""
        low, high = user_age - self._age_window, user_age + self._age_window
        profiles = await self._reader.list_profiles()
        cohort_ids = [
            p.user_id
            for p in profiles
            if p.date_of_birth is not None
            and low <= age_on(p.date_of_birth, today) <= high
        ]

        if len(cohort_ids) >= self._min_cohort_size:
            latest = await self._snapshots.latest_per_user(cohort_ids)
            return {uid: s.performance_score for uid, s in latest.items()}, "age_cohort"

        logger.info(
            "Cohort for ages %d-%d has %d users (< %d); using full population",
            low,
            high,
            len(cohort_ids),
            self._min_cohort_size,
        )
        population = await self._snapshots.latest_per_user(None)
        return {uid: s.performance_score for uid, s in population.items()}, "population"
