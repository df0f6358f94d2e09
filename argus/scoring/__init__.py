"""Argus Scoring Package — benchmarks, portfolio score and rating.

Everything in this package is pure: no I/O, no clock reads.  Callers supply
"today" and the policies; the functions return the numbers.
"""

from argus.scoring.age import age_on, age_or_default
from argus.scoring.benchmarks import (
    Benchmark,
    BenchmarkBand,
    BenchmarkTable,
    DEFAULT_TABLE,
    benchmark_for,
    load_benchmark_table,
)
from argus.scoring.calculator import (
    PortfolioAggregates,
    ScoreResult,
    aggregate_policies,
    calculate_score,
    round_half_up,
)
from argus.scoring.rating import RATING_ORDER, rating_for, rating_rank

__all__ = [
    "age_on",
    "age_or_default",
    "Benchmark",
    "BenchmarkBand",
    "BenchmarkTable",
    "DEFAULT_TABLE",
    "benchmark_for",
    "load_benchmark_table",
    "PortfolioAggregates",
    "ScoreResult",
    "aggregate_policies",
    "calculate_score",
    "round_half_up",
    "RATING_ORDER",
    "rating_for",
    "rating_rank",
]
