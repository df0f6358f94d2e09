"""Argus Benchmarking Package — cohort percentile, histogram and tips."""

from argus.benchmarking.cohort import (
    BenchmarkReport,
    CohortBenchmarkingEngine,
    compute_benchmark,
    histogram,
    median_of,
    percentile_rank,
)
from argus.benchmarking.tips import FALLBACK_TIPS, TipsGenerator

__all__ = [
    "BenchmarkReport",
    "CohortBenchmarkingEngine",
    "compute_benchmark",
    "histogram",
    "median_of",
    "percentile_rank",
    "FALLBACK_TIPS",
    "TipsGenerator",
]
