"""Age-banded market benchmarks — the reference portfolio a score is measured against.

The table is policy, not derived data: the defaults below are the agency's
market averages per age band and can be replaced wholesale through the
``BENCHMARK_TABLE`` setting without touching the scoring code.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable, Optional

from pydantic import BaseModel, Field, TypeAdapter

logger = logging.getLogger("argus.scoring.benchmarks")


class Benchmark(BaseModel):
    """Reference market averages for one age band."""

    avg_premium: float = Field(gt=0)
    avg_coverage: float = Field(gt=0)
    avg_policies: float = Field(gt=0)


class BenchmarkBand(Benchmark):
    """A benchmark bound to an age range.

    ``upper_age`` is exclusive; ``None`` marks the open-ended last band.
    """

    upper_age: Optional[int] = None


DEFAULT_BANDS: tuple[BenchmarkBand, ...] = (
    BenchmarkBand(upper_age=30, avg_premium=800, avg_coverage=500_000, avg_policies=2.5),
    BenchmarkBand(upper_age=40, avg_premium=1200, avg_coverage=800_000, avg_policies=3.5),
    BenchmarkBand(upper_age=50, avg_premium=1500, avg_coverage=1_200_000, avg_policies=4.2),
    BenchmarkBand(upper_age=None, avg_premium=1800, avg_coverage=1_500_000, avg_policies=4.8),
)


class BenchmarkTable:
    """Ordered, contiguous age bands with an open-ended last band.

    Lookup returns the first band whose upper bound exceeds the age, else the
    last band, so every integer age maps to exactly one benchmark.
    """

    def __init__(self, bands: Iterable[BenchmarkBand]) -> None:
        self._bands = tuple(bands)
        self._validate()

    @property
    def bands(self) -> tuple[BenchmarkBand, ...]:
        return self._bands

    def benchmark_for(self, age: int) -> Benchmark:
        """Return the benchmark for ``age``."""
        for band in self._bands[:-1]:
            if age < band.upper_age:  # type: ignore[operator]
                return self._strip(band)
        return self._strip(self._bands[-1])

    def _validate(self) -> None:
        if not self._bands:
            raise ValueError("Benchmark table needs at least one band")
        if self._bands[-1].upper_age is not None:
            raise ValueError("Last benchmark band must be open-ended (upper_age=None)")
        bounds = [b.upper_age for b in self._bands[:-1]]
        if any(b is None for b in bounds):
            raise ValueError("Only the last benchmark band may be open-ended")
        if any(lo >= hi for lo, hi in zip(bounds, bounds[1:])):
            raise ValueError(f"Benchmark band bounds must be strictly ascending: {bounds}")

    @staticmethod
    def _strip(band: BenchmarkBand) -> Benchmark:
        return Benchmark(
            avg_premium=band.avg_premium,
            avg_coverage=band.avg_coverage,
            avg_policies=band.avg_policies,
        )


DEFAULT_TABLE = BenchmarkTable(DEFAULT_BANDS)

_bands_adapter = TypeAdapter(list[BenchmarkBand])


def load_benchmark_table(raw: Optional[str]) -> BenchmarkTable:
    """Build a table from a JSON list of bands, or return the defaults.

    Raises:
        ValueError: If the JSON is malformed or the bands are not ordered.
    """
    if not raw:
        return DEFAULT_TABLE
    bands = _bands_adapter.validate_python(json.loads(raw))
    table = BenchmarkTable(bands)
    logger.info("Loaded custom benchmark table with %d bands", len(table.bands))
    return table


def benchmark_for(age: int, table: BenchmarkTable = DEFAULT_TABLE) -> Benchmark:
    """Look up the market benchmark for an integer age."""
    return table.benchmark_for(age)
