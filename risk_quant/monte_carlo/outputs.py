"""
PURPOSE: Summarize simulated trial totals into percentiles, moments and a histogram.

This module transforms the engine's per-trial totals into the statistics the
calling service stores and charts: P10/P50/P90, the target percentile, sample
mean and standard deviation, a fixed percentile table and a histogram.

SRP/DRY: Single responsibility = distribution statistics.
         No simulation, no sensitivity analysis.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from risk_quant.monte_carlo.config import (
    HISTOGRAM_BUCKETS,
    MAX_HISTOGRAM_BUCKETS,
    MIN_HISTOGRAM_BUCKETS,
    NICE_STEPS,
    PERCENTILE_TABLE,
)
from risk_quant.monte_carlo.errors import NumericInstabilityError
from risk_quant.monte_carlo.models import HistogramBucket, PercentileRow

logger = logging.getLogger(__name__)

__all__ = ["StatisticsAggregator", "SummaryStatistics", "percentile", "nice_bucket_width"]


def percentile(sorted_values: np.ndarray, p: float) -> float:
    """
    Percentile by linear interpolation between the two nearest ranks.

    rank = p / 100 * (n - 1); the value is interpolated between
    sorted_values[floor(rank)] and sorted_values[ceil(rank)].
    """
    if len(sorted_values) == 0:
        raise ValueError("cannot take a percentile of an empty array")
    if not 0 <= p <= 100:
        raise ValueError(f"percentile must be in [0, 100], got {p}")
    return float(np.percentile(sorted_values, p, method="linear"))


def _bucket_edges(low: float, high: float, width: float) -> np.ndarray:
    """[low, interior multiples of width strictly inside (low, high), high]."""
    first = math.floor(low / width) + 1
    last = math.ceil(high / width) - 1
    interior = np.arange(first, last + 1, dtype=float) * width
    # Distinct values only: at large magnitudes neighbouring multiples can round together.
    interior = np.unique(interior[(interior > low) & (interior < high)])
    return np.concatenate(([low], interior, [high]))


def nice_bucket_width(low: float, high: float, target_buckets: int = HISTOGRAM_BUCKETS) -> float:
    """
    Pick a bucket width of the form {1, 2, 2.5, 5} x 10^k for the range [low, high].

    Among the nearby nice widths, the one whose bucket count is closest to
    target_buckets while staying within [MIN_HISTOGRAM_BUCKETS,
    MAX_HISTOGRAM_BUCKETS] wins; ties go to the wider bucket.
    """
    span = high - low
    if span <= 0:
        raise ValueError(f"range must be positive, got [{low}, {high}]")
    raw = span / target_buckets
    exponent = math.floor(math.log10(raw))

    candidates = []
    for shift in (-1, 0, 1):
        scale = 10.0 ** (exponent + shift)
        for step in NICE_STEPS[:-1]:
            width = step * scale
            count = len(_bucket_edges(low, high, width)) - 1
            candidates.append((width, count))

    in_range = [c for c in candidates if MIN_HISTOGRAM_BUCKETS <= c[1] <= MAX_HISTOGRAM_BUCKETS]
    if in_range:
        width, _ = min(in_range, key=lambda c: (abs(c[1] - target_buckets), -c[0]))
        return width
    # Fall back to the smallest nice width that is at least the raw width.
    return min(width for width, _ in candidates if width >= raw)


@dataclass(frozen=True)
class SummaryStatistics:
    """Statistics of the simulated total distribution."""

    p10: float
    p50: float
    p90: float
    mean: float
    std_dev: float
    min: float
    max: float
    target_percentile: float
    target_value: float
    percentile_table: List[PercentileRow]
    distribution: List[HistogramBucket]


class StatisticsAggregator:
    """
    Turns the per-trial totals into summary statistics.

    All percentiles (P10/P50/P90, the target value and the table) share one
    interpolation rule; mean and standard deviation are the sample moments
    with Bessel's correction.
    """

    def __init__(
        self,
        percentiles: Sequence[float] = PERCENTILE_TABLE,
        bucket_count: int = HISTOGRAM_BUCKETS,
    ):
        if not MIN_HISTOGRAM_BUCKETS <= bucket_count <= MAX_HISTOGRAM_BUCKETS:
            raise ValueError(
                f"bucket_count must be in [{MIN_HISTOGRAM_BUCKETS}, {MAX_HISTOGRAM_BUCKETS}], got {bucket_count}"
            )
        self.percentiles = tuple(sorted(percentiles))
        self.bucket_count = bucket_count

    def summarize(self, totals: np.ndarray, target_percentile: float, base: float = 0.0) -> SummaryStatistics:
        """
        Summarize the trial totals.

        Args:
            totals: Per-trial totals, any order.
            target_percentile: Percentile (0-100) reported as target_value.
            base: Deterministic baseline; percentile rows report value - base.

        Returns:
            SummaryStatistics.

        Raises:
            ValueError: if totals is empty or target_percentile is out of range.
            NumericInstabilityError: if totals or the moments are not finite.
        """
        values = np.sort(np.asarray(totals, dtype=float))
        if values.size == 0:
            raise ValueError("totals must not be empty")
        if not np.all(np.isfinite(values)):
            raise NumericInstabilityError("statistics", "non-finite trial total")

        mean = float(np.mean(values))
        std_dev = float(np.std(values, ddof=1)) if values.size > 1 else 0.0
        if not (math.isfinite(mean) and math.isfinite(std_dev)):
            raise NumericInstabilityError("statistics", f"mean={mean}, std_dev={std_dev}")

        table = []
        for p in self.percentiles:
            value = percentile(values, p)
            table.append(PercentileRow(percentile=p, value=value, variance_from_base=value - base))

        return SummaryStatistics(
            p10=percentile(values, 10),
            p50=percentile(values, 50),
            p90=percentile(values, 90),
            mean=mean,
            std_dev=std_dev,
            min=float(values[0]),
            max=float(values[-1]),
            target_percentile=float(target_percentile),
            target_value=percentile(values, target_percentile),
            percentile_table=table,
            distribution=self.histogram(values),
        )

    def histogram(self, sorted_values: np.ndarray) -> List[HistogramBucket]:
        """
        Bucket the sorted totals.

        The first bucket starts at min(totals) and the last ends at max(totals);
        interior edges sit on multiples of a nice width. When the range is too
        narrow relative to its magnitude for those edges to exist in float64,
        bucket_count equal-width buckets are used instead. Buckets are half-open
        except the last, which is closed, so every trial lands in exactly one.
        """
        n = sorted_values.size
        low, high = float(sorted_values[0]), float(sorted_values[-1])
        if low == high:
            return [HistogramBucket(bucket_start=low, bucket_end=high, count=n, percentage=100.0)]

        width = nice_bucket_width(low, high, self.bucket_count)
        edges = _bucket_edges(low, high, width)
        if not MIN_HISTOGRAM_BUCKETS <= len(edges) - 1 <= MAX_HISTOGRAM_BUCKETS:
            # Range too narrow for float64 multiples of width at this magnitude.
            logger.debug("No usable nice edges over [%s, %s]; using %s equal buckets", low, high, self.bucket_count)
            edges = np.linspace(low, high, self.bucket_count + 1)
        counts, _ = np.histogram(sorted_values, bins=edges)
        logger.debug("Histogram width %s over [%s, %s]: %s buckets", width, low, high, len(counts))
        return [
            HistogramBucket(
                bucket_start=float(edges[i]),
                bucket_end=float(edges[i + 1]),
                count=int(counts[i]),
                percentage=float(counts[i]) / n * 100.0,
            )
            for i in range(len(counts))
        ]
