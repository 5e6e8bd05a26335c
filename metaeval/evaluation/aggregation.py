"""Pure math: score aggregation, banding, descriptive statistics, outliers."""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from fractions import Fraction
from typing import Mapping

from metaeval.evaluation.types import Band

# Lower bound (inclusive) for each band, checked top-down.
BAND_THRESHOLDS: tuple[tuple[float, Band], ...] = (
    (0.9, Band.OPTIMAL),
    (0.75, Band.GOOD),
    (0.5, Band.ACCEPTABLE),
    (0.25, Band.DEGRADED),
)


@dataclass
class ValueSummary:
    """Statistical summary of a set of named values."""

    mean: float
    min_key: str
    min_val: float
    max_key: str
    max_val: float
    std_dev: float  # population
    sample_count: int


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


def classify_band(score: float) -> Band:
    """Map a 0-1 composite score onto its named band."""
    for threshold, band in BAND_THRESHOLDS:
        if score >= threshold:
            return band
    return Band.CRITICAL


def aggregate_scores(
    scores: Mapping[str, float],
    weights: Mapping[str, float] | None = None,
) -> float | None:
    """Combine per-dimension scores into one number.

    Without weights this is the arithmetic mean. With weights, dimensions
    missing from ``scores`` are ignored and the remaining weights are
    re-normalized; if they sum to zero the plain mean is used instead.
    Returns None for an empty score set.
    """
    if not scores:
        return None

    if weights:
        total_weight = 0.0
        weighted_sum = 0.0
        for name, score in scores.items():
            w = weights.get(name, 0.0)
            weighted_sum += score * w
            total_weight += w
        if total_weight > 0:
            return weighted_sum / total_weight

    return statistics.mean(scores.values())


def summarize_values(values: Mapping[str, float]) -> ValueSummary | None:
    """Compute descriptive statistics for a mapping of named values."""
    if not values:
        return None

    min_key = min(values, key=lambda k: values[k])
    max_key = max(values, key=lambda k: values[k])
    n = len(values)

    return ValueSummary(
        mean=statistics.mean(values.values()),
        min_key=min_key,
        min_val=values[min_key],
        max_key=max_key,
        max_val=values[max_key],
        std_dev=statistics.pstdev(values.values()) if n >= 2 else 0.0,
        sample_count=n,
    )


def sigma_outliers(values: Mapping[str, float], k: int = 2) -> list[str]:
    """Keys whose distance from the mean exceeds ``k`` population std devs.

    Computed in exact rational arithmetic so values sitting exactly on the
    boundary are never flagged by rounding noise. Compares squared distance
    against k² · variance, which is equivalent since both sides are >= 0.
    """
    if len(values) < 3:
        return []

    exact = {key: Fraction(v) for key, v in values.items()}
    mean = statistics.mean(exact.values())
    variance = statistics.pvariance(exact.values(), mu=mean)

    if variance == 0:
        return []

    limit = k * k * variance
    return [key for key, v in exact.items() if (v - mean) ** 2 > limit]
