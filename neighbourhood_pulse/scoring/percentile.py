"""
Neighbourhood Pulse - Percentile Normalizer

Derives saturation thresholds from the distribution of a raw measure across
all neighbourhoods, and maps raw values onto [0, 1] against them.

The threshold is the nearest-rank percentile of the positive values:
sorted[floor(n * p)], clamped to the last index. Non-positive values mean
"no data" and never pull the threshold down. When nothing positive remains
the caller's fallback is used so a component never divides by zero.

Usage:
    dist = MetricDistribution("grocery_density", {"a": 1.0, "b": 4.0})
    threshold = percentile_threshold(dist, p=0.9, fallback=1.0)
    normalize(2.0, threshold)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from neighbourhood_pulse.scoring.rounding import round_score

logger = logging.getLogger(__name__)


def _is_positive(value: Any) -> bool:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0


@dataclass(frozen=True)
class MetricDistribution:
    """One measure across all neighbourhoods (neighbourhood id -> raw value)."""

    name: str
    values: Mapping[str, float] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def positive(self) -> dict[str, float]:
        """The entries that count as data: finite and > 0."""
        return {k: float(v) for k, v in self.values.items() if _is_positive(v)}

    def sorted_positive(self) -> list[float]:
        return sorted(self.positive.values())

    def describe(self) -> dict[str, Any]:
        """Summary statistics of the positive values for logging."""
        data = np.array(self.sorted_positive(), dtype=float)
        if data.size == 0:
            return {"metric": self.name, "count": 0, "excluded": len(self.values)}
        return {
            "metric": self.name,
            "count": int(data.size),
            "excluded": len(self.values) - int(data.size),
            "min": float(data.min()),
            "max": float(data.max()),
            "mean": float(data.mean()),
            "median": float(np.median(data)),
        }

    @classmethod
    def from_frame(cls, df: pd.DataFrame, column: str, id_column: str = "id") -> MetricDistribution:
        """Build a distribution from one column of a per-neighbourhood table."""
        return cls(name=column, values=dict(zip(df[id_column], df[column], strict=True)))


def percentile_threshold(
    distribution: MetricDistribution | Iterable[float],
    p: float = 0.9,
    fallback: float = 1.0,
) -> float:
    """
    Nearest-rank percentile of the positive values.

    Args:
        distribution: A MetricDistribution or plain iterable of raw values
        p: Target percentile in (0, 1)
        fallback: Returned when no positive value exists

    Returns:
        The saturation threshold T (always > 0 for a positive fallback)
    """
    if not 0.0 < p < 1.0:
        raise ValueError(f"percentile must be in (0, 1), got {p}")

    if isinstance(distribution, MetricDistribution):
        name = distribution.name
        values = distribution.sorted_positive()
    else:
        name = "metric"
        values = sorted(float(v) for v in distribution if _is_positive(v))

    if not values:
        logger.warning(
            f"No positive values for {name}; using fallback threshold {fallback}",
            extra={"metric": name, "fallback": fallback},
        )
        return fallback

    index = min(math.floor(len(values) * p), len(values) - 1)
    return values[index]


def normalize(value: float | None, threshold: float) -> float:
    """Saturating normalization min(1, v / T); non-positive or missing v gives 0."""
    if not _is_positive(value) or threshold <= 0:
        return 0.0
    return min(1.0, float(value) / threshold)


def inverse_rank_scores(distribution: MetricDistribution) -> dict[str, int]:
    """
    Score a lower-is-better measure by rank.

    Positive values are ranked ascending (ties by id) and the i-th scores
    round((n - i) / n * 100), so the lowest gets 100. Neighbourhoods with
    no positive value also score 100.
    """
    ranked = sorted(distribution.positive.items(), key=lambda item: (item[1], item[0]))
    n = len(ranked)
    scores = {neighbourhood_id: 100 for neighbourhood_id in distribution.values}
    for i, (neighbourhood_id, _value) in enumerate(ranked):
        scores[neighbourhood_id] = round_score((n - i) / n * 100)
    return scores
