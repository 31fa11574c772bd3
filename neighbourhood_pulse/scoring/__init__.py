"""
Neighbourhood Pulse - Scoring

Percentile normalization, composite scoring and area-weighted aggregation.
"""

from neighbourhood_pulse.scoring.aggregation import (
    AggregationResult,
    TractAggregate,
    aggregate_area_weighted,
)
from neighbourhood_pulse.scoring.composite import CompositeScore, CompositeScorer, composite_score
from neighbourhood_pulse.scoring.percentile import (
    MetricDistribution,
    inverse_rank_scores,
    normalize,
    percentile_threshold,
)
from neighbourhood_pulse.scoring.rounding import round_half_up, round_score, round_series

__all__ = [
    "AggregationResult",
    "TractAggregate",
    "aggregate_area_weighted",
    "CompositeScore",
    "CompositeScorer",
    "composite_score",
    "MetricDistribution",
    "inverse_rank_scores",
    "normalize",
    "percentile_threshold",
    "round_half_up",
    "round_score",
    "round_series",
]
