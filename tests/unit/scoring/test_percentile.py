"""
Unit tests for percentile normalization.

Tests nearest-rank thresholds, saturating normalization and inverse ranking.
"""

import random

import pandas as pd
import pytest

from neighbourhood_pulse.scoring.percentile import (
    MetricDistribution,
    inverse_rank_scores,
    normalize,
    percentile_threshold,
)


class TestMetricDistribution:
    """Test cases for MetricDistribution."""

    @pytest.fixture
    def distribution(self):
        return MetricDistribution(
            "grocery_density",
            {"a": 1.0, "b": 2.0, "c": 3.0, "d": 4.0, "e": 0.0, "f": -1.0, "g": float("nan")},
        )

    def test_positive_excludes_no_data(self, distribution):
        assert distribution.positive == {"a": 1.0, "b": 2.0, "c": 3.0, "d": 4.0}
        assert len(distribution) == 7

    def test_describe(self, distribution):
        summary = distribution.describe()
        assert summary["count"] == 4
        assert summary["excluded"] == 3
        assert summary["max"] == 4.0
        assert summary["median"] == 2.5

    def test_describe_empty(self):
        assert MetricDistribution("empty", {"a": 0}).describe()["count"] == 0

    def test_from_frame(self):
        df = pd.DataFrame({"id": ["a", "b"], "parks_per_km2": [0.5, 1.5]})
        distribution = MetricDistribution.from_frame(df, "parks_per_km2")
        assert distribution.name == "parks_per_km2"
        assert distribution.values == {"a": 0.5, "b": 1.5}


class TestPercentileThreshold:
    """Test cases for percentile_threshold."""

    def test_nearest_rank(self):
        values = [4.0, 1.0, 3.0, 2.0]
        # floor(4 * 0.9) = 3 -> largest
        assert percentile_threshold(values, p=0.9) == 4.0
        # floor(4 * 0.5) = 2
        assert percentile_threshold(values, p=0.5) == 3.0

    def test_large_distribution(self):
        values = list(range(1, 11))
        assert percentile_threshold(values, p=0.9) == 10
        assert percentile_threshold(values, p=0.85) == 9

    def test_non_positive_values_ignored(self):
        assert percentile_threshold([0, 0, 0, -3, 5.0], p=0.1) == 5.0

    def test_fallback_when_no_data(self):
        assert percentile_threshold([0, None, float("nan")], p=0.9, fallback=5.0) == 5.0
        assert percentile_threshold(MetricDistribution("x", {}), fallback=1.0) == 1.0

    def test_outlier_sets_threshold(self):
        """Test one outlier at the top of a small distribution."""
        values = [0, 0, 2, 4, 6, 8, 10, 100]

        threshold = percentile_threshold(values, p=0.9)

        # Positives [2, 4, 6, 8, 10, 100]: floor(6 * 0.9) = 5
        assert threshold == 100
        assert normalize(10, threshold) == pytest.approx(0.1)

    @pytest.mark.parametrize("seed", range(10))
    @pytest.mark.parametrize("p", [0.05, 0.5, 0.9, 0.99])
    def test_threshold_within_positive_range(self, seed, p):
        """Test the threshold is always one of the positive values."""
        rng = random.Random(seed)
        values = [rng.choice([0.0, -1.0, rng.uniform(0.01, 500)]) for _ in range(rng.randint(1, 60))]
        positive = [v for v in values if v > 0]

        threshold = percentile_threshold(values, p=p, fallback=-1.0)

        if positive:
            assert min(positive) <= threshold <= max(positive)
            assert threshold in positive
        else:
            assert threshold == -1.0

    @pytest.mark.parametrize("p", [0.0, 1.0, -0.5, 1.5])
    def test_percentile_out_of_range(self, p):
        with pytest.raises(ValueError):
            percentile_threshold([1.0], p=p)


class TestNormalize:
    """Test cases for normalize."""

    def test_linear_below_threshold(self):
        assert normalize(2.0, 4.0) == 0.5

    def test_saturates_at_one(self):
        assert normalize(10.0, 4.0) == 1.0

    @pytest.mark.parametrize("value", [None, 0, -1.0, float("nan")])
    def test_missing_or_non_positive_gives_zero(self, value):
        assert normalize(value, 4.0) == 0.0

    def test_zero_threshold_gives_zero(self):
        assert normalize(3.0, 0.0) == 0.0


class TestInverseRankScores:
    """Test cases for inverse_rank_scores."""

    def test_lowest_value_scores_highest(self):
        distribution = MetricDistribution("rate", {"a": 10.0, "b": 5.0, "c": 0.0, "d": 5.0})

        scores = inverse_rank_scores(distribution)

        # Ties broken by id: b before d
        assert scores == {"b": 100, "d": 67, "a": 33, "c": 100}

    def test_all_missing(self):
        scores = inverse_rank_scores(MetricDistribution("rate", {"a": 0, "b": None}))
        assert scores == {"a": 100, "b": 100}
