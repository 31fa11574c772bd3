"""
Unit tests for the composite scorer.

Tests weighting, bonus caps, penalty matching, clamping and rounding.
"""

import random

import pandas as pd
import pytest
from pydantic import ValidationError

from neighbourhood_pulse.scoring.composite import (
    CompositeScorer,
    composite_score,
    condition_holds,
)
from neighbourhood_pulse.shared.config import (
    BonusConfig,
    ConditionConfig,
    PenaltyConfig,
    ScoreConfig,
    ScoresConfig,
)


@pytest.fixture
def score_config():
    return ScoreConfig(
        components={"x": 60, "y": 40},
        bonuses=[BonusConfig(name="extra", points_per_unit=2, max_points=5)],
        penalties=[
            PenaltyConfig(
                name="no_x",
                multiplier=0.5,
                conditions=[ConditionConfig(field="x_count", op="<=", value=0)],
            ),
            PenaltyConfig(
                name="sparse",
                multiplier=0.5,
                conditions=[
                    ConditionConfig(field="area_km2", op=">", value=50),
                    ConditionConfig(field="density", op="<", value=100),
                ],
            ),
        ],
    )


class TestScoreConfig:
    """Test cases for score configuration validation."""

    def test_weights_must_sum_to_100(self):
        with pytest.raises(ValidationError):
            ScoreConfig(components={"x": 60, "y": 39})

    def test_penalty_multiplier_range(self):
        with pytest.raises(ValidationError):
            PenaltyConfig(name="bad", multiplier=1.5)

    def test_default_scores_are_valid(self):
        scores = ScoresConfig()
        assert sum(scores.walk.components.values()) == 100
        assert sum(scores.bike.components.values()) == 100
        assert sum(scores.transit.components.values()) == 100


class TestCompositeScorer:
    """Test cases for CompositeScorer."""

    def test_weighted_sum(self, score_config):
        result = CompositeScorer(score_config).score("n", {"x": 1.0, "y": 0.5})
        assert result.score == 80
        assert result.components == {"x": 60.0, "y": 20.0}
        assert result.penalties_applied == []

    def test_missing_and_out_of_range_components(self, score_config):
        result = CompositeScorer(score_config).score("n", {"x": 3.0, "y": float("nan")})
        assert result.score == 60

    def test_bonus_capped(self, score_config):
        scorer = CompositeScorer(score_config)
        assert scorer.score("n", {"x": 0.5}, bonuses={"extra": 1}).score == 32
        assert scorer.score("n", {"x": 0.5}, bonuses={"extra": 10}).score == 35
        assert scorer.score("n", {"x": 0.5}, bonuses={"extra": -4}).score == 30

    def test_penalty_applied(self, score_config):
        result = CompositeScorer(score_config).score(
            "n", {"x": 1.0, "y": 0.5}, bonuses={"extra": 10}, context={"x_count": 0}
        )
        # (60 + 20 + 5) * 0.5 = 42.5 rounds half away from zero
        assert result.score == 43
        assert result.penalties_applied == ["no_x"]

    def test_penalties_multiply(self, score_config):
        result = CompositeScorer(score_config).score(
            "n",
            {"x": 1.0, "y": 1.0},
            context={"x_count": 0, "area_km2": 60, "density": 10},
        )
        assert result.multiplier == 0.25
        assert result.score == 25
        assert result.penalties_applied == ["no_x", "sparse"]

    def test_partial_conditions_do_not_match(self, score_config):
        result = CompositeScorer(score_config).score(
            "n", {"x": 1.0, "y": 1.0}, context={"area_km2": 60, "density": 500}
        )
        assert result.score == 100

    def test_missing_context_field_never_matches(self, score_config):
        result = CompositeScorer(score_config).score("n", {"x": 1.0, "y": 1.0}, context={})
        assert result.score == 100

    def test_score_is_clamped(self):
        config = ScoreConfig(
            components={"x": 100},
            bonuses=[BonusConfig(name="extra", points_per_unit=10, max_points=50)],
        )
        assert CompositeScorer(config).score("n", {"x": 1.0}, bonuses={"extra": 10}).score == 100

    def test_score_frame(self, score_config):
        df = pd.DataFrame(
            {
                "id": ["a", "b"],
                "x_norm": [1.0, 0.0],
                "y_norm": [1.0, 0.5],
                "x_count": [3, 0],
            }
        )

        results = CompositeScorer(score_config).score_frame(
            df, {"x": "x_norm", "y": "y_norm"}, context_columns=["x_count"]
        )

        assert [r.neighbourhood_id for r in results] == ["a", "b"]
        assert [r.score for r in results] == [100, 10]

    def test_to_dict(self, score_config):
        result = CompositeScorer(score_config).score("n", {"x": 1.0})
        assert result.to_dict()["neighbourhood_id"] == "n"
        assert result.to_dict()["score"] == 60

    def test_default_walk_penalty(self):
        config = ScoresConfig().walk
        components = dict.fromkeys(config.components, 1.0)
        context = {"grocery_count": 0, "restaurant_count": 4, "area_km2": 3, "density": 4000}
        assert composite_score(config, components, context=context) == 70

    def test_default_walk_rural_penalty(self):
        """Test a large, sparse neighbourhood has its walk score halved."""
        config = ScoresConfig().walk
        components = {
            "grocery": 1.0,
            "restaurant": 1.0,
            "recreation": 1.0,
            "park": 0.0,
            "school": 0.5,
            "library": 1.0,
        }
        context = {"grocery_count": 3, "restaurant_count": 2, "area_km2": 60, "density": 50}

        result = CompositeScorer(config).score("n", components, context=context)

        assert result.raw_total == 80
        assert result.penalties_applied == ["rural"]
        assert result.score == 40

    @pytest.mark.parametrize("seed", range(5))
    def test_penalties_never_raise_score(self, seed):
        """Test scoring with penalties never beats scoring without them."""
        rng = random.Random(seed)
        config = ScoresConfig().walk
        unpenalized = CompositeScorer(config.model_copy(update={"penalties": []}))
        penalized = CompositeScorer(config)

        for _ in range(50):
            components = {name: rng.uniform(-0.2, 1.2) for name in config.components}
            context = {
                "grocery_count": rng.choice([0, 0, 1, 5]),
                "restaurant_count": rng.choice([0, 2]),
                "area_km2": rng.uniform(0.5, 120),
                "density": rng.uniform(0, 8000),
            }

            with_penalties = penalized.score("n", components, context=context)
            without = unpenalized.score("n", components, context=context)

            assert 0 <= with_penalties.score <= without.score <= 100


class TestConditionHolds:
    """Test cases for condition evaluation."""

    def test_operators(self):
        assert condition_holds(ConditionConfig(field="v", op=">=", value=2), {"v": 2})
        assert condition_holds(ConditionConfig(field="v", op="!=", value=2), {"v": 3})
        assert not condition_holds(ConditionConfig(field="v", op="<", value=2), {"v": 2})

    def test_non_numeric_value(self):
        condition = ConditionConfig(field="v", op="<=", value=0)
        assert not condition_holds(condition, {"v": "n/a"})
        assert not condition_holds(condition, {"v": None})
        assert not condition_holds(condition, {"v": float("nan")})
