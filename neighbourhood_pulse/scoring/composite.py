"""
Neighbourhood Pulse - Composite Scorer

Combines normalized components into a bounded integer score:

    1. sum(weight * component) + capped bonuses
    2. times the product of every matching penalty multiplier
    3. clamped to [0, 100]
    4. rounded half away from zero

Components are expected in [0, 1]; missing or non-finite components count
as 0. Penalties match when all of their `field op value` conditions hold
against the neighbourhood's context values, and are applied in declaration
order. A condition on a field absent from the context never holds.

Usage:
    scorer = CompositeScorer(config.scores.walk, name="walk")
    result = scorer.score("centretown", {"grocery": 1.0, ...}, context={...})
    result.score
"""

from __future__ import annotations

import math
import operator
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from neighbourhood_pulse.scoring.rounding import round_half_up, round_score
from neighbourhood_pulse.shared.config import ConditionConfig, PenaltyConfig, ScoreConfig

MIN_SCORE = 0
MAX_SCORE = 100

_OPERATORS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


@dataclass
class CompositeScore:
    """A composite score with its breakdown."""

    neighbourhood_id: str
    score: int
    raw_total: float
    components: dict[str, float] = field(default_factory=dict)
    bonus_points: dict[str, float] = field(default_factory=dict)
    penalties_applied: list[str] = field(default_factory=list)
    multiplier: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "neighbourhood_id": self.neighbourhood_id,
            "score": self.score,
            "raw_total": self.raw_total,
            "components": self.components,
            "bonus_points": self.bonus_points,
            "penalties_applied": self.penalties_applied,
            "multiplier": self.multiplier,
        }


def _as_unit(value: Any) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return min(1.0, max(0.0, value))


def condition_holds(condition: ConditionConfig, context: Mapping[str, Any]) -> bool:
    """Evaluate one `field op value` test."""
    if condition.field not in context:
        return False
    try:
        actual = float(context[condition.field])
    except (TypeError, ValueError):
        return False
    if math.isnan(actual):
        return False
    return _OPERATORS[condition.op](actual, condition.value)


def penalty_matches(penalty: PenaltyConfig, context: Mapping[str, Any]) -> bool:
    """A penalty applies when every one of its conditions holds."""
    return bool(penalty.conditions) and all(
        condition_holds(condition, context) for condition in penalty.conditions
    )


class CompositeScorer:
    """
    Applies one ScoreConfig to per-neighbourhood components.

    The config is validated on load (weights sum to 100, multipliers in
    [0, 1]), so every score lands in [0, 100].
    """

    def __init__(self, config: ScoreConfig, name: str = "score"):
        self.config = config
        self.name = name

    def score(
        self,
        neighbourhood_id: str,
        components: Mapping[str, Any],
        bonuses: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> CompositeScore:
        """
        Score one neighbourhood.

        Args:
            neighbourhood_id: Id recorded on the result
            components: Component name -> normalized value in [0, 1]
            bonuses: Bonus name -> raw units (scaled by points_per_unit, capped)
            context: Values penalty conditions are evaluated against

        Returns:
            CompositeScore with the integer score and its breakdown
        """
        bonuses = bonuses or {}
        context = context or {}

        weighted = {
            name: weight * _as_unit(components.get(name))
            for name, weight in self.config.components.items()
        }

        bonus_points = {}
        for bonus in self.config.bonuses:
            units = bonuses.get(bonus.name, 0.0)
            try:
                units = float(units)
            except (TypeError, ValueError):
                units = 0.0
            if not math.isfinite(units) or units <= 0:
                units = 0.0
            bonus_points[bonus.name] = min(bonus.max_points, units * bonus.points_per_unit)

        raw_total = sum(weighted.values()) + sum(bonus_points.values())

        multiplier = 1.0
        applied = []
        for penalty in self.config.penalties:
            if penalty_matches(penalty, context):
                multiplier *= penalty.multiplier
                applied.append(penalty.name)

        clamped = min(MAX_SCORE, max(MIN_SCORE, raw_total * multiplier))

        return CompositeScore(
            neighbourhood_id=neighbourhood_id,
            score=round_score(clamped),
            raw_total=round_half_up(raw_total, 4),
            components={name: round_half_up(points, 4) for name, points in weighted.items()},
            bonus_points=bonus_points,
            penalties_applied=applied,
            multiplier=multiplier,
        )

    def score_frame(
        self,
        df: pd.DataFrame,
        component_columns: Mapping[str, str],
        context_columns: list[str] | None = None,
        bonus_columns: Mapping[str, str] | None = None,
        id_column: str = "id",
    ) -> list[CompositeScore]:
        """
        Score every row of a per-neighbourhood table.

        Args:
            df: One row per neighbourhood
            component_columns: Component name -> column holding its [0, 1] value
            context_columns: Columns exposed to penalty conditions
            bonus_columns: Bonus name -> column holding its raw units
            id_column: Column with the neighbourhood id

        Returns:
            One CompositeScore per row, in row order
        """
        context_columns = context_columns or []
        bonus_columns = bonus_columns or {}

        results = []
        for row in df.to_dict("records"):
            results.append(
                self.score(
                    str(row[id_column]),
                    {name: row.get(column) for name, column in component_columns.items()},
                    bonuses={name: row.get(column) for name, column in bonus_columns.items()},
                    context={column: row.get(column) for column in context_columns},
                )
            )
        return results


# =============================================================================
# Convenience Functions
# =============================================================================


def composite_score(
    config: ScoreConfig,
    components: Mapping[str, Any],
    bonuses: Mapping[str, Any] | None = None,
    context: Mapping[str, Any] | None = None,
) -> int:
    """Score a single set of components and return just the integer."""
    return CompositeScorer(config).score("", components, bonuses, context).score
