"""
Unit tests for CollisionMetricsBuilder.

Tests severity counts, densities and the per-capita safety level.
"""

import pandas as pd
import pytest

from neighbourhood_pulse.datasets.collisions.features import (
    LEVEL_HIGH,
    LEVEL_LOW,
    LEVEL_MODERATE,
    CollisionMetricsBuilder,
    build_collision_metrics,
)
from tests.conftest import make_neighbourhood

WEST = (45.41, -75.69)
EAST = (45.41, -75.67)


def collisions(spec):
    """Standardized collision rows from (severity, (lat, lon), count, pedestrians)."""
    rows = []
    for severity, (lat, lon), count, pedestrians in spec:
        for _ in range(count):
            rows.append(
                {
                    "feature_id": f"collision-{len(rows)}",
                    "category": severity,
                    "magnitude": 1.0,
                    "lat": lat,
                    "lon": lon,
                    "pedestrians": pedestrians,
                    "bicycles": 0,
                }
            )
    return pd.DataFrame(rows)


class TestCollisionMetricsBuilder:
    """Test cases for CollisionMetricsBuilder class."""

    @pytest.fixture
    def builder(self, test_config):
        """Create a CollisionMetricsBuilder instance."""
        return CollisionMetricsBuilder(test_config)

    @pytest.fixture
    def sample_collisions(self):
        """10 collisions in the west square and 20 in the east."""
        return collisions(
            [
                ("fatal", WEST, 1, 1),
                ("injury", WEST, 3, 0),
                ("property_damage", WEST, 6, 0),
                ("injury", EAST, 2, 1),
                ("property_damage", EAST, 18, 0),
            ]
        )

    def test_get_dataset_name(self, builder):
        """Test dataset name is correct."""
        assert builder.get_dataset_name() == "collisions"

    @pytest.mark.parametrize(
        ("per_1000", "expected"),
        [(0.0, LEVEL_LOW), (4.9, LEVEL_LOW), (5.0, LEVEL_MODERATE), (15.0, LEVEL_HIGH)],
    )
    def test_collision_level(self, builder, per_1000, expected):
        """Test level boundaries."""
        assert builder.collision_level(per_1000) == expected

    def test_counts(self, builder, sample_collisions, neighbourhoods):
        """Test counts by severity and road user."""
        builder.run(sample_collisions, neighbourhoods, execution_date="2024-01-15")
        df = builder.get_data().set_index("id")

        assert df.loc["west", "collisions"] == 10
        assert df.loc["west", "collisions_fatal"] == 1
        assert df.loc["west", "collisions_injury"] == 3
        assert df.loc["west", "collisions_pedestrian"] == 1
        assert df.loc["east", "collisions"] == 20
        assert df.loc["east", "collisions_pedestrian"] == 2

    def test_rates_and_levels(self, builder, sample_collisions, neighbourhoods):
        """Test density, per-capita rate and level."""
        builder.run(sample_collisions, neighbourhoods, execution_date="2024-01-15")
        df = builder.get_data().set_index("id")

        assert df.loc["west", "collisions_per_km2"] == 2.5
        assert df.loc["west", "collisions_per_1000"] == 2.0
        assert df.loc["west", "collision_level"] == LEVEL_LOW
        assert df.loc["east", "collisions_per_km2"] == 10.0
        assert df.loc["east", "collisions_per_1000"] == 10.0
        assert df.loc["east", "collision_level"] == LEVEL_MODERATE

    def test_zero_population(self, builder, sample_collisions):
        """Test an unpopulated neighbourhood gets a 0 rate."""
        empty = make_neighbourhood("west", -75.70, 45.40, population=0.0, area_km2=4.0)

        builder.run(sample_collisions, [empty], execution_date="2024-01-15")
        df = builder.get_data()

        assert df.loc[0, "collisions"] == 10
        assert df.loc[0, "collisions_per_1000"] == 0.0
        assert df.loc[0, "collision_level"] == LEVEL_LOW

    def test_no_collisions(self, builder, neighbourhoods):
        """Test an empty collision table gives zero counts."""
        df = pd.DataFrame(columns=["feature_id", "category", "magnitude", "lat", "lon"])

        result = builder.run(df, neighbourhoods, execution_date="2024-01-15")

        assert result.success
        assert builder.get_data()["collisions"].tolist() == [0, 0]


class TestBuildCollisionMetrics:
    """Test cases for the convenience function."""

    def test_returns_summary(self, test_config, neighbourhoods):
        df = collisions([("injury", WEST, 1, 0)])
        result = build_collision_metrics(df, neighbourhoods, "2024-01-15", test_config)

        assert result["dataset"] == "collisions"
        assert result["rows_output"] == 2
