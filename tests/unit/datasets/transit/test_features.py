"""
Unit tests for TransitScoreBuilder.

Tests rail access points, bus stop density and coverage.
"""

import pandas as pd
import pytest

from neighbourhood_pulse.datasets.transit.features import TransitScoreBuilder, build_transit_scores
from neighbourhood_pulse.datasets.transit.preprocess import BUS, RAIL

WEST = (45.41, -75.69)
EAST = (45.41, -75.67)


def stops(spec):
    """Standardized stop rows from (category, (lat, lon), count) triples."""
    rows = []
    for category, (lat, lon), count in spec:
        for _ in range(count):
            rows.append(
                {
                    "feature_id": f"stop-{len(rows)}",
                    "category": category,
                    "magnitude": 1.0,
                    "lat": lat,
                    "lon": lon,
                }
            )
    return pd.DataFrame(rows)


class TestTransitScoreBuilder:
    """Test cases for TransitScoreBuilder class."""

    @pytest.fixture
    def builder(self, test_config):
        """Create a TransitScoreBuilder instance."""
        return TransitScoreBuilder(test_config)

    @pytest.fixture
    def sample_stops(self):
        """A rail station and 10 bus stops in the west square, 40 bus stops in the east."""
        return stops([(RAIL, WEST, 1), (BUS, WEST, 10), (BUS, EAST, 40)])

    def test_get_dataset_name(self, builder):
        """Test dataset name is correct."""
        assert builder.get_dataset_name() == "transit"

    @pytest.mark.parametrize(
        ("rail_count", "distance_km", "expected"),
        [
            (1, None, 30.0),
            (3, None, 40.0),
            (0, 0.5, 20.0),
            (0, 1.5, 10.0),
            (0, 4.0, 5.0),
            (0, 10.0, 0.0),
            (0, None, 0.0),
        ],
    )
    def test_rail_points(self, builder, rail_count, distance_km, expected):
        """Test rail access points by count and distance bands."""
        assert builder.rail_points(rail_count, distance_km) == expected

    def test_stop_counts(self, builder, sample_stops, neighbourhoods):
        """Test rail and bus stop counts and density."""
        builder.run(sample_stops, neighbourhoods, execution_date="2024-01-15")
        df = builder.get_data().set_index("id")

        assert df.loc["west", "rail_stops"] == 1
        assert df.loc["west", "bus_stops"] == 10
        assert df.loc["east", "bus_stops"] == 40
        assert df.loc["west", "bus_stop_density"] == 2.5
        assert df.loc["east", "bus_stop_density"] == 20.0

    def test_transit_scores(self, builder, sample_stops, neighbourhoods):
        """Test the composite transit score."""
        builder.run(sample_stops, neighbourhoods, execution_date="2024-01-15")
        df = builder.get_data().set_index("id")

        # Rail 30 + density 40 * 2.5 / 20 + coverage 20 * 10 / 100
        assert df.loc["west", "transit_score"] == 37
        # Rail within 2 km 10 + density 40 + coverage 20 * 40 / 100
        assert df.loc["east", "transit_score"] == 58

    def test_distance_to_rail(self, builder, sample_stops, neighbourhoods):
        """Test distance from each centroid to the nearest rail stop."""
        builder.run(sample_stops, neighbourhoods, execution_date="2024-01-15")
        df = builder.get_data().set_index("id")

        assert 1.0 < df.loc["east", "distance_to_rail_km"] < 2.0

    def test_unassigned_rail_stop_counts_for_distance(self, builder, neighbourhoods):
        """Test rail stops outside every boundary still set distances."""
        df = stops([(RAIL, (45.41, -75.701), 1)])
        builder.run(df, neighbourhoods, execution_date="2024-01-15")
        result = builder.get_data().set_index("id")

        assert result.loc["west", "rail_stops"] == 0
        assert result.loc["west", "distance_to_rail_km"] < 1.0
        # Under 1 km from the west centroid: 20 rail points, no buses
        assert result.loc["west", "transit_score"] == 20

    def test_no_rail_anywhere(self, builder, neighbourhoods):
        """Test a network with no rail leaves distances empty."""
        builder.run(stops([(BUS, WEST, 5)]), neighbourhoods, execution_date="2024-01-15")
        df = builder.get_data()

        assert df["distance_to_rail_km"].isna().all()


class TestBuildTransitScores:
    """Test cases for the convenience function."""

    def test_returns_summary(self, test_config, neighbourhoods):
        result = build_transit_scores(
            stops([(BUS, WEST, 1)]), neighbourhoods, "2024-01-15", test_config
        )
        assert result["dataset"] == "transit"
        assert result["rows_output"] == 2
