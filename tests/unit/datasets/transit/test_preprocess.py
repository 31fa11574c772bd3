"""
Unit tests for TransitStopPreprocessor.

Tests GTFS column mapping and rail/bus classification.
"""

import pandas as pd
import pytest

from neighbourhood_pulse.datasets.transit.preprocess import (
    BUS,
    RAIL,
    TransitStopPreprocessor,
    identify_rail_stops,
    preprocess_transit_stops,
)
from neighbourhood_pulse.shared.errors import MissingInputError


@pytest.fixture
def gtfs_stops():
    """Sample GTFS stops.txt rows."""
    return pd.DataFrame(
        {
            "stop_id": ["CD995", "RF900", "AA010", "ZZ000"],
            "stop_name": ["Rideau", "Bank / Somerset", "Elgin / Gladstone", "Bad"],
            "stop_lat": [45.4265, 45.4139, 45.4132, 0.0],
            "stop_lon": [-75.6921, -75.6946, -75.6877, 0.0],
        }
    )


class TestIdentifyRailStops:
    """Test cases for identify_rail_stops."""

    def test_stops_served_by_rail_routes(self):
        routes = pd.DataFrame({"route_id": ["1-350", "6-350"], "route_type": [0, 3]})
        trips = pd.DataFrame({"route_id": ["1-350", "6-350"], "trip_id": ["t1", "t2"]})
        stop_times = pd.DataFrame(
            {"trip_id": ["t1", "t1", "t2"], "stop_id": ["CD995", "CD996", "RF900"]}
        )

        assert identify_rail_stops(routes, trips, stop_times) == {"CD995", "CD996"}

    def test_no_rail_routes(self):
        routes = pd.DataFrame({"route_id": ["6"], "route_type": [3]})
        trips = pd.DataFrame({"route_id": ["6"], "trip_id": ["t2"]})
        stop_times = pd.DataFrame({"trip_id": ["t2"], "stop_id": ["RF900"]})

        assert identify_rail_stops(routes, trips, stop_times) == set()


class TestTransitStopPreprocessor:
    """Test cases for TransitStopPreprocessor class."""

    def test_get_dataset_name(self, test_config):
        """Test dataset name is correct."""
        assert TransitStopPreprocessor(test_config).get_dataset_name() == "transit_stops"

    def test_rail_ids_tag_stops(self, test_config, gtfs_stops):
        """Test explicitly supplied rail stop ids."""
        preprocessor = TransitStopPreprocessor(test_config, rail_stop_ids=["CD995"])

        result = preprocessor.run(gtfs_stops, execution_date="2024-01-15")
        df = preprocessor.get_data().set_index("feature_id")

        assert result.success
        assert df.loc["CD995", "category"] == RAIL
        assert df.loc["RF900", "category"] == BUS
        assert (df["magnitude"] == 1.0).all()

    def test_invalid_coordinates_dropped(self, test_config, gtfs_stops):
        """Test (0, 0) stops are dropped."""
        preprocessor = TransitStopPreprocessor(test_config)
        result = preprocessor.run(gtfs_stops, execution_date="2024-01-15")

        assert result.rows_output == 3
        assert result.drop_reasons["invalid_coordinates"] == 1

    def test_is_rail_column(self, test_config, gtfs_stops):
        """Test a source-provided rail flag."""
        gtfs_stops["is_rail"] = ["true", "false", "1", "no"]
        preprocessor = TransitStopPreprocessor(test_config)

        preprocessor.run(gtfs_stops, execution_date="2024-01-15")
        categories = preprocessor.get_data()["category"].tolist()

        assert categories == [RAIL, BUS, RAIL]

    def test_route_type_column(self, test_config, gtfs_stops):
        """Test stops carrying their route type."""
        gtfs_stops["route_type"] = [1, 3, 3, 3]
        preprocessor = TransitStopPreprocessor(test_config)

        preprocessor.run(gtfs_stops, execution_date="2024-01-15")

        assert preprocessor.get_data()["category"].tolist() == [RAIL, BUS, BUS]

    def test_missing_coordinates_raise(self, test_config):
        """Test a stops table without coordinates is fatal."""
        df = pd.DataFrame({"stop_id": ["A"], "stop_name": ["Nowhere"]})
        with pytest.raises(MissingInputError):
            TransitStopPreprocessor(test_config).run(df, execution_date="2024-01-15")


class TestPreprocessTransitStops:
    """Test cases for the convenience function."""

    def test_returns_summary(self, test_config, gtfs_stops):
        result = preprocess_transit_stops(gtfs_stops, "2024-01-15", config=test_config)
        assert result["dataset"] == "transit_stops"
        assert result["rows_output"] == 3
