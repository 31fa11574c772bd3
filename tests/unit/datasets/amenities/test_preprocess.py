"""
Unit tests for AmenityPreprocessor.

Tests column mapping, coordinate validation and polygon handling for the
amenity point datasets.
"""

import json

import pandas as pd
import pytest

from neighbourhood_pulse.datasets.amenities.preprocess import (
    AmenityCategory,
    AmenityPreprocessor,
    preprocess_amenities,
)
from neighbourhood_pulse.datasets.base.sources import load_table
from neighbourhood_pulse.shared.errors import MissingInputError
from tests.conftest import square


class TestAmenityPreprocessor:
    """Test cases for AmenityPreprocessor class."""

    @pytest.fixture
    def preprocessor(self, test_config):
        """Create a parks preprocessor."""
        return AmenityPreprocessor(AmenityCategory.PARK, test_config)

    @pytest.fixture
    def sample_raw_data(self):
        """Sample raw data matching the City of Ottawa export."""
        return pd.DataFrame(
            {
                "OBJECTID": [1, 2, 2, 3, 4],
                "NAME": ["Dundonald Park", "Minto Park", "Minto Park", "Null Island", "No Lat"],
                "ADDRESS": ["516 Somerset St W", "Elgin St", "Elgin St", "", "Bank St"],
                "LATITUDE": [45.4145, 45.4162, 45.4162, 0.0, None],
                "LONGITUDE": [-75.6962, -75.6893, -75.6893, 0.0, -75.6912],
            }
        )

    def test_get_dataset_name(self, preprocessor):
        """Test dataset name follows the category."""
        assert preprocessor.get_dataset_name() == "parks"
        assert AmenityPreprocessor("grocery").get_dataset_name() == "grocery_stores"

    def test_get_column_mappings(self, preprocessor):
        """Test column mappings are defined."""
        mappings = preprocessor.get_column_mappings()
        assert mappings["LATITUDE"] == "lat"
        assert mappings["LONGITUDE"] == "lon"
        assert mappings["OBJECTID"] == "feature_id"

    def test_run_success(self, preprocessor, sample_raw_data):
        """Test successful preprocessing run."""
        result = preprocessor.run(sample_raw_data, execution_date="2024-01-15")

        assert result.success
        assert result.dataset == "parks"
        assert result.rows_input == 5
        assert result.rows_output == 2

    def test_invalid_coordinates_and_duplicates_dropped(self, preprocessor, sample_raw_data):
        """Test (0, 0), missing coordinates and duplicate ids are dropped."""
        result = preprocessor.run(sample_raw_data, execution_date="2024-01-15")

        assert result.drop_reasons["invalid_coordinates"] == 2
        assert result.drop_reasons["duplicates"] == 1
        assert preprocessor.get_data()["feature_id"].tolist() == ["1", "2"]

    def test_out_of_bounds_dropped(self, preprocessor):
        """Test points outside the configured city bounds are dropped."""
        df = pd.DataFrame({"LATITUDE": [45.41, 43.65], "LONGITUDE": [-75.69, -79.38]})
        preprocessor.run(df, execution_date="2024-01-15")
        assert len(preprocessor.get_data()) == 1

    def test_category_and_magnitude(self, preprocessor, sample_raw_data):
        """Test standardized feature columns."""
        preprocessor.run(sample_raw_data, execution_date="2024-01-15")
        df = preprocessor.get_data()

        assert (df["category"] == "park").all()
        assert (df["magnitude"] == 1.0).all()
        assert list(df.columns) == AmenityPreprocessor.OUTPUT_COLUMNS

    def test_polygon_only_source(self, preprocessor):
        """Test park outlines without point coordinates are kept as rings."""
        df = pd.DataFrame(
            {
                "NAME": ["Strathcona Park", "Broken"],
                "rings": [[square(-75.675, 45.425, 0.004)], [[[0, 0], [1, 1]]]],
            }
        )

        result = preprocessor.run(df, execution_date="2024-01-15")

        assert result.success
        assert result.drop_reasons["invalid_geometry"] == 1
        assert preprocessor.get_data()["feature_id"].tolist() == ["park-0"]

    def test_overpass_payload(self, tmp_path, test_config):
        """Test an Overpass response loads and maps to standard columns."""
        path = tmp_path / "grocery.json"
        path.write_text(
            json.dumps(
                {
                    "elements": [
                        {
                            "type": "node",
                            "id": 101,
                            "lat": 45.41,
                            "lon": -75.69,
                            "tags": {"name": "Loblaws", "shop": "supermarket"},
                        },
                        {
                            "type": "way",
                            "id": 102,
                            "center": {"lat": 45.42, "lon": -75.68},
                            "tags": {"name": "Farm Boy", "shop": "supermarket"},
                        },
                    ]
                }
            )
        )
        preprocessor = AmenityPreprocessor(AmenityCategory.GROCERY, test_config)

        result = preprocessor.run(load_table(path), execution_date="2024-01-15")
        df = preprocessor.get_data()

        assert result.success
        assert df["feature_id"].tolist() == ["101", "102"]
        assert df["amenity_type"].tolist() == ["supermarket", "supermarket"]
        assert df["category"].unique().tolist() == ["grocery"]

    def test_empty_input_keeps_schema(self, preprocessor):
        """Test an empty table still produces the standard columns."""
        df = pd.DataFrame({"LATITUDE": [], "LONGITUDE": []})
        result = preprocessor.run(df, execution_date="2024-01-15")

        assert result.success
        assert result.rows_output == 0
        assert list(preprocessor.get_data().columns) == AmenityPreprocessor.OUTPUT_COLUMNS

    def test_missing_location_columns_raise(self, preprocessor):
        """Test a table without any location column is fatal."""
        with pytest.raises(MissingInputError) as exc:
            preprocessor.run(pd.DataFrame({"NAME": ["x"]}), execution_date="2024-01-15")
        assert exc.value.path == "parks"


class TestPreprocessAmenities:
    """Test cases for the convenience function."""

    def test_returns_summary(self, test_config):
        df = pd.DataFrame({"Latitude": [45.41], "Longitude": [-75.69]})
        result = preprocess_amenities(df, "library", "2024-01-15", test_config)

        assert result["dataset"] == "libraries"
        assert result["rows_output"] == 1
        assert result["success"]
