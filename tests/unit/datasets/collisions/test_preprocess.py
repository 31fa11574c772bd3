"""
Unit tests for CollisionsPreprocessor.

Tests severity classification, involvement counts and date parsing.
"""

import pandas as pd
import pytest

from neighbourhood_pulse.datasets.collisions.preprocess import (
    CollisionsPreprocessor,
    Severity,
    classify_severity,
    preprocess_collisions,
)
from neighbourhood_pulse.shared.errors import MissingInputError


class TestClassifySeverity:
    """Test cases for classify_severity."""

    @pytest.mark.parametrize(
        ("classification", "fatalities", "expected"),
        [
            ("02 - Non-fatal injury", 0, Severity.INJURY),
            ("01 - Fatal injury", 0, Severity.FATAL),
            ("03 - P.D. only", 1, Severity.FATAL),
            ("Minor injury", 0, Severity.INJURY),
            ("03 - P.D. only", 0, Severity.PROPERTY_DAMAGE),
            (None, 0, Severity.PROPERTY_DAMAGE),
            (float("nan"), 0, Severity.PROPERTY_DAMAGE),
        ],
    )
    def test_classification(self, classification, fatalities, expected):
        assert classify_severity(classification, fatalities) == expected


class TestCollisionsPreprocessor:
    """Test cases for CollisionsPreprocessor class."""

    @pytest.fixture
    def preprocessor(self, test_config):
        """Create a CollisionsPreprocessor instance."""
        return CollisionsPreprocessor(test_config)

    @pytest.fixture
    def sample_raw_data(self):
        """Sample collision records in the Ottawa Open Data layout."""
        return pd.DataFrame(
            {
                "LATITUDE": [45.41, 45.42, 45.40, 0.0],
                "LONGITUDE": [-75.69, -75.70, -75.68, 0.0],
                "DATE": ["2023-05-01", "2023/06/15", "not a date", "2023-01-01"],
                "CLASSIFICATION": [
                    "02 - Non-fatal injury",
                    "01 - Fatal injury",
                    "03 - P.D. only",
                    "03 - P.D. only",
                ],
                "PEDESTRIANS": [1, None, -2, 0],
                "FATAL": [0, 1, 0, 0],
            }
        )

    def test_get_dataset_name(self, preprocessor):
        """Test dataset name is correct."""
        assert preprocessor.get_dataset_name() == "collisions"

    def test_run_success(self, preprocessor, sample_raw_data):
        """Test successful preprocessing run."""
        result = preprocessor.run(sample_raw_data, execution_date="2024-01-15")

        assert result.success
        assert result.rows_output == 3
        assert result.drop_reasons["invalid_coordinates"] == 1

    def test_severity_categories(self, preprocessor, sample_raw_data):
        """Test each collision is classified."""
        preprocessor.run(sample_raw_data, execution_date="2024-01-15")
        df = preprocessor.get_data()

        assert df["category"].tolist() == ["injury", "fatal", "property_damage"]
        assert (df["magnitude"] == 1.0).all()

    def test_counts_standardized(self, preprocessor, sample_raw_data):
        """Test blank and negative counts become 0."""
        preprocessor.run(sample_raw_data, execution_date="2024-01-15")
        df = preprocessor.get_data()

        assert df["pedestrians"].tolist() == [1, 0, 0]
        assert df["bicycles"].tolist() == [0, 0, 0]

    def test_dates_and_years(self, preprocessor, sample_raw_data):
        """Test dates are normalized and the year is derived from them."""
        preprocessor.run(sample_raw_data, execution_date="2024-01-15")
        df = preprocessor.get_data()

        assert df.loc[0, "date"] == "2023-05-01"
        assert df.loc[0, "year"] == 2023
        assert pd.isna(df.loc[2, "year"])

    def test_missing_coordinates_raise(self, preprocessor):
        """Test collisions without coordinates are fatal."""
        df = pd.DataFrame({"CLASSIFICATION": ["03 - P.D. only"]})
        with pytest.raises(MissingInputError):
            preprocessor.run(df, execution_date="2024-01-15")


class TestPreprocessCollisions:
    """Test cases for the convenience function."""

    def test_returns_summary(self, test_config):
        df = pd.DataFrame({"Lat": [45.41], "Long": [-75.69], "Accident_Year": [2022]})
        result = preprocess_collisions(df, "2024-01-15", test_config)

        assert result["dataset"] == "collisions"
        assert result["rows_output"] == 1
