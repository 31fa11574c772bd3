"""
Unit tests for local data I/O.

Tests named artifacts, string ids and score lookups.
"""

import json

import pandas as pd
import pytest

from neighbourhood_pulse.shared.data_io import (
    LocalDataIO,
    load_score_lookup,
    read_table,
    round_float_columns,
    write_table,
)
from neighbourhood_pulse.shared.errors import MissingInputError


class TestLocalDataIO:
    """Test cases for LocalDataIO class."""

    @pytest.fixture
    def io(self, tmp_path, test_config):
        """Create a LocalDataIO writing under tmp_path."""
        return LocalDataIO(tmp_path / "processed", test_config)

    def test_get_path(self, io, tmp_path):
        assert io.get_path("walk_scores") == tmp_path / "processed" / "walk_scores.csv"
        assert io.get_path("run_summary", ".json").suffix == ".json"

    def test_default_output_dir(self, test_config):
        io = LocalDataIO(config=test_config)

        assert str(io.output_dir) == test_config.paths.output_dir

    def test_csv_round_trip_keeps_string_ids(self, io):
        """Test numeric-looking ids are read back as strings."""
        df = pd.DataFrame({"id": ["007", "12"], "walk_score": [80, None]})

        path = io.write_csv(df, "walk_scores")
        result = io.read_csv("walk_scores")

        assert path.exists()
        assert io.file_exists("walk_scores")
        assert result["id"].tolist() == ["007", "12"]
        assert pd.isna(result.loc[1, "walk_score"])

    def test_missing_values_are_empty_cells(self, io):
        df = pd.DataFrame({"id": ["a"], "canopy_cover": [pd.NA]})

        path = io.write_csv(df, "tree_equity")

        assert path.read_text().splitlines()[1] == "a,"

    def test_float_precision_applied(self, io, test_config):
        """Test float columns are rounded half up to the configured precision."""
        df = pd.DataFrame(
            {"id": ["a", "b"], "density": [1.005 + 1e-9, 2.344], "walk_score": [80, 41]}
        )

        io.write_csv(df, "walk_scores")
        result = io.read_csv("walk_scores")

        assert test_config.output.float_precision == 2
        assert result["density"].tolist() == [1.01, 2.34]
        assert result["walk_score"].tolist() == [80, 41]

    def test_read_missing_raises(self, io):
        with pytest.raises(MissingInputError):
            io.read_csv("nothing_here")

    def test_write_json(self, io):
        path = io.write_json({"neighbourhoods": 2, "date": pd.Timestamp("2024-01-15")}, "summary")

        data = json.loads(path.read_text())
        assert data["neighbourhoods"] == 2
        assert data["date"].startswith("2024-01-15")


class TestTableHelpers:
    """Test cases for the module-level helpers."""

    def test_write_table_creates_directories(self, tmp_path):
        path = write_table(pd.DataFrame({"id": ["1"]}), tmp_path / "a" / "b.csv")

        assert path.exists()
        assert read_table(path)["id"].tolist() == ["1"]

    def test_write_table_without_precision_keeps_floats(self, tmp_path):
        path = write_table(pd.DataFrame({"id": ["1"], "km": [0.125]}), tmp_path / "t.csv")

        assert read_table(path)["km"].tolist() == [0.125]

    def test_round_float_columns(self):
        df = pd.DataFrame({"id": ["1", "2"], "km": [0.25, None], "n": [3, 4]})

        result = round_float_columns(df, 1)

        assert result.loc[0, "km"] == 0.3
        assert pd.isna(result.loc[1, "km"])
        assert result["n"].tolist() == [3, 4]
        assert df.loc[0, "km"] == 0.25

    def test_load_score_lookup(self, tmp_path):
        path = tmp_path / "transit_scores.csv"
        path.write_text("id,transit_score\nglebe,70\nvanier,\nkanata,n/a\n")

        lookup = load_score_lookup(path, "transit_score")

        assert lookup == {"glebe": 70.0}

    def test_load_score_lookup_custom_id(self, tmp_path):
        path = tmp_path / "commute_times.csv"
        path.write_text("neighbourhood,minutes\n001,15\n")

        assert load_score_lookup(path, "minutes", id_column="neighbourhood") == {"001": 15.0}

    def test_load_score_lookup_missing_file(self, tmp_path):
        with pytest.raises(MissingInputError):
            load_score_lookup(tmp_path / "absent.csv", "transit_score")

    def test_load_score_lookup_missing_column(self, tmp_path):
        path = tmp_path / "transit_scores.csv"
        path.write_text("id,other\nglebe,1\n")

        with pytest.raises(MissingInputError) as excinfo:
            load_score_lookup(path, "transit_score")
        assert excinfo.value.column == "transit_score"
