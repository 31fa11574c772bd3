"""
Neighbourhood Pulse - Local Data I/O

Reading and writing the pipeline's tabular artifacts on the local disk.
Provides a consistent interface for:
- CSV output tables (one row per neighbourhood, missing values as empty cells)
- JSON run summaries
- Flat `id -> score` lookup tables produced by earlier runs

Usage:
    from neighbourhood_pulse.shared.data_io import LocalDataIO

    io = LocalDataIO("data/processed")
    io.write_csv(walk_df, "walk_scores")
    df = io.read_csv("walk_scores")
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any

import pandas as pd

from neighbourhood_pulse.scoring.rounding import round_series
from neighbourhood_pulse.shared.config import Settings, get_config
from neighbourhood_pulse.shared.errors import MissingInputError

logger = logging.getLogger(__name__)


class LocalDataIO:
    """
    Local file I/O handler for pipeline outputs.
    """

    def __init__(self, output_dir: str | Path | None = None, config: Settings | None = None):
        """
        Initialize the I/O handler.

        Args:
            output_dir: Directory for written artifacts (defaults to paths.output_dir)
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self.output_dir = Path(output_dir or self.config.paths.output_dir)

    def get_path(self, name: str, suffix: str = ".csv") -> Path:
        """Path of a named artifact, e.g. "walk_scores" -> <output_dir>/walk_scores.csv."""
        return self.output_dir / f"{name}{suffix}"

    def write_csv(self, df: pd.DataFrame, name: str) -> Path:
        """
        Write a DataFrame as CSV.

        Returns:
            Path where the table was written
        """
        path = write_table(df, self.get_path(name), self.config.output.float_precision)
        logger.info(
            f"Wrote {len(df)} rows to {path}",
            extra={"artifact": name, "rows": len(df), "path": str(path)},
        )
        return path

    def read_csv(self, name: str) -> pd.DataFrame:
        """
        Read a named CSV artifact.

        Raises:
            MissingInputError: If the artifact does not exist
        """
        path = self.get_path(name)
        if not path.exists():
            raise MissingInputError.for_file(str(path), f"{name} table")
        return read_table(path)

    def write_json(self, data: dict[str, Any], name: str) -> Path:
        """Write a JSON artifact."""
        path = self.get_path(name, ".json")
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(data, f, indent=2, default=str)
        return path

    def file_exists(self, name: str, suffix: str = ".csv") -> bool:
        """Check whether a named artifact exists."""
        return self.get_path(name, suffix).exists()


# =============================================================================
# Convenience Functions
# =============================================================================


def read_table(path: str | Path) -> pd.DataFrame:
    """Read a CSV table written by the pipeline; ids stay strings."""
    return pd.read_csv(path, dtype={"id": str})


def round_float_columns(df: pd.DataFrame, digits: int) -> pd.DataFrame:
    """Round every float column half away from zero; other columns are untouched."""
    float_columns = df.select_dtypes(include="float").columns
    if len(float_columns) == 0:
        return df
    df = df.copy()
    for column in float_columns:
        df[column] = round_series(df[column], digits)
    return df


def write_table(
    df: pd.DataFrame, path: str | Path, float_precision: int | None = None
) -> Path:
    """
    Write a DataFrame as CSV, creating parent directories.

    Float columns are rounded to `float_precision` decimals when given.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if float_precision is not None:
        df = round_float_columns(df, float_precision)
    df.to_csv(path, index=False)
    return path


def load_score_lookup(
    path: str | Path,
    score_column: str,
    id_column: str = "id",
) -> dict[str, float]:
    """
    Load a flat `id -> numeric score` lookup from a CSV table.

    Rows whose score is blank or not numeric are left out.

    Raises:
        MissingInputError: If the file or either column is absent
    """
    path = Path(path)
    if not path.exists():
        raise MissingInputError.for_file(str(path), f"{score_column} lookup")

    df = pd.read_csv(path, dtype={id_column: str})
    missing = {id_column, score_column} - set(df.columns)
    if missing:
        raise MissingInputError.for_columns(missing, str(path))

    scores = pd.to_numeric(df[score_column], errors="coerce")
    lookup = {
        str(key): float(value)
        for key, value in zip(df[id_column], scores, strict=True)
        if not pd.isna(key) and math.isfinite(value)
    }

    skipped = len(df) - len(lookup)
    if skipped:
        logger.warning(
            f"Skipped {skipped} rows without a numeric {score_column} in {path}",
            extra={"path": str(path), "skipped": skipped},
        )
    logger.info(f"Loaded {len(lookup)} {score_column} values from {path}")
    return lookup
