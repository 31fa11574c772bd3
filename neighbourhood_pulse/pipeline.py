"""
Neighbourhood Pulse - Pipeline

Runs every metric family over one boundary set and writes the per-family
score tables plus a combined `neighbourhood_scores.csv`.

Pipeline Stages:
    1. Load Boundaries: neighbourhood mapping + boundary set
    2. Walk: six amenity tables -> walk score
    3. Transit: GTFS stops -> transit score
    4. Bike: cycling network + transit scores -> bike score
    5. Tree Equity: census tracts -> canopy and equity
    6. Collisions: collision points -> counts and safety level
    7. Service Requests: 311 requests -> complaints, road quality, quiet score
    8. Crime: police offences matched by neighbourhood name -> totals by category
    9. Combine: join every family table on neighbourhood id
    10. Summary: thresholds, top/bottom neighbourhoods per score

Transit runs before bike because the bike score reads the transit scores.

Usage:
    from neighbourhood_pulse.pipeline import NeighbourhoodPulsePipeline

    pipeline = NeighbourhoodPulsePipeline(data_dir="data", output_dir="out")
    result = pipeline.run(execution_date="2024-01-15")
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.amenities import (
    DATASET_NAMES,
    AmenityCategory,
    AmenityPreprocessor,
    WalkScoreBuilder,
)
from neighbourhood_pulse.datasets.base import BaseMetricBuilder, BasePreprocessor
from neighbourhood_pulse.datasets.base.sources import load_table
from neighbourhood_pulse.datasets.collisions import CollisionMetricsBuilder, CollisionsPreprocessor
from neighbourhood_pulse.datasets.crime import CrimeMetricsBuilder, CrimePreprocessor
from neighbourhood_pulse.datasets.cycling import BikeScoreBuilder, CyclingPreprocessor
from neighbourhood_pulse.datasets.service_requests import (
    ServiceRequestMetricsBuilder,
    ServiceRequestsPreprocessor,
)
from neighbourhood_pulse.datasets.transit import (
    TransitScoreBuilder,
    TransitStopPreprocessor,
    identify_rail_stops,
)
from neighbourhood_pulse.datasets.tree_equity import TreeEquityBuilder, TreeEquityPreprocessor
from neighbourhood_pulse.geo.boundaries import (
    BoundarySet,
    Neighbourhood,
    load_boundary_set,
    load_neighbourhood_mapping,
)
from neighbourhood_pulse.shared.config import (
    Settings,
    get_config,
    resolve_config_path,
    resolve_data_path,
)
from neighbourhood_pulse.shared.data_io import LocalDataIO, load_score_lookup
from neighbourhood_pulse.shared.errors import PipelineError

logger = logging.getLogger(__name__)

# Run order; bike depends on transit
FAMILIES = (
    "walk",
    "transit",
    "bike",
    "tree_equity",
    "collisions",
    "service_requests",
    "crime",
)

# Output table name per family
OUTPUT_NAMES = {
    "walk": "walk_scores",
    "transit": "transit_scores",
    "bike": "bike_scores",
    "tree_equity": "tree_equity",
    "collisions": "collisions",
    "service_requests": "service_requests",
    "crime": "crime",
}

COMBINED_NAME = "neighbourhood_scores"

# Score columns summarized at the end of a run
SUMMARY_COLUMNS = {
    "walk": "walk_score",
    "transit": "transit_score",
    "bike": "bike_score",
    "tree_equity": "tree_equity_score",
    "collisions": "collisions_per_1000",
    "service_requests": "road_quality_score",
    "crime": "crime_per_1000",
}


@dataclass
class FamilyResult:
    """Outcome of one metric family."""

    family: str
    preprocessing: list[dict[str, Any]] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    output_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "family": self.family,
            "preprocessing": self.preprocessing,
            "metrics": self.metrics,
            "output_path": self.output_path,
        }


@dataclass
class PipelineResult:
    """Outcome of a full run."""

    execution_date: str
    output_dir: str
    neighbourhoods: int = 0
    families: dict[str, FamilyResult] = field(default_factory=dict)
    combined_path: str | None = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "execution_date": self.execution_date,
            "output_dir": self.output_dir,
            "neighbourhoods": self.neighbourhoods,
            "families": {name: r.to_dict() for name, r in self.families.items()},
            "combined_path": self.combined_path,
            "duration_seconds": self.duration_seconds,
        }


class NeighbourhoodPulsePipeline:
    """
    Batch pipeline from raw open data to per-neighbourhood scores.
    """

    def __init__(
        self,
        config: Settings | None = None,
        data_dir: str | Path | None = None,
        output_dir: str | Path | None = None,
        families: list[str] | tuple[str, ...] | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Configuration object (uses default if not provided)
            data_dir: Root for relative input paths (defaults to paths.data_dir)
            output_dir: Where tables are written (defaults to paths.output_dir)
            families: Families to run (defaults to all, in run order)
        """
        self.config = config or get_config()
        self.data_dir = Path(data_dir or self.config.paths.data_dir)
        self.io = LocalDataIO(output_dir, self.config)

        selected = list(families) if families else list(FAMILIES)
        unknown = set(selected) - set(FAMILIES)
        if unknown:
            raise ValueError(f"Unknown metric families: {sorted(unknown)}")
        if "bike" in selected and "transit" not in selected:
            selected.append("transit")
        self.families = [f for f in FAMILIES if f in selected]

        self._tables: dict[str, pd.DataFrame] = {}

    # ==========================================================================
    # Stage helpers
    # ==========================================================================

    def input_path(self, relative: str) -> Path:
        """Resolve a configured input path against the data directory."""
        return resolve_data_path(relative, self.config, data_dir=self.data_dir)

    def load_boundaries(self) -> BoundarySet:
        """Load the mapping (when present) and the boundary set."""
        paths = self.config.paths
        mapping_path = resolve_config_path(paths.neighbourhood_mapping)
        if not mapping_path.exists():
            mapping_path = self.input_path(paths.neighbourhood_mapping)

        mapping = None
        if mapping_path.exists():
            mapping = load_neighbourhood_mapping(mapping_path)
        else:
            logger.warning(
                "No neighbourhood mapping found; every boundary zone is its own neighbourhood",
                extra={"path": str(mapping_path)},
            )

        return load_boundary_set(
            self.input_path(paths.boundaries),
            mapping=mapping,
            radius_km=self.config.geometry.earth_radius_km,
        )

    def preprocess(
        self, preprocessor: BasePreprocessor, raw_df: pd.DataFrame, execution_date: str
    ) -> tuple[pd.DataFrame, dict[str, Any]]:
        """Run a preprocessor; a failed run stops the pipeline."""
        result = preprocessor.run(raw_df, execution_date)
        if not result.success:
            raise PipelineError(
                f"Preprocessing failed for {result.dataset}: {result.error_message}"
            )
        return preprocessor.get_data(), result.to_dict()

    def build(
        self,
        builder: BaseMetricBuilder,
        df: pd.DataFrame,
        neighbourhoods: tuple[Neighbourhood, ...],
        execution_date: str,
    ) -> tuple[pd.DataFrame, dict[str, Any]]:
        """Run a metric builder; a failed run stops the pipeline."""
        result = builder.run(df, neighbourhoods, execution_date)
        if not result.success:
            raise PipelineError(
                f"Metric building failed for {result.dataset}: {result.error_message}"
            )
        return builder.get_data(), result.to_dict()

    def _finish(self, family: FamilyResult, table: pd.DataFrame) -> FamilyResult:
        self._tables[family.family] = table
        family.output_path = str(self.io.write_csv(table, OUTPUT_NAMES[family.family]))
        return family

    # ==========================================================================
    # Families
    # ==========================================================================

    def run_walk(self, neighbourhoods: tuple[Neighbourhood, ...], execution_date: str) -> FamilyResult:
        """Six amenity tables -> walk score."""
        family = FamilyResult(family="walk")
        frames = []
        for category in AmenityCategory:
            dataset = DATASET_NAMES[category]
            raw_df = load_table(self.input_path(getattr(self.config.paths, dataset)), dataset)
            df, summary = self.preprocess(
                AmenityPreprocessor(category, self.config), raw_df, execution_date
            )
            frames.append(df)
            family.preprocessing.append(summary)

        amenities = pd.concat(frames, ignore_index=True)
        table, family.metrics = self.build(
            WalkScoreBuilder(self.config), amenities, neighbourhoods, execution_date
        )
        return self._finish(family, table)

    def rail_stop_ids(self) -> set[str] | None:
        """Rail stop ids from GTFS tables, when all three are configured."""
        paths = self.config.paths
        if not (paths.transit_routes and paths.transit_trips and paths.transit_stop_times):
            return None
        return identify_rail_stops(
            load_table(self.input_path(paths.transit_routes), "GTFS routes"),
            load_table(self.input_path(paths.transit_trips), "GTFS trips"),
            load_table(self.input_path(paths.transit_stop_times), "GTFS stop times"),
        )

    def run_transit(
        self, neighbourhoods: tuple[Neighbourhood, ...], execution_date: str
    ) -> FamilyResult:
        """GTFS stops -> transit score."""
        family = FamilyResult(family="transit")
        raw_df = load_table(self.input_path(self.config.paths.transit_stops), "transit stops")
        preprocessor = TransitStopPreprocessor(self.config, rail_stop_ids=self.rail_stop_ids())
        df, summary = self.preprocess(preprocessor, raw_df, execution_date)
        family.preprocessing.append(summary)

        table, family.metrics = self.build(
            TransitScoreBuilder(self.config), df, neighbourhoods, execution_date
        )
        return self._finish(family, table)

    def commute_overrides(self) -> dict[str, float]:
        """Optional commute time table; empty when not configured or absent."""
        relative = self.config.paths.commute_times
        if not relative:
            return {}
        path = self.input_path(relative)
        if not path.exists():
            logger.info(f"No commute times at {path}; estimating from distance to downtown")
            return {}
        return load_score_lookup(path, "commute_minutes")

    def run_bike(self, neighbourhoods: tuple[Neighbourhood, ...], execution_date: str) -> FamilyResult:
        """Cycling network + transit scores -> bike score."""
        family = FamilyResult(family="bike")
        transit = self._tables.get("transit")
        if transit is None:
            raise PipelineError("Bike scores need the transit scores of the same run")
        transit_scores = dict(zip(transit["id"], transit["transit_score"], strict=True))

        raw_df = load_table(self.input_path(self.config.paths.cycling_network), "cycling network")
        df, summary = self.preprocess(CyclingPreprocessor(self.config), raw_df, execution_date)
        family.preprocessing.append(summary)

        builder = BikeScoreBuilder(
            self.config, transit_scores=transit_scores, commute_times=self.commute_overrides()
        )
        table, family.metrics = self.build(builder, df, neighbourhoods, execution_date)
        return self._finish(family, table)

    def run_tree_equity(
        self, neighbourhoods: tuple[Neighbourhood, ...], execution_date: str
    ) -> FamilyResult:
        """Census tracts -> canopy and tree equity."""
        family = FamilyResult(family="tree_equity")
        raw_df = load_table(self.input_path(self.config.paths.tree_equity), "tree equity tracts")
        df, summary = self.preprocess(TreeEquityPreprocessor(self.config), raw_df, execution_date)
        family.preprocessing.append(summary)

        table, family.metrics = self.build(
            TreeEquityBuilder(self.config), df, neighbourhoods, execution_date
        )
        return self._finish(family, table)

    def run_collisions(
        self, neighbourhoods: tuple[Neighbourhood, ...], execution_date: str
    ) -> FamilyResult:
        """Collision points -> counts, rates and safety level."""
        family = FamilyResult(family="collisions")
        raw_df = load_table(self.input_path(self.config.paths.collisions), "collisions")
        df, summary = self.preprocess(CollisionsPreprocessor(self.config), raw_df, execution_date)
        family.preprocessing.append(summary)

        table, family.metrics = self.build(
            CollisionMetricsBuilder(self.config), df, neighbourhoods, execution_date
        )
        return self._finish(family, table)

    def run_service_requests(
        self, neighbourhoods: tuple[Neighbourhood, ...], execution_date: str
    ) -> FamilyResult:
        """311 requests -> complaints, road quality and quiet scores."""
        family = FamilyResult(family="service_requests")
        raw_df = load_table(
            self.input_path(self.config.paths.service_requests), "311 service requests"
        )
        df, summary = self.preprocess(
            ServiceRequestsPreprocessor(self.config), raw_df, execution_date
        )
        family.preprocessing.append(summary)

        table, family.metrics = self.build(
            ServiceRequestMetricsBuilder(self.config), df, neighbourhoods, execution_date
        )
        return self._finish(family, table)

    def run_crime(self, neighbourhoods: tuple[Neighbourhood, ...], execution_date: str) -> FamilyResult:
        """Police offences -> totals and counts by category."""
        family = FamilyResult(family="crime")
        raw_df = load_table(self.input_path(self.config.paths.crime), "criminal offences")
        df, summary = self.preprocess(CrimePreprocessor(self.config), raw_df, execution_date)
        family.preprocessing.append(summary)

        table, family.metrics = self.build(
            CrimeMetricsBuilder(self.config), df, neighbourhoods, execution_date
        )
        return self._finish(family, table)

    # ==========================================================================
    # Run
    # ==========================================================================

    def combine(self) -> pd.DataFrame:
        """Join every family table on id, keeping the first name column."""
        combined: pd.DataFrame | None = None
        for name in self.families:
            table = self._tables[name]
            if combined is None:
                combined = table.copy()
                continue
            new_columns = [c for c in table.columns if c == "id" or c not in combined.columns]
            combined = combined.merge(table[new_columns], on="id", how="left")
        return combined if combined is not None else pd.DataFrame(columns=["id", "name"])

    def run(self, execution_date: str) -> PipelineResult:
        """
        Run every selected family and write the outputs.

        Raises:
            MissingInputError: If the boundary set or a family's input is absent
            PipelineError: If a preprocessing or metric building step fails
        """
        start_time = time.time()
        self._tables = {}
        result = PipelineResult(execution_date=execution_date, output_dir=str(self.io.output_dir))

        logger.info(
            "Starting Neighbourhood Pulse pipeline",
            extra={"execution_date": execution_date, "families": self.families},
        )

        boundary_set = self.load_boundaries()
        neighbourhoods = boundary_set.neighbourhoods
        result.neighbourhoods = len(neighbourhoods)

        for name in self.families:
            stage = getattr(self, f"run_{name}")
            result.families[name] = stage(neighbourhoods, execution_date)

        combined = self.combine()
        result.combined_path = str(self.io.write_csv(combined, COMBINED_NAME))
        self.log_summary(combined)

        result.duration_seconds = time.time() - start_time
        self.io.write_json(result.to_dict(), "run_summary")
        logger.info(
            f"Pipeline complete: {len(neighbourhoods)} neighbourhoods, "
            f"{len(self.families)} families in {result.duration_seconds:.1f}s",
            extra={"execution_date": execution_date, "output_dir": result.output_dir},
        )
        return result

    def log_summary(self, combined: pd.DataFrame) -> None:
        """Log the top and bottom neighbourhoods for each score."""
        top_n = self.config.output.summary_top_n
        bottom_n = self.config.output.summary_bottom_n

        for family in self.families:
            column = SUMMARY_COLUMNS[family]
            if column not in combined.columns:
                continue
            ranked = combined[["name", column]].dropna().sort_values(
                column, ascending=False, kind="mergesort"
            )
            if ranked.empty:
                continue
            top = [f"{row['name']} ({row[column]})" for _, row in ranked.head(top_n).iterrows()]
            bottom = [
                f"{row['name']} ({row[column]})" for _, row in ranked.tail(bottom_n).iterrows()
            ]
            logger.info(
                f"{column}: top {len(top)}: {', '.join(top)}",
                extra={"metric": column, "top": top},
            )
            logger.info(
                f"{column}: bottom {len(bottom)}: {', '.join(bottom)}",
                extra={"metric": column, "bottom": bottom},
            )


def run_pipeline(
    execution_date: str,
    config: Settings | None = None,
    data_dir: str | Path | None = None,
    output_dir: str | Path | None = None,
    families: list[str] | None = None,
) -> dict[str, Any]:
    """Convenience function for running the pipeline."""
    pipeline = NeighbourhoodPulsePipeline(
        config, data_dir=data_dir, output_dir=output_dir, families=families
    )
    result = pipeline.run(execution_date)
    return result.to_dict()
