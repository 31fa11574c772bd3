"""
Neighbourhood Pulse - Transit Stop Preprocessor

Cleans GTFS stops (OC Transpo) and tags each as rail or bus.

A stop is rail when the source says so directly (an `is_rail` column), when
it appears in an explicitly supplied set of rail stop ids, or when it is
served by a rail route. `identify_rail_stops` derives that set from the GTFS
routes, trips and stop_times tables.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BasePreprocessor
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)

RAIL = "rail"
BUS = "bus"

# GTFS route_type values for tram/light rail, subway/metro and rail
RAIL_ROUTE_TYPES = (0, 1, 2)


def identify_rail_stops(
    routes: pd.DataFrame,
    trips: pd.DataFrame,
    stop_times: pd.DataFrame,
    rail_route_types: Iterable[int] = RAIL_ROUTE_TYPES,
) -> set[str]:
    """
    Stop ids served by at least one rail trip.

    Args:
        routes: GTFS routes.txt (route_id, route_type)
        trips: GTFS trips.txt (route_id, trip_id)
        stop_times: GTFS stop_times.txt (trip_id, stop_id)

    Returns:
        Set of stop ids as strings
    """
    route_types = pd.to_numeric(routes["route_type"], errors="coerce")
    rail_routes = set(routes.loc[route_types.isin(list(rail_route_types)), "route_id"].astype(str))
    rail_trips = set(trips.loc[trips["route_id"].astype(str).isin(rail_routes), "trip_id"].astype(str))
    rail_stops = set(
        stop_times.loc[stop_times["trip_id"].astype(str).isin(rail_trips), "stop_id"].astype(str)
    )

    logger.info(
        f"Identified {len(rail_stops)} rail stops",
        extra={"rail_routes": sorted(rail_routes), "rail_trips": len(rail_trips)},
    )
    return rail_stops


class TransitStopPreprocessor(BasePreprocessor):
    """
    Preprocessor for GTFS stops.
    """

    # Column mapping from GTFS names to standardized names
    COLUMN_MAPPINGS = {
        "stop_id": "feature_id",
        "stop_name": "name",
        "stop_lat": "lat",
        "stop_lon": "lon",
        "LATITUDE": "lat",
        "LONGITUDE": "lon",
    }

    # Data type mappings
    DTYPE_MAPPINGS = {
        "feature_id": "string",
        "name": "string",
        "lat": "float",
        "lon": "float",
    }

    # Required output columns
    REQUIRED_COLUMNS = ["feature_id", "category", "magnitude", "lat", "lon"]

    OUTPUT_COLUMNS = ["feature_id", "category", "magnitude", "name", "lat", "lon"]

    def __init__(
        self,
        config: Settings | None = None,
        rail_stop_ids: Iterable[str] | None = None,
    ):
        """
        Initialize transit stop preprocessor.

        Args:
            config: Configuration object
            rail_stop_ids: Stop ids to tag as rail
        """
        super().__init__(config)
        self.rail_stop_ids = {str(s) for s in rail_stop_ids} if rail_stop_ids else set()

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "transit_stops"

    def get_required_columns(self) -> list[str]:
        """Return required output columns."""
        return self.REQUIRED_COLUMNS

    def get_input_columns(self) -> list[list[str]]:
        """Stops need coordinates."""
        return [["lat"], ["lon"]]

    def get_column_mappings(self) -> dict[str, str]:
        """Return column name mappings."""
        return self.COLUMN_MAPPINGS

    def get_dtype_mappings(self) -> dict[str, str]:
        """Return data type mappings."""
        return self.DTYPE_MAPPINGS

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply transit-specific transformations."""
        df = df.copy()
        df = self.ensure_columns(df, self.OUTPUT_COLUMNS)

        if df.empty:
            return df[self.OUTPUT_COLUMNS]

        df = self.standardize_coordinates(df)
        df = self._classify_stops(df)
        df["magnitude"] = 1.0

        if df["feature_id"].notna().all():
            df = self.drop_duplicates(df, subset=["feature_id"], keep="first")

        return df[self.OUTPUT_COLUMNS].reset_index(drop=True)

    def _classify_stops(self, df: pd.DataFrame) -> pd.DataFrame:
        """Tag every stop as rail or bus."""
        is_rail = pd.Series(False, index=df.index)

        if "is_rail" in df.columns:
            is_rail |= df["is_rail"].astype(str).str.strip().str.lower().isin(["true", "1", "yes"])
        if "route_type" in df.columns:
            route_types = pd.to_numeric(df["route_type"], errors="coerce")
            is_rail |= route_types.isin(list(RAIL_ROUTE_TYPES))
        if self.rail_stop_ids:
            is_rail |= df["feature_id"].astype(str).isin(self.rail_stop_ids)

        df["category"] = is_rail.map({True: RAIL, False: BUS})
        self.log_transformation("classify_stops")
        logger.info(
            f"Classified {int(is_rail.sum())} rail stops and {int((~is_rail).sum())} bus stops"
        )
        return df


def preprocess_transit_stops(
    df: pd.DataFrame,
    execution_date: str,
    rail_stop_ids: Iterable[str] | None = None,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for preprocessing transit stops."""
    preprocessor = TransitStopPreprocessor(config, rail_stop_ids=rail_stop_ids)
    result = preprocessor.run(df, execution_date)
    return result.to_dict()
