"""
Neighbourhood Pulse - Configuration Loader

Pydantic-based configuration management with:
- Environment-based configuration (dev/prod)
- YAML file loading with inheritance
- Environment variable overrides
- Type validation via Pydantic (score weights must sum to 100)

Usage:
    from neighbourhood_pulse.shared.config import get_config

    config = get_config()  # Uses NP_ENVIRONMENT env var
    config = get_config("dev")  # Explicit environment

    # Access config values
    percentile = config.normalization.percentile
    walk_weights = config.scores.walk.components
"""

from __future__ import annotations

import math
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

VALID_ENVIRONMENTS = ("dev", "prod")

# =============================================================================
# Configuration Models
# =============================================================================


class ProjectConfig(BaseModel):
    """Project metadata configuration."""

    name: str = "neighbourhood-pulse"
    version: str = "0.1.0"
    description: str = "Per-neighbourhood metrics and composite scores from open data"


class PathsConfig(BaseModel):
    """Input and output locations, relative to the data directory."""

    data_dir: str = "data"
    output_dir: str = "data/processed"
    boundaries: str = "raw/boundaries.json"
    neighbourhood_mapping: str = "neighbourhoods.yaml"
    parks: str = "raw/parks.csv"
    schools: str = "raw/schools.csv"
    libraries: str = "raw/libraries.csv"
    grocery_stores: str = "raw/grocery_stores.csv"
    restaurants: str = "raw/restaurants_cafes.csv"
    recreation: str = "raw/recreation_facilities.csv"
    cycling_network: str = "raw/cycling_network.csv"
    transit_stops: str = "raw/transit_stops.csv"
    # Optional GTFS tables used to find rail stops when stops carry no flag
    transit_routes: str | None = None
    transit_trips: str | None = None
    transit_stop_times: str | None = None
    tree_equity: str = "raw/tree_equity.json"
    collisions: str = "raw/collisions.csv"
    service_requests: str = "raw/service_requests.csv"
    crime: str = "raw/crime.csv"
    commute_times: str | None = "raw/commute_times.csv"


class GeoBoundsConfig(BaseModel):
    """Bounding box outside of which point coordinates are rejected."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float


class GeometryConfig(BaseModel):
    """Geometry configuration."""

    earth_radius_km: float = 6371.0
    bounds: GeoBoundsConfig | None = None


class NormalizationConfig(BaseModel):
    """Percentile normalization configuration."""

    percentile: float = 0.9
    default_threshold: float = 1.0
    cycling_density_fallback: float = 5.0

    @field_validator("percentile")
    @classmethod
    def validate_percentile(cls, v: float) -> float:
        """Percentile must lie strictly between 0 and 1."""
        if not 0.0 < v < 1.0:
            raise ValueError(f"percentile must be in (0, 1), got {v}")
        return v


class BonusConfig(BaseModel):
    """A bonus term added on top of the weighted components."""

    name: str
    points_per_unit: float = 1.0
    max_points: float

    @field_validator("max_points")
    @classmethod
    def validate_max_points(cls, v: float) -> float:
        if v < 0:
            raise ValueError("max_points must be non-negative")
        return v


class ConditionConfig(BaseModel):
    """A single `field op value` test on a neighbourhood's context."""

    field: str
    op: Literal["<", "<=", ">", ">=", "==", "!="]
    value: float


class PenaltyConfig(BaseModel):
    """A multiplicative penalty applied when all conditions hold."""

    name: str
    multiplier: float
    conditions: list[ConditionConfig] = Field(default_factory=list)

    @field_validator("multiplier")
    @classmethod
    def validate_multiplier(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"penalty multiplier must be in [0, 1], got {v}")
        return v


class ScoreConfig(BaseModel):
    """Weights, bonuses and penalties for one composite score."""

    components: dict[str, float]
    bonuses: list[BonusConfig] = Field(default_factory=list)
    penalties: list[PenaltyConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_weights(self) -> ScoreConfig:
        """Component weights must sum to 100."""
        total = sum(self.components.values())
        if not math.isclose(total, 100.0, abs_tol=1e-9):
            raise ValueError(f"component weights must sum to 100, got {total}")
        if any(w < 0 for w in self.components.values()):
            raise ValueError("component weights must be non-negative")
        return self


def _rural_penalty() -> PenaltyConfig:
    return PenaltyConfig(
        name="rural",
        multiplier=0.5,
        conditions=[
            ConditionConfig(field="area_km2", op=">", value=50),
            ConditionConfig(field="density", op="<", value=100),
        ],
    )


class ScoresConfig(BaseModel):
    """All composite score configurations."""

    walk: ScoreConfig = Field(
        default_factory=lambda: ScoreConfig(
            components={
                "grocery": 30,
                "restaurant": 25,
                "recreation": 15,
                "park": 15,
                "school": 10,
                "library": 5,
            },
            penalties=[
                PenaltyConfig(
                    name="no_grocery",
                    multiplier=0.7,
                    conditions=[ConditionConfig(field="grocery_count", op="<=", value=0)],
                ),
                PenaltyConfig(
                    name="no_restaurant",
                    multiplier=0.85,
                    conditions=[ConditionConfig(field="restaurant_count", op="<=", value=0)],
                ),
                _rural_penalty(),
            ],
        )
    )
    bike: ScoreConfig = Field(
        default_factory=lambda: ScoreConfig(
            components={
                "density": 50,
                "protected": 20,
                "centrality": 15,
                "transit_integration": 15,
            },
        )
    )
    transit: ScoreConfig = Field(
        default_factory=lambda: ScoreConfig(
            components={"rail_access": 40, "bus_density": 40, "coverage": 20},
        )
    )


class CyclingConfig(BaseModel):
    """Cycling infrastructure weights by facility type."""

    type_weights: dict[str, float] = Field(
        default_factory=lambda: {
            "Cycle Track": 1.5,
            "Segregated Bike Lane": 1.5,
            "Bike Lane": 1.0,
            "Path": 1.2,
            "Paved Shoulder": 0.5,
            "Mountain Bike Trail": 0.8,
            "Suggested Route": 0.2,
            "Network Link": 0.1,
            "Crossride": 0.5,
        }
    )
    unknown_weight: float = 0.3
    protected_types: list[str] = Field(
        default_factory=lambda: ["Cycle Track", "Segregated Bike Lane"]
    )
    protected_km_for_full_score: float = 5.0
    default_commute_minutes: float = 30.0
    max_commute_minutes: float = 60.0


class CommuteBand(BaseModel):
    """Average driving speed up to a distance from downtown."""

    max_km: float | None = None
    speed_kmh: float
    overhead_minutes: float = 0.0

    @field_validator("speed_kmh")
    @classmethod
    def validate_speed(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("speed_kmh must be positive")
        return v


class CommuteConfig(BaseModel):
    """Estimated drive to downtown from a neighbourhood's vertex-mean centroid."""

    # Parliament Hill
    downtown_lat: float = 45.4236
    downtown_lon: float = -75.6998
    bands: list[CommuteBand] = Field(
        default_factory=lambda: [
            CommuteBand(max_km=5, speed_kmh=22, overhead_minutes=5),
            CommuteBand(max_km=15, speed_kmh=32, overhead_minutes=8),
            CommuteBand(max_km=30, speed_kmh=48, overhead_minutes=8),
            CommuteBand(max_km=None, speed_kmh=55, overhead_minutes=8),
        ]
    )

    @model_validator(mode="after")
    def validate_bands(self) -> CommuteConfig:
        """Bands must be ordered by distance and end with an open band."""
        if not self.bands or self.bands[-1].max_km is not None:
            raise ValueError("the last commute band must have no max_km")
        limits = [b.max_km for b in self.bands[:-1]]
        if any(limit is None for limit in limits) or limits != sorted(limits):
            raise ValueError("commute bands must be ordered by max_km")
        return self


class TransitConfig(BaseModel):
    """Transit scoring thresholds."""

    rail_base_points: float = 25.0
    rail_points_per_stop: float = 5.0
    rail_distance_points: dict[float, float] = Field(
        default_factory=lambda: {1.0: 20.0, 2.0: 10.0, 5.0: 5.0}
    )
    bus_density_for_full_score: float = 20.0
    bus_stops_for_full_coverage: float = 100.0


class ServiceRequestsConfig(BaseModel):
    """311 complaint classification."""

    road_keywords: list[str] = Field(
        default_factory=lambda: [
            "Road Maintenance - Travelled Surface Pothole",
            "Road Maintenance - Shoulder Pothole",
            "Road Surface - Damaged/Destroyed",
            "Road Surface - Sunken/Raised",
            "Road Surface - Depression",
            "Road - Broken Concrete",
            "Road - Gravel Washboard",
            "Road - Gravel Loose",
            "Road Maintenance - Surface Defect",
            "Sidewalk - Damage/Defects",
        ]
    )
    noise_keywords: list[str] = Field(
        default_factory=lambda: [
            "Noise - Music",
            "Noise - Shouting",
            "Noise - Construction",
            "Noise - Info-Noise",
            "Noise - Machinery-AirCond/Fan/Pool/Mower/Generator",
            "Noise - Car Alarms",
            "Noise - Idling",
            "Noise - Muffler",
            "Noise - Delivery/Load/Unload",
            "Noise - Festival",
            "Noise - Garbage",
            "Noise - H-Vac/Street Sweeper",
            "Noise - Special Event",
            "Noise - Outdoor Patio",
            "Noise - Vehicle Repair",
            "Noise - Squeal Tires",
            "Noise - Parades",
        ]
    )
    # Ward number -> neighbourhood ids, used for requests without coordinates
    ward_mapping: dict[str, list[str]] = Field(default_factory=dict)


class CollisionsConfig(BaseModel):
    """Collision safety levels (collisions per 1000 residents)."""

    moderate_per_1000: float = 5.0
    high_per_1000: float = 15.0

    @model_validator(mode="after")
    def validate_levels(self) -> CollisionsConfig:
        """Level thresholds must be ordered."""
        if self.high_per_1000 < self.moderate_per_1000:
            raise ValueError("high_per_1000 must not be below moderate_per_1000")
        return self


class AggregationConfig(BaseModel):
    """Area-weighted aggregation configuration."""

    attributes: list[str] = Field(default_factory=lambda: ["canopy_cover", "tree_equity_score"])
    round_results: bool = True


class OutputConfig(BaseModel):
    """Output formatting configuration."""

    float_precision: int = 2
    summary_top_n: int = 20
    summary_bottom_n: int = 10


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["json", "text"] = "text"
    include_timestamp: bool = True


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Main configuration class for Neighbourhood Pulse.

    Loads configuration from:
    1. YAML files in configs/environments/
    2. Environment variables

    Environment variables take precedence over YAML values.
    """

    model_config = SettingsConfigDict(
        env_prefix="NP_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "prod"] = "dev"

    # Configuration sections
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    geometry: GeometryConfig = Field(default_factory=GeometryConfig)
    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    scores: ScoresConfig = Field(default_factory=ScoresConfig)
    cycling: CyclingConfig = Field(default_factory=CyclingConfig)
    commute: CommuteConfig = Field(default_factory=CommuteConfig)
    transit: TransitConfig = Field(default_factory=TransitConfig)
    service_requests: ServiceRequestsConfig = Field(default_factory=ServiceRequestsConfig)
    collisions: CollisionsConfig = Field(default_factory=CollisionsConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """YAML values arrive as init kwargs; environment variables must win."""
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        if v not in VALID_ENVIRONMENTS:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {VALID_ENVIRONMENTS}")
        return v


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _get_config_dir() -> Path | None:
    """Get the configuration directory path, if one can be found."""
    # Try relative path from the repository root
    config_dir = Path(__file__).parent.parent.parent / "configs"
    if config_dir.exists():
        return config_dir

    # Try from current working directory
    config_dir = Path.cwd() / "configs"
    if config_dir.exists():
        return config_dir

    return None


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents."""
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_config_for_environment(environment: str) -> dict[str, Any]:
    """Load and merge configuration for a specific environment."""
    config_dir = _get_config_dir()
    if config_dir is None:
        return {"environment": environment}

    env_dir = config_dir / "environments"

    # Load base config
    base_config = _load_yaml_file(env_dir / "base.yaml")

    # Load environment-specific config
    env_config = _load_yaml_file(env_dir / f"{environment}.yaml")

    # Remove inheritance marker if present
    env_config.pop("_inherit", None)

    # Merge configs
    merged = _deep_merge(base_config, env_config)
    merged["environment"] = environment

    return merged


@lru_cache(maxsize=4)
def get_config(environment: str | None = None) -> Settings:
    """
    Get configuration for the specified environment.

    Args:
        environment: Environment name (dev, prod).
                    If None, uses NP_ENVIRONMENT env var, defaulting to "dev".

    Returns:
        Settings: Validated configuration object. The same instance is
        returned on every call and must be treated as read-only.
    """
    if environment is None:
        environment = os.getenv("NP_ENVIRONMENT", "dev")

    # Load YAML configuration
    yaml_config = _load_config_for_environment(environment)

    # Create Settings object (also loads env vars)
    settings = Settings(**yaml_config)

    # NP_ENVIRONMENT must not relabel an explicitly requested environment
    if settings.environment != environment:
        if environment not in VALID_ENVIRONMENTS:
            raise ValueError(
                f"Invalid environment: {environment}. Must be one of: {VALID_ENVIRONMENTS}"
            )
        settings = settings.model_copy(update={"environment": environment})
    return settings


def reload_config(environment: str | None = None) -> Settings:
    """
    Reload configuration, clearing the cache.

    Useful for testing or when config files have changed.
    """
    get_config.cache_clear()
    return get_config(environment)


# =============================================================================
# Convenience Functions
# =============================================================================


def resolve_data_path(
    relative: str | Path,
    config: Settings | None = None,
    data_dir: str | Path | None = None,
) -> Path:
    """
    Resolve a configured path against the data directory.

    `data_dir` overrides paths.data_dir. Absolute paths are returned unchanged.
    """
    path = Path(relative)
    if path.is_absolute():
        return path
    if data_dir is None:
        if config is None:
            config = get_config()
        data_dir = config.paths.data_dir
    return Path(data_dir) / path


def resolve_config_path(relative: str) -> Path:
    """
    Resolve a file name against the configs directory.

    Absolute paths, and paths that exist relative to the working directory,
    are returned unchanged.
    """
    path = Path(relative)
    if path.is_absolute() or path.exists():
        return path
    config_dir = _get_config_dir()
    if config_dir is None:
        return path
    return config_dir / path
