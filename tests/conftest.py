"""
Neighbourhood Pulse - Pytest Configuration and Fixtures

Shared fixtures for all tests:
- Configuration fixtures
- Neighbourhood fixtures (two adjacent squares in central Ottawa)
"""

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.geo.geometry import Boundary

# Set test environment
os.environ["NP_ENVIRONMENT"] = "dev"


def square(min_lon: float, min_lat: float, size: float) -> tuple[tuple[float, float], ...]:
    """Closed counter-clockwise square ring of (lon, lat) pairs."""
    return (
        (min_lon, min_lat),
        (min_lon + size, min_lat),
        (min_lon + size, min_lat + size),
        (min_lon, min_lat + size),
        (min_lon, min_lat),
    )


def make_neighbourhood(
    neighbourhood_id: str,
    min_lon: float,
    min_lat: float,
    size: float = 0.02,
    population: float | None = 1000.0,
    area_km2: float | None = None,
    name: str | None = None,
) -> Neighbourhood:
    """A single-square neighbourhood."""
    return Neighbourhood(
        id=neighbourhood_id,
        name=name or neighbourhood_id.title(),
        boundaries=(
            Boundary(
                exterior=square(min_lon, min_lat, size),
                source_id=neighbourhood_id,
                population=population,
                area_km2=area_km2,
            ),
        ),
    )


# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def configs_dir(project_root: Path) -> Path:
    """Get the configs directory."""
    return project_root / "configs"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def test_config() -> Any:
    """Get test configuration."""
    from neighbourhood_pulse.shared.config import get_config, reload_config

    # Ensure fresh config for tests
    reload_config("dev")
    return get_config("dev")


# =============================================================================
# Neighbourhood Fixtures
# =============================================================================


@pytest.fixture
def west() -> Neighbourhood:
    """Square neighbourhood, lon -75.70..-75.68, lat 45.40..45.42."""
    return make_neighbourhood("west", -75.70, 45.40, population=5000.0, area_km2=4.0)


@pytest.fixture
def east() -> Neighbourhood:
    """Square neighbourhood sharing the west one's eastern edge."""
    return make_neighbourhood("east", -75.68, 45.40, population=2000.0, area_km2=2.0)


@pytest.fixture
def neighbourhoods(west: Neighbourhood, east: Neighbourhood) -> tuple[Neighbourhood, ...]:
    """Both squares, sorted by id."""
    return (east, west)


@pytest.fixture
def sample_coordinates() -> dict[str, tuple[float, float]]:
    """(lat, lon) positions inside each square and outside both."""
    return {
        "west": (45.41, -75.69),
        "east": (45.41, -75.67),
        "outside": (45.50, -75.50),
    }


# =============================================================================
# Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def cleanup_env() -> Generator[None, None, None]:
    """Clean up environment variables after each test."""
    original_env = os.environ.copy()
    yield
    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)
