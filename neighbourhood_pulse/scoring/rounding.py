"""
Neighbourhood Pulse - Rounding Helpers

Scores and display metrics round half away from zero (2.5 -> 3), not to
even as the built-in round() does.
"""

from __future__ import annotations

import math

import numpy as np
import pandas as pd


def round_half_up(value: float, digits: int = 0) -> float:
    """Round a scalar half away from zero."""
    if value is None or not math.isfinite(value):
        return value
    factor = 10**digits
    return math.copysign(math.floor(abs(value) * factor + 0.5) / factor, value)


def round_score(value: float) -> int:
    """Round a score to an integer, half away from zero."""
    return int(round_half_up(value))


def round_series(series: pd.Series, digits: int = 0) -> pd.Series:
    """Vectorised round_half_up; NaN stays NaN."""
    values = series.astype(float).to_numpy()
    factor = 10.0**digits
    rounded = np.sign(values) * np.floor(np.abs(values) * factor + 0.5) / factor
    return pd.Series(rounded, index=series.index, name=series.name)
