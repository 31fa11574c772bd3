"""
Neighbourhood Pulse - Tree Equity Dataset

Census tract canopy cover and tree equity scores rolled up to neighbourhoods.

Components:
    - TreeEquityPreprocessor: Cleans census tract polygons
    - TreeEquityBuilder: Area-weighted canopy and equity per neighbourhood

Data Source:
    Tree Equity Score Canada (American Forests)
"""

from neighbourhood_pulse.datasets.tree_equity.features import (
    TreeEquityBuilder,
    build_tree_equity,
)
from neighbourhood_pulse.datasets.tree_equity.preprocess import (
    TreeEquityPreprocessor,
    preprocess_tree_equity,
)

__all__ = [
    "TreeEquityPreprocessor",
    "TreeEquityBuilder",
    "preprocess_tree_equity",
    "build_tree_equity",
]
