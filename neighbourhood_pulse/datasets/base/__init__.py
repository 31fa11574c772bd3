"""
Neighbourhood Pulse - Base Classes for Datasets

Abstract base classes that all dataset implementations inherit from.
These provide a consistent interface for:
- Data preprocessing (BasePreprocessor)
- Per-neighbourhood metric building (BaseMetricBuilder)
- Upstream payload parsing (source adapters)

Usage:
    from neighbourhood_pulse.datasets.base import BasePreprocessor, BaseMetricBuilder

    class ParksPreprocessor(BasePreprocessor):
        def transform(self, df: pd.DataFrame) -> pd.DataFrame:
            ...
"""

from neighbourhood_pulse.datasets.base.metric_builder import (
    BaseMetricBuilder,
    MetricBuildResult,
    MetricDefinition,
)
from neighbourhood_pulse.datasets.base.preprocessor import BasePreprocessor, PreprocessingResult
from neighbourhood_pulse.datasets.base.sources import (
    ArcGISFeature,
    OverpassElement,
    SourceKind,
    TabularRow,
    frame_to_features,
    load_table,
    parse_payload,
    records_to_frame,
)

__all__ = [
    "BasePreprocessor",
    "PreprocessingResult",
    "BaseMetricBuilder",
    "MetricBuildResult",
    "MetricDefinition",
    "ArcGISFeature",
    "OverpassElement",
    "SourceKind",
    "TabularRow",
    "frame_to_features",
    "load_table",
    "parse_payload",
    "records_to_frame",
]
