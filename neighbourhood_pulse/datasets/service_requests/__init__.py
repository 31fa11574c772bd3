"""
Neighbourhood Pulse - 311 Service Requests Dataset

City of Ottawa 311 requests: request volume, road-quality and noise
complaints per neighbourhood, with ward-based placement for requests that
have no coordinates.

Components:
    - ServiceRequestsPreprocessor: Categorizes requests and flags complaints
    - ServiceRequestMetricsBuilder: Counts, rates, road quality and quiet scores

Data Source:
    City of Ottawa 311 open data (current and previous year CSVs)

Usage:
    from neighbourhood_pulse.datasets.service_requests import (
        ServiceRequestsPreprocessor,
        ServiceRequestMetricsBuilder,
    )

    preprocessor = ServiceRequestsPreprocessor()
    preprocessor.run(raw_df, execution_date="2024-01-15")

    builder = ServiceRequestMetricsBuilder()
    builder.run(preprocessor.get_data(), boundary_set.neighbourhoods, "2024-01-15")
"""

from neighbourhood_pulse.datasets.service_requests.features import (
    ServiceRequestMetricsBuilder,
    build_service_request_metrics,
)
from neighbourhood_pulse.datasets.service_requests.preprocess import (
    SERVICE_TYPES,
    ServiceRequestsPreprocessor,
    matches_any,
    normalize_ward,
    preprocess_service_requests,
    service_category,
)

__all__ = [
    "SERVICE_TYPES",
    "ServiceRequestsPreprocessor",
    "ServiceRequestMetricsBuilder",
    "matches_any",
    "normalize_ward",
    "service_category",
    "preprocess_service_requests",
    "build_service_request_metrics",
]
