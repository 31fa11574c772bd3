"""
Neighbourhood Pulse

Batch pipeline that joins open-data features to neighbourhood boundaries and
produces per-neighbourhood metrics and composite scores.
"""

__version__ = "0.1.0"
