"""
Neighbourhood Pulse - Datasets

One package per metric family. Each provides a preprocessor (raw table to
standardized features) and a metric builder (features to one row per
neighbourhood).
"""
