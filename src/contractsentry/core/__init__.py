"""Detector registry, finding aggregation and the scan pipeline."""
