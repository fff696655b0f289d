"""Shared constants for snapshot loading."""

from __future__ import annotations

# WGS 84 coordinate bounds
MIN_LONGITUDE = -180.0
MAX_LONGITUDE = 180.0
MIN_LATITUDE = -90.0
MAX_LATITUDE = 90.0

# Minimum vertices for a valid ring (3 distinct + closing = 4)
MIN_RING_VERTICES = 4

FEATURE_COLLECTION = "FeatureCollection"
