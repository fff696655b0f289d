"""Validation helpers for snapshot loading.

Responsibilities:
- File-level check that the snapshot is a GeoJSON FeatureCollection
- Coordinate bounds checking (WGS 84)
- Ring structure validation (closure, vertex count)
- Shapely validity checks, with optional ``make_valid`` repair
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from acquisition_boundaries.activities.load_snapshot._constants import (
    FEATURE_COLLECTION,
    MAX_LATITUDE,
    MAX_LONGITUDE,
    MIN_LATITUDE,
    MIN_LONGITUDE,
    MIN_RING_VERTICES,
)
from acquisition_boundaries.core.exceptions import FeatureValidationError, LoadError
from acquisition_boundaries.models.feature import GeoFeature, Ring

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger("acquisition_boundaries.activities.load_snapshot")


def validate_collection(path: Path) -> None:
    """Validate that the file is JSON with a FeatureCollection at the top level.

    OGR also accepts a bare Feature or geometry, so the top-level type is
    checked here before either parser runs.

    Raises:
        LoadError: If the file is unreadable, empty, not JSON, or not a
            FeatureCollection.
    """
    try:
        content = path.read_bytes()
    except OSError as exc:
        msg = f"Cannot read snapshot file: {exc}"
        raise LoadError(msg) from exc

    if not content.strip():
        msg = f"Snapshot file is empty: {path.name}"
        raise LoadError(msg)

    try:
        data = json.loads(content)
    except ValueError as exc:
        msg = f"Snapshot {path.name} is not valid JSON: {exc}"
        raise LoadError(msg) from exc

    found = data.get("type") if isinstance(data, dict) else type(data).__name__
    if found != FEATURE_COLLECTION:
        msg = f"Snapshot {path.name} is not a GeoJSON FeatureCollection (found {found!r})"
        raise LoadError(msg)


# ---------------------------------------------------------------------------
# Coordinate validation
# ---------------------------------------------------------------------------


def validate_coordinates(ring: Ring, feature_name: str) -> None:
    """Validate that all coordinates are within WGS 84 bounds.

    Raises:
        FeatureValidationError: If any coordinate is out of bounds.
    """
    for lon, lat in ring:
        if not (MIN_LONGITUDE <= lon <= MAX_LONGITUDE):
            msg = (
                f"Longitude {lon} out of WGS 84 range [{MIN_LONGITUDE}, {MAX_LONGITUDE}] "
                f"in {feature_name}"
            )
            raise FeatureValidationError(msg)
        if not (MIN_LATITUDE <= lat <= MAX_LATITUDE):
            msg = (
                f"Latitude {lat} out of WGS 84 range [{MIN_LATITUDE}, {MAX_LATITUDE}] "
                f"in {feature_name}"
            )
            raise FeatureValidationError(msg)


def validate_ring(ring: Ring, feature_name: str) -> Ring:
    """Validate a ring has enough distinct vertices and is closed.

    Returns the (possibly auto-closed) ring.

    Raises:
        FeatureValidationError: If the ring has fewer than 3 distinct points.
    """
    if len(set(ring)) < 3:
        msg = f"Ring has fewer than 3 distinct points in {feature_name}"
        raise FeatureValidationError(msg)

    if ring[0] != ring[-1]:
        logger.warning("Auto-closing unclosed ring in %s", feature_name)
        ring = [*ring, ring[0]]

    if len(ring) < MIN_RING_VERTICES:
        msg = f"Ring has fewer than {MIN_RING_VERTICES} vertices (including closure) in {feature_name}"
        raise FeatureValidationError(msg)
    return ring


def validate_feature(feature: GeoFeature, feature_name: str) -> GeoFeature:
    """Validate every ring of ``feature``, returning a copy with closed rings.

    Raises:
        FeatureValidationError: If a polygon part has no rings, or any
            ring is degenerate or out of bounds.
    """
    polygons = []
    for part, polygon in enumerate(feature.polygons):
        if not polygon:
            msg = f"Polygon part {part} has no rings in {feature_name}"
            raise FeatureValidationError(msg)
        rings = []
        for ring in polygon:
            validate_coordinates(ring, feature_name)
            rings.append(validate_ring(ring, feature_name))
        polygons.append(rings)
    return feature.with_polygons(polygons)


def check_validity(feature: GeoFeature, feature_name: str, *, repair: bool) -> GeoFeature:
    """Check shapely validity; optionally repair with ``make_valid()``.

    Invalid geometry is kept as-is when ``repair`` is off so that the
    dissolve stage can report it as a skipped input.

    Raises:
        FeatureValidationError: If repair leaves no polygonal geometry.
    """
    from shapely.validation import explain_validity, make_valid

    shape = feature.to_shape()
    if shape.is_valid:
        return feature

    reason = explain_validity(shape)
    if not repair:
        logger.warning("Invalid geometry in %s (kept unrepaired): %s", feature_name, reason)
        return feature

    repaired = GeoFeature.from_shape(make_valid(shape), feature.properties)
    if repaired is None:
        msg = f"Geometry has no polygonal part after make_valid() in {feature_name}: {reason}"
        raise FeatureValidationError(msg)
    logger.info("Geometry repaired for %s: %s", feature_name, reason)
    return repaired
