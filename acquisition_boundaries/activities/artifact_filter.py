"""Artifact filter: drop set-operation noise by geodesic area.

Differencing two nearly coincident boundaries leaves hairline slivers
and crumbs whose planar area in square degrees says little about their
real size.  Areas here are true geodesic areas on the WGS 84 ellipsoid
(``pyproj.Geod``) in square metres, winding-order agnostic.

Rings come out of planar set operations, so each edge is a straight
line in (lon, lat) space while ``Geod`` measures edges as geodesics.
Rings are densified to ``DENSIFY_MAX_SEGMENT_DEG`` before measuring so
that the area of a region does not depend on which collinear vertices
GEOS happened to keep.

- ``filter_artifacts`` judges a whole acquisition: below threshold it
  is discarded entirely, because an "acquisition" smaller than the
  threshold is not a meaningful historical event.
- ``drop_slivers`` trims individual parts and is optional.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import shapely
from pyproj import Geod
from shapely.geometry import LinearRing

from acquisition_boundaries.core.constants import DEFAULT_MIN_AREA_M2

if TYPE_CHECKING:
    from acquisition_boundaries.models.feature import GeoFeature, Ring

logger = logging.getLogger("acquisition_boundaries.activities.artifact_filter")

# Square metres per square kilometre (explicit unit conversion)
SQ_METRES_PER_SQ_KM = 1_000_000.0

WGS84_GEOD = Geod(ellps="WGS84")

# Longest edge (degrees) measured as a geodesic; longer edges are split
DENSIFY_MAX_SEGMENT_DEG = 0.1


def ring_area_m2(ring: Ring) -> float:
    """Absolute geodesic area enclosed by one ring, in square metres."""
    if len(ring) < 4:
        return 0.0
    dense = shapely.segmentize(LinearRing(ring), DENSIFY_MAX_SEGMENT_DEG)
    coords = shapely.get_coordinates(dense)
    area, _perimeter = WGS84_GEOD.polygon_area_perimeter(coords[:, 0], coords[:, 1])
    return abs(area)


def polygon_area_m2(rings: list[Ring]) -> float:
    """Geodesic area of one polygon part: exterior minus holes."""
    if not rings:
        return 0.0
    exterior, *holes = rings
    return max(ring_area_m2(exterior) - sum(ring_area_m2(h) for h in holes), 0.0)


def geodesic_area_m2(feature: GeoFeature | None) -> float:
    """Total geodesic area of a (multi)polygon feature in square metres."""
    if feature is None:
        return 0.0
    return sum(polygon_area_m2(polygon) for polygon in feature.polygons)


def filter_artifacts(
    feature: GeoFeature | None, min_area_m2: float = DEFAULT_MIN_AREA_M2
) -> GeoFeature | None:
    """Return ``feature`` unchanged, or ``None`` if its total area is below threshold.

    A threshold of zero never discards.
    """
    if feature is None:
        return None
    if min_area_m2 <= 0:
        return feature

    area = geodesic_area_m2(feature)
    if area < min_area_m2:
        logger.info(
            "Discarding artifact | area=%.3f km² | threshold=%.3f km²",
            area / SQ_METRES_PER_SQ_KM,
            min_area_m2 / SQ_METRES_PER_SQ_KM,
        )
        return None
    return feature


def drop_slivers(feature: GeoFeature | None, min_part_area_m2: float) -> GeoFeature | None:
    """Remove polygon parts smaller than ``min_part_area_m2``.

    Returns ``None`` when every part is a sliver; ``min_part_area_m2 <= 0``
    returns the feature unchanged.
    """
    if feature is None or min_part_area_m2 <= 0:
        return feature

    kept = [p for p in feature.polygons if polygon_area_m2(p) >= min_part_area_m2]
    dropped = feature.part_count - len(kept)
    if dropped:
        logger.info(
            "Dropped %d sliver part(s) below %.3f km²",
            dropped,
            min_part_area_m2 / SQ_METRES_PER_SQ_KM,
        )
    if not kept:
        return None
    if not dropped:
        return feature
    return feature.with_polygons(kept)
