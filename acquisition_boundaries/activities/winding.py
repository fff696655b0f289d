"""Ring winding-order normalization.

Two consumers read the acquisition output with opposite conventions:
planar GeoJSON (RFC 7946) wants counter-clockwise exteriors, while
spherical renderers such as d3-geo treat a counter-clockwise exterior
smaller than a hemisphere as its own complement and fill the rest of
the globe.  The target convention is therefore always a parameter.

Orientation is measured with the shoelace sum
``Σ (x[i+1] - x[i]) · (y[i+1] + y[i])`` over ``(lon, lat)`` pairs:
a positive sum means the ring is clockwise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acquisition_boundaries.core.constants import WindingConvention
    from acquisition_boundaries.models.feature import GeoFeature, Ring


def signed_ring_area(ring: Ring) -> float:
    """Shoelace sum of a closed ring; positive when clockwise.

    The value is twice the planar area in square degrees, signed.
    """
    total = 0.0
    for (x0, y0), (x1, y1) in zip(ring, ring[1:], strict=False):
        total += (x1 - x0) * (y1 + y0)
    return total


def is_clockwise(ring: Ring) -> bool:
    return signed_ring_area(ring) > 0


def rewind_ring(ring: Ring, clockwise: bool) -> Ring:
    """Return ``ring`` oriented clockwise (``True``) or counter-clockwise.

    The ring is reversed only when its orientation differs from the
    requested one; otherwise it is returned unchanged.
    """
    if is_clockwise(ring) != clockwise:
        return ring[::-1]
    return ring


def rewind_geometry(feature: GeoFeature, exterior_clockwise: bool) -> GeoFeature:
    """Orient every ring of ``feature``.

    The first ring of each polygon part is the exterior and follows
    ``exterior_clockwise``; every later ring is a hole and gets the
    opposite orientation.
    """
    polygons = []
    for polygon in feature.polygons:
        exterior, *holes = polygon
        polygons.append(
            [
                rewind_ring(exterior, exterior_clockwise),
                *(rewind_ring(hole, not exterior_clockwise) for hole in holes),
            ]
        )
    return feature.with_polygons(polygons)


def apply_convention(feature: GeoFeature, convention: WindingConvention) -> GeoFeature:
    """Orient ``feature`` for the renderer ``convention``."""
    return rewind_geometry(feature, convention.exterior_clockwise)
