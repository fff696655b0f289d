"""Set-operation engine: difference, union and intersection of features.

Thin, strict wrappers over shapely/GEOS.  ``None`` stands for "no
geometry" and follows the null-operand laws below; any topology
failure is raised as ``GeometryOpError`` and never repaired here,
because a silently repaired or silently empty result cannot be told
apart from "no new territory".

Null-operand laws:
- ``difference(a, None) == a`` and ``difference(None, b) is None``
- ``union(None, None) is None``, ``union(a, None) == a``,
  ``union(None, b) == b``
- ``intersection`` with a ``None`` operand is ``None``

Coordinates are floating-point degrees and no snapping happens inside
these primitives.  Callers that need to absorb near-coincident
vertices call ``snap_to`` first.

Results carry the left operand's properties.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shapely.errors import GEOSException

from acquisition_boundaries.core.exceptions import GeometryOpError
from acquisition_boundaries.models.feature import GeoFeature

if TYPE_CHECKING:
    from collections.abc import Callable

    from shapely.geometry.base import BaseGeometry

    from acquisition_boundaries.core.config import BBox

logger = logging.getLogger("acquisition_boundaries.activities.set_operations")

#: Failures GEOS reports for self-intersecting or degenerate input.
GEOMETRY_ERRORS = (GEOSException, ValueError)


def difference(a: GeoFeature | None, b: GeoFeature | None) -> GeoFeature | None:
    """Return ``a \\ b``, or ``None`` when nothing remains.

    Raises:
        GeometryOpError: If GEOS cannot resolve the inputs.
    """
    if a is None:
        return None
    if b is None:
        return a
    return _apply("difference", a, b, lambda x, y: x.difference(y))


def union(a: GeoFeature | None, b: GeoFeature | None) -> GeoFeature | None:
    """Return ``a ∪ b``.

    Raises:
        GeometryOpError: If GEOS cannot resolve the inputs.
    """
    if a is None:
        return b
    if b is None:
        return a
    return _apply("union", a, b, lambda x, y: x.union(y))


def intersection(a: GeoFeature | None, b: GeoFeature | None) -> GeoFeature | None:
    """Return ``a ∩ b``, or ``None`` when they do not overlap.

    Raises:
        GeometryOpError: If GEOS cannot resolve the inputs.
    """
    if a is None or b is None:
        return None
    return _apply("intersection", a, b, lambda x, y: x.intersection(y))


def clip_to_bbox(feature: GeoFeature | None, bbox: BBox) -> GeoFeature | None:
    """Restrict ``feature`` to ``(min_lon, min_lat, max_lon, max_lat)``.

    Raises:
        GeometryOpError: If GEOS cannot resolve the input.
    """
    if feature is None:
        return None
    from shapely.geometry import box

    try:
        clipped = feature.to_shape().intersection(box(*bbox))
    except GEOMETRY_ERRORS as exc:
        msg = f"clip to bbox {list(bbox)} failed: {exc}"
        raise GeometryOpError(msg) from exc
    return GeoFeature.from_shape(clipped, feature.properties)


def snap_to(
    feature: GeoFeature | None, reference: GeoFeature | None, tolerance_deg: float
) -> GeoFeature | None:
    """Snap ``feature``'s vertices onto ``reference`` within ``tolerance_deg``.

    Absorbs near-coincident borders between consecutive snapshots so the
    following difference does not leave hairline slivers.  A zero
    tolerance or missing operand returns ``feature`` unchanged.

    Raises:
        GeometryOpError: If GEOS cannot snap the inputs.
    """
    if feature is None or reference is None or tolerance_deg <= 0:
        return feature
    from shapely.ops import snap

    try:
        snapped = snap(feature.to_shape(), reference.to_shape(), tolerance_deg)
    except GEOMETRY_ERRORS as exc:
        msg = f"snap within {tolerance_deg} deg failed: {exc}"
        raise GeometryOpError(msg) from exc
    return GeoFeature.from_shape(snapped, feature.properties)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _apply(
    name: str,
    a: GeoFeature,
    b: GeoFeature,
    op: Callable[[BaseGeometry, BaseGeometry], BaseGeometry],
) -> GeoFeature | None:
    """Run a binary shapely operation, mapping GEOS failures to ``GeometryOpError``."""
    try:
        result = op(a.to_shape(), b.to_shape())
    except GEOMETRY_ERRORS as exc:
        msg = f"{name} failed: {exc}"
        raise GeometryOpError(msg) from exc
    return GeoFeature.from_shape(result, a.properties)
