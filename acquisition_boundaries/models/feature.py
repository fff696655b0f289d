"""Data model for a tagged polygon geometry.

A GeoFeature is the unit every pipeline stage consumes and produces:
a Polygon or MultiPolygon in WGS 84 ``(lon, lat)`` degrees plus a flat
mapping of scalar properties (category, era, step, label, year).

Coordinates are stored in GeoJSON nesting so that the winding
normalizer can rewrite ring order without a geometry library, while
``to_shape()`` / ``from_shape()`` bridge to shapely for set operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from acquisition_boundaries.core.exceptions import FeatureValidationError

if TYPE_CHECKING:
    from shapely.geometry.base import BaseGeometry

Coord = tuple[float, float]
Ring = list[Coord]

POLYGON = "Polygon"
MULTIPOLYGON = "MultiPolygon"
SUPPORTED_GEOMETRY_TYPES = frozenset({POLYGON, MULTIPOLYGON})


@dataclass(frozen=True, slots=True)
class GeoFeature:
    """A Polygon or MultiPolygon with associated properties.

    Attributes:
        geometry_type: ``"Polygon"`` or ``"MultiPolygon"``.
        coordinates: GeoJSON-shaped coordinates.  For a Polygon, a list of
            rings (exterior first, then holes); for a MultiPolygon, a list
            of such ring lists.  Every ring is closed.
        properties: Scalar metadata (category, era, step, label, year).
    """

    geometry_type: str
    coordinates: list[Any] = field(default_factory=list)
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def polygons(self) -> list[list[Ring]]:
        """Every polygon part as a list of rings, regardless of type."""
        if self.geometry_type == POLYGON:
            return [self.coordinates]
        return list(self.coordinates)

    @property
    def rings(self) -> list[Ring]:
        """All rings of all parts, in order."""
        return [ring for polygon in self.polygons for ring in polygon]

    @property
    def part_count(self) -> int:
        return len(self.polygons)

    def with_properties(self, **updates: Any) -> GeoFeature:
        """Return a copy with ``updates`` merged over the current properties."""
        return replace(self, properties={**self.properties, **updates})

    def with_polygons(self, polygons: list[list[Ring]]) -> GeoFeature:
        """Return a copy holding ``polygons``, keeping the geometry type when possible."""
        if self.geometry_type == POLYGON and len(polygons) == 1:
            return replace(self, coordinates=polygons[0])
        return replace(self, geometry_type=MULTIPOLYGON, coordinates=polygons)

    # ------------------------------------------------------------------
    # GeoJSON
    # ------------------------------------------------------------------

    def to_geojson(self) -> dict[str, Any]:
        """Serialise to a GeoJSON Feature dict."""
        if self.geometry_type == POLYGON:
            coords: list[Any] = [_ring_to_lists(r) for r in self.coordinates]
        else:
            coords = [[_ring_to_lists(r) for r in poly] for poly in self.coordinates]
        return {
            "type": "Feature",
            "properties": dict(self.properties),
            "geometry": {"type": self.geometry_type, "coordinates": coords},
        }

    @classmethod
    def from_geojson(cls, data: dict[str, Any]) -> GeoFeature:
        """Deserialise a GeoJSON Feature (or bare geometry) dict.

        Raises:
            FeatureValidationError: If the geometry is missing, of an
                unsupported type, or has malformed coordinates.
        """
        if data.get("type") == "Feature":
            geometry = data.get("geometry")
            properties = data.get("properties") or {}
        else:
            geometry = data
            properties = {}

        if not isinstance(geometry, dict):
            msg = "Feature has no geometry"
            raise FeatureValidationError(msg)
        if not isinstance(properties, dict):
            msg = f"properties must be a mapping, got {type(properties).__name__}"
            raise FeatureValidationError(msg)

        geom_type = geometry.get("type", "")
        if geom_type not in SUPPORTED_GEOMETRY_TYPES:
            msg = f"Unsupported geometry type {geom_type!r} (expected Polygon or MultiPolygon)"
            raise FeatureValidationError(msg)

        raw = geometry.get("coordinates")
        if not isinstance(raw, list | tuple) or not raw:
            msg = f"{geom_type} has no coordinates"
            raise FeatureValidationError(msg)

        if geom_type == POLYGON:
            coords: list[Any] = [_ring_from_raw(r) for r in raw]
        else:
            coords = [[_ring_from_raw(r) for r in poly] for poly in raw]
        return cls(geometry_type=geom_type, coordinates=coords, properties=dict(properties))

    # ------------------------------------------------------------------
    # shapely
    # ------------------------------------------------------------------

    def to_shape(self) -> BaseGeometry:
        """Build the equivalent shapely Polygon / MultiPolygon."""
        from shapely.geometry import MultiPolygon, Polygon

        if self.geometry_type == POLYGON:
            return Polygon(self.coordinates[0], self.coordinates[1:])
        return MultiPolygon([(poly[0], poly[1:]) for poly in self.coordinates])

    @classmethod
    def from_shape(
        cls, geom: BaseGeometry | None, properties: dict[str, Any] | None = None
    ) -> GeoFeature | None:
        """Build a GeoFeature from a shapely geometry.

        Only polygonal parts are kept: set operations on touching
        boundaries can yield GeometryCollections with stray lines or
        points.  Returns ``None`` when nothing polygonal remains.
        """
        parts = _polygon_parts(geom)
        if not parts:
            return None

        polygons = [
            [_ring_from_raw(p.exterior.coords), *(_ring_from_raw(i.coords) for i in p.interiors)]
            for p in parts
        ]
        props = dict(properties or {})
        if len(polygons) == 1:
            return cls(geometry_type=POLYGON, coordinates=polygons[0], properties=props)
        return cls(geometry_type=MULTIPOLYGON, coordinates=polygons, properties=props)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _polygon_parts(geom: BaseGeometry | None) -> list[Any]:
    """Flatten a shapely geometry into its non-empty Polygon members."""
    if geom is None or geom.is_empty:
        return []
    if geom.geom_type == POLYGON:
        return [geom]
    if geom.geom_type in (MULTIPOLYGON, "GeometryCollection"):
        parts: list[Any] = []
        for sub in geom.geoms:
            parts.extend(_polygon_parts(sub))
        return parts
    return []


def _ring_from_raw(raw: Any) -> Ring:
    """Convert a raw coordinate sequence to ``(lon, lat)`` tuples, dropping altitude."""
    ring: Ring = []
    for idx, c in enumerate(raw):
        if not isinstance(c, list | tuple) or len(c) < 2:
            msg = f"Malformed coordinate at index {idx}: {c!r}"
            raise FeatureValidationError(msg)
        try:
            ring.append((float(c[0]), float(c[1])))
        except (TypeError, ValueError) as exc:
            msg = f"Malformed coordinate at index {idx}: cannot convert {c!r} to float"
            raise FeatureValidationError(msg) from exc
    return ring


def _ring_to_lists(ring: Ring) -> list[list[float]]:
    return [[lon, lat] for lon, lat in ring]
