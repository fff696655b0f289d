"""Fiona-based GeoJSON snapshot parser (primary).

Reads snapshots through the OGR GeoJSON driver.  Polygon and
MultiPolygon records become features; anything else is logged and
skipped.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from acquisition_boundaries.activities.load_snapshot._normalization import record_to_feature

if TYPE_CHECKING:
    from pathlib import Path

    from acquisition_boundaries.models.feature import GeoFeature

logger = logging.getLogger("acquisition_boundaries.activities.load_snapshot")


def parse_with_fiona(
    path: Path,
    *,
    category_property: str,
    repair_invalid: bool = False,
) -> tuple[list[GeoFeature], int]:
    """Parse a GeoJSON snapshot using fiona.

    Returns:
        ``(features, skipped_count)``.
    """
    import fiona

    features: list[GeoFeature] = []
    skipped = 0

    with fiona.open(str(path), driver="GeoJSON") as collection:
        _check_crs(collection, path)
        for idx, record in enumerate(collection):
            feature = record_to_feature(
                _as_mapping(record["geometry"]),
                _as_mapping(record["properties"]),
                category_property=category_property,
                feature_name=f"feature {idx} of {path.name}",
                repair_invalid=repair_invalid,
            )
            if feature is None:
                skipped += 1
            else:
                features.append(feature)

    return features, skipped


def _as_mapping(obj: Any) -> dict[str, Any] | None:
    """Convert a fiona model object (or plain dict) into a dict."""
    if obj is None:
        return None
    geo = getattr(obj, "__geo_interface__", None)
    if isinstance(geo, dict):
        return dict(geo)
    return dict(obj)


def _check_crs(collection: object, path: Path) -> None:
    """Warn when OGR reports a CRS other than WGS 84."""
    crs = getattr(collection, "crs", None)
    if not crs:
        return
    epsg = getattr(crs, "to_epsg", lambda: None)()
    if epsg is not None and epsg != 4326:
        logger.warning(
            "Snapshot %s declares EPSG:%s; coordinates are treated as WGS 84 degrees",
            path.name,
            epsg,
        )
