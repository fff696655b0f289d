"""Shared helper functions used across the pipeline stages."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acquisition_boundaries.models.feature import GeoFeature


def compute_bounds(feature: GeoFeature) -> tuple[float, float, float, float]:
    """Return ``(min_lon, min_lat, max_lon, max_lat)`` over every ring of ``feature``.

    Raises:
        ValueError: If the feature has no coordinates.
    """
    coords = [c for ring in feature.rings for c in ring]
    if not coords:
        msg = "Cannot compute bounds of a feature with no coordinates"
        raise ValueError(msg)
    lons = [c[0] for c in coords]
    lats = [c[1] for c in coords]
    return (min(lons), min(lats), max(lons), max(lats))


def describe_feature(feature: GeoFeature) -> str:
    """One-line summary used in the end-of-run log."""
    min_lon, min_lat, max_lon, max_lat = compute_bounds(feature)
    props = feature.properties
    return (
        f"{props.get('step')}: {props.get('label')} "
        f"| lon[{min_lon:.0f}, {max_lon:.0f}] lat[{min_lat:.0f}, {max_lat:.0f}] "
        f"| parts={feature.part_count}"
    )
