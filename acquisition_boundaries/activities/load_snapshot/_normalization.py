"""Record normalization helpers for snapshot loading.

Responsibilities:
- Turn a raw GeoJSON-style record (from fiona or ``json``) into a
  validated ``GeoFeature``
- Default a missing category to the ``"none"`` sentinel
"""

from __future__ import annotations

import logging
from typing import Any

from acquisition_boundaries.activities.load_snapshot._validation import (
    check_validity,
    validate_feature,
)
from acquisition_boundaries.core.constants import MISSING_CATEGORY
from acquisition_boundaries.core.exceptions import FeatureValidationError
from acquisition_boundaries.models.feature import GeoFeature

logger = logging.getLogger("acquisition_boundaries.activities.load_snapshot")


def clean_properties(props: dict[str, Any] | None, category_property: str) -> dict[str, Any]:
    """Drop null properties and default the category to ``"none"``."""
    cleaned = {str(k): v for k, v in (props or {}).items() if v is not None}
    category = cleaned.get(category_property)
    if category is None or not str(category).strip():
        cleaned[category_property] = MISSING_CATEGORY
    return cleaned


def record_to_feature(
    geometry: dict[str, Any] | None,
    properties: dict[str, Any] | None,
    *,
    category_property: str,
    feature_name: str,
    repair_invalid: bool = False,
) -> GeoFeature | None:
    """Convert one raw record to a validated feature.

    Returns ``None`` (with a warning) when the record has no polygonal
    geometry or fails validation, so one bad feature does not abort the
    snapshot.
    """
    if geometry is None:
        logger.warning("Skipping %s: no geometry", feature_name)
        return None

    raw = {
        "type": "Feature",
        "geometry": geometry,
        "properties": clean_properties(properties, category_property),
    }
    try:
        feature = GeoFeature.from_geojson(raw)
        feature = validate_feature(feature, feature_name)
        return check_validity(feature, feature_name, repair=repair_invalid)
    except FeatureValidationError as exc:
        logger.warning("Skipping invalid %s: %s", feature_name, exc)
        return None
