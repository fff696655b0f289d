"""Plain JSON snapshot parser (fallback).

Used when OGR rejects a file that is still a readable GeoJSON
FeatureCollection (e.g. mixed property types across features).
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from acquisition_boundaries.activities.load_snapshot._constants import FEATURE_COLLECTION
from acquisition_boundaries.activities.load_snapshot._normalization import record_to_feature
from acquisition_boundaries.core.exceptions import LoadError

if TYPE_CHECKING:
    from pathlib import Path

    from acquisition_boundaries.models.feature import GeoFeature

logger = logging.getLogger("acquisition_boundaries.activities.load_snapshot")


def parse_with_json(
    path: Path,
    *,
    category_property: str,
    repair_invalid: bool = False,
) -> tuple[list[GeoFeature], int]:
    """Parse a GeoJSON snapshot with the ``json`` module.

    Returns:
        ``(features, skipped_count)``.

    Raises:
        LoadError: If the file is unreadable, not JSON, or not a
            FeatureCollection.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        msg = f"Cannot read snapshot {path}: {exc}"
        raise LoadError(msg) from exc
    except ValueError as exc:
        msg = f"Snapshot {path.name} is not valid JSON: {exc}"
        raise LoadError(msg) from exc

    if not isinstance(data, dict) or data.get("type") != FEATURE_COLLECTION:
        found = data.get("type") if isinstance(data, dict) else type(data).__name__
        msg = f"Snapshot {path.name} is not a GeoJSON FeatureCollection (found {found!r})"
        raise LoadError(msg)

    raw_features: Any = data.get("features")
    if not isinstance(raw_features, list):
        msg = f"Snapshot {path.name} has no 'features' array"
        raise LoadError(msg)

    features: list[GeoFeature] = []
    skipped = 0
    for idx, raw in enumerate(raw_features):
        name = f"feature {idx} of {path.name}"
        if not isinstance(raw, dict):
            logger.warning("Skipping %s: not a GeoJSON object", name)
            skipped += 1
            continue
        feature = record_to_feature(
            raw.get("geometry"),
            raw.get("properties"),
            category_property=category_property,
            feature_name=name,
            repair_invalid=repair_invalid,
        )
        if feature is None:
            skipped += 1
        else:
            features.append(feature)

    return features, skipped
