"""Geometry Store: load snapshots and partition them by category.

Reads one GeoJSON FeatureCollection per historical snapshot.  Uses
fiona (OGR GeoJSON driver) as the primary parser, with a plain
``json`` fallback for files OGR refuses but which are still valid
FeatureCollections.

The loading pipeline is split into focused stages:
- **_validation**: coordinate bounds, ring structure, shapely validity
- **_normalization**: raw record → ``GeoFeature``, category defaulting
- **_fiona_parser**: primary parser using fiona/OGR
- **_json_parser**: fallback parser using ``json``

A snapshot that cannot be read as a FeatureCollection raises
``LoadError``.  Individual malformed features are logged and skipped;
a missing category becomes the ``"none"`` sentinel so heterogeneous
historical datasets still load.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from acquisition_boundaries.activities.load_snapshot._fiona_parser import parse_with_fiona
from acquisition_boundaries.activities.load_snapshot._json_parser import parse_with_json
from acquisition_boundaries.activities.load_snapshot._normalization import (
    clean_properties,
    record_to_feature,
)
from acquisition_boundaries.activities.load_snapshot._validation import (
    check_validity,
    validate_collection,
    validate_coordinates,
    validate_feature,
    validate_ring,
)
from acquisition_boundaries.core.constants import DEFAULT_CATEGORY_PROPERTY
from acquisition_boundaries.core.exceptions import LoadError
from acquisition_boundaries.models.snapshot import Snapshot

if TYPE_CHECKING:
    from collections.abc import Iterable

    from acquisition_boundaries.models.feature import GeoFeature

logger = logging.getLogger("acquisition_boundaries.activities.load_snapshot")

__all__ = [
    "SnapshotStore",
    "check_validity",
    "clean_properties",
    "load_snapshot",
    "parse_with_fiona",
    "parse_with_json",
    "record_to_feature",
    "select_categories",
    "validate_collection",
    "validate_coordinates",
    "validate_feature",
    "validate_ring",
]


def load_snapshot(
    path: Path | str,
    *,
    snapshot_id: str = "",
    category_property: str = DEFAULT_CATEGORY_PROPERTY,
    repair_invalid: bool = False,
) -> Snapshot:
    """Load one snapshot file.

    Args:
        path: Filesystem path to the GeoJSON FeatureCollection.
        snapshot_id: Identifier for logging (defaults to the file name).
        category_property: Property key holding each feature's category.
        repair_invalid: Repair invalid polygons with ``make_valid``.

    Returns:
        An immutable ``Snapshot``.  Empty if the collection has no
        polygon features.

    Raises:
        LoadError: If the file is missing or cannot be parsed as a
            FeatureCollection.
    """
    path = Path(path)
    snapshot_id = snapshot_id or path.name

    if not path.is_file():
        msg = f"Snapshot file not found: {path}"
        raise LoadError(msg)

    logger.info("Loading snapshot: %s", snapshot_id)

    # Step 1: Top-level FeatureCollection check
    validate_collection(path)

    # Step 2: Try fiona first, fall back to json
    try:
        features, skipped = parse_with_fiona(
            path, category_property=category_property, repair_invalid=repair_invalid
        )
    except LoadError:
        raise
    except Exception as fiona_err:
        logger.warning(
            "Fiona parse failed for %s, trying json fallback: %s",
            snapshot_id,
            fiona_err,
        )
        features, skipped = parse_with_json(
            path, category_property=category_property, repair_invalid=repair_invalid
        )

    snapshot = Snapshot(
        snapshot_id=snapshot_id,
        features=tuple(features),
        category_property=category_property,
        source_path=path,
        skipped_count=skipped,
    )
    logger.info(
        "Snapshot loaded | snapshot=%s | features=%d | skipped=%d | categories=%s",
        snapshot_id,
        len(snapshot),
        skipped,
        ",".join(sorted(snapshot.categories)),
    )
    return snapshot


def select_categories(snapshot: Snapshot, categories: Iterable[str]) -> list[GeoFeature]:
    """Return the features of ``snapshot`` whose category is in ``categories``.

    Pure filter: an empty list (not an error) when nothing matches.
    """
    wanted = frozenset(categories)
    return [f for f in snapshot.features if snapshot.category_of(f) in wanted]


class SnapshotStore:
    """Loads snapshots from a directory and caches them by id.

    Each snapshot is read once per store; later ``load`` calls for the
    same id return the cached, immutable instance.
    """

    def __init__(
        self,
        snapshot_dir: Path | str,
        *,
        category_property: str = DEFAULT_CATEGORY_PROPERTY,
        repair_invalid: bool = False,
    ) -> None:
        self.snapshot_dir = Path(snapshot_dir)
        self.category_property = category_property
        self.repair_invalid = repair_invalid
        self._cache: dict[str, Snapshot] = {}

    def load(self, snapshot_id: str) -> Snapshot:
        """Load (or return the cached) snapshot ``snapshot_id``.

        Raises:
            LoadError: If the snapshot cannot be read.
        """
        cached = self._cache.get(snapshot_id)
        if cached is not None:
            return cached
        snapshot = load_snapshot(
            self.snapshot_dir / snapshot_id,
            snapshot_id=snapshot_id,
            category_property=self.category_property,
            repair_invalid=self.repair_invalid,
        )
        self._cache[snapshot_id] = snapshot
        return snapshot

    def is_loaded(self, snapshot_id: str) -> bool:
        return snapshot_id in self._cache
