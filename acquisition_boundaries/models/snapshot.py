"""Data model for one historical territorial snapshot.

A Snapshot is every polygon known at one historical instant, read once
from a GeoJSON FeatureCollection and never mutated afterwards.  Each
feature carries a category (``state``, ``territory``,
``other_country``, ...) under the configured category property.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from acquisition_boundaries.core.constants import DEFAULT_CATEGORY_PROPERTY, MISSING_CATEGORY

if TYPE_CHECKING:
    from pathlib import Path

    from acquisition_boundaries.models.feature import GeoFeature


@dataclass(frozen=True, slots=True)
class Snapshot:
    """All territory known at one historical instant.

    Attributes:
        snapshot_id: Identifier the snapshot was loaded by (file name).
        features: Polygon features in source order.
        category_property: Property key holding each feature's category.
        source_path: File the snapshot was read from.
        skipped_count: Number of source features dropped during loading.
    """

    snapshot_id: str
    features: tuple[GeoFeature, ...] = ()
    category_property: str = DEFAULT_CATEGORY_PROPERTY
    source_path: Path | None = None
    skipped_count: int = 0
    categories: frozenset[str] = field(init=False)

    def __post_init__(self) -> None:
        cats = frozenset(self.category_of(f) for f in self.features)
        object.__setattr__(self, "categories", cats)

    def category_of(self, feature: GeoFeature) -> str:
        """Return the category of ``feature``, or the ``"none"`` sentinel."""
        value = feature.properties.get(self.category_property)
        if value is None or not str(value).strip():
            return MISSING_CATEGORY
        return str(value)

    def __len__(self) -> int:
        return len(self.features)
