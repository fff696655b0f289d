"""Feature merger: dissolve many polygon features into one geometry.

The fast path hands every geometry to ``shapely.union_all`` in one
call.  When GEOS rejects the batch (typically one self-intersecting
ring somewhere in a historical dataset), the merge falls back to an
explicit left-to-right reduction over ``set_operations.union`` so the
offending features can be isolated, skipped, and reported while the
rest still merge.

Known limitation: the fallback reduction is order-sensitive.  A
feature skipped at step *k* failed against the partial union of
features ``0..k-1`` and is permanently lost, even if it would have
merged cleanly with a different subset.  The skipped list makes this
visible to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from acquisition_boundaries.activities.set_operations import GEOMETRY_ERRORS, union
from acquisition_boundaries.core.exceptions import GeometryOpError
from acquisition_boundaries.models.feature import GeoFeature

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger("acquisition_boundaries.activities.dissolve")


@dataclass(frozen=True, slots=True)
class SkippedFeature:
    """An input feature the reduction could not merge.

    Attributes:
        index: Position of the feature in the dissolve input.
        reason: Underlying geometry error message.
    """

    index: int
    reason: str


@dataclass(frozen=True, slots=True)
class DissolveResult:
    """Merged geometry plus the inputs that were dropped on the way.

    Attributes:
        merged: The combined geometry, or ``None`` for empty input.
        skipped: Inputs skipped because their union step failed.
        input_count: Number of features handed to ``dissolve``.
    """

    merged: GeoFeature | None
    skipped: tuple[SkippedFeature, ...] = field(default_factory=tuple)
    input_count: int = 0

    @property
    def merged_count(self) -> int:
        return self.input_count - len(self.skipped)


def dissolve(features: Sequence[GeoFeature]) -> DissolveResult:
    """Union ``features`` into a single (possibly multi-part) geometry.

    - No features: ``merged`` is ``None``.
    - One feature: returned unchanged.
    - Several: merged; the result carries the first feature's properties.
    """
    count = len(features)
    if count == 0:
        return DissolveResult(merged=None)
    if count == 1:
        return DissolveResult(merged=features[0], input_count=1)

    merged = _union_all(features)
    if merged is not None:
        return DissolveResult(merged=merged, input_count=count)
    return _reduce(features)


def _union_all(features: Sequence[GeoFeature]) -> GeoFeature | None:
    """One-shot union; ``None`` when GEOS rejects the batch."""
    import shapely

    try:
        shapes = [f.to_shape() for f in features]
        result = shapely.union_all(shapes)
    except GEOMETRY_ERRORS as exc:
        logger.warning(
            "Batch union of %d features failed, falling back to pairwise reduction: %s",
            len(features),
            exc,
        )
        return None
    merged = GeoFeature.from_shape(result, features[0].properties)
    if merged is None:
        logger.warning("Batch union of %d features produced no polygon", len(features))
    return merged


def _reduce(features: Sequence[GeoFeature]) -> DissolveResult:
    """Left-to-right reduction that skips features whose union step fails."""
    merged: GeoFeature | None = None
    skipped: list[SkippedFeature] = []

    for idx, feature in enumerate(features):
        try:
            merged = union(merged, feature)
        except GeometryOpError as exc:
            logger.warning("Skipping feature %d during dissolve: %s", idx, exc)
            skipped.append(SkippedFeature(index=idx, reason=str(exc)))

    logger.info(
        "Dissolve reduction complete | inputs=%d | merged=%d | skipped=%d",
        len(features),
        len(features) - len(skipped),
        len(skipped),
    )
    return DissolveResult(merged=merged, skipped=tuple(skipped), input_count=len(features))
