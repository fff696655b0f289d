"""Era assignment: tag the features of one snapshot with acquisition eras.

Used by the dissolve-by-era mode.  Each feature's ``era_property``
value (a state code, say) is looked up in a value-to-era table; the
features of each era are then dissolved on their own.  Because the
source features share exact vertices along their borders, the
dissolved eras tile the snapshot's territory with no gaps or overlaps.

Features whose value is not in the table are left out and reported in
one warning, so a missing entry shows up as a coverage gap rather than
silently landing in some era.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from acquisition_boundaries.models.feature import GeoFeature

logger = logging.getLogger("acquisition_boundaries.activities.era_assignment")

MISSING_VALUE = "<missing>"


@dataclass(frozen=True, slots=True)
class EraAssignment:
    """Features grouped by era, plus the values no era claims.

    Attributes:
        groups: Era key to the features tagged with it, in input order.
        unmapped: Sorted distinct property values with no era.
        unmapped_count: Number of features left out.
    """

    groups: dict[str, list[GeoFeature]] = field(default_factory=dict)
    unmapped: tuple[str, ...] = ()
    unmapped_count: int = 0

    def features_for(self, era: str) -> list[GeoFeature]:
        return self.groups.get(era, [])


def assign_eras(
    features: Iterable[GeoFeature],
    era_property: str,
    lookup: Mapping[str, str],
) -> EraAssignment:
    """Group ``features`` by the era their ``era_property`` value maps to.

    Args:
        features: Features of the source snapshot (already category-filtered).
        era_property: Property holding the lookup value (e.g. ``"STATE"``).
        lookup: Property value to era key.

    Returns:
        An ``EraAssignment``.  Each feature carries its era in
        ``properties["era"]``.
    """
    groups: dict[str, list[GeoFeature]] = {}
    unmapped: set[str] = set()
    unmapped_count = 0

    for feature in features:
        raw = feature.properties.get(era_property)
        value = MISSING_VALUE if raw is None else str(raw)
        era = lookup.get(value)
        if era is None:
            unmapped.add(value)
            unmapped_count += 1
            continue
        groups.setdefault(era, []).append(feature.with_properties(era=era))

    if unmapped:
        logger.warning(
            "Unmapped features | property=%s | count=%d | values=%s",
            era_property,
            unmapped_count,
            ",".join(sorted(unmapped)),
        )
    logger.info(
        "Eras assigned | eras=%d | features=%d | unmapped=%d",
        len(groups),
        sum(len(g) for g in groups.values()),
        unmapped_count,
    )
    return EraAssignment(
        groups=groups, unmapped=tuple(sorted(unmapped)), unmapped_count=unmapped_count
    )
