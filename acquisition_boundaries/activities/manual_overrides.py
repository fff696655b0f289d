"""Manual override table: hand-authored polygons for unreliable eras.

Some eras cannot be extracted by differencing the source snapshots
(the transfer is not visible in the data, or the historical boundaries
are too noisy).  Such steps are flagged ``manual`` in the
configuration and take their geometry from this table instead.

A manual step with no entry is a configuration defect and raises
``MissingOverrideError``; it never falls back to automated
extraction, because the step was flagged precisely because that
extraction is known to be wrong.

Entries are loaded from a GeoJSON FeatureCollection whose features
carry the era key in ``properties.era``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from acquisition_boundaries.core.config import ConfigValidationError
from acquisition_boundaries.core.exceptions import (
    FeatureValidationError,
    LoadError,
    MissingOverrideError,
)
from acquisition_boundaries.models.feature import GeoFeature

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger("acquisition_boundaries.activities.manual_overrides")

ERA_PROPERTY = "era"


@dataclass(frozen=True, slots=True)
class ManualOverrideEntry:
    """One hand-authored acquisition polygon.

    Attributes:
        era: Era key the entry substitutes for.
        geometry: The polygon or multipolygon to emit.
        properties: Extra properties emitted with the geometry.
    """

    era: str
    geometry: GeoFeature
    properties: dict[str, Any] = field(default_factory=dict)

    def to_feature(self) -> GeoFeature:
        """The entry's geometry carrying the entry's properties."""
        return self.geometry.with_properties(**self.properties, era=self.era)


class ManualOverrideTable:
    """Immutable registry of override entries indexed by era."""

    def __init__(self, entries: Iterable[ManualOverrideEntry] = ()) -> None:
        table: dict[str, ManualOverrideEntry] = {}
        for entry in entries:
            if entry.era in table:
                raise ConfigValidationError(
                    "manual_overrides", entry.era, "duplicate era in override table", era=entry.era
                )
            table[entry.era] = entry
        self._entries = table

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_entries(cls, entries: Iterable[ManualOverrideEntry]) -> ManualOverrideTable:
        return cls(entries)

    @classmethod
    def from_geojson_file(cls, path: Path | str) -> ManualOverrideTable:
        """Load overrides from a GeoJSON FeatureCollection.

        Raises:
            LoadError: If the file cannot be read or is not a
                FeatureCollection.
            ConfigValidationError: If a feature has no ``era`` property,
                an invalid geometry, or a duplicate era.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            msg = f"Cannot read manual override file {path}: {exc}"
            raise LoadError(msg, stage="manual_overrides") from exc
        except ValueError as exc:
            msg = f"Manual override file {path.name} is not valid JSON: {exc}"
            raise LoadError(msg, stage="manual_overrides") from exc

        if not isinstance(data, dict) or data.get("type") != "FeatureCollection":
            msg = f"Manual override file {path.name} is not a GeoJSON FeatureCollection"
            raise LoadError(msg, stage="manual_overrides")

        entries = [
            _entry_from_geojson(raw, idx, path.name)
            for idx, raw in enumerate(data.get("features") or [])
        ]
        table = cls(entries)
        logger.info(
            "Manual overrides loaded | file=%s | eras=%s",
            path.name,
            ",".join(table.eras),
        )
        return table

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def lookup(self, era: str) -> GeoFeature | None:
        """Return the override feature for ``era``, or ``None``."""
        entry = self._entries.get(era)
        return entry.to_feature() if entry is not None else None

    def require(self, era: str, *, step: int | None = None) -> GeoFeature:
        """Return the override feature for ``era``.

        Raises:
            MissingOverrideError: If the table has no entry for ``era``.
        """
        feature = self.lookup(era)
        if feature is None:
            where = f"step {step} " if step is not None else ""
            msg = (
                f"No manual override for {where}era '{era}' "
                f"(available: {', '.join(self.eras) or 'none'})"
            )
            raise MissingOverrideError(msg, step=step, era=era)
        return feature

    @property
    def eras(self) -> list[str]:
        return sorted(self._entries)

    def __contains__(self, era: object) -> bool:
        return era in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _entry_from_geojson(raw: object, idx: int, source: str) -> ManualOverrideEntry:
    key = f"{source} feature {idx}"
    if not isinstance(raw, dict):
        raise ConfigValidationError("manual_overrides", key, "feature is not a GeoJSON object")

    properties = dict(raw.get("properties") or {})
    era = str(properties.pop(ERA_PROPERTY, "") or "")
    if not era:
        raise ConfigValidationError("manual_overrides", key, "feature has no 'era' property")

    try:
        geometry = GeoFeature.from_geojson({"type": "Feature", "geometry": raw.get("geometry")})
    except FeatureValidationError as exc:
        raise ConfigValidationError("manual_overrides", key, str(exc), era=era) from exc

    return ManualOverrideEntry(era=era, geometry=geometry, properties=properties)
