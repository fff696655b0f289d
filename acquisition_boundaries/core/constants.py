"""Shared pipeline constants: single source of truth.

Defaults for every tunable value live here so that the configuration
layer, the activities, and the tests agree on them.
"""

from __future__ import annotations

import enum

# ---------------------------------------------------------------------------
# Snapshot categories
# ---------------------------------------------------------------------------

DEFAULT_CATEGORY_PROPERTY: str = "CATEGORY"
"""Feature property holding the territorial category."""

MISSING_CATEGORY: str = "none"
"""Category assigned to features that carry no category property."""

DEFAULT_CATEGORIES: frozenset[str] = frozenset({"state", "territory", "seceded_state"})
"""Categories that count as owned territory when dissolving a snapshot."""

DEFAULT_ERA_PROPERTY: str = "STATE"
"""Feature property looked up in ``era_members`` by the dissolve-by-era mode."""

# ---------------------------------------------------------------------------
# Thresholds (empirically tuned; validate against the reference dataset)
# ---------------------------------------------------------------------------

DEFAULT_MIN_AREA_M2: float = 1_000_000.0
"""Acquisitions smaller than 1 km² are treated as set-operation noise."""

DEFAULT_SLIVER_AREA_M2: float = 0.0
"""Per-part sliver threshold; ``0`` disables part-level trimming."""

DEFAULT_SNAP_TOLERANCE_DEG: float = 0.0
"""Vertex snapping tolerance in degrees; ``0`` disables snapping."""

DEFAULT_COVERAGE_TOLERANCE: float = 1e-4
"""Allowed gap/overlap as a fraction of the final territory (0.01%)."""

# ---------------------------------------------------------------------------
# Output contract
# ---------------------------------------------------------------------------

REQUIRED_OUTPUT_PROPERTIES: tuple[str, ...] = ("era", "step", "label")
"""Properties every emitted acquisition feature must carry."""

REPORT_SCHEMA_VERSION: str = "acquisition-report-v1"


# ---------------------------------------------------------------------------
# Winding conventions
# ---------------------------------------------------------------------------


class WindingConvention(enum.StrEnum):
    """Ring orientation expected by a downstream renderer.

    ``SPHERICAL`` renderers (d3-geo) read a clockwise exterior as
    "smaller than a hemisphere"; ``RFC7946`` follows the planar GeoJSON
    rule of counter-clockwise exteriors.  Emitting the wrong one makes a
    spherical renderer fill the polygon's complement.
    """

    SPHERICAL = "spherical"
    RFC7946 = "rfc7946"

    @property
    def exterior_clockwise(self) -> bool:
        """Whether exterior rings should be clockwise in (lon, lat) space."""
        return self is WindingConvention.SPHERICAL


DEFAULT_WINDING: WindingConvention = WindingConvention.SPHERICAL


# ---------------------------------------------------------------------------
# Extraction modes
# ---------------------------------------------------------------------------


class PipelineMode(enum.StrEnum):
    """How acquisitions are derived from the snapshots.

    ``DIFFERENCE`` subtracts each snapshot's merged territory from the
    next one.  ``DISSOLVE_BY_ERA`` tags every feature of a single final
    snapshot with an era through a property lookup and dissolves each
    era on its own; shared borders of the source features give a tiling
    without gaps or overlaps.
    """

    DIFFERENCE = "difference"
    DISSOLVE_BY_ERA = "dissolve_by_era"


DEFAULT_MODE: PipelineMode = PipelineMode.DIFFERENCE
