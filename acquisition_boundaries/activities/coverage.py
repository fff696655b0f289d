"""Coverage check: do the acquisitions tile the final territory?

The pipeline's central correctness property is that the emitted
acquisitions, unioned together, reconstruct the final snapshot's merged
territory with no gaps and no overlaps.  This module measures how far a
run is from that, in geodesic square metres.
"""

from __future__ import annotations

import logging
from itertools import combinations
from typing import TYPE_CHECKING

from acquisition_boundaries.activities.artifact_filter import geodesic_area_m2
from acquisition_boundaries.activities.dissolve import dissolve
from acquisition_boundaries.activities.set_operations import difference, intersection
from acquisition_boundaries.core.constants import DEFAULT_COVERAGE_TOLERANCE
from acquisition_boundaries.models.report import CoverageReport

if TYPE_CHECKING:
    from collections.abc import Sequence

    from acquisition_boundaries.models.feature import GeoFeature

logger = logging.getLogger("acquisition_boundaries.activities.coverage")


def check_coverage(
    acquisitions: Sequence[GeoFeature],
    final: GeoFeature | None,
    *,
    tolerance_ratio: float = DEFAULT_COVERAGE_TOLERANCE,
) -> CoverageReport:
    """Compare the union of ``acquisitions`` with ``final``.

    Gap is final territory no acquisition covers; excess is acquired
    area outside the final territory; overlap is the summed pairwise
    intersection area between acquisitions.

    Raises:
        GeometryOpError: If a set operation cannot resolve the inputs.
    """
    covered = dissolve(list(acquisitions)).merged

    final_area = geodesic_area_m2(final)
    gap = geodesic_area_m2(difference(final, covered))
    excess = geodesic_area_m2(difference(covered, final))
    overlap = sum(
        geodesic_area_m2(intersection(a, b)) for a, b in combinations(acquisitions, 2)
    )

    allowed = final_area * tolerance_ratio
    report = CoverageReport(
        final_area_m2=final_area,
        covered_area_m2=geodesic_area_m2(covered),
        gap_area_m2=gap,
        excess_area_m2=excess,
        overlap_area_m2=overlap,
        tolerance_ratio=tolerance_ratio,
        within_tolerance=gap <= allowed and excess <= allowed and overlap <= allowed,
    )

    log = logger.info if report.within_tolerance else logger.warning
    log(
        "Coverage check | final=%.1f km² | gap=%.3f km² | excess=%.3f km² | "
        "overlap=%.3f km² | within_tolerance=%s",
        final_area / 1e6,
        gap / 1e6,
        excess / 1e6,
        overlap / 1e6,
        report.within_tolerance,
    )
    return report
