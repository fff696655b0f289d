"""Pydantic models for the end-of-run report.

The report is the user-visible record of a run next to the output
FeatureCollection: which steps were emitted, which were skipped and
why, and whether the emitted acquisitions tile the final territory.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from acquisition_boundaries.core.constants import REPORT_SCHEMA_VERSION


class StepStatus(enum.StrEnum):
    """Terminal outcome of one pipeline step."""

    EMITTED = "emitted"
    OVERRIDDEN = "overridden"
    SKIPPED_EMPTY = "skipped_empty"
    SKIPPED_GEOMETRY_ERROR = "skipped_geometry_error"
    BELOW_THRESHOLD = "below_threshold"

    @property
    def emitted(self) -> bool:
        return self in (StepStatus.EMITTED, StepStatus.OVERRIDDEN)


class SkippedInput(BaseModel):
    """A snapshot feature the dissolve reduction could not merge."""

    index: int
    reason: str


class StepOutcome(BaseModel):
    """Outcome of one step.

    Attributes:
        step: Zero-based step index.
        era: Era key.
        label: Human-readable label.
        status: Terminal status of the step.
        message: Detail for skipped steps (error text, threshold note).
        area_m2: Geodesic area of the emitted geometry (0 when skipped).
        skipped_inputs: Features dropped while dissolving the snapshot.
    """

    step: int
    era: str
    label: str = ""
    status: StepStatus
    message: str = ""
    area_m2: float = 0.0
    skipped_inputs: list[SkippedInput] = Field(default_factory=list)


class CoverageReport(BaseModel):
    """Comparison of the emitted acquisitions with the final territory.

    All areas are geodesic square metres.
    """

    final_area_m2: float = 0.0
    covered_area_m2: float = 0.0
    gap_area_m2: float = 0.0
    excess_area_m2: float = 0.0
    overlap_area_m2: float = 0.0
    tolerance_ratio: float = 0.0
    within_tolerance: bool = True


class PipelineReport(BaseModel):
    """Top-level run report.

    ``unmapped_values`` is only filled in the dissolve-by-era mode: the
    property values of source features that no era claims.
    """

    schema_version: str = REPORT_SCHEMA_VERSION
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    mode: str = "difference"
    output_path: str = ""
    steps: list[StepOutcome] = Field(default_factory=list)
    unmapped_values: list[str] = Field(default_factory=list)
    coverage: CoverageReport | None = None

    @property
    def emitted_count(self) -> int:
        return sum(1 for s in self.steps if s.status.emitted)

    @property
    def skipped_count(self) -> int:
        return len(self.steps) - self.emitted_count
