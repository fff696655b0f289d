"""Data models and schemas.

Defines the data structures used throughout the pipeline:
- GeoFeature: Tagged Polygon / MultiPolygon geometry
- Snapshot: All territory known at one historical instant
- PipelineReport: End-of-run report (pydantic)
"""

from acquisition_boundaries.models.feature import GeoFeature
from acquisition_boundaries.models.report import (
    CoverageReport,
    PipelineReport,
    SkippedInput,
    StepOutcome,
    StepStatus,
)
from acquisition_boundaries.models.snapshot import Snapshot

__all__ = [
    "CoverageReport",
    "GeoFeature",
    "PipelineReport",
    "SkippedInput",
    "Snapshot",
    "StepOutcome",
    "StepStatus",
]
