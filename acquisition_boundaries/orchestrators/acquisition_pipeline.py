"""Pipeline driver: ordered snapshots in, one acquisition per era out.

Each configured step walks the same state machine::

    LOADING → MERGING → DECIDING ─┬─ OVERRIDE ──────────────────┐
                                  ├─ BASE_CASE ─────────────────┤
                                  └─ DIFFERENCING → FILTERING ──┴→ NORMALIZING → EMITTING

and the run ends in ``DONE``, where the emitted features are sorted by
step and checked against the final territory.

The difference chain is strictly sequential: step *i* subtracts the
merged territory of the last non-empty step before it, so steps are
never reordered.

In the ``dissolve_by_era`` mode a single source snapshot is loaded once,
its features are tagged with eras (``era_assignment``), and each step
goes ``MERGING → DECIDING → (OVERRIDE) → NORMALIZING → EMITTING`` over
the features of its own era.  No differencing, so no artifact filter.

Failure semantics:
- Fatal (abort the run): ``LoadError`` (a missing or corrupt snapshot
  invalidates every later difference), ``MissingOverrideError`` (a
  configuration defect).  The error is tagged with the step index and
  era key before it propagates.
- Per step (log and skip emission): ``GeometryOpError`` from the set
  operations, an empty merge, an empty difference, and results below
  the artifact threshold.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

from acquisition_boundaries.activities.artifact_filter import (
    drop_slivers,
    filter_artifacts,
    geodesic_area_m2,
)
from acquisition_boundaries.activities.coverage import check_coverage
from acquisition_boundaries.activities.dissolve import DissolveResult, dissolve
from acquisition_boundaries.activities.era_assignment import EraAssignment, assign_eras
from acquisition_boundaries.activities.load_snapshot import SnapshotStore, select_categories
from acquisition_boundaries.activities.manual_overrides import ManualOverrideTable
from acquisition_boundaries.activities.set_operations import clip_to_bbox, difference, snap_to
from acquisition_boundaries.activities.winding import apply_convention
from acquisition_boundaries.activities.write_output import write_feature_collection, write_report
from acquisition_boundaries.core.config import PipelineConfig
from acquisition_boundaries.core.constants import PipelineMode
from acquisition_boundaries.core.exceptions import GeometryOpError, LoadError, PipelineError
from acquisition_boundaries.models.report import (
    CoverageReport,
    PipelineReport,
    SkippedInput,
    StepOutcome,
    StepStatus,
)
from acquisition_boundaries.utils.helpers import describe_feature

if TYPE_CHECKING:
    from acquisition_boundaries.core.config import StepConfig
    from acquisition_boundaries.models.feature import GeoFeature

logger = logging.getLogger("acquisition_boundaries.orchestrators.acquisition_pipeline")


class StepState(enum.StrEnum):
    """States of the per-step state machine."""

    LOADING = "loading"
    MERGING = "merging"
    DECIDING = "deciding"
    OVERRIDE = "override"
    BASE_CASE = "base_case"
    DIFFERENCING = "differencing"
    FILTERING = "filtering"
    NORMALIZING = "normalizing"
    EMITTING = "emitting"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Output of a pipeline run.

    Attributes:
        features: Emitted acquisition features, ordered by step.
        report: Per-step outcomes and the coverage check.
        final_merged: Merged territory of the last non-empty snapshot
            (the source snapshot in the dissolve-by-era mode).
    """

    features: tuple[GeoFeature, ...]
    report: PipelineReport
    final_merged: GeoFeature | None = None


@dataclass(frozen=True, slots=True)
class _StepResult:
    feature: GeoFeature | None
    outcome: StepOutcome
    merged: GeoFeature | None


class AcquisitionPipeline:
    """Runs the acquisition extraction over the configured steps.

    Args:
        config: Validated pipeline configuration.
        store: Snapshot store; defaults to one over ``config.snapshot_dir``.
        overrides: Override table; defaults to ``config.manual_overrides``
            (or an empty table when none is configured).
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        store: SnapshotStore | None = None,
        overrides: ManualOverrideTable | None = None,
    ) -> None:
        self.config = config
        self.store = store or SnapshotStore(
            config.snapshot_dir,
            category_property=config.category_property,
            repair_invalid=config.repair_invalid,
        )
        if overrides is None:
            overrides = (
                ManualOverrideTable.from_geojson_file(config.manual_overrides)
                if config.manual_overrides is not None
                else ManualOverrideTable()
            )
        self.overrides = overrides
        self._merged: dict[str, DissolveResult] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self) -> PipelineResult:
        """Run every step and return the emitted features and report.

        Raises:
            LoadError: If a snapshot cannot be loaded.
            MissingOverrideError: If a manual step has no override entry.
        """
        self._check_overrides()

        report = PipelineReport(mode=self.config.mode.value)
        baseline: GeoFeature | None = None
        if self.config.mode is PipelineMode.DISSOLVE_BY_ERA:
            features, final = self._run_by_era(report)
        else:
            baseline = self._load_baseline()
            features, final = self._run_by_difference(report, baseline)

        features.sort(key=lambda f: int(f.properties["step"]))
        report.coverage = self._check_coverage(features, final, baseline)
        self._log_summary(features, report)
        logger.debug("State %s", StepState.DONE)
        return PipelineResult(features=tuple(features), report=report, final_merged=final)

    def run_and_write(self) -> PipelineResult:
        """Run the pipeline and write the configured output and report files."""
        result = self.run()
        if self.config.output_path is not None:
            write_feature_collection(result.features, self.config.output_path)
            result.report.output_path = str(self.config.output_path)
        if self.config.report_path is not None:
            write_report(result.report, self.config.report_path)
        return result

    # ------------------------------------------------------------------
    # Difference mode
    # ------------------------------------------------------------------

    def _run_by_difference(
        self, report: PipelineReport, baseline: GeoFeature | None
    ) -> tuple[list[GeoFeature], GeoFeature | None]:
        previous = baseline
        features: list[GeoFeature] = []
        for idx, step in enumerate(self.config.steps):
            try:
                result = self._run_step(idx, step, previous)
            except PipelineError as exc:
                self._abort(exc, idx, step)

            report.steps.append(result.outcome)
            if result.feature is not None:
                features.append(result.feature)
            if result.merged is not None:
                previous = result.merged
        return features, previous

    def _run_step(self, idx: int, step: StepConfig, previous: GeoFeature | None) -> _StepResult:
        self._enter(StepState.LOADING, idx, step)
        if idx > 0:
            prior = self.config.steps[idx - 1].snapshot
            if prior not in self._merged:
                msg = f"Snapshot {prior} of step {idx - 1} was not merged before step {idx}"
                raise LoadError(msg, step=idx, era=step.era)
        snapshot = self.store.load(step.snapshot)

        self._enter(StepState.MERGING, idx, step)
        merge = self._merge(step.snapshot, select_categories(snapshot, self.config.categories))
        merged = merge.merged
        skipped_inputs = self._record_skipped(idx, step, merge)

        self._enter(StepState.DECIDING, idx, step)
        if step.manual:
            self._enter(StepState.OVERRIDE, idx, step)
            candidate = self.overrides.require(step.era, step=idx)
            status = StepStatus.OVERRIDDEN
        elif merged is None:
            message = "no features in the configured categories"
            logger.warning("Step skipped | step=%d | era=%s | %s", idx, step.era, message)
            outcome = _outcome(idx, step, StepStatus.SKIPPED_EMPTY, skipped_inputs, message)
            return _StepResult(None, outcome, None)
        elif idx == 0 and previous is None:
            self._enter(StepState.BASE_CASE, idx, step)
            candidate = merged
            status = StepStatus.EMITTED
        else:
            self._enter(StepState.DIFFERENCING, idx, step)
            try:
                acquired = self._difference(step, merged, previous)
            except GeometryOpError as exc:
                logger.warning(
                    "Step skipped | step=%d | era=%s | difference failed: %s",
                    idx,
                    step.era,
                    exc,
                )
                outcome = _outcome(
                    idx, step, StepStatus.SKIPPED_GEOMETRY_ERROR, skipped_inputs, str(exc)
                )
                return _StepResult(None, outcome, merged)
            if acquired is None:
                message = "difference from the previous territory is empty"
                logger.warning("Step skipped | step=%d | era=%s | %s", idx, step.era, message)
                outcome = _outcome(idx, step, StepStatus.SKIPPED_EMPTY, skipped_inputs, message)
                return _StepResult(None, outcome, merged)

            self._enter(StepState.FILTERING, idx, step)
            candidate = filter_artifacts(
                drop_slivers(acquired, self.config.sliver_area_m2), self.config.min_area_m2
            )
            if candidate is None:
                message = f"acquired area below {self.config.min_area_m2:.0f} m² threshold"
                logger.info("Step skipped | step=%d | era=%s | %s", idx, step.era, message)
                outcome = _outcome(idx, step, StepStatus.BELOW_THRESHOLD, skipped_inputs, message)
                return _StepResult(None, outcome, merged)
            status = StepStatus.EMITTED

        feature, outcome = self._emit(idx, step, candidate, status, skipped_inputs)
        return _StepResult(feature, outcome, merged)

    def _difference(
        self, step: StepConfig, current: GeoFeature, previous: GeoFeature | None
    ) -> GeoFeature | None:
        """Geographic filter, optional snapping, then ``current \\ previous``."""
        if step.geographic_filter is not None:
            current = clip_to_bbox(current, step.geographic_filter)
            if current is None:
                return None
        current = snap_to(current, previous, self.config.snap_tolerance_deg)
        return difference(current, previous)

    # ------------------------------------------------------------------
    # Dissolve-by-era mode
    # ------------------------------------------------------------------

    def _run_by_era(self, report: PipelineReport) -> tuple[list[GeoFeature], GeoFeature | None]:
        snapshot_id = self.config.source_snapshot or ""
        snapshot = self.store.load(snapshot_id)
        selected = select_categories(snapshot, self.config.categories)
        assignment = assign_eras(selected, self.config.era_property, self.config.era_lookup)
        report.unmapped_values = list(assignment.unmapped)
        final = self._merge(snapshot_id, selected).merged

        features: list[GeoFeature] = []
        for idx, step in enumerate(self.config.steps):
            try:
                feature, outcome = self._run_era_step(idx, step, assignment)
            except PipelineError as exc:
                self._abort(exc, idx, step)

            report.steps.append(outcome)
            if feature is not None:
                features.append(feature)
        return features, final

    def _run_era_step(
        self, idx: int, step: StepConfig, assignment: EraAssignment
    ) -> tuple[GeoFeature | None, StepOutcome]:
        self._enter(StepState.MERGING, idx, step)
        merge = dissolve(assignment.features_for(step.era))
        skipped_inputs = self._record_skipped(idx, step, merge)

        self._enter(StepState.DECIDING, idx, step)
        if step.manual:
            self._enter(StepState.OVERRIDE, idx, step)
            candidate = self.overrides.require(step.era, step=idx)
            status = StepStatus.OVERRIDDEN
        elif merge.merged is None:
            message = f"no {self.config.era_property} values mapped to this era"
            logger.warning("Step skipped | step=%d | era=%s | %s", idx, step.era, message)
            return None, _outcome(idx, step, StepStatus.SKIPPED_EMPTY, skipped_inputs, message)
        else:
            candidate = merge.merged
            status = StepStatus.EMITTED

        return self._emit(idx, step, candidate, status, skipped_inputs)

    # ------------------------------------------------------------------
    # Shared step tail
    # ------------------------------------------------------------------

    def _emit(
        self,
        idx: int,
        step: StepConfig,
        candidate: GeoFeature,
        status: StepStatus,
        skipped_inputs: list[SkippedInput],
    ) -> tuple[GeoFeature, StepOutcome]:
        self._enter(StepState.NORMALIZING, idx, step)
        normalized = apply_convention(candidate, self.config.winding)

        self._enter(StepState.EMITTING, idx, step)
        properties = dict(normalized.properties) if step.manual else {}
        properties.update(era=step.era, step=idx, label=step.label)
        if step.year is not None:
            properties["year"] = step.year
        feature = replace(normalized, properties=properties)

        area = geodesic_area_m2(feature)
        logger.info(
            "Step complete | step=%d | era=%s | status=%s | area=%.1f km² | parts=%d",
            idx,
            step.era,
            status,
            area / 1e6,
            feature.part_count,
        )
        return feature, _outcome(idx, step, status, skipped_inputs, area=area)

    def _record_skipped(
        self, idx: int, step: StepConfig, merge: DissolveResult
    ) -> list[SkippedInput]:
        for skipped in merge.skipped:
            logger.warning(
                "Dissolve dropped input | step=%d | era=%s | feature=%d | %s",
                idx,
                step.era,
                skipped.index,
                skipped.reason,
            )
        return [SkippedInput(index=s.index, reason=s.reason) for s in merge.skipped]

    def _merge(self, snapshot_id: str, features: list[GeoFeature]) -> DissolveResult:
        cached = self._merged.get(snapshot_id)
        if cached is None:
            cached = dissolve(features)
            self._merged[snapshot_id] = cached
        return cached

    # ------------------------------------------------------------------
    # Run-level helpers
    # ------------------------------------------------------------------

    def _check_overrides(self) -> None:
        """Fail fast when a manual step has no override entry."""
        for idx, step in enumerate(self.config.steps):
            if step.manual:
                self.overrides.require(step.era, step=idx)

    def _load_baseline(self) -> GeoFeature | None:
        """Merged territory that precedes step 0, when configured."""
        snapshot_id = self.config.baseline_snapshot
        if snapshot_id is None:
            return None
        snapshot = self.store.load(snapshot_id)
        baseline = dissolve(select_categories(snapshot, self.config.categories)).merged
        logger.info(
            "Baseline territory | snapshot=%s | area=%.1f km²",
            snapshot_id,
            geodesic_area_m2(baseline) / 1e6,
        )
        return baseline

    def _check_coverage(
        self,
        features: list[GeoFeature],
        final: GeoFeature | None,
        baseline: GeoFeature | None,
    ) -> CoverageReport | None:
        if not features or final is None:
            return None
        try:
            target = difference(final, baseline)
            return check_coverage(
                features, target, tolerance_ratio=self.config.coverage_tolerance
            )
        except GeometryOpError as exc:
            logger.warning("Coverage check failed: %s", exc)
            return None

    def _log_summary(self, features: list[GeoFeature], report: PipelineReport) -> None:
        logger.info(
            "Pipeline complete | mode=%s | steps=%d | emitted=%d | skipped=%d",
            report.mode,
            len(report.steps),
            report.emitted_count,
            report.skipped_count,
        )
        for feature in features:
            logger.info("  %s", describe_feature(feature))

    @staticmethod
    def _abort(exc: PipelineError, idx: int, step: StepConfig) -> NoReturn:
        exc.attach_step(idx, step.era)
        logger.error(
            "Pipeline aborted | step=%d | era=%s | code=%s | %s",
            idx,
            step.era,
            exc.code,
            exc.message,
        )
        raise exc

    @staticmethod
    def _enter(state: StepState, idx: int, step: StepConfig) -> None:
        logger.debug("State %s | step=%d | era=%s", state, idx, step.era)


def _outcome(
    idx: int,
    step: StepConfig,
    status: StepStatus,
    skipped_inputs: list[SkippedInput],
    message: str = "",
    *,
    area: float = 0.0,
) -> StepOutcome:
    return StepOutcome(
        step=idx,
        era=step.era,
        label=step.label,
        status=status,
        message=message,
        area_m2=area,
        skipped_inputs=skipped_inputs,
    )


def run_pipeline(config_path: Path | str) -> PipelineResult:
    """Load the YAML configuration at ``config_path``, run, and write outputs."""
    config = PipelineConfig.from_file(Path(config_path))
    return AcquisitionPipeline(config).run_and_write()
