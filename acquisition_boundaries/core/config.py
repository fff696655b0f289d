"""Pipeline configuration loaded from a YAML file.

The configuration is the only state the pipeline driver consults: the
ordered step list, thresholds, the winding target, the override table
location, and the output paths.  Nothing is read from module-level
globals.

Fail-fast validation:
    ``from_dict()`` raises ``ConfigValidationError`` if any value is out
    of its valid range or a step entry is malformed.  This catches bad
    configuration before any snapshot is loaded.

``mode`` selects between differencing one snapshot per step and
dissolving a single source snapshot by era (``era_property`` values
looked up in ``era_members``).

Relative paths in the file are resolved against the directory that
contains the configuration file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from acquisition_boundaries.core.constants import (
    DEFAULT_CATEGORIES,
    DEFAULT_CATEGORY_PROPERTY,
    DEFAULT_COVERAGE_TOLERANCE,
    DEFAULT_ERA_PROPERTY,
    DEFAULT_MIN_AREA_M2,
    DEFAULT_MODE,
    DEFAULT_SLIVER_AREA_M2,
    DEFAULT_SNAP_TOLERANCE_DEG,
    DEFAULT_WINDING,
    PipelineMode,
    WindingConvention,
)
from acquisition_boundaries.core.exceptions import ValidationError

BBox = tuple[float, float, float, float]


class ConfigValidationError(ValidationError):
    """Raised when configuration values are missing or out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(
        self,
        key: str,
        value: object,
        message: str,
        *,
        step: int | None = None,
        era: str = "",
    ) -> None:
        self.key = key
        self.value = value
        super().__init__(
            f"Invalid configuration {key}={value!r}: {message}", step=step, era=era
        )


@dataclass(frozen=True, slots=True)
class StepConfig:
    """One acquisition era in the ordered step list.

    Attributes:
        snapshot: Snapshot file name, relative to ``snapshot_dir``.  Unused
            (and may be empty) in the dissolve-by-era mode.
        era: Era key tagged on the output feature (e.g. ``"louisiana"``).
        label: Human-readable label (e.g. ``"Louisiana Purchase (1803)"``).
        year: Optional year string tagged on the output feature.
        manual: Use the manual override entry instead of differencing.
        geographic_filter: Optional ``(min_lon, min_lat, max_lon, max_lat)``
            box the current territory is clipped to before differencing.
    """

    snapshot: str
    era: str
    label: str = ""
    year: str | None = None
    manual: bool = False
    geographic_filter: BBox | None = None


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Immutable pipeline configuration.

    Loaded once before the run and passed to the driver at construction.

    Attributes:
        steps: Ordered acquisition steps (oldest snapshot first).
        snapshot_dir: Directory holding the snapshot GeoJSON files.
        output_path: Destination of the acquisitions FeatureCollection.
        report_path: Optional destination of the JSON run report.
        winding: Ring orientation convention of the output.
        min_area_m2: Whole-acquisition artifact threshold in square metres.
        sliver_area_m2: Per-part sliver threshold in square metres (0 = off).
        snap_tolerance_deg: Vertex snapping tolerance before differencing
            (0 = off).
        coverage_tolerance: Allowed gap/overlap fraction for the final
            coverage check.
        category_property: Feature property holding the category.
        categories: Categories that count as owned territory.
        manual_overrides: Optional GeoJSON file with override polygons.
        baseline_snapshot: Optional snapshot that precedes step 0; when
            set, step 0 is differenced against it instead of being
            emitted whole.
        repair_invalid: Repair invalid polygons with ``make_valid`` at load.
        mode: ``difference`` (one snapshot per step) or
            ``dissolve_by_era`` (one tagged source snapshot).
        source_snapshot: Snapshot whose features are tagged with eras in
            the dissolve-by-era mode.
        era_property: Feature property looked up in ``era_members``.
        era_members: Era key to the ``era_property`` values that belong
            to it (e.g. ``{"texas": ("TX",)}``).
    """

    steps: tuple[StepConfig, ...] = ()
    snapshot_dir: Path = Path()
    output_path: Path | None = None
    report_path: Path | None = None
    winding: WindingConvention = DEFAULT_WINDING
    min_area_m2: float = DEFAULT_MIN_AREA_M2
    sliver_area_m2: float = DEFAULT_SLIVER_AREA_M2
    snap_tolerance_deg: float = DEFAULT_SNAP_TOLERANCE_DEG
    coverage_tolerance: float = DEFAULT_COVERAGE_TOLERANCE
    category_property: str = DEFAULT_CATEGORY_PROPERTY
    categories: frozenset[str] = field(default_factory=lambda: DEFAULT_CATEGORIES)
    manual_overrides: Path | None = None
    baseline_snapshot: str | None = None
    repair_invalid: bool = False
    mode: PipelineMode = DEFAULT_MODE
    source_snapshot: str | None = None
    era_property: str = DEFAULT_ERA_PROPERTY
    era_members: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: Path | str) -> PipelineConfig:
        """Load and validate configuration from a YAML file.

        Raises:
            ConfigValidationError: If the file cannot be read, is not a
                YAML mapping, or any value is invalid.
        """
        import yaml

        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigValidationError("config_file", str(path), f"cannot read: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigValidationError("config_file", str(path), f"not valid YAML: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigValidationError("config_file", str(path), "must contain a YAML mapping")
        return cls.from_dict(data, base_dir=path.parent)

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, base_dir: Path | None = None) -> PipelineConfig:
        """Build and validate configuration from a plain mapping.

        Args:
            data: Parsed configuration mapping.
            base_dir: Directory that relative paths are resolved against.

        Raises:
            ConfigValidationError: If any value is malformed or out of range.
        """
        base = base_dir or Path()

        mode_raw = str(data.get("mode", DEFAULT_MODE.value))
        try:
            mode = PipelineMode(mode_raw.lower())
        except ValueError as exc:
            allowed = ", ".join(m.value for m in PipelineMode)
            raise ConfigValidationError("mode", mode_raw, f"must be one of {allowed}") from exc

        raw_steps = data.get("steps", [])
        if not isinstance(raw_steps, list):
            raise ConfigValidationError("steps", raw_steps, "must be a list of step mappings")
        needs_snapshot = mode is PipelineMode.DIFFERENCE
        steps = tuple(
            _parse_step(raw, idx, require_snapshot=needs_snapshot)
            for idx, raw in enumerate(raw_steps)
        )

        winding_raw = str(data.get("winding", DEFAULT_WINDING.value))
        try:
            winding = WindingConvention(winding_raw.lower())
        except ValueError as exc:
            allowed = ", ".join(w.value for w in WindingConvention)
            raise ConfigValidationError("winding", winding_raw, f"must be one of {allowed}") from exc

        categories_raw = data.get("categories", sorted(DEFAULT_CATEGORIES))
        if isinstance(categories_raw, str) or not isinstance(categories_raw, list | tuple):
            raise ConfigValidationError("categories", categories_raw, "must be a list of strings")

        config = cls(
            steps=steps,
            snapshot_dir=_resolve(base, data.get("snapshot_dir", ".")) or base,
            output_path=_resolve(base, data.get("output_path")),
            report_path=_resolve(base, data.get("report_path")),
            winding=winding,
            min_area_m2=_as_float(data, "min_area_m2", DEFAULT_MIN_AREA_M2),
            sliver_area_m2=_as_float(data, "sliver_area_m2", DEFAULT_SLIVER_AREA_M2),
            snap_tolerance_deg=_as_float(data, "snap_tolerance_deg", DEFAULT_SNAP_TOLERANCE_DEG),
            coverage_tolerance=_as_float(data, "coverage_tolerance", DEFAULT_COVERAGE_TOLERANCE),
            category_property=str(data.get("category_property", DEFAULT_CATEGORY_PROPERTY)),
            categories=frozenset(str(c) for c in categories_raw),
            manual_overrides=_resolve(base, data.get("manual_overrides")),
            baseline_snapshot=_optional_str(data.get("baseline_snapshot")),
            repair_invalid=bool(data.get("repair_invalid", False)),
            mode=mode,
            source_snapshot=_optional_str(data.get("source_snapshot")),
            era_property=str(data.get("era_property", DEFAULT_ERA_PROPERTY)),
            era_members=_parse_era_members(data.get("era_members", {})),
        )
        _validate(config)
        return config

    @property
    def manual_eras(self) -> list[str]:
        """Era keys of every step flagged ``manual``."""
        return [step.era for step in self.steps if step.manual]

    @property
    def era_lookup(self) -> dict[str, str]:
        """``era_property`` value to era key, inverted from ``era_members``."""
        return {value: era for era, values in self.era_members.items() for value in values}


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _parse_step(raw: object, idx: int, *, require_snapshot: bool = True) -> StepConfig:
    """Convert one raw step mapping into a ``StepConfig``."""
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"steps[{idx}]", raw, "must be a mapping", step=idx)

    era = str(raw.get("era", "") or "")
    snapshot = str(raw.get("snapshot", "") or "")
    if not era:
        raise ConfigValidationError(f"steps[{idx}].era", era, "must not be empty", step=idx)
    if require_snapshot and not snapshot:
        raise ConfigValidationError(
            f"steps[{idx}].snapshot", snapshot, "must not be empty", step=idx, era=era
        )

    bbox = raw.get("geographic_filter")
    if bbox is not None:
        bbox = _parse_bbox(bbox, f"steps[{idx}].geographic_filter", step=idx, era=era)

    return StepConfig(
        snapshot=snapshot,
        era=era,
        label=str(raw.get("label", "") or era),
        year=_optional_str(raw.get("year")),
        manual=bool(raw.get("manual", False)),
        geographic_filter=bbox,
    )


def _parse_bbox(value: object, key: str, *, step: int, era: str) -> BBox:
    if not isinstance(value, list | tuple) or len(value) != 4:
        raise ConfigValidationError(
            key, value, "must be [min_lon, min_lat, max_lon, max_lat]", step=step, era=era
        )
    try:
        min_lon, min_lat, max_lon, max_lat = (float(v) for v in value)
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError(key, value, "values must be numbers", step=step, era=era) from exc
    if min_lon >= max_lon or min_lat >= max_lat:
        raise ConfigValidationError(key, value, "min must be less than max", step=step, era=era)
    return (min_lon, min_lat, max_lon, max_lat)


def _parse_era_members(value: object) -> dict[str, tuple[str, ...]]:
    """Parse ``{era: [value, ...]}``; a single scalar counts as a one-item list."""
    if not isinstance(value, dict):
        raise ConfigValidationError("era_members", value, "must map era keys to lists of values")
    members: dict[str, tuple[str, ...]] = {}
    for era, raw in value.items():
        if isinstance(raw, list | tuple):
            members[str(era)] = tuple(str(v) for v in raw)
        elif raw is None:
            members[str(era)] = ()
        else:
            members[str(era)] = (str(raw),)
    return members


def _as_float(data: dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError(key, value, "must be a number") from exc


def _optional_str(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _resolve(base: Path, value: object) -> Path | None:
    if value is None or value == "":
        return None
    path = Path(str(value))
    return path if path.is_absolute() else base / path


def _validate(config: PipelineConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if not config.steps:
        raise ConfigValidationError("steps", [], "at least one step is required")

    seen: dict[str, int] = {}
    for idx, step in enumerate(config.steps):
        if step.era in seen:
            raise ConfigValidationError(
                f"steps[{idx}].era",
                step.era,
                f"duplicate era key (first used by step {seen[step.era]})",
                step=idx,
                era=step.era,
            )
        seen[step.era] = idx

    if config.min_area_m2 < 0:
        raise ConfigValidationError("min_area_m2", config.min_area_m2, "must be >= 0 (m²)")

    if config.sliver_area_m2 < 0:
        raise ConfigValidationError("sliver_area_m2", config.sliver_area_m2, "must be >= 0 (m²)")

    if config.snap_tolerance_deg < 0:
        raise ConfigValidationError(
            "snap_tolerance_deg", config.snap_tolerance_deg, "must be >= 0 (degrees)"
        )

    if not 0.0 <= config.coverage_tolerance < 1.0:
        raise ConfigValidationError(
            "coverage_tolerance", config.coverage_tolerance, "must be in [0, 1)"
        )

    if not config.category_property:
        raise ConfigValidationError(
            "category_property", config.category_property, "must not be empty"
        )

    if not config.categories:
        raise ConfigValidationError("categories", [], "at least one category is required")

    if config.mode is PipelineMode.DISSOLVE_BY_ERA:
        _validate_dissolve_by_era(config)


def _validate_dissolve_by_era(config: PipelineConfig) -> None:
    if config.source_snapshot is None:
        raise ConfigValidationError(
            "source_snapshot", None, "required when mode is dissolve_by_era"
        )
    if config.baseline_snapshot is not None:
        raise ConfigValidationError(
            "baseline_snapshot", config.baseline_snapshot, "only applies when mode is difference"
        )
    if not config.era_property:
        raise ConfigValidationError("era_property", config.era_property, "must not be empty")
    if not any(config.era_members.values()):
        raise ConfigValidationError(
            "era_members", dict(config.era_members), "required when mode is dissolve_by_era"
        )

    step_eras = {step.era for step in config.steps}
    owner: dict[str, str] = {}
    for era, values in config.era_members.items():
        if era not in step_eras:
            raise ConfigValidationError(
                f"era_members.{era}", list(values), "era has no configured step", era=era
            )
        for value in values:
            if value in owner and owner[value] != era:
                raise ConfigValidationError(
                    f"era_members.{era}",
                    value,
                    f"value already assigned to era '{owner[value]}'",
                    era=era,
                )
            owner[value] = era

