"""Tests for YAML pipeline configuration.

Covers:
- Defaults and relative path resolution
- Step parsing (labels, years, manual flag, geographic filter)
- Fail-fast validation of out-of-range values
- Dissolve-by-era mode: era table parsing and validation
- Loading the bundled US configurations
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from acquisition_boundaries.core.config import ConfigValidationError, PipelineConfig, StepConfig
from acquisition_boundaries.core.constants import (
    DEFAULT_CATEGORIES,
    DEFAULT_MIN_AREA_M2,
    PipelineMode,
    WindingConvention,
)

CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "config"


def _minimal(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {"steps": [{"snapshot": "a.geojson", "era": "original"}]}
    data.update(overrides)
    return data


class TestDefaults:
    """A minimal mapping yields documented defaults."""

    def test_defaults(self) -> None:
        config = PipelineConfig.from_dict(_minimal())
        assert config.min_area_m2 == DEFAULT_MIN_AREA_M2
        assert config.winding is WindingConvention.SPHERICAL
        assert config.categories == DEFAULT_CATEGORIES
        assert config.category_property == "CATEGORY"
        assert config.manual_overrides is None
        assert config.output_path is None
        assert config.baseline_snapshot is None
        assert config.repair_invalid is False

    def test_step_label_defaults_to_era(self) -> None:
        config = PipelineConfig.from_dict(_minimal())
        assert config.steps == (StepConfig(snapshot="a.geojson", era="original", label="original"),)

    def test_frozen(self) -> None:
        config = PipelineConfig.from_dict(_minimal())
        with pytest.raises(AttributeError):
            config.min_area_m2 = 5.0  # type: ignore[misc]


class TestParsing:
    """Values are coerced and paths resolved against the base directory."""

    def test_relative_paths_resolved(self, tmp_path: Path) -> None:
        config = PipelineConfig.from_dict(
            _minimal(
                snapshot_dir="snaps",
                output_path="out/acq.geojson",
                manual_overrides="/abs/overrides.geojson",
            ),
            base_dir=tmp_path,
        )
        assert config.snapshot_dir == tmp_path / "snaps"
        assert config.output_path == tmp_path / "out" / "acq.geojson"
        assert config.manual_overrides == Path("/abs/overrides.geojson")

    def test_step_fields(self) -> None:
        config = PipelineConfig.from_dict(
            {
                "steps": [
                    {
                        "snapshot": "b.geojson",
                        "era": "louisiana",
                        "label": "Louisiana Purchase (1803)",
                        "year": 1803,
                        "geographic_filter": [-115, 25, -88, 50],
                    },
                    {"snapshot": "c.geojson", "era": "florida", "manual": True},
                ]
            }
        )
        louisiana, florida = config.steps
        assert louisiana.year == "1803"
        assert louisiana.geographic_filter == (-115.0, 25.0, -88.0, 50.0)
        assert louisiana.manual is False
        assert florida.manual is True
        assert config.manual_eras == ["florida"]

    def test_winding_case_insensitive(self) -> None:
        config = PipelineConfig.from_dict(_minimal(winding="RFC7946"))
        assert config.winding is WindingConvention.RFC7946

    def test_categories_list(self) -> None:
        config = PipelineConfig.from_dict(_minimal(categories=["state"]))
        assert config.categories == frozenset({"state"})


class TestValidation:
    """Out-of-range values raise ConfigValidationError before any loading."""

    def test_no_steps(self) -> None:
        with pytest.raises(ConfigValidationError, match="at least one step"):
            PipelineConfig.from_dict({"steps": []})

    def test_steps_not_list(self) -> None:
        with pytest.raises(ConfigValidationError, match="steps"):
            PipelineConfig.from_dict({"steps": "a.geojson"})

    def test_missing_era(self) -> None:
        with pytest.raises(ConfigValidationError, match=r"steps\[0\]\.era") as exc_info:
            PipelineConfig.from_dict({"steps": [{"snapshot": "a.geojson"}]})
        assert exc_info.value.step == 0

    def test_missing_snapshot(self) -> None:
        with pytest.raises(ConfigValidationError, match=r"steps\[0\]\.snapshot"):
            PipelineConfig.from_dict({"steps": [{"era": "original"}]})

    def test_duplicate_era(self) -> None:
        data = {
            "steps": [
                {"snapshot": "a.geojson", "era": "original"},
                {"snapshot": "b.geojson", "era": "original"},
            ]
        }
        with pytest.raises(ConfigValidationError, match="duplicate era") as exc_info:
            PipelineConfig.from_dict(data)
        assert exc_info.value.step == 1

    @pytest.mark.parametrize(
        "key",
        ["min_area_m2", "sliver_area_m2", "snap_tolerance_deg"],
    )
    def test_negative_threshold(self, key: str) -> None:
        with pytest.raises(ConfigValidationError, match=key):
            PipelineConfig.from_dict(_minimal(**{key: -1}))

    def test_zero_threshold_allowed(self) -> None:
        assert PipelineConfig.from_dict(_minimal(min_area_m2=0)).min_area_m2 == 0.0

    def test_non_numeric_threshold(self) -> None:
        with pytest.raises(ConfigValidationError, match="must be a number"):
            PipelineConfig.from_dict(_minimal(min_area_m2="large"))

    def test_coverage_tolerance_range(self) -> None:
        with pytest.raises(ConfigValidationError, match="coverage_tolerance"):
            PipelineConfig.from_dict(_minimal(coverage_tolerance=1.0))

    def test_unknown_winding(self) -> None:
        with pytest.raises(ConfigValidationError, match="spherical, rfc7946"):
            PipelineConfig.from_dict(_minimal(winding="clockwise"))

    def test_categories_string_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="list of strings"):
            PipelineConfig.from_dict(_minimal(categories="state"))

    def test_empty_categories(self) -> None:
        with pytest.raises(ConfigValidationError, match="at least one category"):
            PipelineConfig.from_dict(_minimal(categories=[]))

    @pytest.mark.parametrize(
        "bbox",
        [[1, 2, 3], [0, 0, "x", 1], [10, 0, 5, 1], [0, 5, 1, 5]],
    )
    def test_bad_geographic_filter(self, bbox: list[Any]) -> None:
        data = {"steps": [{"snapshot": "a.geojson", "era": "e", "geographic_filter": bbox}]}
        with pytest.raises(ConfigValidationError, match="geographic_filter"):
            PipelineConfig.from_dict(data)


class TestFromFile:
    """YAML loading."""

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigValidationError, match="cannot read"):
            PipelineConfig.from_file(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("steps: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="not valid YAML"):
            PipelineConfig.from_file(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="YAML mapping"):
            PipelineConfig.from_file(path)

    def test_paths_relative_to_file(self, tmp_path: Path) -> None:
        path = tmp_path / "pipeline.yaml"
        path.write_text(
            "snapshot_dir: data\nsteps:\n  - snapshot: a.geojson\n    era: original\n",
            encoding="utf-8",
        )
        config = PipelineConfig.from_file(path)
        assert config.snapshot_dir == tmp_path / "data"

    def test_bundled_us_configuration(self) -> None:
        config = PipelineConfig.from_file(CONFIG_DIR / "us_territorial_expansion.yaml")
        assert [s.era for s in config.steps] == [
            "original",
            "louisiana",
            "redriver",
            "florida",
            "texas",
            "oregon",
            "mexican",
            "gadsden",
            "alaska",
            "hawaii",
        ]
        assert config.manual_eras == ["florida", "texas", "oregon", "hawaii"]
        assert config.snap_tolerance_deg == pytest.approx(0.01)
        assert config.manual_overrides == CONFIG_DIR / "us_manual_overrides.geojson"

    def test_bundled_dissolve_by_era_configuration(self) -> None:
        config = PipelineConfig.from_file(CONFIG_DIR / "us_states_by_era.yaml")
        assert config.mode is PipelineMode.DISSOLVE_BY_ERA
        assert config.source_snapshot == "1959-final.geojson"
        assert len(config.steps) == 10
        assert [s.era for s in config.steps][3] == "florida"
        lookup = config.era_lookup
        assert lookup["TX"] == "texas"
        assert lookup["WA"] == "oregon"
        assert len(lookup) == 50


def _by_era(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "mode": "dissolve_by_era",
        "source_snapshot": "final.geojson",
        "era_members": {"original": ["CT", "DE"], "texas": "TX"},
        "steps": [{"era": "original"}, {"era": "texas"}],
    }
    data.update(overrides)
    return data


class TestDissolveByEraConfig:
    """Mode selection and era table validation."""

    def test_default_mode_is_difference(self) -> None:
        config = PipelineConfig.from_dict(_minimal())
        assert config.mode is PipelineMode.DIFFERENCE
        assert config.era_property == "STATE"
        assert config.era_members == {}

    def test_parsed(self) -> None:
        config = PipelineConfig.from_dict(_by_era())
        assert config.mode is PipelineMode.DISSOLVE_BY_ERA
        assert config.steps[0].snapshot == ""
        assert config.era_members == {"original": ("CT", "DE"), "texas": ("TX",)}
        assert config.era_lookup == {"CT": "original", "DE": "original", "TX": "texas"}

    def test_unknown_mode(self) -> None:
        with pytest.raises(ConfigValidationError, match="difference, dissolve_by_era"):
            PipelineConfig.from_dict(_minimal(mode="pure"))

    def test_source_snapshot_required(self) -> None:
        with pytest.raises(ConfigValidationError, match="source_snapshot"):
            PipelineConfig.from_dict(_by_era(source_snapshot=None))

    def test_era_members_required(self) -> None:
        with pytest.raises(ConfigValidationError, match="era_members"):
            PipelineConfig.from_dict(_by_era(era_members={}))

    def test_era_members_must_be_mapping(self) -> None:
        with pytest.raises(ConfigValidationError, match="era_members"):
            PipelineConfig.from_dict(_by_era(era_members=["CT"]))

    def test_member_era_without_step(self) -> None:
        with pytest.raises(ConfigValidationError, match="no configured step") as exc_info:
            PipelineConfig.from_dict(_by_era(era_members={"alaska": ["AK"]}))
        assert exc_info.value.era == "alaska"

    def test_value_in_two_eras(self) -> None:
        members = {"original": ["CT", "TX"], "texas": ["TX"]}
        with pytest.raises(ConfigValidationError, match="already assigned to era 'original'"):
            PipelineConfig.from_dict(_by_era(era_members=members))

    def test_baseline_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="baseline_snapshot"):
            PipelineConfig.from_dict(_by_era(baseline_snapshot="before.geojson"))

    def test_difference_mode_still_requires_step_snapshot(self) -> None:
        with pytest.raises(ConfigValidationError, match=r"steps\[0\]\.snapshot"):
            PipelineConfig.from_dict({"steps": [{"era": "original"}]})
