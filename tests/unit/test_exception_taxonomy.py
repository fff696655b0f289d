"""Tests for the pipeline exception taxonomy.

Validates:
- PipelineError hierarchy and structured attributes
- Category classification (validation, permanent, contract)
- ``to_error_dict()`` produces stable payload keys
- Every domain exception is a PipelineError subclass with default codes
"""

from __future__ import annotations

from typing import ClassVar

import pytest

from acquisition_boundaries.activities.write_output import OutputWriteError
from acquisition_boundaries.core.config import ConfigValidationError
from acquisition_boundaries.core.exceptions import (
    ContractError,
    FeatureValidationError,
    GeometryOpError,
    LoadError,
    MissingOverrideError,
    PermanentError,
    PipelineError,
    ValidationError,
)


class TestPipelineErrorBase:
    """PipelineError base class behavior."""

    def test_default_attributes(self) -> None:
        err = PipelineError("boom")
        assert err.message == "boom"
        assert err.stage == ""
        assert err.code == ""
        assert err.step is None
        assert err.era == ""

    def test_custom_attributes(self) -> None:
        err = PipelineError("fail", stage="dissolve", code="X", step=3, era="texas")
        assert err.stage == "dissolve"
        assert err.code == "X"
        assert err.step == 3
        assert err.era == "texas"

    def test_str_is_message(self) -> None:
        assert str(PipelineError("human-readable error")) == "human-readable error"

    def test_to_error_dict_keys(self) -> None:
        d = PipelineError("x", stage="s", code="C", step=1, era="e").to_error_dict()
        assert set(d.keys()) == {"category", "code", "stage", "message", "step", "era"}
        assert d["step"] == 1
        assert d["era"] == "e"

    def test_attach_step_names_step_in_message(self) -> None:
        err = LoadError("Snapshot file not found: /data/1845-texas.geojson")
        err.attach_step(4, "texas")
        assert err.step == 4
        assert err.era == "texas"
        assert str(err) == "step 4 (texas): Snapshot file not found: /data/1845-texas.geojson"
        assert err.to_error_dict()["message"] == str(err)

    def test_attach_step_keeps_existing_tags(self) -> None:
        err = MissingOverrideError("No manual override", step=2, era="north")
        err.attach_step(5, "other")
        assert (err.step, err.era) == (2, "north")
        assert str(err) == "step 2 (north): No manual override"

    def test_attach_step_is_idempotent(self) -> None:
        err = LoadError("boom")
        err.attach_step(1, "east")
        err.attach_step(1, "east")
        assert str(err) == "step 1 (east): boom"

    def test_explicit_stage_overrides_default(self) -> None:
        err = LoadError("unreadable", stage="manual_overrides")
        assert err.stage == "manual_overrides"
        assert err.code == "SNAPSHOT_LOAD_FAILED"


class TestCategories:
    """Category property follows the concrete class."""

    def test_validation(self) -> None:
        assert ValidationError("v").category == "validation"

    def test_permanent(self) -> None:
        assert PermanentError("p").category == "permanent"

    def test_contract(self) -> None:
        assert ContractError("c").category == "contract"

    def test_base_defaults_to_permanent(self) -> None:
        assert PipelineError("x").category == "permanent"


class TestDomainExceptions:
    """Every domain exception sits in the hierarchy with stable defaults."""

    EXPECTED: ClassVar[list[tuple[type[PipelineError], type[PipelineError], str, str]]] = [
        (LoadError, PermanentError, "load_snapshot", "SNAPSHOT_LOAD_FAILED"),
        (FeatureValidationError, ValidationError, "load_snapshot", "FEATURE_INVALID"),
        (GeometryOpError, PermanentError, "set_operations", "GEOMETRY_OP_FAILED"),
        (MissingOverrideError, PermanentError, "manual_overrides", "MANUAL_OVERRIDE_MISSING"),
        (ContractError, PipelineError, "write_output", "OUTPUT_CONTRACT_VIOLATION"),
        (OutputWriteError, PipelineError, "write_output", "OUTPUT_WRITE_FAILED"),
    ]

    @pytest.mark.parametrize(("cls", "parent", "stage", "code"), EXPECTED)
    def test_defaults(
        self,
        cls: type[PipelineError],
        parent: type[PipelineError],
        stage: str,
        code: str,
    ) -> None:
        err = cls("msg")
        assert isinstance(err, parent)
        assert err.stage == stage
        assert err.code == code

    def test_config_validation_error(self) -> None:
        err = ConfigValidationError("min_area_m2", -1, "must be >= 0", step=2, era="gadsden")
        assert isinstance(err, ValidationError)
        assert err.key == "min_area_m2"
        assert err.value == -1
        assert err.stage == "config"
        assert err.code == "CONFIG_VALIDATION_FAILED"
        assert "min_area_m2=-1" in err.message
        assert err.to_error_dict()["era"] == "gadsden"
