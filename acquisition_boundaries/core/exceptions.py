"""Unified pipeline exception taxonomy.

Provides a shared base exception hierarchy for every pipeline stage.
Every domain exception inherits from ``PipelineError`` and carries
structured context fields (stage, code, step index, era key) so that
fatal errors can name the offending step and per-step failures can be
logged consistently.

Taxonomy categories
-------------------
- ``ValidationError``: input/configuration violations.
- ``PermanentError``: unrecoverable domain failures (bad input
  snapshot, unresolvable topology, missing override).
- ``ContractError``: output schema drift (missing era/step/label).

Whether a ``PermanentError`` aborts the run is decided by the driver:
``GeometryOpError`` only skips its step, ``LoadError`` and
``MissingOverrideError`` stop the pipeline.

Every exception exposes ``to_error_dict()`` for a stable structured
error payload suitable for the run report and logging.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all pipeline-domain errors.

    Attributes:
        message: Human-readable error description.
        stage: Pipeline stage where the error occurred
            (e.g. ``"load_snapshot"``, ``"set_operations"``).
        code: Machine-readable error code (e.g. ``"SNAPSHOT_LOAD_FAILED"``).
        step: Zero-based step index, or ``None`` outside a step.
        era: Era key of the step, or ``""`` outside a step.
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        step: int | None = None,
        era: str = "",
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.step = step
        self.era = era
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, ValidationError):
            return "validation"
        return "permanent"

    def attach_step(self, step: int, era: str) -> None:
        """Tag the error with the step that raised it.

        Fills ``step``/``era`` when unset and prefixes the message with
        ``"step <index> (<era>): "`` so ``str(exc)`` names the step too.
        """
        if self.step is None:
            self.step = step
        if not self.era:
            self.era = era
        prefix = f"step {self.step} ({self.era}): "
        if not self.message.startswith(prefix):
            self.message = prefix + self.message
            self.args = (self.message,)

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "step": self.step,
            "era": self.era,
        }


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(PipelineError):
    """Input or configuration validation failure."""


class PermanentError(PipelineError):
    """Unrecoverable domain failure."""


class ContractError(PipelineError):
    """Output schema drift between the pipeline and its consumers."""

    default_stage = "write_output"
    default_code = "OUTPUT_CONTRACT_VIOLATION"


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------


class LoadError(PermanentError):
    """Raised when a snapshot cannot be read or parsed as a FeatureCollection."""

    default_stage = "load_snapshot"
    default_code = "SNAPSHOT_LOAD_FAILED"


class FeatureValidationError(ValidationError):
    """Raised when a single feature's geometry is malformed.

    The loader catches this per feature and skips the offending feature.
    """

    default_stage = "load_snapshot"
    default_code = "FEATURE_INVALID"


class GeometryOpError(PermanentError):
    """Raised when a set operation cannot resolve its inputs topologically."""

    default_stage = "set_operations"
    default_code = "GEOMETRY_OP_FAILED"


class MissingOverrideError(PermanentError):
    """Raised when a step flagged ``manual`` has no override entry."""

    default_stage = "manual_overrides"
    default_code = "MANUAL_OVERRIDE_MISSING"
