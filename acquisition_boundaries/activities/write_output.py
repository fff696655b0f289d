"""Write the acquisitions FeatureCollection and the run report.

The FeatureCollection is the contract with the rendering code: every
feature must carry ``era``, ``step`` and ``label``, ordered by ``step``.
Files are written through a temporary file in the destination directory
and moved into place, so a failed write never leaves a truncated output;
the temporary file is removed on every failure path.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from acquisition_boundaries.core.constants import REQUIRED_OUTPUT_PROPERTIES
from acquisition_boundaries.core.exceptions import ContractError, PipelineError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from acquisition_boundaries.models.feature import GeoFeature
    from acquisition_boundaries.models.report import PipelineReport

logger = logging.getLogger("acquisition_boundaries.activities.write_output")


class OutputWriteError(PipelineError):
    """Raised when an output file cannot be written."""

    default_stage = "write_output"
    default_code = "OUTPUT_WRITE_FAILED"


def validate_output_contract(features: Sequence[GeoFeature]) -> None:
    """Check every feature carries the properties the renderer relies on.

    Raises:
        ContractError: If a feature is missing ``era``, ``step`` or ``label``.
    """
    for idx, feature in enumerate(features):
        missing = [k for k in REQUIRED_OUTPUT_PROPERTIES if k not in feature.properties]
        if missing:
            msg = f"Output feature {idx} is missing required properties {missing}"
            raise ContractError(msg, era=str(feature.properties.get("era", "")))


def build_feature_collection(features: Sequence[GeoFeature]) -> dict[str, Any]:
    """Return the GeoJSON FeatureCollection dict for ``features``, sorted by step."""
    validate_output_contract(features)
    ordered = sorted(features, key=lambda f: int(f.properties["step"]))
    return {"type": "FeatureCollection", "features": [f.to_geojson() for f in ordered]}


def write_feature_collection(features: Sequence[GeoFeature], path: Path | str) -> Path:
    """Write ``features`` as a GeoJSON FeatureCollection to ``path``.

    Raises:
        ContractError: If a feature violates the output contract.
        OutputWriteError: If the file cannot be written.
    """
    collection = build_feature_collection(features)
    path = Path(path)
    _atomic_write(path, json.dumps(collection, separators=(",", ":")))
    logger.info("Wrote %d acquisition(s) to %s", len(features), path)
    return path


def write_report(report: PipelineReport, path: Path | str) -> Path:
    """Write the run report as indented JSON.

    Raises:
        OutputWriteError: If the file cannot be written.
    """
    path = Path(path)
    _atomic_write(path, report.model_dump_json(indent=2))
    logger.info("Wrote run report to %s", path)
    return path


def _atomic_write(path: Path, content: str) -> None:
    """Write ``content`` next to ``path`` and rename it into place."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as exc:
        msg = f"Cannot create output directory or temp file for {path}: {exc}"
        raise OutputWriteError(msg) from exc

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp_path, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            tmp_path.unlink()
        msg = f"Cannot write {path}: {exc}"
        raise OutputWriteError(msg) from exc
