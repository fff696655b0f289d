"""Shared pytest fixtures for the acquisition-boundaries test suite."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Geometry builders
# ---------------------------------------------------------------------------


def square_ring(min_lon: float, min_lat: float, max_lon: float, max_lat: float) -> list[list[float]]:
    """Closed counter-clockwise ring of an axis-aligned box."""
    return [
        [min_lon, min_lat],
        [max_lon, min_lat],
        [max_lon, max_lat],
        [min_lon, max_lat],
        [min_lon, min_lat],
    ]


def polygon_feature(
    *rings: list[list[float]], category: str | None = "state", **properties: Any
) -> dict[str, Any]:
    """GeoJSON Polygon Feature dict with an optional ``CATEGORY`` property."""
    props = dict(properties)
    if category is not None:
        props["CATEGORY"] = category
    return {
        "type": "Feature",
        "properties": props,
        "geometry": {"type": "Polygon", "coordinates": list(rings)},
    }


def feature_collection(features: list[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": features}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def snapshot_dir(tmp_path: Path) -> Path:
    """Empty directory that snapshot files are written into."""
    path = tmp_path / "snapshots"
    path.mkdir()
    return path


@pytest.fixture()
def write_snapshot(snapshot_dir: Path) -> Callable[[str, list[dict[str, Any]]], Path]:
    """Return a writer that stores a FeatureCollection under ``snapshot_dir``."""

    def _write(name: str, features: list[dict[str, Any]]) -> Path:
        path = snapshot_dir / name
        path.write_text(json.dumps(feature_collection(features)), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def write_json(tmp_path: Path) -> Callable[[str, object], Path]:
    """Return a writer for arbitrary JSON payloads under ``tmp_path``."""

    def _write(name: str, payload: object) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def nested_squares(
    write_snapshot: Callable[[str, list[dict[str, Any]]], Path],
) -> list[str]:
    """Three snapshots growing from a 10x10 square by two 10x2 strips.

    Returns the snapshot file names in step order.
    """
    write_snapshot("s0.geojson", [polygon_feature(square_ring(0, 0, 10, 10))])
    write_snapshot(
        "s1.geojson",
        [
            polygon_feature(square_ring(0, 0, 10, 10)),
            polygon_feature(square_ring(10, 0, 12, 10)),
            polygon_feature(square_ring(-5, 0, 0, 10), category="other_country"),
        ],
    )
    write_snapshot(
        "s2.geojson",
        [
            polygon_feature(square_ring(0, 0, 10, 10)),
            polygon_feature(square_ring(10, 0, 12, 10)),
            polygon_feature(square_ring(0, 10, 12, 12), category="territory"),
        ],
    )
    return ["s0.geojson", "s1.geojson", "s2.geojson"]
