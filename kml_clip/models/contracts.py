"""Payload contracts handed to external consumers.

The report generator and any other exporter receive plain ``TypedDict``
payloads, never engine objects.  This module is the single source of
truth for their field names; drift-detection tests check that the
snapshot builders emit exactly these keys.
"""

from __future__ import annotations

from typing import TypedDict


class FeatureRecord(TypedDict):
    """One matched feature as exported: identifier, provenance and raw properties."""

    id: str | None
    origin: str
    geometry_type: str
    properties: dict[str, object]


class LayerSnapshot(TypedDict):
    """All matched features of one logical layer."""

    layer: str
    count: int
    unique_count: int
    features: list[FeatureRecord]


class MetricsPayload(TypedDict):
    """Area-of-interest and result metrics for report headers."""

    area_km2: float
    perimeter_km: float
    geometry_type: str
    polygon_count: int
    has_overlaps: bool
    overlap_count: int
    buffer_used: bool
    buffer_m: float
    mode: str
    matched_count: int
    locality_density: float
    total_population: int
    population_density: float
    layer_hits: dict[str, bool]


class ResultSnapshot(TypedDict):
    """Read-only snapshot of a completed run."""

    run_id: str
    metrics: MetricsPayload
    layers: list[LayerSnapshot]


class ErrorPayload(TypedDict):
    """Structured error produced by ``PipelineError.to_error_dict()``."""

    category: str
    code: str
    stage: str
    message: str
    retryable: bool
    run_id: str
