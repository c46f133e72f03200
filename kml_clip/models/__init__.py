"""Data models and payload contracts.

Defines the data structures shared by the analysis stages:
- Feature: A corpus record with identifier, geometry, properties, provenance
- AreaCandidate / EffectiveClip: The area of interest and its clip geometry
- ClipResult: Matches, colors and navigation index of a completed run
- contracts: TypedDict payloads handed to exporters
"""

from kml_clip.models.area import AnalysisMode, AreaCandidate, EffectiveClip, OverlapPair
from kml_clip.models.feature import Feature, SourceTag
from kml_clip.models.result import (
    AreaMetrics,
    ClassifiedResult,
    ClipResult,
    LayerResult,
    NavRef,
)

__all__ = [
    "AnalysisMode",
    "AreaCandidate",
    "AreaMetrics",
    "ClassifiedResult",
    "ClipResult",
    "EffectiveClip",
    "Feature",
    "LayerResult",
    "NavRef",
    "OverlapPair",
    "SourceTag",
]
