"""Data models for the area of interest and the effective clip geometry.

``AreaCandidate`` is the canonical area produced by the geometry adapter
from the converted KML features.  ``EffectiveClip`` is what the
intersection stages test against: the candidate itself, or a buffered
copy of it in core mode.  Neither is ever mutated; the candidate is kept
on the clip so the presentation layer can still draw the original area.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shapely.geometry.base import BaseGeometry
    from shapely.prepared import PreparedGeometry

    from kml_clip.utils.geometry import Bounds


class AnalysisMode(enum.Enum):
    """How the area of interest is turned into the clip geometry.

    Values:
        CORE:     Buffer the area by the core radius (500 m by default).
        EXACT:    Use the area exactly as drawn.
        DIRECT:   Exact area; the presentation layer reads it as direct influence.
        INDIRECT: Exact area; the presentation layer reads it as indirect influence.
    """

    CORE = "nucleo"
    EXACT = "exacta"
    DIRECT = "directa"
    INDIRECT = "indirecta"

    @property
    def buffers(self) -> bool:
        """Whether this mode expands the area before clipping."""
        return self is AnalysisMode.CORE

    @classmethod
    def parse(cls, value: str | AnalysisMode) -> AnalysisMode:
        """Resolve a mode from its value (``"nucleo"``) or name (``"core"``).

        Raises:
            ValueError: If *value* names no mode.
        """
        if isinstance(value, AnalysisMode):
            return value
        text = str(value).strip().lower()
        for mode in cls:
            if text in (mode.value, mode.name.lower()):
                return mode
        allowed = ", ".join(m.value for m in cls)
        msg = f"Unknown analysis mode {value!r} (expected one of: {allowed})"
        raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class OverlapPair:
    """Two input polygons (1-based positions) found to overlap.

    ``error`` is non-empty when the overlap test itself failed; such pairs
    are reported as overlapping.
    """

    first: int
    second: int
    error: str = ""


@dataclass(frozen=True, slots=True)
class AreaCandidate:
    """Canonical area of interest built from the converted KML features.

    Attributes:
        geometry: Polygon (one ring-group) or MultiPolygon (several), never unioned.
        polygon_count: Number of valid input polygon features that contributed.
        skipped_count: Number of polygon features rejected as invalid.
        overlap_pairs: Overlapping input polygon pairs (diagnostic only).
        properties: Properties of the first valid polygon feature.
    """

    geometry: BaseGeometry
    polygon_count: int = 1
    skipped_count: int = 0
    overlap_pairs: tuple[OverlapPair, ...] = ()
    properties: dict[str, object] = field(default_factory=dict)

    @property
    def has_overlaps(self) -> bool:
        """Whether any pair of input polygons overlaps."""
        return len(self.overlap_pairs) > 0

    @property
    def geometry_type(self) -> str:
        """``"Polygon"`` or ``"MultiPolygon"``."""
        return self.geometry.geom_type


@dataclass(frozen=True, slots=True)
class EffectiveClip:
    """Clip geometry used for every intersection test of a run.

    Attributes:
        geometry: The geometry features are tested against.
        mode: Analysis mode that produced it.
        buffer_m: Buffer applied in metres (0 when the area is used as is).
        source: The unbuffered area of interest, kept for display.
        prepared: Shapely prepared geometry for repeated predicates.
        bounds: ``(minx, miny, maxx, maxy)`` of ``geometry``.
    """

    geometry: BaseGeometry
    mode: AnalysisMode
    buffer_m: float
    source: AreaCandidate
    prepared: PreparedGeometry = field(init=False, repr=False)
    bounds: Bounds = field(init=False)

    def __post_init__(self) -> None:
        from shapely.prepared import prep

        object.__setattr__(self, "prepared", prep(self.geometry))
        object.__setattr__(self, "bounds", tuple(self.geometry.bounds))

    @property
    def buffered(self) -> bool:
        """Whether the clip geometry differs from the source area."""
        return self.buffer_m > 0
