"""Result models of an analysis run.

A ``ClipResult`` is produced once per completed run and replaced, never
merged, by the next one.  Everything here is plain data for the
presentation layer: matched features in discovery order, their colors,
and a navigation index for "go to" actions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kml_clip.core.constants import DEFAULT_COLOR, LOCALITIES_LAYER

if TYPE_CHECKING:
    from kml_clip.models.area import EffectiveClip
    from kml_clip.models.contracts import (
        FeatureRecord,
        LayerSnapshot,
        MetricsPayload,
        ResultSnapshot,
    )
    from kml_clip.models.feature import Feature
    from kml_clip.stages.navigation import NavigationIndex
    from kml_clip.utils.geometry import Bounds


@dataclass(frozen=True, slots=True)
class NavRef:
    """Where the view should go to show a matched feature.

    Exactly one of ``bounds`` (area geometries) or ``coordinate`` (point
    geometries) is set.  ``feature`` is a lookup back-reference; the
    NavRef does not own it.
    """

    feature: Feature
    bounds: Bounds | None = None
    coordinate: tuple[float, float] | None = None

    def __post_init__(self) -> None:
        if (self.bounds is None) == (self.coordinate is None):
            msg = "NavRef needs exactly one of bounds or coordinate"
            raise ValueError(msg)

    @property
    def is_point(self) -> bool:
        return self.coordinate is not None

    @property
    def extent(self) -> Bounds:
        """Bounds of the reference; a point collapses to a zero-size box."""
        if self.bounds is not None:
            return self.bounds
        lon, lat = self.coordinate  # type: ignore[misc]
        return (lon, lat, lon, lat)


@dataclass(frozen=True, slots=True)
class ClassifiedResult:
    """Locality matches split by provenance; no identifier is in both lists."""

    polygon_sourced: tuple[Feature, ...] = ()
    point_sourced: tuple[Feature, ...] = ()

    @property
    def combined(self) -> tuple[Feature, ...]:
        """Polygon-sourced matches followed by point-sourced matches."""
        return self.polygon_sourced + self.point_sourced


@dataclass(frozen=True, slots=True)
class LayerResult:
    """Matches of one context layer (municipalities, languages, ...)."""

    name: str
    features: tuple[Feature, ...]
    color_of: dict[str, str]
    index: NavigationIndex

    @property
    def unique_ids(self) -> int:
        """Number of distinct identifiers among the matches."""
        return len({f.id for f in self.features if f.id is not None})

    def snapshot(self) -> LayerSnapshot:
        return _layer_snapshot(self.name, self.features, self.unique_ids)


@dataclass(frozen=True, slots=True)
class AreaMetrics:
    """Measurements of the area of interest and of the locality result.

    Area and perimeter are geodesic and refer to the area as drawn, not
    to the buffered clip geometry.
    """

    area_km2: float = 0.0
    perimeter_km: float = 0.0
    geometry_type: str = ""
    polygon_count: int = 0
    overlap_count: int = 0
    buffer_m: float = 0.0
    mode: str = ""
    matched_count: int = 0
    total_population: int = 0
    layer_hits: dict[str, bool] = field(default_factory=dict)

    @property
    def has_overlaps(self) -> bool:
        return self.overlap_count > 0

    @property
    def buffer_used(self) -> bool:
        return self.buffer_m > 0

    @property
    def locality_density(self) -> float:
        """Matched localities per km² (0 for a zero-area input)."""
        return self.matched_count / self.area_km2 if self.area_km2 > 0 else 0.0

    @property
    def population_density(self) -> float:
        """Inhabitants per km² (0 for a zero-area input)."""
        return self.total_population / self.area_km2 if self.area_km2 > 0 else 0.0

    def to_dict(self) -> MetricsPayload:
        return {
            "area_km2": self.area_km2,
            "perimeter_km": self.perimeter_km,
            "geometry_type": self.geometry_type,
            "polygon_count": self.polygon_count,
            "has_overlaps": self.has_overlaps,
            "overlap_count": self.overlap_count,
            "buffer_used": self.buffer_used,
            "buffer_m": self.buffer_m,
            "mode": self.mode,
            "matched_count": self.matched_count,
            "locality_density": self.locality_density,
            "total_population": self.total_population,
            "population_density": self.population_density,
            "layer_hits": dict(self.layer_hits),
        }


@dataclass(frozen=True, slots=True)
class ClipResult:
    """Outcome of one completed analysis run.

    Attributes:
        matched: Polygon-sourced then point-sourced localities, each in
            first-discovery order.
        color_of: Identifier → palette color for every identified match.
        index: Identifier → NavRefs for every identified match.
        classified: The same matches split by provenance.
        clip: Clip geometry the run tested against.
        layers: Context layer results keyed by layer name.
        metrics: Area and result measurements.
        run_id: Identifier of the run.
    """

    matched: tuple[Feature, ...]
    color_of: dict[str, str]
    index: NavigationIndex
    classified: ClassifiedResult
    clip: EffectiveClip
    layers: dict[str, LayerResult] = field(default_factory=dict)
    metrics: AreaMetrics = field(default_factory=AreaMetrics)
    run_id: str = ""

    @property
    def is_empty(self) -> bool:
        """Whether the run found no locality at all (a success, not an error)."""
        return not self.matched

    def color_for(self, feature: Feature) -> str:
        """Display color of a matched feature; id-less features get the default."""
        if feature.id is None:
            return DEFAULT_COLOR
        return self.color_of.get(feature.id, DEFAULT_COLOR)

    def snapshot(self) -> ResultSnapshot:
        """Read-only export payload: one layer entry per logical layer."""
        unique = len({f.id for f in self.matched if f.id is not None})
        layers = [_layer_snapshot(LOCALITIES_LAYER, self.matched, unique)]
        layers.extend(layer.snapshot() for layer in self.layers.values())
        return {
            "run_id": self.run_id,
            "metrics": self.metrics.to_dict(),
            "layers": layers,
        }


def _feature_record(feature: Feature) -> FeatureRecord:
    return {
        "id": feature.id,
        "origin": feature.origin.value,
        "geometry_type": feature.geometry_type,
        "properties": dict(feature.properties),
    }


def _layer_snapshot(name: str, features: tuple[Feature, ...], unique: int) -> LayerSnapshot:
    return {
        "layer": name,
        "count": len(features),
        "unique_count": unique,
        "features": [_feature_record(f) for f in features],
    }
