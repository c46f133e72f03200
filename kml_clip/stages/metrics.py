"""Area and result measurements for report headers.

Area and perimeter are geodesic (WGS 84 ellipsoid) and measured on the
area as drawn, so the core-mode buffer never inflates them.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

from kml_clip.core.constants import POPULATION_PROPERTIES
from kml_clip.models.result import AreaMetrics
from kml_clip.utils.geometry import geodesic_area_perimeter_km

if TYPE_CHECKING:
    from kml_clip.models.area import EffectiveClip
    from kml_clip.models.feature import Feature
    from kml_clip.models.result import LayerResult

logger = logging.getLogger("kml_clip.stages.metrics")


def measure(
    clip: EffectiveClip,
    matched: Iterable[Feature],
    layers: Mapping[str, LayerResult] | None = None,
) -> AreaMetrics:
    """Compute the metrics of a run from its clip and its matches."""
    area = clip.source
    area_km2, perimeter_km = geodesic_area_perimeter_km(area.geometry)
    matched = tuple(matched)
    layers = layers or {}

    metrics = AreaMetrics(
        area_km2=area_km2,
        perimeter_km=perimeter_km,
        geometry_type=area.geometry_type,
        polygon_count=area.polygon_count,
        overlap_count=len(area.overlap_pairs),
        buffer_m=clip.buffer_m,
        mode=clip.mode.value,
        matched_count=len(matched),
        total_population=sum(population_of(f) for f in matched),
        layer_hits={name: bool(layer.features) for name, layer in layers.items()},
    )
    logger.debug(
        "Metrics | area=%.3f km2 | perimeter=%.3f km | matched=%d | population=%d",
        metrics.area_km2,
        metrics.perimeter_km,
        metrics.matched_count,
        metrics.total_population,
    )
    return metrics


def population_of(feature: Feature) -> int:
    """Total population recorded on a locality, 0 when absent or not numeric.

    The first of ``POPULATION_PROPERTIES`` holding a number wins; census
    placeholders such as ``"*"`` or ``"N/D"`` count as absent.
    """
    for key in POPULATION_PROPERTIES:
        value = _as_count(feature.properties.get(key))
        if value is not None:
            return value
    return 0


def _as_count(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if math.isfinite(number) else None
    return None
