"""Area preparation stage.

Derives the effective clip geometry from the adapted area of interest.
In core mode the area is expanded by a metric buffer (500 m by default);
every other mode clips against the area exactly as drawn.

The buffer is computed by projecting to a local metric CRS, buffering in
metres, and projecting back to WGS 84, never by adding degrees.  The
local CRS is the UTM zone of the area's centroid, or an azimuthal
equidistant projection centred on the centroid for areas wider than a
UTM zone.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from kml_clip.core.constants import CORE_BUFFER_M, WGS84
from kml_clip.core.exceptions import PermanentError
from kml_clip.models.area import AnalysisMode, AreaCandidate, EffectiveClip
from kml_clip.utils.geometry import AREA_TYPES, local_metric_crs

if TYPE_CHECKING:
    from shapely.geometry.base import BaseGeometry

logger = logging.getLogger("kml_clip.stages.prepare_area")


class AreaBufferError(PermanentError):
    """Raised when the area of interest cannot be buffered.

    Fatal for the run when the mode requires buffering; never retried.
    """

    default_stage = "prepare_area"
    default_code = "BUFFER_FAILED"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def prepare(
    area: AreaCandidate,
    mode: AnalysisMode | str = AnalysisMode.CORE,
    *,
    buffer_m: float = CORE_BUFFER_M,
) -> EffectiveClip:
    """Produce the clip geometry for a run.

    Args:
        area: The adapted area of interest.
        mode: Analysis mode; only ``AnalysisMode.CORE`` buffers.
        buffer_m: Buffer radius in metres used in core mode.

    Returns:
        An immutable ``EffectiveClip``; ``clip.source`` is *area* unchanged.

    Raises:
        AreaBufferError: In core mode, if buffering fails or yields no polygon.
        ValueError: If *mode* is not a known analysis mode.
    """
    mode = AnalysisMode.parse(mode)

    if not mode.buffers:
        logger.info(
            "Clip prepared | mode=%s | buffer=none | type=%s",
            mode.value,
            area.geometry_type,
        )
        return EffectiveClip(geometry=area.geometry, mode=mode, buffer_m=0.0, source=area)

    geometry = buffer_geometry(area.geometry, buffer_m)
    clip = EffectiveClip(geometry=geometry, mode=mode, buffer_m=buffer_m, source=area)
    logger.info(
        "Clip prepared | mode=%s | buffer=%.0f m | type=%s | bounds=[%.5f, %.5f, %.5f, %.5f]",
        mode.value,
        buffer_m,
        geometry.geom_type,
        *clip.bounds,
    )
    return clip


def buffer_geometry(geometry: BaseGeometry, distance_m: float) -> BaseGeometry:
    """Expand a WGS 84 (Multi)Polygon by *distance_m* metres.

    A distance of 0 returns *geometry* itself.  An invalid area is rebuilt
    with ``make_valid()`` before it is projected.

    Raises:
        AreaBufferError: If the distance is negative, the input is empty or
            has no polygonal part once repaired, the projection or buffer
            operation fails, or the result is not a non-empty
            Polygon/MultiPolygon.
    """
    if not math.isfinite(distance_m) or distance_m < 0:
        msg = f"Buffer distance must be a finite number >= 0 m, got {distance_m}"
        raise AreaBufferError(msg)
    if geometry.is_empty:
        msg = "Cannot buffer an empty geometry"
        raise AreaBufferError(msg)
    if distance_m == 0:
        return geometry

    from pyproj import Transformer
    from pyproj.exceptions import ProjError
    from shapely.errors import GEOSException
    from shapely.ops import transform
    from shapely.validation import make_valid

    if not geometry.is_valid:
        geometry = _repair_area(geometry)

    try:
        metric_crs = local_metric_crs(geometry)
        to_metric = Transformer.from_crs(WGS84, metric_crs, always_xy=True)
        to_wgs = Transformer.from_crs(metric_crs, WGS84, always_xy=True)

        projected = transform(to_metric.transform, geometry)
        buffered = transform(to_wgs.transform, projected.buffer(distance_m))
    except (GEOSException, ProjError, ValueError) as exc:
        msg = f"Buffer of {distance_m:.0f} m failed: {exc}"
        raise AreaBufferError(msg) from exc

    if not buffered.is_valid:
        logger.warning("Buffered area is invalid, attempting make_valid()")
        buffered = make_valid(buffered)

    if buffered.is_empty or buffered.geom_type not in AREA_TYPES:
        msg = (
            f"Buffer of {distance_m:.0f} m produced "
            f"{'an empty geometry' if buffered.is_empty else buffered.geom_type}; "
            "check the area of interest for degenerate rings"
        )
        raise AreaBufferError(msg)

    logger.debug("Buffered in %s | distance=%.1f m", metric_crs, distance_m)
    return buffered


def _repair_area(geometry: BaseGeometry) -> BaseGeometry:
    """Rebuild an invalid area (bowtie, overlapping parts) before buffering.

    Only the polygonal parts of the ``make_valid()`` result are kept.

    Raises:
        AreaBufferError: If nothing polygonal survives the repair.
    """
    from shapely.ops import unary_union
    from shapely.validation import explain_validity, make_valid

    reason = explain_validity(geometry)
    logger.warning("Area is invalid, attempting make_valid() before buffering | reason=%s", reason)

    repaired = make_valid(geometry)
    parts = repaired.geoms if repaired.geom_type == "GeometryCollection" else [repaired]
    polygons = [part for part in parts if part.geom_type in AREA_TYPES and not part.is_empty]
    if not polygons:
        msg = f"Area of interest is degenerate and cannot be buffered: {reason}"
        raise AreaBufferError(msg)
    return unary_union(polygons)
