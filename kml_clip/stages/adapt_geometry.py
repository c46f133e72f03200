"""Area-of-interest adaptation stage.

Turns the features produced by the external KML → GeoJSON converter into
one canonical Polygon or MultiPolygon.  Every polygon ring-group of every
polygon feature is kept as its own part: parts are merged structurally,
never unioned, so overlapping drawings stay overlapping.

A pairwise overlap check across the input polygons is reported as a
diagnostic for the presentation layer; it never fails the adaptation.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from itertools import combinations
from typing import TYPE_CHECKING

from kml_clip.core.constants import MIN_RING_POSITIONS
from kml_clip.core.exceptions import ValidationError
from kml_clip.models.area import AreaCandidate, OverlapPair
from kml_clip.utils.geometry import AREA_TYPES, coords_to_tuples

if TYPE_CHECKING:
    from shapely.geometry import Polygon
    from shapely.geometry.base import BaseGeometry

logger = logging.getLogger("kml_clip.stages.adapt_geometry")

RingGroup = list[list[tuple[float, float]]]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GeometryError(ValidationError):
    """Raised when the area of interest yields no usable polygon."""

    default_stage = "adapt_geometry"
    default_code = "GEOMETRY_INVALID"


class NoPolygonFound(GeometryError):
    """The input contains no Polygon or MultiPolygon feature."""

    default_code = "NO_POLYGON_FOUND"


class AllPolygonsInvalid(GeometryError):
    """Every polygon feature in the input has a degenerate ring."""

    default_code = "ALL_POLYGONS_INVALID"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def adapt(
    raw_features: Sequence[Mapping[str, object]],
    *,
    check_overlaps: bool = True,
) -> AreaCandidate:
    """Build the canonical area of interest from converted KML features.

    Args:
        raw_features: Decoded GeoJSON feature objects.  Features whose
            geometry is not a Polygon or MultiPolygon are ignored.
        check_overlaps: Run the pairwise overlap diagnostic.

    Returns:
        An ``AreaCandidate`` holding a Polygon (one ring-group) or a
        MultiPolygon (several ring-groups).

    Raises:
        NoPolygonFound: If no feature has polygon geometry.
        AllPolygonsInvalid: If every polygon feature is degenerate.
    """
    polygon_features = [f for f in raw_features if _geometry_type(f) in AREA_TYPES]
    if not polygon_features:
        msg = (
            "The area of interest contains no Polygon or MultiPolygon geometry "
            f"({len(raw_features)} feature(s) inspected)"
        )
        raise NoPolygonFound(msg)

    valid: list[tuple[list[RingGroup], Mapping[str, object]]] = []
    skipped = 0
    for position, feature in enumerate(polygon_features, start=1):
        groups = _ring_groups(feature, position)
        if groups is None:
            skipped += 1
            continue
        props = feature.get("properties")
        valid.append((groups, props if isinstance(props, Mapping) else {}))

    if not valid:
        msg = f"All {len(polygon_features)} polygon feature(s) have degenerate rings"
        raise AllPolygonsInvalid(msg)

    per_feature = [[_to_polygon(g) for g in groups] for groups, _props in valid]
    overlap_pairs: tuple[OverlapPair, ...] = ()
    if check_overlaps and len(per_feature) > 1:
        overlap_pairs = find_overlaps([_combine(parts) for parts in per_feature])

    parts = [poly for feature_parts in per_feature for poly in feature_parts]
    geometry = _combine(parts)

    logger.info(
        "Area adapted | type=%s | polygons=%d | parts=%d | skipped=%d | overlaps=%d",
        geometry.geom_type,
        len(valid),
        len(parts),
        skipped,
        len(overlap_pairs),
    )
    if overlap_pairs:
        logger.warning(
            "Overlapping input polygons | pairs=%s",
            ", ".join(f"{p.first}-{p.second}" for p in overlap_pairs),
        )

    return AreaCandidate(
        geometry=geometry,
        polygon_count=len(valid),
        skipped_count=skipped,
        overlap_pairs=overlap_pairs,
        properties=dict(valid[0][1]),
    )


def adapt_collection(
    collection: Mapping[str, object],
    *,
    check_overlaps: bool = True,
) -> AreaCandidate:
    """Adapt a GeoJSON FeatureCollection (or a single Feature).

    Raises:
        NoPolygonFound: If the object holds no polygon feature.
        AllPolygonsInvalid: If every polygon feature is degenerate.
    """
    if collection.get("type") == "Feature":
        return adapt([collection], check_overlaps=check_overlaps)
    features = collection.get("features")
    if not isinstance(features, list):
        msg = "The area of interest is not a FeatureCollection (no 'features' list)"
        raise NoPolygonFound(msg)
    return adapt(
        [f for f in features if isinstance(f, Mapping)],
        check_overlaps=check_overlaps,
    )


def find_overlaps(polygons: Sequence[BaseGeometry]) -> tuple[OverlapPair, ...]:
    """Test every pair of input polygons for overlap.

    Positions in the returned pairs are 1-based.  A pair whose test
    raises is reported as overlapping, with the error text attached.
    """
    from shapely.errors import GEOSException

    pairs: list[OverlapPair] = []
    for (i, a), (j, b) in combinations(enumerate(polygons, start=1), 2):
        try:
            if a.overlaps(b):
                pairs.append(OverlapPair(i, j))
        except GEOSException as exc:
            logger.warning("Overlap check failed | polygons=%d-%d | %s", i, j, exc)
            pairs.append(OverlapPair(i, j, error=str(exc)))
    return tuple(pairs)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _geometry_type(feature: object) -> str:
    if not isinstance(feature, Mapping):
        return ""
    geometry = feature.get("geometry")
    if not isinstance(geometry, Mapping):
        return ""
    return str(geometry.get("type", ""))


def _ring_groups(feature: Mapping[str, object], position: int) -> list[RingGroup] | None:
    """Extract and validate the ring-groups of one polygon feature.

    Returns ``None`` when any ring is malformed or shorter than a closed
    ring; for a MultiPolygon one bad part discards the whole feature.
    """
    geometry = feature["geometry"]
    geom_type = geometry["type"]  # type: ignore[index]
    raw = geometry.get("coordinates")  # type: ignore[union-attr]
    raw_groups = [raw] if geom_type == "Polygon" else raw

    if not isinstance(raw_groups, list) or not raw_groups:
        logger.warning("Polygon %d has no coordinates", position)
        return None

    groups: list[RingGroup] = []
    for raw_group in raw_groups:
        if not isinstance(raw_group, list) or not raw_group:
            logger.warning("Polygon %d has an empty ring-group", position)
            return None
        rings: RingGroup = []
        for raw_ring in raw_group:
            try:
                ring = coords_to_tuples(raw_ring)
            except ValueError as exc:
                logger.warning("Polygon %d has a malformed ring: %s", position, exc)
                return None
            if len(ring) < MIN_RING_POSITIONS:
                logger.warning(
                    "Polygon %d has a ring with %d position(s), need at least %d",
                    position,
                    len(ring),
                    MIN_RING_POSITIONS,
                )
                return None
            rings.append(ring)
        groups.append(rings)
    return groups


def _to_polygon(group: RingGroup) -> Polygon:
    from shapely.geometry import Polygon

    return Polygon(group[0], holes=group[1:] or None)


def _combine(parts: list[Polygon]) -> BaseGeometry:
    """One part stays a Polygon; several become a MultiPolygon without union."""
    if len(parts) == 1:
        return parts[0]
    from shapely.geometry import MultiPolygon

    return MultiPolygon(parts)
