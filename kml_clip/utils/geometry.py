"""Shared geometry helpers used across the analysis stages.

Centralises GeoJSON → shapely conversion, metric CRS selection for
buffering, geodesic measurements and bounding-box arithmetic so the
stages never reimplement them.

All inputs and outputs are WGS 84 ``(lon, lat)``.  Distances are metres,
areas are square kilometres, perimeters are kilometres.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING

from kml_clip.core.constants import UTM_ZONE_WIDTH_DEG

if TYPE_CHECKING:
    from shapely.geometry import Polygon
    from shapely.geometry.base import BaseGeometry

Bounds = tuple[float, float, float, float]

POINT_TYPES = frozenset({"Point", "MultiPoint"})
AREA_TYPES = frozenset({"Polygon", "MultiPolygon"})
SUPPORTED_GEOMETRY_TYPES = POINT_TYPES | AREA_TYPES

SQ_METRES_PER_SQ_KM = 1_000_000.0
METRES_PER_KM = 1_000.0


# ---------------------------------------------------------------------------
# GeoJSON conversion
# ---------------------------------------------------------------------------


def coords_to_tuples(raw_coords: object) -> list[tuple[float, float]]:
    """Convert a GeoJSON position array to ``(lon, lat)`` tuples.

    Drops altitude (third element) if present.

    Raises:
        ValueError: If the array or any position is malformed.
    """
    if not isinstance(raw_coords, list | tuple):
        msg = f"Expected a list of positions, got {type(raw_coords).__name__}"
        raise ValueError(msg)
    coords: list[tuple[float, float]] = []
    for idx, c in enumerate(raw_coords):
        if not isinstance(c, list | tuple) or len(c) < 2:
            msg = f"Malformed position at index {idx}: {c!r}"
            raise ValueError(msg)
        try:
            coords.append((float(c[0]), float(c[1])))
        except (TypeError, ValueError) as exc:
            msg = f"Malformed position at index {idx}: cannot convert {c!r} to float"
            raise ValueError(msg) from exc
    return coords


def geometry_from_geojson(raw: object) -> BaseGeometry | None:
    """Build a shapely geometry from a decoded GeoJSON geometry object.

    Returns ``None`` for null geometries and for types the engine does not
    handle (LineString, GeometryCollection, ...).

    Raises:
        ValueError: If the geometry has a supported type but malformed
            coordinates.
    """
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        msg = f"Geometry must be a mapping, got {type(raw).__name__}"
        raise ValueError(msg)

    geom_type = raw.get("type")
    if geom_type not in SUPPORTED_GEOMETRY_TYPES:
        return None

    from shapely.errors import GEOSException
    from shapely.geometry import shape

    try:
        geom = shape(raw)
    except (GEOSException, TypeError, ValueError, IndexError, KeyError, AttributeError) as exc:
        msg = f"Malformed {geom_type} geometry: {exc}"
        raise ValueError(msg) from exc
    if geom.is_empty:
        msg = f"Empty {geom_type} geometry"
        raise ValueError(msg)
    return geom


def polygon_parts(geom: BaseGeometry) -> Iterator[Polygon]:
    """Yield the polygons making up a Polygon or MultiPolygon."""
    if geom.geom_type == "Polygon":
        yield geom  # type: ignore[misc]
    elif geom.geom_type == "MultiPolygon":
        yield from geom.geoms  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Metric CRS selection
# ---------------------------------------------------------------------------


def utm_crs_for(lon: float, lat: float) -> str:
    """Return the UTM EPSG code (``"EPSG:326xx"`` / ``"EPSG:327xx"``) for a coordinate."""
    # UTM zone number: 1-based, 6° wide, starting at -180°
    zone_number = int((lon + 180) / UTM_ZONE_WIDTH_DEG) + 1
    zone_number = max(1, min(60, zone_number))

    if lat >= 0:
        return f"EPSG:{32600 + zone_number}"
    return f"EPSG:{32700 + zone_number}"


def local_metric_crs(geom: BaseGeometry) -> str:
    """Pick a metric CRS suited to the geometry's extent.

    Areas narrower than one UTM zone use the zone of their centroid.
    Wider areas use an azimuthal equidistant projection centred on the
    centroid, which keeps distances from the centre true at any extent.
    """
    min_lon, _min_lat, max_lon, _max_lat = geom.bounds
    centroid = geom.centroid
    if max_lon - min_lon <= UTM_ZONE_WIDTH_DEG:
        return utm_crs_for(centroid.x, centroid.y)
    return (
        f"+proj=aeqd +lat_0={centroid.y:.8f} +lon_0={centroid.x:.8f} "
        "+x_0=0 +y_0=0 +datum=WGS84 +units=m +no_defs"
    )


# ---------------------------------------------------------------------------
# Geodesic measurements
# ---------------------------------------------------------------------------


def geodesic_area_perimeter_km(geom: BaseGeometry) -> tuple[float, float]:
    """Compute geodesic area (km²) and perimeter (km) of a (Multi)Polygon.

    Uses pyproj.Geod on the WGS 84 ellipsoid.  Each part is oriented
    before measuring so mixed winding orders never cancel out.  Point
    geometries measure zero.
    """
    from pyproj import Geod
    from shapely.geometry.polygon import orient

    geod = Geod(ellps="WGS84")
    total_area = 0.0
    total_perimeter = 0.0
    for poly in polygon_parts(geom):
        area_m2, perimeter_m = geod.geometry_area_perimeter(orient(poly, sign=1.0))
        total_area += abs(area_m2)
        total_perimeter += perimeter_m
    return total_area / SQ_METRES_PER_SQ_KM, total_perimeter / METRES_PER_KM


# ---------------------------------------------------------------------------
# Bounding boxes
# ---------------------------------------------------------------------------


def bounds_intersect(a: Bounds, b: Bounds) -> bool:
    """Whether two ``(minx, miny, maxx, maxy)`` boxes touch or overlap."""
    return not (a[2] < b[0] or b[2] < a[0] or a[3] < b[1] or b[3] < a[1])


def merge_bounds(boxes: Iterable[Bounds]) -> Bounds | None:
    """Return the box enclosing every input box, or ``None`` if there are none."""
    merged: Bounds | None = None
    for box in boxes:
        if merged is None:
            merged = box
            continue
        merged = (
            min(merged[0], box[0]),
            min(merged[1], box[1]),
            max(merged[2], box[2]),
            max(merged[3], box[3]),
        )
    return merged
