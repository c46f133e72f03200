"""Tests for the shared geometry helpers."""

from __future__ import annotations

import pytest
from shapely.geometry import MultiPolygon, Point, Polygon

from kml_clip.utils.geometry import (
    bounds_intersect,
    coords_to_tuples,
    geodesic_area_perimeter_km,
    geometry_from_geojson,
    local_metric_crs,
    merge_bounds,
    polygon_parts,
    utm_crs_for,
)

SQUARE_CCW = [(-99.01, 18.99), (-98.99, 18.99), (-98.99, 19.01), (-99.01, 19.01), (-99.01, 18.99)]


class TestCoordsToTuples:
    def test_drops_altitude(self) -> None:
        assert coords_to_tuples([[1, 2, 3], [4, 5]]) == [(1.0, 2.0), (4.0, 5.0)]

    def test_rejects_short_position(self) -> None:
        with pytest.raises(ValueError, match="index 1"):
            coords_to_tuples([[1, 2], [3]])

    def test_rejects_non_numeric(self) -> None:
        with pytest.raises(ValueError, match="float"):
            coords_to_tuples([[1, "a"]])

    def test_rejects_non_list(self) -> None:
        with pytest.raises(ValueError, match="list of positions"):
            coords_to_tuples("1,2")


class TestGeometryFromGeojson:
    def test_polygon(self) -> None:
        geom = geometry_from_geojson({"type": "Polygon", "coordinates": [[list(p) for p in SQUARE_CCW]]})
        assert geom is not None
        assert geom.geom_type == "Polygon"

    def test_null_and_unsupported(self) -> None:
        assert geometry_from_geojson(None) is None
        assert geometry_from_geojson({"type": "GeometryCollection", "geometries": []}) is None

    def test_not_a_mapping(self) -> None:
        with pytest.raises(ValueError, match="mapping"):
            geometry_from_geojson([1, 2])


class TestMetricCrs:
    @pytest.mark.parametrize(
        ("lon", "lat", "expected"),
        [
            (-99.0, 19.0, "EPSG:32614"),
            (-120.5, 46.6, "EPSG:32610"),
            (152.35, -24.86, "EPSG:32756"),
            (180.0, 0.0, "EPSG:32660"),
            (-180.0, -1.0, "EPSG:32701"),
        ],
    )
    def test_utm_zone(self, lon: float, lat: float, expected: str) -> None:
        assert utm_crs_for(lon, lat) == expected

    def test_narrow_area_uses_utm(self) -> None:
        assert local_metric_crs(Polygon(SQUARE_CCW)) == "EPSG:32614"

    def test_wide_area_uses_equidistant(self) -> None:
        wide = Polygon([(-110, 19), (-95, 19), (-95, 20), (-110, 20)])
        crs = local_metric_crs(wide)
        assert crs.startswith("+proj=aeqd")
        assert "+lon_0=-102.5" in crs


class TestGeodesicMeasurements:
    def test_square_area_and_perimeter(self) -> None:
        area_km2, perimeter_km = geodesic_area_perimeter_km(Polygon(SQUARE_CCW))
        assert area_km2 == pytest.approx(4.66, rel=0.02)
        assert perimeter_km == pytest.approx(8.64, rel=0.02)

    def test_winding_order_does_not_matter(self) -> None:
        ccw, _ = geodesic_area_perimeter_km(Polygon(SQUARE_CCW))
        cw, _ = geodesic_area_perimeter_km(Polygon(list(reversed(SQUARE_CCW))))
        assert ccw == pytest.approx(cw, rel=1e-9)

    def test_multipolygon_parts_add_up(self) -> None:
        a = Polygon(SQUARE_CCW)
        b = Polygon([(x + 1.0, y) for x, y in SQUARE_CCW])
        single, _ = geodesic_area_perimeter_km(a)
        double, _ = geodesic_area_perimeter_km(MultiPolygon([a, b]))
        assert double == pytest.approx(2 * single, rel=1e-3)

    def test_point_measures_zero(self) -> None:
        assert geodesic_area_perimeter_km(Point(0, 0)) == (0.0, 0.0)

    def test_polygon_parts(self) -> None:
        a = Polygon(SQUARE_CCW)
        assert list(polygon_parts(a)) == [a]
        assert len(list(polygon_parts(MultiPolygon([a, Polygon([(0, 0), (1, 0), (1, 1)])])))) == 2


class TestBounds:
    def test_overlapping_boxes(self) -> None:
        assert bounds_intersect((0, 0, 2, 2), (1, 1, 3, 3))

    def test_touching_boxes(self) -> None:
        assert bounds_intersect((0, 0, 1, 1), (1, 0, 2, 1))

    def test_disjoint_boxes(self) -> None:
        assert not bounds_intersect((0, 0, 1, 1), (2, 2, 3, 3))
        assert not bounds_intersect((0, 0, 1, 1), (0, 2, 1, 3))

    def test_merge_bounds(self) -> None:
        assert merge_bounds([(0, 0, 1, 1), (-1, 2, 0.5, 3)]) == (-1, 0, 1, 3)

    def test_merge_empty(self) -> None:
        assert merge_bounds([]) is None
