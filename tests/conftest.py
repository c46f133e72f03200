"""Shared pytest fixtures for the clip engine test suite.

Geography: a 0.02° square area of interest centred on (-99.0, 19.0),
inside UTM zone 14N, with a handful of localities placed around it.

Locality polygons:
- ``A`` fully inside the area
- ``B`` far away
- ``C`` straddling the east edge
- ``D`` about 300 m east of the area (only matched with the core buffer)

Locality points:
- ``A`` duplicate of polygon ``A`` (inside)
- ``P1`` inside
- ``P2`` far away
- an inside point with no identifier
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

from kml_clip.core.config import ClipConfig
from kml_clip.models.area import AnalysisMode, EffectiveClip
from kml_clip.orchestrators.analysis import AnalysisSession
from kml_clip.stages.adapt_geometry import adapt_collection
from kml_clip.stages.prepare_area import prepare

AREA_CENTER = (-99.0, 19.0)
AREA_HALF = 0.01

# ---------------------------------------------------------------------------
# GeoJSON builders
# ---------------------------------------------------------------------------


def square_ring(lon: float, lat: float, half: float) -> list[list[float]]:
    """Closed counter-clockwise square ring centred on (lon, lat)."""
    return [
        [lon - half, lat - half],
        [lon + half, lat - half],
        [lon + half, lat + half],
        [lon - half, lat + half],
        [lon - half, lat - half],
    ]


def polygon_feature(
    lon: float, lat: float, half: float, properties: dict[str, object] | None = None
) -> dict[str, object]:
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [square_ring(lon, lat, half)]},
        "properties": properties or {},
    }


def point_feature(
    lon: float, lat: float, properties: dict[str, object] | None = None
) -> dict[str, object]:
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
        "properties": properties or {},
    }


def feature_collection(*features: dict[str, object]) -> dict[str, object]:
    return {"type": "FeatureCollection", "features": list(features)}


# ---------------------------------------------------------------------------
# Builder fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_polygon() -> Callable[..., dict[str, object]]:
    """Factory for square polygon GeoJSON features."""
    return polygon_feature


@pytest.fixture()
def make_point() -> Callable[..., dict[str, object]]:
    """Factory for point GeoJSON features."""
    return point_feature


@pytest.fixture()
def make_collection() -> Callable[..., dict[str, object]]:
    """Factory for GeoJSON FeatureCollections."""
    return feature_collection


# ---------------------------------------------------------------------------
# Area of interest
# ---------------------------------------------------------------------------


@pytest.fixture()
def area_collection() -> dict[str, object]:
    """Converted KML with one square polygon (~2.1 km wide)."""
    lon, lat = AREA_CENTER
    return feature_collection(polygon_feature(lon, lat, AREA_HALF, {"name": "Area"}))


@pytest.fixture()
def exact_clip(area_collection: dict[str, object]) -> EffectiveClip:
    """Clip geometry equal to the area as drawn."""
    return prepare(adapt_collection(area_collection), AnalysisMode.EXACT)


@pytest.fixture()
def core_clip(area_collection: dict[str, object]) -> EffectiveClip:
    """Clip geometry buffered by the default 500 m."""
    return prepare(adapt_collection(area_collection), AnalysisMode.CORE)


# ---------------------------------------------------------------------------
# Locality corpora
# ---------------------------------------------------------------------------


@pytest.fixture()
def locality_polygons() -> dict[str, object]:
    return feature_collection(
        polygon_feature(-99.0, 19.0, 0.002, {"CVEGEO": "A", "NOMGEO": "Alfa", "POBTOT": 120}),
        polygon_feature(-98.0, 19.5, 0.002, {"CVEGEO": "B", "NOMGEO": "Bravo", "POBTOT": 50}),
        polygon_feature(-98.99, 19.0, 0.002, {"CVEGEO": "C", "NOMGEO": "Charlie", "POBTOT": "30"}),
        polygon_feature(-98.985, 19.0, 0.002, {"CVEGEO": "D", "NOMGEO": "Delta", "POBTOT": 7}),
    )


@pytest.fixture()
def locality_points() -> dict[str, object]:
    return feature_collection(
        point_feature(-99.0, 19.0, {"CVEGEO": "A", "NOMGEO": "Alfa (punto)", "POBTOTAL": 999}),
        point_feature(-99.005, 19.005, {"CVEGEO": "P1", "NOMGEO": "Papa", "POBTOTAL": 15}),
        point_feature(-97.5, 18.0, {"CVEGEO": "P2", "NOMGEO": "Quebec", "POBTOTAL": 3}),
        point_feature(-99.001, 19.001, {"NOMGEO": "Sin clave"}),
    )


@pytest.fixture()
def session(
    locality_polygons: dict[str, object], locality_points: dict[str, object]
) -> AnalysisSession:
    """Session with both locality corpora registered and default config."""
    s = AnalysisSession(ClipConfig())
    s.register_polygon_corpus(locality_polygons)
    s.register_point_corpus(locality_points)
    return s
