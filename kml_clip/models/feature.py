"""Data model for a corpus feature.

A Feature is one record of a reference corpus (a locality polygon, a
locality point, a language occurrence, ...) decoded from GeoJSON.  The
intersection stages hand matched Feature objects through unchanged, so
equality is identity: a match *is* the corpus record, never a copy.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from kml_clip.core.constants import DEFAULT_ID_PROPERTY
from kml_clip.utils.geometry import AREA_TYPES, POINT_TYPES, geometry_from_geojson

if TYPE_CHECKING:
    from shapely.geometry.base import BaseGeometry


class SourceTag(enum.Enum):
    """Provenance of a matched feature.

    Values:
        UNTAGGED:       Loaded from a corpus that takes no part in deduplication.
        POLYGON_SOURCE: Comes from the area-geometry representation of an entity.
        POINT_SOURCE:   Comes from the point-geometry representation of an entity.
    """

    UNTAGGED = "untagged"
    POLYGON_SOURCE = "polygon"
    POINT_SOURCE = "point"


@dataclass(frozen=True, slots=True, eq=False)
class Feature:
    """A single corpus feature.

    Attributes:
        id: Business key of the entity (e.g. a ``CVEGEO`` code), or ``None``.
        geometry: Point, MultiPoint, Polygon or MultiPolygon in WGS 84.
        properties: Every GeoJSON property, in source order, untouched.
        origin: Provenance tag set by the loader or the classifier.
    """

    id: str | None
    geometry: BaseGeometry
    properties: dict[str, object] = field(default_factory=dict)
    origin: SourceTag = SourceTag.UNTAGGED

    @classmethod
    def from_geojson(
        cls,
        data: Mapping[str, object],
        *,
        id_property: str = DEFAULT_ID_PROPERTY,
        origin: SourceTag = SourceTag.UNTAGGED,
    ) -> Feature | None:
        """Build a Feature from a decoded GeoJSON feature object.

        Returns ``None`` when the feature has no geometry or a geometry
        type the engine does not handle.

        Raises:
            TypeError: If ``properties`` is not a mapping.
            ValueError: If the geometry coordinates are malformed.
        """
        props_raw = data.get("properties") or {}
        if not isinstance(props_raw, Mapping):
            msg = f"properties must be a mapping, got {type(props_raw).__name__}"
            raise TypeError(msg)

        geometry = geometry_from_geojson(data.get("geometry"))
        if geometry is None:
            return None

        properties = dict(props_raw)
        return cls(
            id=normalize_identifier(properties.get(id_property)),
            geometry=geometry,
            properties=properties,
            origin=origin,
        )

    def to_geojson(self) -> dict[str, object]:
        """Serialise back to a GeoJSON feature dict."""
        from shapely.geometry import mapping

        return {
            "type": "Feature",
            "geometry": mapping(self.geometry),
            "properties": dict(self.properties),
        }

    def with_origin(self, origin: SourceTag) -> Feature:
        """Return this feature tagged with *origin*.

        The same object is returned when it already carries the tag, so
        loaders that tag at load time keep reference identity through
        classification.
        """
        if self.origin is origin:
            return self
        return replace(self, origin=origin)

    @property
    def geometry_type(self) -> str:
        """GeoJSON type name of the geometry."""
        return self.geometry.geom_type

    @property
    def is_area(self) -> bool:
        """Whether the geometry is a Polygon or MultiPolygon."""
        return self.geometry.geom_type in AREA_TYPES

    @property
    def is_point(self) -> bool:
        """Whether the geometry is a Point or MultiPoint."""
        return self.geometry.geom_type in POINT_TYPES


def normalize_identifier(value: object) -> str | None:
    """Turn a raw identifier property into a key, or ``None`` when blank."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None
