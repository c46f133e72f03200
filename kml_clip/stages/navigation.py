"""Identifier → geometry reference index for "go to" actions.

The presentation layer fits the camera to ``bounds_of(id)`` and decides
for itself whether to highlight one or every reference returned by
``lookup(id)``; an identifier may map to several features (several
point occurrences of one language, a locality split in parts).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from kml_clip.models.result import NavRef
from kml_clip.utils.geometry import merge_bounds

if TYPE_CHECKING:
    from kml_clip.models.feature import Feature
    from kml_clip.utils.geometry import Bounds

logger = logging.getLogger("kml_clip.stages.navigation")


class NavigationIndex:
    """Read-only mapping of identifier → NavRefs, in discovery order."""

    __slots__ = ("_refs",)

    def __init__(self, refs: dict[str, tuple[NavRef, ...]] | None = None) -> None:
        self._refs: dict[str, tuple[NavRef, ...]] = dict(refs or {})

    def lookup(self, identifier: str) -> tuple[NavRef, ...] | None:
        """Every reference for *identifier*, or ``None`` if it is not indexed."""
        return self._refs.get(identifier)

    def first(self, identifier: str) -> NavRef | None:
        """The first-discovered reference for *identifier*."""
        refs = self._refs.get(identifier)
        return refs[0] if refs else None

    def bounds_of(self, identifier: str) -> Bounds | None:
        """Region enclosing every reference of *identifier*."""
        refs = self._refs.get(identifier)
        if not refs:
            return None
        return merge_bounds(ref.extent for ref in refs)

    @property
    def identifiers(self) -> tuple[str, ...]:
        return tuple(self._refs)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._refs

    def __len__(self) -> int:
        return len(self._refs)

    def __iter__(self) -> Iterator[str]:
        return iter(self._refs)

    def __repr__(self) -> str:
        return f"NavigationIndex(identifiers={len(self._refs)})"


def nav_ref_for(feature: Feature) -> NavRef:
    """Build the reference for one feature.

    Points (and single-member MultiPoints) are referenced by coordinate,
    everything else by bounding box.
    """
    geometry = feature.geometry
    if geometry.geom_type == "Point":
        return NavRef(feature=feature, coordinate=(geometry.x, geometry.y))
    if geometry.geom_type == "MultiPoint" and len(geometry.geoms) == 1:
        point = geometry.geoms[0]
        return NavRef(feature=feature, coordinate=(point.x, point.y))
    return NavRef(feature=feature, bounds=tuple(geometry.bounds))


def build_index(features: Iterable[Feature]) -> NavigationIndex:
    """Index every identified feature; id-less features are left out."""
    refs: dict[str, list[NavRef]] = {}
    skipped = 0
    for feature in features:
        if feature.id is None:
            skipped += 1
            continue
        refs.setdefault(feature.id, []).append(nav_ref_for(feature))

    logger.debug("Navigation index built | identifiers=%d | unindexed=%d", len(refs), skipped)
    return NavigationIndex({key: tuple(value) for key, value in refs.items()})
