"""Deterministic color assignment."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from kml_clip.core.constants import COLOR_PALETTE

if TYPE_CHECKING:
    from kml_clip.models.feature import Feature


def color_key(feature: Feature, position: int) -> str:
    """Key a feature is colored under: its identifier, else its position."""
    return feature.id if feature.id is not None else str(position)


def assign_colors(
    features: Iterable[Feature],
    palette: Sequence[str] = COLOR_PALETTE,
) -> dict[str, str]:
    """Map each identifier to a palette color, in first-seen order.

    The n-th distinct key gets ``palette[n % len(palette)]``.  A feature
    without an identifier takes a slot of its own, keyed by its 0-based
    position in *features*.  Identifiers and positions never share a
    slot; when a position string equals an identifier, the identifier
    keeps the entry.  The mapping depends only on input order.

    Raises:
        ValueError: If *palette* is empty.
    """
    if not palette:
        msg = "palette must contain at least one color"
        raise ValueError(msg)

    color_of: dict[str, str] = {}
    identified: set[str] = set()
    slots = 0
    for position, feature in enumerate(features):
        key = color_key(feature, position)
        if feature.id is not None:
            if key in identified:
                continue
            identified.add(key)
            color_of[key] = palette[slots % len(palette)]
        elif key not in identified:
            color_of[key] = palette[slots % len(palette)]
        slots += 1
    return color_of
