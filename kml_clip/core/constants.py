"""Shared engine constants (single source of truth).

Centralises the buffer radius, batching parameters, color palette and
property names that the stages and the orchestrator agree on.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Area preparation
# ---------------------------------------------------------------------------

CORE_BUFFER_M: float = 500.0
"""Buffer radius in metres applied around the area of interest in core mode."""

MIN_RING_POSITIONS: int = 4
"""Minimum positions in a closed linear ring (3 distinct + closure)."""

WGS84: str = "EPSG:4326"
"""Geographic CRS of every geometry handled by the engine."""

UTM_ZONE_WIDTH_DEG: float = 6.0
"""Longitudinal width of a UTM zone; wider areas use an equidistant projection."""

# ---------------------------------------------------------------------------
# Intersection batching
# ---------------------------------------------------------------------------

MIN_BATCH_SIZE: int = 500
"""Smallest batch the intersection engine scans between two yields."""

BATCH_DIVISOR: int = 200
"""Target number of batches for large corpora (batch = corpus size / divisor)."""

# ---------------------------------------------------------------------------
# Identifiers and properties
# ---------------------------------------------------------------------------

DEFAULT_ID_PROPERTY: str = "CVEGEO"
"""Feature property holding the geostatistical key of a locality."""

POPULATION_PROPERTIES: tuple[str, ...] = ("POBTOT", "POBTOTAL")
"""Properties checked, in order, for a locality's total population."""

# ---------------------------------------------------------------------------
# Colors
# ---------------------------------------------------------------------------

COLOR_PALETTE: tuple[str, ...] = (
    "#d11149",
    "#1a8fe3",
    "#119822",
    "#ff7f0e",
    "#9467bd",
    "#e377c2",
    "#17becf",
    "#bcbd22",
    "#8c564b",
    "#2ca02c",
    "#e41a1c",
    "#377eb8",
    "#4daf4a",
    "#984ea3",
    "#ff7f00",
    "#a65628",
    "#f781bf",
    "#999999",
    "#66c2a5",
    "#fc8d62",
)
"""Ordered palette; identifiers take colors in first-seen order, cycling."""

DEFAULT_COLOR: str = "#008000"
"""Color shown for features that have no identifier."""

# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------

LOCALITIES_LAYER: str = "localities"
"""Logical layer name of the polygon + point locality result."""
