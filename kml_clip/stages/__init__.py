"""Analysis stages.

Each stage performs one step of an analysis run:
- adapt_geometry: Turn converted KML features into one canonical area
- prepare_area: Buffer the area into the effective clip geometry
- intersect: Batched corpus scan against the clip geometry
- classify: Polygon/point deduplication and provenance tagging
- colors: Deterministic palette assignment
- navigation: Identifier → geometry reference index
"""
