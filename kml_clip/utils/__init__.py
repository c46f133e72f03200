"""Shared helpers.

- geometry: GeoJSON conversion, metric CRS selection, geodesic
  measurements and bounding-box arithmetic
"""
