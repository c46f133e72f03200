"""KML area clipping and classification engine.

Finds which features of a large reference corpus (localities, language
occurrences, municipalities) fall inside an area of interest drawn in
KML, deduplicates polygon and point records of the same locality,
assigns display colors and builds a navigation index for the result.
"""

__version__ = "0.1.0"
