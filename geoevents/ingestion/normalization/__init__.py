"""
Normalization module for location data in event tags.

This package provides:
- decode_geohash / decode_bounds: Geohash to coordinates
- LocationParser: Coordinates from free-text location strings
- TagMapper: Tag list to extracted location fields
- classify_kind: Event kind to display label
"""

from .geohash import GeohashBounds, GeohashPolicy, decode_bounds, decode_geohash
from .kind_classifier import KIND_LABELS, EventKind, classify_kind, is_known_kind
from .location_parser import LocationParser, parse_coordinates
from .tag_mapper import TagMapper, TagName, parse_amount

__all__ = [
    "EventKind",
    "GeohashBounds",
    "GeohashPolicy",
    "KIND_LABELS",
    "LocationParser",
    "TagMapper",
    "TagName",
    "classify_kind",
    "decode_bounds",
    "decode_geohash",
    "is_known_kind",
    "parse_amount",
    "parse_coordinates",
]
