"""
Geohash Decoder.

Decodes base-32 geohash strings into the midpoint of the bounding box they
describe. Bits alternate between longitude and latitude, starting with
longitude; each bit halves the current interval.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from geoevents.schemas.event import Coordinates

logger = logging.getLogger(__name__)

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
BASE32_INDEX: dict[str, int] = {char: idx for idx, char in enumerate(BASE32)}

BITS_PER_CHAR = 5


class GeohashPolicy(str, Enum):
    """How to treat characters outside the geohash alphabet."""

    SKIP = "skip"  # ignore the character, keep decoding
    STRICT = "strict"  # reject the whole geohash


@dataclass(frozen=True)
class GeohashBounds:
    """Bounding box described by a geohash."""

    lat_min: float = -90.0
    lat_max: float = 90.0
    lon_min: float = -180.0
    lon_max: float = 180.0

    @property
    def center(self) -> Coordinates:
        return Coordinates(
            latitude=(self.lat_min + self.lat_max) / 2,
            longitude=(self.lon_min + self.lon_max) / 2,
        )

    @property
    def lat_error(self) -> float:
        return (self.lat_max - self.lat_min) / 2

    @property
    def lon_error(self) -> float:
        return (self.lon_max - self.lon_min) / 2

    def contains(self, point: Coordinates) -> bool:
        """True when the point lies inside the box (edges included)."""
        return (
            self.lat_min <= point.latitude <= self.lat_max
            and self.lon_min <= point.longitude <= self.lon_max
        )


def decode_bounds(
    geohash: str,
    policy: GeohashPolicy = GeohashPolicy.SKIP,
) -> GeohashBounds | None:
    """
    Decode a geohash into its bounding box.

    Args:
        geohash: Geohash string (case-insensitive)
        policy: Handling of characters outside the alphabet

    Returns:
        GeohashBounds, or None if the geohash was rejected under STRICT policy
    """
    lat = [-90.0, 90.0]
    lon = [-180.0, 180.0]
    is_lon = True

    for char in geohash.lower():
        value = BASE32_INDEX.get(char)
        if value is None:
            if GeohashPolicy(policy) is GeohashPolicy.STRICT:
                logger.debug("Rejecting geohash %r: invalid character %r", geohash, char)
                return None
            logger.debug("Skipping invalid geohash character %r in %r", char, geohash)
            continue

        for bit in range(BITS_PER_CHAR - 1, -1, -1):
            interval = lon if is_lon else lat
            mid = (interval[0] + interval[1]) / 2
            if value & (1 << bit):
                interval[0] = mid
            else:
                interval[1] = mid
            is_lon = not is_lon

    return GeohashBounds(lat_min=lat[0], lat_max=lat[1], lon_min=lon[0], lon_max=lon[1])


def decode_geohash(
    geohash: str,
    policy: GeohashPolicy = GeohashPolicy.SKIP,
) -> Coordinates | None:
    """
    Decode a geohash into the midpoint of its bounding box.

    An empty geohash decodes to (0, 0).

    Example:
        >>> c = decode_geohash("9q8yyk")
        >>> round(c.latitude, 2), round(c.longitude, 2)
        (37.77, -122.42)
    """
    bounds = decode_bounds(geohash, policy)
    return bounds.center if bounds is not None else None
