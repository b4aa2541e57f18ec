"""
Location Parser.

Recovers coordinates from free-text ``location`` tag values. Events that
carry no geohash often put a coordinate pair in their location string in
one of a handful of common notations.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable
from typing import Optional

from pydantic import ValidationError

from geoevents.schemas.event import Coordinates

logger = logging.getLogger(__name__)

_NUMBER = r"[+-]?\d+\.?\d*"

# "40.7128, -74.0060" (whole string)
DECIMAL_PAIR_PATTERN = re.compile(rf"({_NUMBER}),\s*({_NUMBER})")

# "lat: 40.7128, lon: -74.0060" (anywhere in the string)
LABELED_PATTERN = re.compile(
    rf"lat:\s*({_NUMBER}),?\s*lon:\s*({_NUMBER})",
    re.IGNORECASE,
)

# "40.7128° N, 74.0060° W"
HEMISPHERE_PATTERN = re.compile(
    rf"({_NUMBER})[°\s]*([NS])\s*,?\s*({_NUMBER})[°\s]*([EW])",
    re.IGNORECASE,
)


class LocationParser:
    """
    Parse coordinates out of location strings.

    Strategies are tried in order and the first match wins:

    1. Bare decimal pair, the whole unpadded string: ``"40.7128, -74.0060"``
    2. Labeled pair, anywhere: ``"Venue (lat: 40.71, lon: -74.00)"``
    3. Degrees with hemisphere letters: ``"40.71° N, 74.00° W"``

    No strategy raises; unparseable or out-of-range text yields None.
    """

    def __init__(self) -> None:
        self._strategies: list[
            tuple[str, Callable[[str], tuple[bool, Optional[Coordinates]]]]
        ] = [
            ("decimal_pair", self._parse_decimal_pair),
            ("labeled", self._parse_labeled),
            ("hemisphere", self._parse_hemisphere),
        ]

    def parse_coordinates(self, text: Optional[str]) -> Optional[Coordinates]:
        """
        Parse a coordinate pair from a location string.

        Args:
            text: Free-text location value

        Returns:
            Coordinates, or None when no strategy matches
        """
        if not text:
            return None

        for name, strategy in self._strategies:
            matched, coords = strategy(text)
            if matched:
                logger.debug("Location %r matched %s pattern -> %s", text, name, coords)
                return coords

        return None

    # ------------------------------------------------------------------
    # Strategies: return (matched, coordinates)
    # ------------------------------------------------------------------

    def _parse_decimal_pair(self, text: str) -> tuple[bool, Optional[Coordinates]]:
        match = DECIMAL_PAIR_PATTERN.fullmatch(text)
        if not match:
            return False, None
        return True, self._build(match.group(1), match.group(2))

    def _parse_labeled(self, text: str) -> tuple[bool, Optional[Coordinates]]:
        match = LABELED_PATTERN.search(text)
        if not match:
            return False, None
        return True, self._build(match.group(1), match.group(2))

    def _parse_hemisphere(self, text: str) -> tuple[bool, Optional[Coordinates]]:
        match = HEMISPHERE_PATTERN.search(text)
        if not match:
            return False, None

        lat_raw, lat_hemi, lng_raw, lng_hemi = match.groups()
        lat = self._to_float(lat_raw)
        lng = self._to_float(lng_raw)
        if lat is None or lng is None:
            return True, None

        # The hemisphere letter carries the sign
        lat = -abs(lat) if lat_hemi.upper() == "S" else abs(lat)
        lng = -abs(lng) if lng_hemi.upper() == "W" else abs(lng)
        return True, self._validate(lat, lng)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build(self, lat_raw: str, lng_raw: str) -> Optional[Coordinates]:
        lat = self._to_float(lat_raw)
        lng = self._to_float(lng_raw)
        if lat is None or lng is None:
            return None
        return self._validate(lat, lng)

    @staticmethod
    def _to_float(raw: str) -> Optional[float]:
        try:
            value = float(raw)
        except ValueError:
            return None
        return value if math.isfinite(value) else None

    @staticmethod
    def _validate(lat: float, lng: float) -> Optional[Coordinates]:
        try:
            return Coordinates(latitude=lat, longitude=lng)
        except ValidationError:
            logger.debug("Coordinates out of range: lat=%s lng=%s", lat, lng)
            return None


_default_parser = LocationParser()


def parse_coordinates(text: Optional[str]) -> Optional[Coordinates]:
    """Parse coordinates from free text with the default strategy order."""
    return _default_parser.parse_coordinates(text)
