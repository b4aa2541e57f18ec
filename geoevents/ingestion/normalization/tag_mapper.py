"""
Tag Mapper for extracting location fields from event tags.

Events describe themselves through tag entries, each an ordered list of
strings whose first element names the tag:

    ["g", "9q8yyk"]
    ["location", "Pier 97, New York"]
    ["price", "15", "EUR", "month"]

Only a closed set of tag names is interpreted. Everything else is left alone;
the complete tag list is passed through to the output untouched.
"""

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from geoevents.ingestion.normalization.geohash import GeohashPolicy, decode_geohash
from geoevents.schemas.event import ExtractedFields, Price, Tag

logger = logging.getLogger(__name__)


class TagName(str, Enum):
    """Tag names the mapper understands."""

    GEOHASH = "g"
    LOCATION = "location"
    TITLE = "title"
    SUMMARY = "summary"
    IMAGE = "image"
    STATUS = "status"
    PRICE = "price"


def parse_amount(raw: str) -> float:
    """
    Parse a numeric tag value.

    Returns NaN instead of raising when the value is not a number, so one
    bad listing never stops a batch.
    """
    try:
        return float(raw)
    except (TypeError, ValueError):
        return float("nan")


class TagMapper:
    """
    Maps an event's tag list to ExtractedFields.

    Repeated tags follow last-wins semantics. Tag values are not validated
    beyond what is needed to build typed fields; a non-numeric price amount
    becomes NaN.
    """

    def __init__(self, geohash_policy: GeohashPolicy = GeohashPolicy.SKIP):
        """
        Initialize the tag mapper.

        Args:
            geohash_policy: Handling of invalid characters in ``g`` tags
        """
        self.geohash_policy = GeohashPolicy(geohash_policy)
        self._handlers: Dict[TagName, Callable[[ExtractedFields, List[str]], None]] = {
            TagName.GEOHASH: self._map_geohash,
            TagName.LOCATION: self._map_location,
            TagName.TITLE: self._text_field("title"),
            TagName.SUMMARY: self._text_field("summary"),
            TagName.IMAGE: self._text_field("image"),
            TagName.STATUS: self._text_field("status"),
            TagName.PRICE: self._map_price,
        }

    def map_tags(self, tags: Sequence[Tag]) -> ExtractedFields:
        """
        Extract fields from a tag list.

        Args:
            tags: The event's tags; kept by reference on the result

        Returns:
            ExtractedFields with defaults for anything not present
        """
        fields = ExtractedFields(tags=tags)

        for tag in tags:
            if not tag:
                continue

            tag_name = self._tag_name(tag[0])
            if tag_name is None:
                continue

            self._handlers[tag_name](fields, list(tag[1:]))

        return fields

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _map_geohash(self, fields: ExtractedFields, values: List[str]) -> None:
        if not values or not values[0]:
            return

        coords = decode_geohash(values[0], self.geohash_policy)
        if coords is not None:
            fields.coordinates = coords

    @staticmethod
    def _map_location(fields: ExtractedFields, values: List[str]) -> None:
        fields.location = values[0] if values else None

    @staticmethod
    def _map_price(fields: ExtractedFields, values: List[str]) -> None:
        if len(values) < 2:
            return

        fields.price = Price(
            amount=parse_amount(values[0]),
            currency=values[1],
            frequency=values[2] if len(values) > 2 else None,
        )

    @staticmethod
    def _text_field(name: str) -> Callable[[ExtractedFields, List[str]], None]:
        def handler(fields: ExtractedFields, values: List[str]) -> None:
            setattr(fields, name, values[0] if values else "")

        return handler

    @staticmethod
    def _tag_name(raw: str) -> Optional[TagName]:
        try:
            return TagName(raw)
        except ValueError:
            return None
