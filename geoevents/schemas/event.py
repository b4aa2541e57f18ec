# geoevents/schemas/event.py
"""
Event schemas for the geo event extractor.

Raw relay events arrive as loosely structured records: an identity, a kind
number, free-text content and a list of tag entries (``["name", value, ...]``).
This module defines the raw input model, the value types derived from tags,
and the normalized location event handed to map/display consumers.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

Tag = List[str]


# ============================================================================
# RAW INPUT
# ============================================================================


class RawEvent(BaseModel):
    """
    Event record as delivered by a relay.

    The extractor only reads it. ``sig`` is carried through but never verified.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "id": "5c83da77af1dec6d7289834998ad7aafbd9e2191396d75ec3cc27f5a77226f36",
                "pubkey": "f7234bd4c1394dda46d09f35bd384dd30cc552ad5541990f98844fb06676e9ca",
                "created_at": 1718467200,
                "kind": 31923,
                "content": "Monthly meetup",
                "tags": [["g", "9q8yyk"], ["title", "Bitcoin Meetup"]],
            }
        },
    )

    id: str
    pubkey: str
    created_at: int
    kind: int = Field(ge=0)
    content: str = ""
    tags: List[Tag] = Field(default_factory=list)
    sig: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tag_values(cls, v):
        """
        Relays occasionally send numbers or nulls inside tags; keep everything
        as text. A null value becomes the empty string, which reads as absent.
        """
        if v is None:
            return []
        if not isinstance(v, (list, tuple)):
            return v
        return [
            ["" if item is None else str(item) for item in tag]
            if isinstance(tag, (list, tuple))
            else tag
            for tag in v
        ]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawEvent":
        """Build a RawEvent from a relay JSON object."""
        return cls.model_validate(data)


# ============================================================================
# VALUE TYPES
# ============================================================================


class Coordinates(BaseModel):
    """
    Geographic coordinates.

    Accepts ``lat``/``lng`` as input aliases and serializes to them, which is
    the shape map front-ends expect.
    """

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(
        validation_alias=AliasChoices("latitude", "lat"),
        serialization_alias="lat",
    )
    longitude: float = Field(
        validation_alias=AliasChoices("longitude", "lng", "lon"),
        serialization_alias="lng",
    )

    @field_validator("latitude")
    @classmethod
    def validate_latitude(cls, v):
        if not -90 <= v <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        return v

    @field_validator("longitude")
    @classmethod
    def validate_longitude(cls, v):
        if not -180 <= v <= 180:
            raise ValueError("Longitude must be between -180 and 180")
        return v

    @property
    def lat(self) -> float:
        return self.latitude

    @property
    def lng(self) -> float:
        return self.longitude


class Price(BaseModel):
    """
    Price advertised by a listing's ``price`` tag.

    ``amount`` is NaN when the tag value was not numeric.
    """

    model_config = ConfigDict(frozen=True)

    amount: float
    currency: str
    frequency: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        """False when the amount could not be parsed."""
        return math.isfinite(self.amount)


# ============================================================================
# EXTRACTION
# ============================================================================


class DropReason(str, Enum):
    """Why a raw record produced no location event."""

    NO_LOCATION = "no_location"
    INVALID_RECORD = "invalid_record"
    ERROR = "error"


@dataclass
class ExtractedFields:
    """
    Fields pulled out of a single event's tags.

    Built fresh for every event and consumed immediately by the pipeline.
    ``tags`` is the raw event's tag list itself, not a copy.
    """

    location: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    title: str = ""
    summary: str = ""
    image: str = ""
    status: str = ""
    price: Optional[Price] = None
    event_type: str = ""
    tags: List[Tag] = field(default_factory=list)

    @property
    def has_location(self) -> bool:
        return self.coordinates is not None or bool(self.location)


# ============================================================================
# OUTPUT
# ============================================================================


class NormalizedLocationEvent(BaseModel):
    """
    Unified location event combining the raw event's identity and content
    with resolved geospatial and descriptive metadata.

    Every instance is anchored: it has coordinates, a location string, or both.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    pubkey: str
    created_at: int
    kind: int
    content: str = ""

    location: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    title: str = ""
    summary: str = ""
    image: str = ""
    status: str = ""
    price: Optional[Price] = None
    event_type: str = Field(
        validation_alias=AliasChoices("event_type", "eventType"),
        serialization_alias="eventType",
    )
    tags: List[Tag] = Field(default_factory=list)

    @model_validator(mode="after")
    def require_location_anchor(self):
        if self.coordinates is None and not self.location:
            raise ValueError("Location event requires coordinates or a location")
        return self

    @classmethod
    def from_extraction(
        cls, raw: RawEvent, fields: ExtractedFields
    ) -> "NormalizedLocationEvent":
        """Assemble the output record from a raw event and its extracted fields."""
        return cls(
            id=raw.id,
            pubkey=raw.pubkey,
            created_at=raw.created_at,
            kind=raw.kind,
            content=raw.content,
            location=fields.location,
            coordinates=fields.coordinates,
            title=fields.title,
            summary=fields.summary,
            image=fields.image,
            status=fields.status,
            price=fields.price,
            event_type=fields.event_type,
            tags=fields.tags,
        )

    def to_display_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used by map front-ends."""
        return self.model_dump(by_alias=True)
