"""Schemas for raw relay events and normalized location events."""

from .event import (
    Coordinates,
    DropReason,
    ExtractedFields,
    NormalizedLocationEvent,
    Price,
    RawEvent,
    Tag,
)

__all__ = [
    "Coordinates",
    "DropReason",
    "ExtractedFields",
    "NormalizedLocationEvent",
    "Price",
    "RawEvent",
    "Tag",
]
