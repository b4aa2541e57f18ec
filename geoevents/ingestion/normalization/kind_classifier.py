"""
Kind Classifier.

Maps numeric event kinds to human-readable category labels.
"""

from enum import IntEnum
from typing import Dict


class EventKind(IntEnum):
    """Event kinds that carry location data."""

    NOTE = 1
    MARKETPLACE_STALL = 30017
    MARKETPLACE_PRODUCT = 30018
    LIVE_STREAM = 30311
    MEETING_SPACE = 30312
    MEETING_ROOM = 30313
    CLASSIFIED_LISTING = 30402
    DRAFT_LISTING = 30403
    CALENDAR_DATE_EVENT = 31922
    CALENDAR_TIME_EVENT = 31923
    CALENDAR = 31924
    CALENDAR_RSVP = 31925


KIND_LABELS: Dict[int, str] = {
    EventKind.NOTE: "Note",
    EventKind.MARKETPLACE_STALL: "Marketplace Stall",
    EventKind.MARKETPLACE_PRODUCT: "Marketplace Product",
    EventKind.LIVE_STREAM: "Live Stream",
    EventKind.MEETING_SPACE: "Meeting Space",
    EventKind.MEETING_ROOM: "Meeting Room",
    EventKind.CLASSIFIED_LISTING: "Classified Listing",
    EventKind.DRAFT_LISTING: "Draft Listing",
    EventKind.CALENDAR_DATE_EVENT: "Calendar Event (Date)",
    EventKind.CALENDAR_TIME_EVENT: "Calendar Event (Time)",
    EventKind.CALENDAR: "Calendar",
    EventKind.CALENDAR_RSVP: "Calendar RSVP",
}


def classify_kind(kind: int) -> str:
    """
    Return the display label for an event kind.

    Unknown kinds get a synthesized label instead of an error.

    Example:
        >>> classify_kind(30402)
        'Classified Listing'
        >>> classify_kind(99999)
        'Event (99999)'
    """
    return KIND_LABELS.get(kind, f"Event ({kind})")


def is_known_kind(kind: int) -> bool:
    """True when the kind has an entry in the label table."""
    return kind in KIND_LABELS
