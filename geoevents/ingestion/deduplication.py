"""
Module for location event deduplication strategies.

Provides multiple deduplication strategies using the Strategy pattern:
- EventIdDeduplicator: Same event id seen from several relays
- ReplaceableEventDeduplicator: Keep the newest version of addressable events
- CompositeDeduplicator: Chain multiple strategies
"""

from abc import ABC, abstractmethod
from enum import Enum

from geoevents.schemas.event import NormalizedLocationEvent

# Addressable (parameterized replaceable) kinds are identified by
# (pubkey, kind, "d" tag) rather than by event id.
ADDRESSABLE_KIND_MIN = 30000
ADDRESSABLE_KIND_MAX = 39999


class DeduplicationStrategy(str, Enum):
    """Available deduplication strategies."""

    EVENT_ID = "event_id"
    REPLACEABLE = "replaceable"
    COMPOSITE = "composite"


class EventDeduplicator(ABC):
    """Abstract base for deduplication strategies."""

    @abstractmethod
    def deduplicate(
        self, events: list[NormalizedLocationEvent]
    ) -> list[NormalizedLocationEvent]:
        """Deduplicate events and return unique set."""
        pass


class EventIdDeduplicator(EventDeduplicator):
    """Match by event id (exact)."""

    def deduplicate(
        self, events: list[NormalizedLocationEvent]
    ) -> list[NormalizedLocationEvent]:
        """
        Deduplicate events by id.

        Returns:
            List of unique events (first occurrence kept)
        """
        seen = set()
        unique_events = []

        for event in events:
            if event.id not in seen:
                seen.add(event.id)
                unique_events.append(event)

        return unique_events


def address_of(event: NormalizedLocationEvent) -> tuple[str, int, str] | None:
    """
    Return the (pubkey, kind, d-tag) address of an addressable event.

    Returns None for kinds outside the addressable range.
    """
    if not ADDRESSABLE_KIND_MIN <= event.kind <= ADDRESSABLE_KIND_MAX:
        return None

    d_tag = ""
    for tag in event.tags:
        if len(tag) >= 2 and tag[0] == "d":
            d_tag = tag[1]
            break
    return (event.pubkey, event.kind, d_tag)


class ReplaceableEventDeduplicator(EventDeduplicator):
    """
    Keep only the newest version of each addressable event.

    Authors republish listings and calendar entries under the same address;
    older versions are superseded. Ties on ``created_at`` keep the lowest id.
    Non-addressable events pass through unchanged.
    """

    def deduplicate(
        self, events: list[NormalizedLocationEvent]
    ) -> list[NormalizedLocationEvent]:
        """
        Deduplicate addressable events by address.

        Returns:
            List of events in input order, superseded versions removed
        """
        newest: dict[tuple[str, int, str], NormalizedLocationEvent] = {}

        for event in events:
            address = address_of(event)
            if address is None:
                continue
            current = newest.get(address)
            if current is None or (event.created_at, current.id) > (
                current.created_at,
                event.id,
            ):
                newest[address] = event

        unique_events = []
        for event in events:
            address = address_of(event)
            if address is None or newest[address] is event:
                unique_events.append(event)

        return unique_events


class CompositeDeduplicator(EventDeduplicator):
    """Chain multiple deduplication strategies."""

    def __init__(self, strategies: list[EventDeduplicator] | None = None):
        """
        Initialize with a list of deduplication strategies.

        Args:
            strategies: Deduplicators applied in order
                (default: event id, then replaceable)
        """
        self.strategies = strategies or [
            EventIdDeduplicator(),
            ReplaceableEventDeduplicator(),
        ]

    def deduplicate(
        self, events: list[NormalizedLocationEvent]
    ) -> list[NormalizedLocationEvent]:
        """Apply each strategy in sequence."""
        result = events
        for strategy in self.strategies:
            result = strategy.deduplicate(result)
        return result


def get_deduplicator(
    strategy: DeduplicationStrategy = DeduplicationStrategy.COMPOSITE,
) -> EventDeduplicator:
    """
    Return a deduplicator instance for the given strategy.

    Raises:
        ValueError: If the strategy is unknown
    """
    strategy = DeduplicationStrategy(strategy)
    if strategy is DeduplicationStrategy.EVENT_ID:
        return EventIdDeduplicator()
    if strategy is DeduplicationStrategy.REPLACEABLE:
        return ReplaceableEventDeduplicator()
    return CompositeDeduplicator()
