"""
Location Event Pipeline.

Turns raw relay events into normalized location events:

    SourceAdapter → RawEvent → TagMapper → coordinates → kind label → title
                  → NormalizedLocationEvent

Records are processed independently. Output keeps input order; records
without a geohash, parseable coordinates or a location string are dropped.
A malformed record never aborts a batch.
"""

import logging
import uuid
from collections import Counter
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import ValidationError

from geoevents.configs.settings import get_settings
from geoevents.ingestion.adapters import BaseSourceAdapter, SourceType
from geoevents.ingestion.deduplication import DeduplicationStrategy, get_deduplicator
from geoevents.ingestion.normalization.geohash import GeohashPolicy
from geoevents.ingestion.normalization.kind_classifier import classify_kind
from geoevents.ingestion.normalization.location_parser import LocationParser
from geoevents.ingestion.normalization.tag_mapper import TagMapper
from geoevents.schemas.event import (
    DropReason,
    NormalizedLocationEvent,
    RawEvent,
)

TITLE_PREVIEW_LENGTH = 50

RawInput = RawEvent | dict[str, Any]
DropCallback = Callable[[RawInput, DropReason], None]


class PipelineStatus(str, Enum):
    """Status of a pipeline execution."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


@dataclass
class PipelineConfig:
    """Configuration for a location event pipeline."""

    source_name: str = "nostr"
    geohash_policy: GeohashPolicy = GeohashPolicy.SKIP
    max_workers: int = 1
    deduplicate: bool = True
    deduplication_strategy: str = DeduplicationStrategy.COMPOSITE.value
    title_preview_length: int = TITLE_PREVIEW_LENGTH

    @classmethod
    def from_settings(cls, source_name: str = "nostr") -> "PipelineConfig":
        """Build a config from application settings."""
        settings = get_settings()
        return cls(
            source_name=source_name,
            geohash_policy=GeohashPolicy(settings.GEOHASH_POLICY),
            max_workers=settings.EXTRACTION_WORKERS,
        )


@dataclass
class DroppedEvent:
    """A raw record that produced no location event."""

    event_id: str | None
    reason: DropReason


@dataclass
class PipelineExecutionResult:
    """Result of a pipeline execution."""

    status: PipelineStatus
    source_name: str
    source_type: SourceType
    execution_id: str
    started_at: datetime
    ended_at: datetime
    total_events_processed: int = 0
    successful_events: int = 0
    events: list[NormalizedLocationEvent] = field(default_factory=list)
    dropped: list[DroppedEvent] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        """Calculate execution duration."""
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def dropped_events(self) -> int:
        return len(self.dropped)

    @property
    def drop_reasons(self) -> dict[str, int]:
        """Count of dropped records per reason."""
        return dict(Counter(d.reason.value for d in self.dropped))


class LocationEventPipeline:
    """
    Extracts normalized location events from raw relay events.

    Extraction workflow per record:
    1. Map tags to fields (geohash, location, title, price, ...)
    2. Resolve coordinates: geohash first, then the location string
    3. Drop the record if it has neither coordinates nor a location
    4. Classify the event kind
    5. Synthesize a title from content or kind label when missing
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        tag_mapper: TagMapper | None = None,
        location_parser: LocationParser | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: PipelineConfig (default: built from settings)
            tag_mapper: Tag mapper override
            location_parser: Coordinate text parser override
        """
        self.config = config or PipelineConfig.from_settings()
        self.tag_mapper = tag_mapper or TagMapper(self.config.geohash_policy)
        self.location_parser = location_parser or LocationParser()
        self.logger = logging.getLogger(f"pipeline.{self.config.source_name}")

    # ========================================================================
    # SINGLE RECORD
    # ========================================================================

    def extract_event(self, raw: RawInput) -> NormalizedLocationEvent | None:
        """
        Extract a location event from one raw event.

        Returns:
            NormalizedLocationEvent, or None if the record has no location
        """
        event, _ = self.extract_event_with_reason(raw)
        return event

    def extract_event_with_reason(
        self, raw: RawInput
    ) -> tuple[NormalizedLocationEvent | None, DropReason | None]:
        """
        Extract a location event and report why it was dropped, if it was.

        Returns:
            (event, None) on success, (None, reason) when dropped
        """
        if not isinstance(raw, RawEvent):
            raw = self.parse_raw_event(raw)
            if raw is None:
                return None, DropReason.INVALID_RECORD

        try:
            return self._extract(raw)
        except Exception as e:
            self.logger.error(f"Failed to extract event {raw.id}: {e}", exc_info=True)
            return None, DropReason.ERROR

    def _extract(
        self, raw: RawEvent
    ) -> tuple[NormalizedLocationEvent | None, DropReason | None]:
        fields = self.tag_mapper.map_tags(raw.tags)

        if fields.coordinates is None and fields.location:
            fields.coordinates = self.location_parser.parse_coordinates(fields.location)

        if not fields.has_location:
            self.logger.debug(f"Dropping event {raw.id}: no location data")
            return None, DropReason.NO_LOCATION

        fields.event_type = classify_kind(raw.kind)
        if not fields.title:
            fields.title = self.generate_title(raw, fields.event_type)

        return NormalizedLocationEvent.from_extraction(raw, fields), None

    def generate_title(self, raw: RawEvent, event_type: str) -> str:
        """Use the start of the content as title, or the kind label if empty."""
        preview = raw.content[: self.config.title_preview_length]
        return preview or event_type

    def parse_raw_event(self, data: dict[str, Any]) -> RawEvent | None:
        """
        Validate a raw event dict.

        Returns:
            RawEvent, or None when the dict is not a valid event
        """
        try:
            return RawEvent.from_dict(data)
        except (ValidationError, TypeError) as e:
            event_id = data.get("id") if isinstance(data, dict) else None
            self.logger.warning(f"Invalid raw event {event_id}: {e}")
            return None

    # ========================================================================
    # BATCH
    # ========================================================================

    def extract_events(
        self,
        raw_events: Iterable[RawInput],
        on_drop: DropCallback | None = None,
    ) -> list[NormalizedLocationEvent]:
        """
        Extract location events from a batch, keeping input order.

        Args:
            raw_events: Raw events (RawEvent instances or relay dicts)
            on_drop: Called with (raw, reason) for every dropped record

        Returns:
            Extracted events; dropped records are omitted
        """
        raw_list = list(raw_events)
        outcomes = self._map_records(raw_list)

        events = []
        for raw, (event, reason) in zip(raw_list, outcomes):
            if event is not None:
                events.append(event)
            elif on_drop is not None:
                on_drop(raw, reason)

        self.logger.debug(f"Extracted {len(events)}/{len(raw_list)} location events")
        return events

    def _map_records(
        self, raw_list: list[RawInput]
    ) -> list[tuple[NormalizedLocationEvent | None, DropReason | None]]:
        """Run extraction over all records; thread pool map preserves order."""
        if self.config.max_workers <= 1 or len(raw_list) <= 1:
            return [self.extract_event_with_reason(raw) for raw in raw_list]

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            return list(executor.map(self.extract_event_with_reason, raw_list))

    # ========================================================================
    # SOURCE INTEGRATION
    # ========================================================================

    async def fetch_location_events(
        self, adapter: BaseSourceAdapter, **kwargs
    ) -> PipelineExecutionResult:
        """
        Fetch raw events through an adapter and extract location events.

        Args:
            adapter: Source adapter to fetch from
            **kwargs: Parameters passed to the adapter's fetch method

        Returns:
            PipelineExecutionResult with summary and events
        """
        execution_id = self._generate_execution_id()
        started_at = datetime.now(UTC)
        self.logger.info(f"Starting pipeline execution: {execution_id}")

        fetch_result = await adapter.fetch(**kwargs)
        if not fetch_result.success:
            self.logger.error(f"Fetch failed: {fetch_result.errors}")
            return PipelineExecutionResult(
                status=PipelineStatus.FAILED,
                source_name=self.config.source_name,
                source_type=adapter.source_type,
                execution_id=execution_id,
                started_at=started_at,
                ended_at=datetime.now(UTC),
                errors=[{"error": e, "stage": "fetch"} for e in fetch_result.errors],
                metadata=fetch_result.metadata,
            )

        self.logger.info(f"Fetched {fetch_result.total_fetched} raw events")

        dropped: list[DroppedEvent] = []

        def record_drop(raw: RawInput, reason: DropReason) -> None:
            event_id = raw.id if isinstance(raw, RawEvent) else raw.get("id")
            dropped.append(DroppedEvent(event_id=event_id, reason=reason))

        events = self.extract_events(fetch_result.raw_data, on_drop=record_drop)

        if self.config.deduplicate and events:
            deduplicator = get_deduplicator(
                DeduplicationStrategy(self.config.deduplication_strategy)
            )
            before_count = len(events)
            events = deduplicator.deduplicate(events)
            self.logger.info(f"Deduplication: {before_count} -> {len(events)} events")

        failures = [d for d in dropped if d.reason is not DropReason.NO_LOCATION]
        status = PipelineStatus.PARTIAL_SUCCESS if failures else PipelineStatus.SUCCESS

        result = PipelineExecutionResult(
            status=status,
            source_name=self.config.source_name,
            source_type=adapter.source_type,
            execution_id=execution_id,
            started_at=started_at,
            ended_at=datetime.now(UTC),
            total_events_processed=len(fetch_result.raw_data),
            successful_events=len(events),
            events=events,
            dropped=dropped,
            errors=[{"error": e, "stage": "fetch"} for e in fetch_result.errors],
            metadata={
                **fetch_result.metadata,
                "fetch_duration_s": fetch_result.duration_seconds,
            },
        )

        self.logger.info(
            f"Pipeline completed: {result.successful_events} location events from "
            f"{result.total_events_processed} raw events "
            f"(dropped: {result.drop_reasons})"
        )
        return result

    async def subscribe_location_events(
        self,
        adapter: BaseSourceAdapter,
        callback: Callable[[NormalizedLocationEvent], None],
        **kwargs,
    ) -> int:
        """
        Stream raw events from an adapter and deliver extracted ones.

        The callback only sees events that have location data.

        Returns:
            Number of events delivered once the stream ends
        """
        delivered = 0
        async for raw in adapter.stream(**kwargs):
            event = self.extract_event(raw)
            if event is not None:
                callback(event)
                delivered += 1
        return delivered

    def _generate_execution_id(self) -> str:
        """Generate unique execution identifier."""
        timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        unique_id = str(uuid.uuid4())[:8]
        return f"{self.config.source_name}_{timestamp}_{unique_id}"
