"""
Shared pytest fixtures for the geo event extractor test suite.

Provides reusable fixtures for creating RawEvent test objects.
"""

import uuid
from typing import List, Optional

import pytest

from geoevents.configs.config import Config
from geoevents.configs.settings import get_settings
from geoevents.ingestion.location_pipeline import LocationEventPipeline, PipelineConfig
from geoevents.schemas.event import RawEvent


@pytest.fixture(autouse=True)
def clear_config_caches():
    """Settings and YAML config are cached; start every test fresh."""
    get_settings.cache_clear()
    Config.load_ingestion_config.cache_clear()
    yield
    get_settings.cache_clear()
    Config.load_ingestion_config.cache_clear()


@pytest.fixture
def create_raw_event():
    """
    Return a function that creates RawEvent objects with sensible defaults.

    All defaults can be overridden via keyword arguments.

    Example:
        event = create_raw_event(kind=30402, tags=[["g", "u4pruydqqvj"]])
    """

    def _create_raw_event(
        tags: Optional[List[List[str]]] = None,
        content: str = "",
        kind: int = 1,
        **kwargs,
    ) -> RawEvent:
        defaults = {
            "id": uuid.uuid4().hex,
            "pubkey": "f7234bd4c1394dda46d09f35bd384dd30cc552ad5541990f98844fb06676e9ca",
            "created_at": 1718467200,
            "kind": kind,
            "content": content,
            "tags": tags if tags is not None else [],
        }
        defaults.update(kwargs)
        return RawEvent(**defaults)

    return _create_raw_event


@pytest.fixture
def pipeline():
    """Pipeline with explicit defaults, independent of environment settings."""
    return LocationEventPipeline(PipelineConfig(source_name="test"))


@pytest.fixture
def sample_raw_events(create_raw_event):
    """
    Return a mixed batch of raw events.

    Contains:
    - a calendar event with a geohash and title
    - a note without any location (dropped)
    - a classified listing with a coordinate location string and price
    - a live stream with a plain-text location only
    """
    return [
        create_raw_event(
            id="calendar",
            kind=31923,
            content="Monthly meetup",
            tags=[["g", "9q8yyk"], ["title", "Bitcoin Meetup"], ["d", "meetup-1"]],
        ),
        create_raw_event(
            id="note",
            kind=1,
            content="gm",
            tags=[["t", "nostr"]],
        ),
        create_raw_event(
            id="listing",
            kind=30402,
            content="Bike for sale",
            tags=[
                ["location", "40.7128, -74.0060"],
                ["price", "150", "USD"],
                ["d", "bike"],
            ],
        ),
        create_raw_event(
            id="stream",
            kind=30311,
            content="",
            tags=[["location", "Berlin"], ["status", "live"]],
        ),
    ]
