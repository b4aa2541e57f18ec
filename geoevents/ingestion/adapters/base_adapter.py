"""
Base Source Adapter.

Abstract base class defining the interface for all source adapters.
Adapters own transport concerns (connections, subscriptions, timeouts) and
hand raw event dicts to the extraction pipeline.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime
import logging


class SourceType(str, Enum):
    """Type of data source."""
    RELAY = "relay"
    STATIC = "static"


@dataclass
class FetchResult:
    """
    Result of a data fetch operation.

    Provides a unified result format for every adapter.
    """
    success: bool
    source_type: SourceType
    raw_data: List[Dict[str, Any]] = field(default_factory=list)
    total_fetched: int = 0
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    fetch_started_at: Optional[datetime] = None
    fetch_ended_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        """Calculate fetch duration."""
        if self.fetch_started_at and self.fetch_ended_at:
            return (self.fetch_ended_at - self.fetch_started_at).total_seconds()
        return 0.0


@dataclass
class AdapterConfig:
    """
    Base configuration for source adapters.

    Extended by specific adapter types.
    """
    source_id: str
    source_type: SourceType
    request_timeout: float = 10.0


class BaseSourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses must implement:
        - fetch(): Fetch a batch of raw events
        - stream(): Yield raw events as they arrive
        - _validate_config(): Validate adapter-specific configuration
    """

    def __init__(self, config: AdapterConfig):
        """
        Initialize the adapter.

        Args:
            config: AdapterConfig with source-specific settings
        """
        self.config = config
        self.logger = logging.getLogger(f"adapter.{config.source_id}")
        self._validate_config()

    @property
    def source_type(self) -> SourceType:
        """Get the source type."""
        return self.config.source_type

    @property
    def source_id(self) -> str:
        """Get the source identifier."""
        return self.config.source_id

    @abstractmethod
    async def fetch(self, **kwargs) -> FetchResult:
        """
        Fetch raw events from the source.

        Args:
            **kwargs: Source-specific fetch parameters

        Returns:
            FetchResult with raw event dicts and metadata
        """
        pass

    @abstractmethod
    def stream(self, **kwargs) -> AsyncIterator[Dict[str, Any]]:
        """Yield raw event dicts as the source delivers them."""
        pass

    @abstractmethod
    def _validate_config(self) -> None:
        """
        Validate adapter-specific configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        pass

    async def close(self) -> None:
        """
        Release any resources held by the adapter.

        Override in subclasses that hold resources (e.g., HTTP sessions).
        """
        pass

    async def __aenter__(self) -> "BaseSourceAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
