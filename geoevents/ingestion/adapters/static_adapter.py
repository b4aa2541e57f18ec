"""
Static Source Adapter.

Serves events that are already in memory or in a JSON file (a relay dump,
a test fixture). Useful for replaying captured data through the pipeline.
"""

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .base_adapter import AdapterConfig, BaseSourceAdapter, FetchResult, SourceType


@dataclass
class StaticAdapterConfig(AdapterConfig):
    """Configuration for static adapters."""

    events: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        """Set source type to STATIC."""
        self.source_type = SourceType.STATIC


class StaticAdapter(BaseSourceAdapter):
    """Adapter returning a fixed list of raw events."""

    @classmethod
    def from_file(cls, path: str | Path, source_id: str | None = None) -> "StaticAdapter":
        """
        Load events from a JSON file.

        The file holds either a list of event objects or relay messages of
        the form ``["EVENT", sub_id, {...}]``.
        """
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)

        if not isinstance(payload, list):
            raise ValueError(f"Expected a JSON list of events in {path}")

        events = []
        for item in payload:
            if isinstance(item, list) and len(item) >= 3 and item[0] == "EVENT":
                item = item[2]
            if isinstance(item, dict):
                events.append(item)

        return cls(
            StaticAdapterConfig(
                source_id=source_id or path.stem,
                source_type=SourceType.STATIC,
                events=events,
            )
        )

    @property
    def static_config(self) -> StaticAdapterConfig:
        """Get typed config."""
        return self.config  # type: ignore[return-value]

    def _validate_config(self) -> None:
        """Static adapters accept any list of dicts."""
        if not all(isinstance(e, dict) for e in self.static_config.events):
            raise ValueError("Static adapter events must be dicts")

    async def fetch(self, **kwargs) -> FetchResult:
        """Return the configured events, optionally restricted to ``kinds``."""
        started = datetime.now(UTC)
        events = self.static_config.events
        kinds = kwargs.get("kinds")
        if kinds is not None:
            wanted = set(kinds)
            events = [e for e in events if e.get("kind") in wanted]

        return FetchResult(
            success=True,
            source_type=SourceType.STATIC,
            raw_data=list(events),
            total_fetched=len(events),
            fetch_started_at=started,
            fetch_ended_at=datetime.now(UTC),
        )

    async def stream(self, **kwargs) -> AsyncIterator[dict[str, Any]]:
        """Yield the configured events one at a time."""
        for event in self.static_config.events:
            yield event
