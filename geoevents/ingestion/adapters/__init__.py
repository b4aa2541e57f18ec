"""
Source Adapters for Event Ingestion.

Adapters provide a unified interface for fetching raw events:
- Relay sources (Nostr websockets)
- Static sources (in-memory lists, JSON dumps)

Usage:
    from geoevents.ingestion.adapters import RelayAdapter, RelayAdapterConfig

    adapter = RelayAdapter(RelayAdapterConfig.from_settings())
    result = await adapter.fetch(since=1718000000)
"""

from .base_adapter import AdapterConfig, BaseSourceAdapter, FetchResult, SourceType
from .relay_adapter import RelayAdapter, RelayAdapterConfig, RelayQueryResult
from .static_adapter import StaticAdapter, StaticAdapterConfig

__all__ = [
    "AdapterConfig",
    "BaseSourceAdapter",
    "FetchResult",
    "RelayAdapter",
    "RelayAdapterConfig",
    "RelayQueryResult",
    "SourceType",
    "StaticAdapter",
    "StaticAdapterConfig",
]
