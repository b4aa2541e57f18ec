#!/usr/bin/env python3
"""
Display location events fetched from relays (or replayed from a JSON dump).

Usage:
    python scripts/show_location_events.py
    python scripts/show_location_events.py --category calendar --category classifieds
    python scripts/show_location_events.py --input dump.json
"""

import argparse
import asyncio
import math

from geoevents.configs.logging import configure_logging
from geoevents.ingestion.adapters import (
    BaseSourceAdapter,
    RelayAdapter,
    RelayAdapterConfig,
    StaticAdapter,
)
from geoevents.ingestion.location_pipeline import LocationEventPipeline


def build_adapter(args: argparse.Namespace) -> BaseSourceAdapter:
    if args.input:
        return StaticAdapter.from_file(args.input)
    config = RelayAdapterConfig.from_settings(categories=args.category)
    if args.relay:
        config.relay_urls = args.relay
    return RelayAdapter(config)


async def run(args: argparse.Namespace) -> None:
    pipeline = LocationEventPipeline()
    fetch_kwargs = {"since": args.since} if args.since else {}

    async with build_adapter(args) as adapter:
        result = await pipeline.fetch_location_events(adapter, **fetch_kwargs)

    print("\n" + "=" * 90)
    print("LOCATION EVENTS")
    print("=" * 90)

    for i, event in enumerate(result.events[: args.limit], 1):
        print(f"{i:3d}. {event.title}")
        print(f"     Type: {event.event_type}")
        if event.coordinates:
            print(f"     Coordinates: {event.coordinates.lat:.5f}, {event.coordinates.lng:.5f}")
        if event.location:
            print(f"     Location: {event.location}")
        if event.price and math.isfinite(event.price.amount):
            frequency = f" / {event.price.frequency}" if event.price.frequency else ""
            print(f"     Price: {event.price.amount:g} {event.price.currency}{frequency}")
        print()

    print("=" * 90)
    print(f"Status: {result.status.value}")
    print(f"Events: {result.successful_events} of {result.total_events_processed} raw")
    print(f"Dropped: {result.drop_reasons}")
    print(f"Duration: {result.duration_seconds:.2f}s")
    for error in result.errors:
        print(f"Error ({error['stage']}): {error['error']}")
    print("=" * 90)


def main() -> None:
    parser = argparse.ArgumentParser(description="Show location events from relays")
    parser.add_argument("--category", action="append", help="Category from ingestion.yaml")
    parser.add_argument("--relay", action="append", help="Relay URL (repeatable)")
    parser.add_argument("--input", help="JSON file of raw events instead of relays")
    parser.add_argument("--since", type=int, help="Only events created after this timestamp")
    parser.add_argument("--limit", type=int, default=50, help="Max events to print")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    configure_logging(args.log_level)
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
