"""
Relay Source Adapter.

Adapter for fetching events from Nostr relays over websockets. Each query
opens one subscription per filter (``["REQ", id, filter]``), collects
``EVENT`` messages until the relay signals end of stored events (``EOSE``),
then closes the subscription.

Events are de-duplicated by id across relays. There are no retries and no
signature checks; relays that fail are logged and reported in the result.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import aiohttp

from geoevents.configs.config import Config
from geoevents.configs.settings import get_settings

from .base_adapter import AdapterConfig, BaseSourceAdapter, FetchResult, SourceType

logger = logging.getLogger(__name__)


def parse_relay_message(data: str) -> list | None:
    """
    Decode a relay message.

    Returns the message list (``["EVENT", sub_id, {...}]`` etc.) or None when
    the payload is not a well-formed relay message.
    """
    try:
        message = json.loads(data)
    except (TypeError, ValueError):
        return None

    if not isinstance(message, list) or not message or not isinstance(message[0], str):
        return None
    return message


def new_subscription_id() -> str:
    """Generate a subscription id (relays accept up to 64 chars)."""
    return uuid.uuid4().hex[:16]


@dataclass
class RelayAdapterConfig(AdapterConfig):
    """Configuration for relay adapters."""

    relay_urls: list[str] = field(default_factory=list)
    filters: list[dict[str, Any]] = field(default_factory=list)
    stream_filters: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        """Set source type to RELAY."""
        self.source_type = SourceType.RELAY

    @classmethod
    def from_settings(
        cls,
        source_id: str = "nostr",
        categories: list[str] | None = None,
    ) -> "RelayAdapterConfig":
        """Build a config from application settings and the ingestion YAML."""
        settings = get_settings()
        return cls(
            source_id=source_id,
            source_type=SourceType.RELAY,
            request_timeout=settings.REQUEST_TIMEOUT,
            relay_urls=list(settings.RELAY_URLS),
            filters=Config.build_filters(categories),
            stream_filters=Config.stream_filters(categories),
        )


@dataclass
class RelayQueryResult:
    """Events and outcome of querying a single relay."""

    relay_url: str
    events: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None
    timed_out: bool = False


class RelayAdapter(BaseSourceAdapter):
    """
    Adapter for Nostr relays.

    Supports:
    - Batch queries across all configured relays (``fetch``)
    - Live subscriptions merged across relays (``stream``)
    - De-duplication by event id
    """

    def __init__(self, config: RelayAdapterConfig):
        """
        Initialize the relay adapter.

        Args:
            config: RelayAdapterConfig with relay URLs and filters
        """
        self._session: aiohttp.ClientSession | None = None
        super().__init__(config)

    @property
    def relay_config(self) -> RelayAdapterConfig:
        """Get typed config."""
        return self.config  # type: ignore[return-value]

    def _validate_config(self) -> None:
        """Validate relay configuration."""
        if not self.relay_config.relay_urls:
            raise ValueError("Relay adapter requires at least one relay URL")
        for url in self.relay_config.relay_urls:
            if not url.startswith(("ws://", "wss://")):
                raise ValueError(f"Relay URL must use ws:// or wss://: {url}")

    def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session used for websocket connections."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    # ========================================================================
    # BATCH
    # ========================================================================

    async def fetch(self, **kwargs) -> FetchResult:
        """
        Query every relay with every configured filter.

        Args:
            **kwargs: Extra filter keys merged into each filter
                (e.g. ``since``, ``until``, ``authors``)

        Returns:
            FetchResult with de-duplicated raw events
        """
        fetch_started = datetime.now(UTC)
        filters = [{**kwargs, **f} for f in self.relay_config.filters]
        errors: list[str] = []
        metadata: dict[str, Any] = {"relays_queried": 0, "relays_failed": 0, "per_relay": {}}

        if not filters:
            return FetchResult(
                success=False,
                source_type=SourceType.RELAY,
                errors=["No filters configured"],
                fetch_started_at=fetch_started,
                fetch_ended_at=datetime.now(UTC),
            )

        session = self._get_session()
        results = await asyncio.gather(
            *(
                self._query_relay(session, url, filters)
                for url in self.relay_config.relay_urls
            )
        )

        seen: set[str] = set()
        all_data: list[dict[str, Any]] = []
        duplicates = 0
        for result in results:
            metadata["relays_queried"] += 1
            metadata["per_relay"][result.relay_url] = len(result.events)
            if result.error:
                metadata["relays_failed"] += 1
                errors.append(f"{result.relay_url}: {result.error}")

            for event in result.events:
                # Events without an id pass through; the pipeline rejects them
                event_id = event.get("id")
                if event_id is not None:
                    if event_id in seen:
                        duplicates += 1
                        continue
                    seen.add(event_id)
                all_data.append(event)

        metadata["duplicates_dropped"] = duplicates
        self.logger.info(
            f"Fetched {len(all_data)} unique events from "
            f"{metadata['relays_queried'] - metadata['relays_failed']}/"
            f"{metadata['relays_queried']} relays"
        )

        return FetchResult(
            success=metadata["relays_failed"] < metadata["relays_queried"],
            source_type=SourceType.RELAY,
            raw_data=all_data,
            total_fetched=len(all_data),
            errors=errors,
            metadata=metadata,
            fetch_started_at=fetch_started,
            fetch_ended_at=datetime.now(UTC),
        )

    async def _query_relay(
        self,
        session: aiohttp.ClientSession,
        relay_url: str,
        filters: list[dict[str, Any]],
    ) -> RelayQueryResult:
        """
        Run one subscription per filter on a relay and collect stored events.

        Returns whatever arrived before the timeout; never raises.
        """
        result = RelayQueryResult(relay_url=relay_url)
        pending: set[str] = set()

        try:
            async with asyncio.timeout(self.relay_config.request_timeout):
                async with session.ws_connect(relay_url) as ws:
                    for relay_filter in filters:
                        sub_id = new_subscription_id()
                        pending.add(sub_id)
                        await ws.send_json(["REQ", sub_id, relay_filter])

                    while pending:
                        msg = await ws.receive()
                        if msg.type != aiohttp.WSMsgType.TEXT:
                            if msg.type in (
                                aiohttp.WSMsgType.CLOSE,
                                aiohttp.WSMsgType.CLOSED,
                                aiohttp.WSMsgType.CLOSING,
                                aiohttp.WSMsgType.ERROR,
                            ):
                                result.error = "connection closed before EOSE"
                                break
                            continue

                        finished = self._handle_message(
                            relay_url, msg.data, pending, result.events
                        )
                        if finished:
                            pending.discard(finished)
                            if not ws.closed:
                                await ws.send_json(["CLOSE", finished])

        except TimeoutError:
            result.timed_out = True
            logger.warning(
                f"Relay {relay_url} timed out with {len(pending)} open subscriptions"
            )
            if not result.events:
                result.error = "timeout"
        except (aiohttp.ClientError, OSError) as e:
            logger.warning(f"Relay {relay_url} query failed: {e}")
            result.error = str(e)

        return result

    def _handle_message(
        self,
        relay_url: str,
        data: str,
        subscriptions: set[str],
        events: list[dict[str, Any]],
    ) -> str | None:
        """
        Apply one relay message.

        Appends events for known subscriptions to ``events``.

        Returns:
            The subscription id that finished (EOSE/CLOSED), else None
        """
        message = parse_relay_message(data)
        if message is None:
            logger.debug(f"Ignoring malformed message from {relay_url}")
            return None

        msg_type = message[0]
        sub_id = message[1] if len(message) > 1 else None

        if msg_type == "EVENT":
            if sub_id in subscriptions and len(message) > 2 and isinstance(message[2], dict):
                events.append(message[2])
            return None

        if msg_type == "EOSE":
            return sub_id if sub_id in subscriptions else None

        if msg_type == "CLOSED":
            reason = message[2] if len(message) > 2 else ""
            logger.info(f"Relay {relay_url} closed subscription {sub_id}: {reason}")
            return sub_id if sub_id in subscriptions else None

        if msg_type == "NOTICE":
            logger.info(f"Relay {relay_url} notice: {sub_id}")

        return None

    # ========================================================================
    # STREAMING
    # ========================================================================

    async def stream(
        self, filters: list[dict[str, Any]] | None = None
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Subscribe to every relay and yield events as they arrive.

        Events already yielded (by id) are skipped. The stream ends when all
        relay connections have ended; closing the generator cancels them.

        Args:
            filters: Subscription filters (default: configured stream filters)
        """
        filters = filters if filters is not None else self.relay_config.stream_filters
        queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        session = self._get_session()

        tasks = [
            asyncio.create_task(self._subscribe_relay(session, url, filters, queue))
            for url in self.relay_config.relay_urls
        ]
        active = len(tasks)
        seen: set[str] = set()

        try:
            while active:
                event = await queue.get()
                if event is None:
                    active -= 1
                    continue

                event_id = event.get("id")
                if event_id is not None:
                    if event_id in seen:
                        continue
                    seen.add(event_id)
                yield event
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _subscribe_relay(
        self,
        session: aiohttp.ClientSession,
        relay_url: str,
        filters: list[dict[str, Any]],
        queue: asyncio.Queue,
    ) -> None:
        """Forward live events from one relay into ``queue``; None marks the end."""
        sub_id = new_subscription_id()
        subscriptions = {sub_id}
        try:
            async with session.ws_connect(relay_url) as ws:
                await ws.send_json(["REQ", sub_id, *filters])
                logger.info(f"Subscribed to {relay_url} ({sub_id})")

                async for msg in ws:
                    if msg.type != aiohttp.WSMsgType.TEXT:
                        if msg.type == aiohttp.WSMsgType.ERROR:
                            logger.warning(f"Relay {relay_url} error: {ws.exception()}")
                            break
                        continue

                    events: list[dict[str, Any]] = []
                    closed = self._handle_message(relay_url, msg.data, subscriptions, events)
                    for event in events:
                        await queue.put(event)

                    # EOSE only ends the stored-event backlog; a CLOSED ends the subscription
                    message = parse_relay_message(msg.data)
                    if closed and message and message[0] == "CLOSED":
                        break

        except (aiohttp.ClientError, OSError) as e:
            logger.warning(f"Relay {relay_url} subscription failed: {e}")
        finally:
            queue.put_nowait(None)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
