"""
Unit tests for the relay_adapter module.

Tests for RelayAdapterConfig, message handling and RelayAdapter fetch/stream
with the websocket layer mocked out.
"""

import asyncio
import dataclasses
import json
from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from geoevents.ingestion.adapters.base_adapter import SourceType
from geoevents.ingestion.adapters.relay_adapter import (
    RelayAdapter,
    RelayAdapterConfig,
    RelayQueryResult,
    new_subscription_id,
    parse_relay_message,
)

# =============================================================================
# TEST DATA
# =============================================================================

RELAYS = ["wss://relay.one", "wss://relay.two"]


def raw_event(event_id, kind=1):
    return {
        "id": event_id,
        "pubkey": "pk",
        "created_at": 1,
        "kind": kind,
        "content": "",
        "tags": [["g", "ezs42"]],
        "sig": "00",
    }


def text(message):
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=json.dumps(message))


CLOSED_FRAME = SimpleNamespace(type=aiohttp.WSMsgType.CLOSED, data=None)


class FakeWebSocket:
    """Websocket replaying scripted messages; blocks once they run out."""

    def __init__(self, messages):
        self.messages = list(messages)
        self.sent = []
        self.closed = False

    async def send_json(self, data):
        self.sent.append(data)

    async def receive(self):
        if self.messages:
            return self.messages.pop(0)
        await asyncio.Event().wait()

    def exception(self):
        return None

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.messages:
            raise StopAsyncIteration
        return self.messages.pop(0)


def fake_session(ws):
    """Session whose ws_connect yields the given websocket."""

    @asynccontextmanager
    async def ws_connect(url):
        yield ws

    session = MagicMock()
    session.ws_connect = ws_connect
    return session


def fixed_subscription_ids(*ids):
    return patch(
        "geoevents.ingestion.adapters.relay_adapter.new_subscription_id",
        side_effect=list(ids),
    )


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def relay_config():
    """Create a relay adapter config with two relays and two filters."""
    return RelayAdapterConfig(
        source_id="test_relays",
        source_type=SourceType.RELAY,
        relay_urls=list(RELAYS),
        filters=[{"kinds": [31922, 31923], "limit": 10}, {"kinds": [1], "limit": 10}],
        stream_filters=[{"kinds": [1], "limit": 5}],
    )


@pytest.fixture
def adapter(relay_config):
    return RelayAdapter(relay_config)


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestParseRelayMessage:
    """Tests for parse_relay_message."""

    def test_event_message(self):
        message = parse_relay_message(json.dumps(["EVENT", "sub", raw_event("a")]))
        assert message[0] == "EVENT"
        assert message[2]["id"] == "a"

    @pytest.mark.parametrize("data", ["not json", "{}", "[]", "[1, 2]", '"EVENT"'])
    def test_malformed(self, data):
        assert parse_relay_message(data) is None

    def test_subscription_id_length(self):
        assert 0 < len(new_subscription_id()) <= 64
        assert new_subscription_id() != new_subscription_id()


class TestRelayAdapterConfig:
    """Tests for RelayAdapterConfig."""

    def test_source_type_forced(self):
        config = RelayAdapterConfig(
            source_id="x", source_type=SourceType.STATIC, relay_urls=RELAYS
        )
        assert config.source_type == SourceType.RELAY

    def test_config_fields(self):
        """Relay config carries only connection and filter settings."""
        names = [f.name for f in dataclasses.fields(RelayAdapterConfig)]
        assert names == [
            "source_id",
            "source_type",
            "request_timeout",
            "relay_urls",
            "filters",
            "stream_filters",
        ]

    def test_from_settings(self):
        config = RelayAdapterConfig.from_settings(categories=["calendar"])

        assert len(config.relay_urls) == 8
        assert config.filters == [{"kinds": [31922, 31923], "limit": 500}]
        assert config.stream_filters == [{"kinds": [31922, 31923], "limit": 100}]
        assert config.request_timeout == 10.0

    def test_requires_relays(self):
        with pytest.raises(ValueError, match="at least one relay"):
            RelayAdapter(RelayAdapterConfig(source_id="x", source_type=SourceType.RELAY))

    def test_requires_websocket_urls(self):
        with pytest.raises(ValueError, match="ws://"):
            RelayAdapter(
                RelayAdapterConfig(
                    source_id="x",
                    source_type=SourceType.RELAY,
                    relay_urls=["https://relay.one"],
                )
            )


class TestHandleMessage:
    """Tests for RelayAdapter._handle_message."""

    def test_event_for_open_subscription(self, adapter):
        events = []
        finished = adapter._handle_message(
            "wss://r", json.dumps(["EVENT", "s1", raw_event("a")]), {"s1"}, events
        )
        assert finished is None
        assert [e["id"] for e in events] == ["a"]

    def test_event_for_unknown_subscription(self, adapter):
        events = []
        adapter._handle_message("wss://r", json.dumps(["EVENT", "s2", raw_event("a")]), {"s1"}, events)
        assert events == []

    def test_event_without_payload(self, adapter):
        events = []
        adapter._handle_message("wss://r", json.dumps(["EVENT", "s1"]), {"s1"}, events)
        assert events == []

    def test_eose(self, adapter):
        assert adapter._handle_message("wss://r", '["EOSE", "s1"]', {"s1"}, []) == "s1"
        assert adapter._handle_message("wss://r", '["EOSE", "s9"]', {"s1"}, []) is None

    def test_closed(self, adapter):
        message = '["CLOSED", "s1", "error: too many filters"]'
        assert adapter._handle_message("wss://r", message, {"s1"}, []) == "s1"

    def test_notice_and_garbage(self, adapter):
        assert adapter._handle_message("wss://r", '["NOTICE", "slow down"]', {"s1"}, []) is None
        assert adapter._handle_message("wss://r", "garbage", {"s1"}, []) is None


class TestRelayAdapterFetch:
    """Tests for RelayAdapter.fetch with per-relay queries mocked."""

    def test_merges_and_deduplicates(self, adapter):
        query = AsyncMock(
            side_effect=[
                RelayQueryResult("wss://relay.one", events=[raw_event("a"), raw_event("b")]),
                RelayQueryResult("wss://relay.two", events=[raw_event("b"), raw_event("c")]),
            ]
        )
        with patch.object(RelayAdapter, "_get_session", return_value=MagicMock()), \
                patch.object(RelayAdapter, "_query_relay", new=query):
            result = asyncio.run(adapter.fetch())

        assert result.success is True
        assert result.source_type == SourceType.RELAY
        assert [e["id"] for e in result.raw_data] == ["a", "b", "c"]
        assert result.total_fetched == 3
        assert result.metadata["duplicates_dropped"] == 1
        assert result.metadata["per_relay"] == {"wss://relay.one": 2, "wss://relay.two": 2}
        assert result.errors == []

    def test_filter_overrides_merged(self, adapter):
        query = AsyncMock(return_value=RelayQueryResult("wss://relay.one"))
        with patch.object(RelayAdapter, "_get_session", return_value=MagicMock()), \
                patch.object(RelayAdapter, "_query_relay", new=query):
            asyncio.run(adapter.fetch(since=1000, limit=999))

        _, relay_url, filters = query.call_args_list[0].args
        assert relay_url in RELAYS
        assert filters == [
            {"since": 1000, "kinds": [31922, 31923], "limit": 10},
            {"since": 1000, "kinds": [1], "limit": 10},
        ]

    def test_partial_relay_failure(self, adapter):
        query = AsyncMock(
            side_effect=[
                RelayQueryResult("wss://relay.one", events=[raw_event("a")]),
                RelayQueryResult("wss://relay.two", error="timeout", timed_out=True),
            ]
        )
        with patch.object(RelayAdapter, "_get_session", return_value=MagicMock()), \
                patch.object(RelayAdapter, "_query_relay", new=query):
            result = asyncio.run(adapter.fetch())

        assert result.success is True
        assert result.errors == ["wss://relay.two: timeout"]
        assert result.metadata["relays_failed"] == 1

    def test_all_relays_fail(self, adapter):
        query = AsyncMock(
            side_effect=[
                RelayQueryResult("wss://relay.one", error="refused"),
                RelayQueryResult("wss://relay.two", error="refused"),
            ]
        )
        with patch.object(RelayAdapter, "_get_session", return_value=MagicMock()), \
                patch.object(RelayAdapter, "_query_relay", new=query):
            result = asyncio.run(adapter.fetch())

        assert result.success is False
        assert len(result.errors) == 2

    def test_events_without_id_not_collapsed(self, adapter):
        no_id = raw_event("x")
        del no_id["id"]
        query = AsyncMock(
            side_effect=[
                RelayQueryResult("wss://relay.one", events=[no_id, raw_event("a")]),
                RelayQueryResult("wss://relay.two", events=[dict(no_id), raw_event("a")]),
            ]
        )
        with patch.object(RelayAdapter, "_get_session", return_value=MagicMock()), \
                patch.object(RelayAdapter, "_query_relay", new=query):
            result = asyncio.run(adapter.fetch())

        assert [e.get("id") for e in result.raw_data] == [None, "a", None]
        assert result.metadata["duplicates_dropped"] == 1

    def test_no_filters(self, relay_config):
        relay_config.filters = []
        result = asyncio.run(RelayAdapter(relay_config).fetch())

        assert result.success is False
        assert result.errors == ["No filters configured"]


class TestRelayAdapterStream:
    """Tests for RelayAdapter.stream with relay subscriptions mocked."""

    def test_merges_relays_without_duplicates(self, adapter):
        per_relay = {
            "wss://relay.one": [raw_event("a"), raw_event("b")],
            "wss://relay.two": [raw_event("b"), raw_event("c")],
        }
        seen_filters = []

        async def fake_subscribe(self, session, relay_url, filters, queue):
            seen_filters.append(filters)
            for event in per_relay[relay_url]:
                await queue.put(event)
            queue.put_nowait(None)

        async def collect():
            return [event async for event in adapter.stream()]

        with patch.object(RelayAdapter, "_get_session", return_value=MagicMock()), \
                patch.object(RelayAdapter, "_subscribe_relay", new=fake_subscribe):
            events = asyncio.run(collect())

        assert sorted(e["id"] for e in events) == ["a", "b", "c"]
        assert seen_filters == [[{"kinds": [1], "limit": 5}]] * 2

    def test_explicit_filters(self, adapter):
        seen_filters = []

        async def fake_subscribe(self, session, relay_url, filters, queue):
            seen_filters.append(filters)
            queue.put_nowait(None)

        async def collect():
            return [event async for event in adapter.stream(filters=[{"kinds": [30402]}])]

        with patch.object(RelayAdapter, "_get_session", return_value=MagicMock()), \
                patch.object(RelayAdapter, "_subscribe_relay", new=fake_subscribe):
            assert asyncio.run(collect()) == []

        assert seen_filters == [[{"kinds": [30402]}]] * 2


    def test_events_without_id_passed_through(self, adapter):
        no_id = raw_event("x")
        del no_id["id"]

        async def fake_subscribe(self, session, relay_url, filters, queue):
            await queue.put(dict(no_id))
            await queue.put(raw_event("a"))
            queue.put_nowait(None)

        async def collect():
            return [event async for event in adapter.stream()]

        with patch.object(RelayAdapter, "_get_session", return_value=MagicMock()), \
                patch.object(RelayAdapter, "_subscribe_relay", new=fake_subscribe):
            events = asyncio.run(collect())

        assert sorted(str(e.get("id")) for e in events) == ["None", "None", "a"]


class TestQueryRelay:
    """Tests for RelayAdapter._query_relay over a scripted websocket."""

    FILTERS = [{"kinds": [31923]}, {"kinds": [1]}]

    def run_query(self, adapter, ws):
        with fixed_subscription_ids("s1", "s2"):
            return asyncio.run(
                adapter._query_relay(fake_session(ws), "wss://relay.one", self.FILTERS)
            )

    def test_collects_until_every_subscription_ends(self, adapter):
        """Each EOSE closes its subscription; the query ends after the last one."""
        ws = FakeWebSocket(
            [
                text(["EVENT", "s1", raw_event("a")]),
                text(["NOTICE", "hello"]),
                text(["EVENT", "s2", raw_event("b")]),
                text(["EOSE", "s1"]),
                text(["EVENT", "s9", raw_event("stray")]),
                text(["EOSE", "s2"]),
            ]
        )

        result = self.run_query(adapter, ws)

        assert [e["id"] for e in result.events] == ["a", "b"]
        assert result.error is None
        assert result.timed_out is False
        assert ws.sent == [
            ["REQ", "s1", {"kinds": [31923]}],
            ["REQ", "s2", {"kinds": [1]}],
            ["CLOSE", "s1"],
            ["CLOSE", "s2"],
        ]

    def test_relay_closed_subscription_counts_as_finished(self, adapter):
        """A CLOSED message ends a subscription like EOSE does."""
        ws = FakeWebSocket(
            [
                text(["CLOSED", "s1", "error: unsupported filter"]),
                text(["EVENT", "s2", raw_event("b")]),
                text(["EOSE", "s2"]),
            ]
        )

        result = self.run_query(adapter, ws)

        assert [e["id"] for e in result.events] == ["b"]
        assert result.error is None

    def test_timeout_keeps_collected_events(self, adapter):
        """Events received before the timeout are returned."""
        adapter.relay_config.request_timeout = 0.05
        ws = FakeWebSocket([text(["EVENT", "s1", raw_event("a")]), text(["EOSE", "s1"])])

        result = self.run_query(adapter, ws)

        assert result.timed_out is True
        assert result.error is None
        assert [e["id"] for e in result.events] == ["a"]

    def test_timeout_without_events_is_an_error(self, adapter):
        adapter.relay_config.request_timeout = 0.05

        result = self.run_query(adapter, FakeWebSocket([]))

        assert result.timed_out is True
        assert result.error == "timeout"
        assert result.events == []

    def test_connection_closed_before_eose(self, adapter):
        """A closed socket stops the query and reports the error."""
        ws = FakeWebSocket([text(["EVENT", "s1", raw_event("a")]), CLOSED_FRAME])

        result = self.run_query(adapter, ws)

        assert result.error == "connection closed before EOSE"
        assert [e["id"] for e in result.events] == ["a"]
        assert ["CLOSE", "s1"] not in ws.sent

    def test_connect_failure(self, adapter):
        session = MagicMock()
        session.ws_connect = MagicMock(side_effect=aiohttp.ClientConnectionError("refused"))

        result = asyncio.run(adapter._query_relay(session, "wss://relay.one", self.FILTERS))

        assert result.error == "refused"
        assert result.events == []


class TestSubscribeRelay:
    """Tests for RelayAdapter._subscribe_relay over a scripted websocket."""

    def run_subscription(self, adapter, session, filters):
        async def run():
            queue = asyncio.Queue()
            await adapter._subscribe_relay(session, "wss://relay.one", filters, queue)
            items = []
            while not queue.empty():
                items.append(queue.get_nowait())
            return items

        with fixed_subscription_ids("s1"):
            return asyncio.run(run())

    def test_single_req_and_closed_ends_subscription(self, adapter):
        """Live events keep flowing after EOSE until the relay sends CLOSED."""
        ws = FakeWebSocket(
            [
                text(["EVENT", "s1", raw_event("a")]),
                text(["EOSE", "s1"]),
                text(["EVENT", "s1", raw_event("b")]),
                text(["CLOSED", "s1", "rate-limited"]),
                text(["EVENT", "s1", raw_event("late")]),
            ]
        )
        filters = [{"kinds": [1]}, {"kinds": [30402]}]

        items = self.run_subscription(adapter, fake_session(ws), filters)

        assert ws.sent == [["REQ", "s1", {"kinds": [1]}, {"kinds": [30402]}]]
        assert [item["id"] for item in items[:-1]] == ["a", "b"]
        assert items[-1] is None

    def test_socket_end_puts_sentinel(self, adapter):
        ws = FakeWebSocket([text(["EVENT", "s1", raw_event("a")])])

        items = self.run_subscription(adapter, fake_session(ws), [{"kinds": [1]}])

        assert [item["id"] for item in items[:-1]] == ["a"]
        assert items[-1] is None

    def test_connect_failure_puts_sentinel(self, adapter):
        session = MagicMock()
        session.ws_connect = MagicMock(side_effect=aiohttp.ClientConnectionError("refused"))

        assert self.run_subscription(adapter, session, [{"kinds": [1]}]) == [None]


class TestRelayAdapterClose:
    """Tests for session cleanup."""

    def test_close_without_session(self, adapter):
        asyncio.run(adapter.close())
        assert adapter._session is None

    def test_close_session(self, adapter):
        session = MagicMock()
        session.close = AsyncMock()
        adapter._session = session

        asyncio.run(adapter.close())

        session.close.assert_awaited_once()
        assert adapter._session is None
