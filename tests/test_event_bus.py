"""Tests del Event Bus y del broadcast WebSocket."""

import asyncio
import json
from datetime import datetime, timezone

from guildmarket.application.ports.event_publisher import Topics
from guildmarket.infrastructure.external.event_bus import EventBus
from guildmarket.presentation.websocket.websocket_manager import WebSocketManager


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.accepted = False
        self.closed = False
        self.sent: list[str] = []
        self._fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, text: str):
        if self._fail:
            raise RuntimeError("socket cerrado")
        self.sent.append(text)

    async def close(self):
        self.closed = True


class TestEventBus:

    def test_fan_out_to_every_subscriber(self):
        async def scenario():
            bus = EventBus()
            first = await bus.subscribe("t", "a")
            second = await bus.subscribe("t", "b")
            other = await bus.subscribe("u", "c")

            await bus.publish("t", {"n": 1})
            assert first.get_nowait() == {"n": 1}
            assert second.get_nowait() == {"n": 1}
            assert other.empty()

        asyncio.run(scenario())

    def test_full_queue_drops_oldest(self):
        async def scenario():
            bus = EventBus(max_queue_size=2)
            queue = await bus.subscribe("t", "slow")
            for n in range(3):
                await bus.publish("t", {"n": n})
            assert [queue.get_nowait()["n"], queue.get_nowait()["n"]] == [1, 2]
            assert bus.dropped_events == 1

        asyncio.run(scenario())

    def test_publish_without_subscribers(self):
        async def scenario():
            bus = EventBus()
            await bus.publish("nadie", {"n": 1})
            assert bus.subscriber_count == 0

        asyncio.run(scenario())

    def test_unsubscribe(self):
        async def scenario():
            bus = EventBus()
            queue = await bus.subscribe("t", "a")
            await bus.subscribe("t", "b")
            await bus.unsubscribe("t", queue)
            assert bus.subscriber_count == 1
            await bus.publish("t", {"n": 1})
            assert queue.empty()

        asyncio.run(scenario())

    def test_unsubscribe_all(self):
        async def scenario():
            bus = EventBus()
            await bus.subscribe("t", "a")
            await bus.subscribe("u", "b")
            await bus.unsubscribe_all("t")
            assert bus.subscriber_count == 1
            await bus.unsubscribe_all()
            assert bus.subscriber_count == 0

        asyncio.run(scenario())

    def test_publish_many_keeps_order(self):
        async def scenario():
            bus = EventBus()
            queue = await bus.subscribe("t", "a")
            await bus.publish_many([("t", {"n": 1}), ("t", {"n": 2})])
            assert queue.get_nowait()["n"] == 1
            assert queue.get_nowait()["n"] == 2

        asyncio.run(scenario())


class TestWebSocketManager:

    def test_message_format(self):
        now = datetime(2026, 3, 2, 1, 0, tzinfo=timezone.utc)
        message = json.loads(
            WebSocketManager.build_message("trade_executed", {"guildId": "g"}, now),
        )
        assert message == {
            "event": "trade_executed",
            "data": {"guildId": "g"},
            "timestamp": "2026-03-02T01:00:00+00:00",
        }

    def test_broadcast_filters_by_guild(self):
        async def scenario():
            bus = EventBus()
            manager = WebSocketManager(bus)
            guild_a, guild_b, everything = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
            await manager.connect(guild_a, "A")
            await manager.connect(guild_b, "B")
            await manager.connect(everything)
            assert guild_a.accepted and manager.client_count == 3

            await manager.start()
            assert bus.subscriber_count == len(Topics.ALL)
            await bus.publish(Topics.STOCK_PRICE_UPDATED, {"guildId": "A", "symbol": "SAMSUNG"})
            await asyncio.sleep(0.05)
            await manager.stop()

            assert len(guild_a.sent) == 1
            assert guild_b.sent == []
            assert len(everything.sent) == 1
            assert json.loads(guild_a.sent[0])["event"] == Topics.STOCK_PRICE_UPDATED
            assert guild_a.closed and manager.client_count == 0

        asyncio.run(scenario())

    def test_failing_client_is_dropped(self):
        async def scenario():
            bus = EventBus()
            manager = WebSocketManager(bus)
            broken, healthy = FakeWebSocket(fail=True), FakeWebSocket()
            await manager.connect(broken)
            await manager.connect(healthy)

            await manager.start()
            await bus.publish(Topics.TRADE_EXECUTED, {"guildId": "A"})
            await asyncio.sleep(0.05)

            assert manager.recipients({"guildId": "A"}) == [healthy]
            assert len(healthy.sent) == 1
            await manager.stop()

        asyncio.run(scenario())

    def test_disconnect(self):
        async def scenario():
            manager = WebSocketManager(EventBus())
            ws = FakeWebSocket()
            await manager.connect(ws, "A")
            manager.disconnect(ws)
            manager.disconnect(ws)
            assert manager.client_count == 0

        asyncio.run(scenario())
