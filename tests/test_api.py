"""Tests de la API HTTP / WebSocket con el store en memoria."""

import asyncio
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from guildmarket.container import Container
from guildmarket.domain.entities.account import Account
from guildmarket.domain.entities.stock import Stock
from guildmarket.infrastructure.persistence.memory_store import InMemoryMarketStore
from guildmarket.main import create_app
from support import GUILD, ScriptedRandom, quiet_settings


async def seed(store: InMemoryMarketStore) -> None:
    async with store.transaction() as session:
        await session.create_stock(Stock(
            guild_id=GUILD, symbol="SAMSUNG", name="Samsung Electronics",
            price=Decimal("10000"), volatility=Decimal("1"), total_shares=1_000_000,
        ))
        await session.create_account(Account(guild_id=GUILD, user_id="alice", balance=Decimal("100000")))


@pytest.fixture
def client():
    store = InMemoryMarketStore()
    asyncio.run(seed(store))

    settings = quiet_settings(price_tick_interval_seconds=3600, order_expiry_sweep_seconds=3600)
    container = Container(settings=settings, rng=ScriptedRandom())
    container.override("store", store)

    with TestClient(create_app(container)) as test_client:
        yield test_client


def buy(client, shares=10, price=9000, user="alice"):
    return client.post(f"/api/guilds/{GUILD}/trades", json={
        "user_id": user, "symbol": "samsung", "side": "buy", "shares": shares, "price": price,
    })


class TestHealth:

    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["service"] == "guildmarket"
        assert body["engine_running"] is True


class TestTrades:

    def test_buy(self, client):
        response = buy(client)
        assert response.status_code == 200
        body = response.json()
        assert body["symbol"] == "SAMSUNG"
        assert body["balanceAfter"] == 10000.0
        assert body["holdingSharesAfter"] == 10

    def test_insufficient_funds_is_conflict(self, client):
        buy(client)
        response = buy(client, shares=2)
        assert response.status_code == 409
        assert response.json()["error"] == "INSUFFICIENT_FUNDS"

    def test_unknown_account_is_not_found(self, client):
        response = buy(client, user="bob")
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    def test_malformed_body_is_rejected(self, client):
        assert buy(client, shares=0).status_code == 422
        response = client.post(f"/api/guilds/{GUILD}/trades", json={
            "user_id": "alice", "symbol": "SAMSUNG", "side": "hold", "shares": 1, "price": 1,
        })
        assert response.status_code == 422

    def test_portfolio(self, client):
        buy(client)
        body = client.get(f"/api/guilds/{GUILD}/portfolio/alice").json()
        assert body["balance"] == 10000.0
        assert body["holdingsValue"] == 100000.0
        assert body["totalValue"] == 110000.0


class TestOrders:

    def test_create_list_cancel(self, client):
        created = client.post(f"/api/guilds/{GUILD}/orders", json={
            "user_id": "alice", "symbol": "SAMSUNG", "side": "buy",
            "shares": 5, "target_price": "9000",
        })
        assert created.status_code == 200
        order_id = created.json()["id"]
        assert created.json()["status"] == "pending"

        listed = client.get(f"/api/guilds/{GUILD}/orders", params={"user_id": "alice"}).json()
        assert listed["count"] == 1

        cancelled = client.delete(f"/api/guilds/{GUILD}/orders/{order_id}", params={"user_id": "alice"})
        assert cancelled.json()["status"] == "cancelled"

        again = client.delete(f"/api/guilds/{GUILD}/orders/{order_id}", params={"user_id": "alice"})
        assert again.status_code == 400

        pending = client.get(
            f"/api/guilds/{GUILD}/orders", params={"user_id": "alice", "status": "pending"},
        ).json()
        assert pending["count"] == 0

    def test_expiry_without_offset_is_accepted(self, client):
        created = client.post(f"/api/guilds/{GUILD}/orders", json={
            "user_id": "alice", "symbol": "SAMSUNG", "side": "buy",
            "shares": 5, "target_price": "9000", "expires_at": "2099-01-01T00:00:00",
        })
        assert created.status_code == 200
        assert created.json()["status"] == "pending"
        assert created.json()["expiresAt"].startswith("2099-01-01T00:00:00")

        stale = client.post(f"/api/guilds/{GUILD}/orders", json={
            "user_id": "alice", "symbol": "SAMSUNG", "side": "buy",
            "shares": 1, "target_price": "9000", "expires_at": "2000-01-01T00:00:00",
        })
        assert stale.status_code == 400
        assert stale.json()["error"] == "INVALID_ORDER"

    def test_sub_cent_price_is_rejected(self, client):
        response = buy(client, shares=500, price=0.004)
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_ORDER"
        assert client.get(f"/api/guilds/{GUILD}/portfolio/alice").json()["balance"] == 100000.0

    def test_invalid_status_filter(self, client):
        response = client.get(
            f"/api/guilds/{GUILD}/orders", params={"user_id": "alice", "status": "filled"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_ORDER"


class TestCandles:

    def test_candles_after_trade(self, client):
        buy(client)
        body = client.get(f"/api/guilds/{GUILD}/candles/samsung/1m").json()
        assert body["timeframe"] == "1m"
        assert body["count"] == 1
        assert body["candles"][0]["close"] == 9000.0

    def test_invalid_timeframe(self, client):
        response = client.get(f"/api/guilds/{GUILD}/candles/SAMSUNG/2m")
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_TIMEFRAME"


class TestNewsAndBreakers:

    def test_news_impact(self, client):
        body = client.post(f"/api/guilds/{GUILD}/news", json={"impact": 0.05, "symbol": "samsung"}).json()
        assert body["count"] == 1
        assert body["updates"][0]["newPrice"] == 10500.0

    def test_news_momentum(self, client):
        response = client.post(f"/api/guilds/{GUILD}/news/momentum", json={
            "symbol": "SAMSUNG", "direction": 1, "intensity": 0.5,
        })
        assert response.json() == {"status": "ok"}
        bad = client.post(f"/api/guilds/{GUILD}/news/momentum", json={
            "symbol": "SAMSUNG", "direction": 2, "intensity": 0.5,
        })
        assert bad.status_code == 422

    def test_circuit_breakers(self, client):
        assert client.get(f"/api/guilds/{GUILD}/circuit-breakers").json() == {"count": 0, "breakers": []}
        assert client.post(f"/api/guilds/{GUILD}/circuit-breakers/SAMSUNG/release").status_code == 404


class TestWebSocket:

    def test_trade_is_streamed_to_guild_client(self, client):
        with client.websocket_connect(f"/ws/market?guild_id={GUILD}") as ws:
            assert client.get("/api/health").json()["ws_clients"] == 1
            buy(client)
            message = ws.receive_json()
        assert message["event"] == "trade_executed"
        assert message["data"]["guildId"] == GUILD
        assert message["data"]["shares"] == 10
