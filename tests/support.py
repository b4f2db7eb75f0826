"""
Utilidades de test: publicador que graba, reloj manual, Random
guionado y la factory del mercado en memoria.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from guildmarket.application.ports.event_publisher import IEventPublisher
from guildmarket.application.services.trading_engine import TradingEngine
from guildmarket.domain.entities.account import Account, Holding
from guildmarket.domain.entities.stock import Stock, StockStatus
from guildmarket.infrastructure.persistence.memory_store import InMemoryMarketStore
from guildmarket.shared.config.settings import Settings

GUILD = "guild-1"

# Lunes 2026-03-02 10:00 en Seúl
FIXED_NOW = datetime(2026, 3, 2, 1, 0, tzinfo=timezone.utc)


class RecordingPublisher(IEventPublisher):
    """Publicador que solo guarda lo publicado."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    async def publish(self, topic, data):
        self.events.append((topic, data))

    def of(self, topic: str) -> List[Dict[str, Any]]:
        return [data for t, data in self.events if t == topic]


class FixedClock:
    """Reloj manual: solo avanza cuando el test lo pide."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class ScriptedRandom(random.Random):
    """
    Random con valores guionados.

    ``uniform`` y ``randrange`` devuelven el siguiente valor de su cola;
    sin cola, ``uniform`` devuelve el punto medio, ``random`` 0.5 (sin
    shock de noticia) y ``randrange`` el mínimo.
    """

    def __init__(self, uniforms=(), randoms=(), randranges=()):
        super().__init__(0)
        self.uniforms = list(uniforms)
        self.randoms = list(randoms)
        self.randranges = list(randranges)

    def uniform(self, a, b):
        if self.uniforms:
            return self.uniforms.pop(0)
        return (a + b) / 2

    def random(self):
        if self.randoms:
            return self.randoms.pop(0)
        return 0.5

    def randrange(self, start, stop=None, step=1):
        if self.randranges:
            return self.randranges.pop(0)
        return start


def quiet_settings(**overrides) -> Settings:
    """Settings sin shocks aleatorios de noticia ni ruido de impacto."""
    values = {
        "news_shock_probability": 0.0,
        "market_impact_noise": 0.0,
    }
    values.update(overrides)
    return Settings(**values)


@dataclass
class Market:
    store: InMemoryMarketStore
    publisher: RecordingPublisher
    clock: FixedClock
    settings: Settings
    engine: TradingEngine
    rng: random.Random
    guild_id: str = GUILD

    async def add_stock(
        self,
        symbol: str = "SAMSUNG",
        price: str = "10000",
        volatility: str = "1",
        status: StockStatus = StockStatus.ACTIVE,
        guild_id: Optional[str] = None,
    ) -> Stock:
        stock = Stock(
            guild_id=guild_id or self.guild_id,
            symbol=symbol,
            name=f"{symbol} Corp",
            price=Decimal(price),
            volatility=Decimal(volatility),
            status=status,
            total_shares=1_000_000,
        )
        async with self.store.transaction() as session:
            await session.create_stock(stock)
        return stock

    async def add_account(
        self,
        user_id: str = "alice",
        balance: str = "100000",
        frozen: bool = False,
        trading_suspended: bool = False,
        guild_id: Optional[str] = None,
    ) -> Account:
        account = Account(
            guild_id=guild_id or self.guild_id,
            user_id=user_id,
            balance=Decimal(balance),
            frozen=frozen,
            trading_suspended=trading_suspended,
        )
        async with self.store.transaction() as session:
            await session.create_account(account)
        return account

    async def add_holding(
        self, user_id: str, symbol: str, shares: int, avg_price: str,
    ) -> Optional[Holding]:
        async with self.store.transaction() as session:
            return await session.update_holding(
                self.guild_id, user_id, symbol, shares, Decimal(avg_price),
            )

    async def stock(self, symbol: str = "SAMSUNG") -> Optional[Stock]:
        async with self.store.transaction() as session:
            return await session.get_stock_by_symbol(self.guild_id, symbol)

    async def account(self, user_id: str = "alice") -> Optional[Account]:
        async with self.store.transaction() as session:
            return await session.get_account_by_user(self.guild_id, user_id)

    async def holding(self, user_id: str = "alice", symbol: str = "SAMSUNG") -> Optional[Holding]:
        async with self.store.transaction() as session:
            return await session.get_holding(self.guild_id, user_id, symbol)


def build_market(
    settings: Optional[Settings] = None,
    rng: Optional[random.Random] = None,
    clock: Optional[FixedClock] = None,
) -> Market:
    settings = settings or quiet_settings()
    rng = rng if rng is not None else random.Random(42)
    clock = clock or FixedClock()
    store = InMemoryMarketStore()
    publisher = RecordingPublisher()
    engine = TradingEngine.create(store, publisher, settings, rng=rng, clock=clock)
    return Market(store, publisher, clock, settings, engine, rng)


