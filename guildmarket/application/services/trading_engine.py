"""
GuildMarket – Trading Engine (orquestador)
============================================
Dueño del ciclo de vida del motor y punto de entrada para el bot de
Discord y las rutas HTTP.

ARQUITECTURA:
  ┌──────────────┐  cada 5s   ┌────────────────┐
  │  tick loop   │──────────▸│ PriceSimulator │──▸ velas ──▸ órdenes ──▸ eventos
  └──────────────┘            └────────────────┘
  ┌──────────────┐  cada 60s  ┌──────────────────┐
  │ expiry loop  │──────────▸│ LimitOrderEngine │──▸ órdenes vencidas ──▸ eventos
  └──────────────┘            └──────────────────┘
  request ──▸ TradeExecutor / LimitOrderEngine (inmediato)

Todo el estado mutable en memoria (inercia de noticias, breakers) vive
en los componentes inyectados, nunca en variables de módulo.
"""

from __future__ import annotations

import asyncio
import random
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from guildmarket.application.ports.event_publisher import IEventPublisher, Topics
from guildmarket.application.services.candlestick_aggregator import CandlestickAggregator
from guildmarket.application.services.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from guildmarket.application.use_cases.execute_trade_usecase import PortfolioValue, TradeExecutor
from guildmarket.application.use_cases.limit_order_usecase import Clock, LimitOrderEngine, utc_now
from guildmarket.application.use_cases.simulate_prices_usecase import PriceSimulator
from guildmarket.domain.entities.candlestick import Candlestick
from guildmarket.domain.entities.limit_order import LimitOrder, LimitOrderStatus
from guildmarket.domain.entities.trade import TradeResult, TradeSide
from guildmarket.domain.exceptions.domain_errors import NotFoundError
from guildmarket.domain.repositories.market_store import IMarketStore
from guildmarket.domain.value_objects.timeframe import Timeframe
from guildmarket.shared.config.settings import Settings, settings as default_settings
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("trading_engine")


class TradingEngine:
    """Orquestador: loops periódicos + fachada de operaciones."""

    def __init__(
        self,
        store: IMarketStore,
        event_publisher: IEventPublisher,
        aggregator: CandlestickAggregator,
        limit_orders: LimitOrderEngine,
        executor: TradeExecutor,
        simulator: PriceSimulator,
        circuit_breakers: CircuitBreakerRegistry,
        config: Settings = None,
        clock: Clock = utc_now,
    ):
        self._store = store
        self._event_publisher = event_publisher
        self._aggregator = aggregator
        self._limit_orders = limit_orders
        self._executor = executor
        self._simulator = simulator
        self._breakers = circuit_breakers
        self._config = config or default_settings
        self._clock = clock
        self._running = False
        self._tasks: list[asyncio.Task] = []

    @classmethod
    def create(
        cls,
        store: IMarketStore,
        event_publisher: IEventPublisher,
        config: Settings = None,
        rng: random.Random = None,
        clock: Clock = utc_now,
    ) -> "TradingEngine":
        """Arma el grafo completo de componentes con dependencias compartidas."""
        config = config or default_settings
        rng = rng or random.Random()
        breakers = CircuitBreakerRegistry(
            levels=config.circuit_breaker_levels,
            halt_minutes=config.circuit_breaker_halt_minutes,
            enabled=config.circuit_breaker_enabled,
        )
        aggregator = CandlestickAggregator(store, config)
        limit_orders = LimitOrderEngine(store, aggregator, event_publisher, config, clock)
        executor = TradeExecutor(store, aggregator, limit_orders, event_publisher, config, rng, clock)
        simulator = PriceSimulator(
            store, aggregator, limit_orders, event_publisher, breakers, config, rng, clock,
        )
        return cls(
            store, event_publisher, aggregator, limit_orders, executor, simulator,
            breakers, config, clock,
        )

    # ─── Componentes ───────────────────────────────────────────────────

    @property
    def simulator(self) -> PriceSimulator:
        return self._simulator

    @property
    def executor(self) -> TradeExecutor:
        return self._executor

    @property
    def limit_orders(self) -> LimitOrderEngine:
        return self._limit_orders

    @property
    def aggregator(self) -> CandlestickAggregator:
        return self._aggregator

    @property
    def is_running(self) -> bool:
        return self._running

    # ─── Ciclo de vida ─────────────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            logger.warning("TradingEngine ya estaba iniciado")
            return
        self._running = True
        self._tasks.append(asyncio.create_task(self._tick_loop(), name="price-simulation"))
        self._tasks.append(asyncio.create_task(self._expiry_loop(), name="limit-order-expiry"))
        logger.info(
            "TradingEngine iniciado (tick=%.1fs, barrido de vencimientos=%.0fs)",
            self._config.price_tick_interval_seconds,
            self._config.order_expiry_sweep_seconds,
        )

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("TradingEngine detenido")

    async def _tick_loop(self) -> None:
        while self._running:
            try:
                await self._simulator.tick()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error en el tick de simulación")
            await asyncio.sleep(self._config.price_tick_interval_seconds)

    async def _expiry_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._config.order_expiry_sweep_seconds)
            try:
                await self._limit_orders.expire_limit_orders()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error en el barrido de órdenes vencidas")

    # ─── Trading ───────────────────────────────────────────────────────

    async def execute_trade(
        self,
        guild_id: str,
        user_id: str,
        symbol: str,
        side: TradeSide | str,
        shares: int,
        price: Decimal,
    ) -> TradeResult:
        return await self._executor.execute_trade(guild_id, user_id, symbol, side, shares, price)

    async def create_limit_order(
        self,
        guild_id: str,
        user_id: str,
        symbol: str,
        side: TradeSide | str,
        shares: int,
        target_price: Decimal,
        expires_at: Optional[datetime] = None,
    ) -> LimitOrder:
        return await self._limit_orders.create_limit_order(
            guild_id, user_id, symbol, side, shares, target_price, expires_at,
        )

    async def cancel_limit_order(self, guild_id: str, user_id: str, order_id: str) -> LimitOrder:
        return await self._limit_orders.cancel_limit_order(guild_id, user_id, order_id)

    async def get_limit_orders(
        self, guild_id: str, user_id: str, status: Optional[LimitOrderStatus | str] = None,
    ) -> List[LimitOrder]:
        return await self._limit_orders.get_limit_orders(guild_id, user_id, status)

    async def calculate_portfolio_value(self, guild_id: str, user_id: str) -> PortfolioValue:
        return await self._executor.calculate_portfolio_value(guild_id, user_id)

    async def get_candlesticks(
        self, guild_id: str, symbol: str, timeframe: Timeframe | str, limit: int = 100,
    ) -> List[Candlestick]:
        return await self._aggregator.get_candlesticks(guild_id, symbol, timeframe, limit)

    # ─── Noticias ──────────────────────────────────────────────────────

    def set_news_momentum(
        self,
        guild_id: str,
        symbol: str,
        direction: float,
        intensity: float,
        duration_minutes: Optional[float] = None,
    ) -> None:
        self._simulator.set_news_momentum(guild_id, symbol, direction, intensity, duration_minutes)

    async def apply_news_impact(
        self,
        guild_id: str,
        impact: float,
        symbol: Optional[str] = None,
    ) -> List[dict]:
        """
        Aplica el impacto de una noticia ya puntuada.

        Args:
            guild_id: Guild afectado
            impact: Fracción de precio (0.05 = +5%), recortada a
                ``news_max_impact_pct``
            symbol: Acción puntual; None afecta a todas las activas del guild

        Returns:
            Payloads de ``stock_price_updated`` emitidos
        """
        cap = self._config.news_max_impact_pct / 100
        impact = max(-cap, min(cap, float(impact)))
        now = self._clock()

        async with self._store.transaction() as session:
            if symbol is None:
                targets = [s.symbol for s in await session.get_active_stocks_by_guild(guild_id)]
            else:
                stock = await session.get_stock_by_symbol(guild_id, symbol)
                if stock is None:
                    raise NotFoundError("stock", symbol)
                targets = [symbol] if stock.is_active else []

        updates: List[dict] = []
        for target in targets:
            try:
                update = await self._apply_news_to_stock(guild_id, target, impact, now)
            except Exception:
                logger.exception("Error aplicando noticia a %s/%s", guild_id, target)
                continue
            if update is not None:
                updates.append(update)

        logger.info(
            "Noticia aplicada en guild %s: %.2f%% sobre %d acciones",
            guild_id, impact * 100, len(updates),
        )
        return updates

    async def _apply_news_to_stock(
        self, guild_id: str, symbol: str, impact: float, now: datetime,
    ) -> Optional[dict]:
        model = self._simulator.model
        async with self._store.transaction() as session:
            stock = await session.get_stock_by_symbol(guild_id, symbol, for_update=True)
            if stock is None or not stock.is_active:
                return None
            old_price = stock.price
            new_price = model.apply_impact(old_price, impact)
            if new_price == old_price:
                return None
            await session.update_stock_price(guild_id, symbol, new_price)
            await self._aggregator.record_in(session, guild_id, symbol, new_price, 0, now)

        await self._limit_orders.check_and_execute(guild_id, symbol, new_price, now)
        payload = {
            "guildId": guild_id,
            "symbol": symbol,
            "oldPrice": float(old_price),
            "newPrice": float(new_price),
            "changePercent": round(float((new_price - old_price) / old_price * 100), 4),
            "reason": "news_analysis",
        }
        await self._event_publisher.publish(Topics.STOCK_PRICE_UPDATED, payload)
        return payload

    # ─── Circuit breakers ──────────────────────────────────────────────

    def get_circuit_breakers(self, guild_id: str) -> List[CircuitBreaker]:
        return self._breakers.active_for_guild(guild_id)

    async def release_circuit_breaker(self, guild_id: str, symbol: str) -> bool:
        return await self._simulator.release_circuit_breaker(guild_id, symbol)
