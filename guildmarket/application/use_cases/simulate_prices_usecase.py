"""
GuildMarket – Price Simulator
===============================
Un tick de simulación sobre TODAS las acciones activas de TODOS los
guilds.

POR ACCIÓN (transacción corta, sin locks entre ticks):
  1. base      = U[-vol, +vol]
  2. flujo     = presión neta compra/venta del último minuto (≤ ±0.1%)
  3. noticia   = shock ±0.2–0.5% con probabilidad 0.1%
  (+ inercia de noticia si hay una activa para la acción)
  4. total     → clamp ±3×vol
  5. precio    → clamp [max(0.95p, min(1000, p)), 1.05p]
  6. volumen sintético ∝ |cambio%| × 20 + 1
  7. si el precio cambió: persistir, velas, órdenes limitadas, evento

Un fallo en una acción se loguea y NO detiene el tick de las demás.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from guildmarket.application.ports.event_publisher import IEventPublisher, Topics
from guildmarket.application.services.candlestick_aggregator import CandlestickAggregator
from guildmarket.application.services.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from guildmarket.application.use_cases.limit_order_usecase import Clock, LimitOrderEngine, utc_now
from guildmarket.domain.entities.stock import Stock
from guildmarket.domain.entities.trade import TradeSide
from guildmarket.domain.repositories.market_store import IMarketStore
from guildmarket.domain.services.price_model import NewsMomentum, PriceModel, PriceModelConfig
from guildmarket.shared.config.settings import Settings, settings as default_settings
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("price_simulator")


class PriceSimulator:
    """Caso de uso: tick periódico de precios."""

    def __init__(
        self,
        store: IMarketStore,
        aggregator: CandlestickAggregator,
        limit_orders: LimitOrderEngine,
        event_publisher: IEventPublisher,
        circuit_breakers: CircuitBreakerRegistry,
        config: Settings = None,
        rng: random.Random = None,
        clock: Clock = utc_now,
    ):
        self._store = store
        self._aggregator = aggregator
        self._limit_orders = limit_orders
        self._event_publisher = event_publisher
        self._breakers = circuit_breakers
        self._config = config or default_settings
        self._model = PriceModel(PriceModelConfig.from_settings(self._config), rng)
        self._clock = clock
        self._tz = ZoneInfo(self._config.market_timezone)
        # (guild, symbol) → inercia por noticia
        self._momentum: Dict[Tuple[str, str], NewsMomentum] = {}

    @property
    def model(self) -> PriceModel:
        return self._model

    # ─── Inercia por noticia ───────────────────────────────────────────

    def set_news_momentum(
        self,
        guild_id: str,
        symbol: str,
        direction: float,
        intensity: float,
        duration_minutes: Optional[float] = None,
    ) -> NewsMomentum:
        """Dirección en [-1, 1] e intensidad en [0, 1]; se recortan al rango."""
        if duration_minutes is None:
            duration_minutes = self._config.news_momentum_minutes
        momentum = NewsMomentum(
            direction=max(-1.0, min(1.0, float(direction))),
            intensity=max(0.0, min(1.0, float(intensity))),
            started_at=self._clock(),
            duration=timedelta(minutes=duration_minutes),
        )
        self._momentum[(guild_id, symbol)] = momentum
        logger.info(
            "Inercia por noticia en %s/%s: dir=%.2f int=%.2f (%.1f min)",
            guild_id, symbol, momentum.direction, momentum.intensity, duration_minutes,
        )
        return momentum

    def _momentum_term(self, guild_id: str, symbol: str, now: datetime) -> float:
        key = (guild_id, symbol)
        momentum = self._momentum.get(key)
        if momentum is None:
            return 0.0
        if momentum.is_expired(now):
            del self._momentum[key]
            return 0.0
        return self._model.momentum_impact(momentum, now)

    # ─── Tick ──────────────────────────────────────────────────────────

    async def tick(self) -> List[dict]:
        """
        Ejecuta un tick completo.

        Returns:
            Payloads de ``stock_price_updated`` emitidos en este tick
        """
        now = self._clock()
        async with self._store.transaction() as session:
            stocks = await session.get_all_active_stocks()

        await self._roll_trading_day(now, stocks)
        for breaker in self._breakers.release_expired(now):
            await self._publish_resumed(breaker, manual=False)

        updates: List[dict] = []
        for stock in stocks:
            try:
                update = await self.simulate_stock(stock.guild_id, stock.symbol, now)
            except Exception:
                logger.exception("Error simulando precio de %s/%s", stock.guild_id, stock.symbol)
                continue
            if update is not None:
                updates.append(update)

        logger.debug("Tick: %d acciones, %d cambios de precio", len(stocks), len(updates))
        return updates

    async def _roll_trading_day(self, now: datetime, stocks: List[Stock]) -> None:
        if not self._breakers.roll_day(now.astimezone(self._tz).date()):
            return
        for guild_id in sorted({stock.guild_id for stock in stocks}):
            await self._event_publisher.publish(Topics.TRADING_DAY_START, {
                "guildId": guild_id,
                "timestamp": now.isoformat(),
                "message": "Comenzó un nuevo día de mercado: precios base reiniciados",
            })

    async def simulate_stock(self, guild_id: str, symbol: str, now: datetime) -> Optional[dict]:
        """
        Simula una acción.

        Returns:
            Payload publicado, o None si el precio no cambió o la acción
            está pausada / inactiva
        """
        if self._breakers.is_halted(guild_id, symbol):
            logger.debug("Circuit breaker activo en %s/%s, tick omitido", guild_id, symbol)
            return None

        model = self._model
        async with self._store.transaction() as session:
            stock = await session.get_stock_by_symbol(guild_id, symbol, for_update=True)
            if stock is None or not stock.is_active:
                return None
            old_price = stock.price
            self._breakers.baseline(guild_id, symbol, old_price)

            since = now - timedelta(minutes=self._config.trade_flow_window_minutes)
            trades = await session.get_recent_trades_by_symbol(guild_id, symbol, since)
            buy_volume = sum(t.shares for t in trades if t.side is TradeSide.BUY)
            sell_volume = sum(t.shares for t in trades if t.side is TradeSide.SELL)

            volatility = float(stock.volatility) or self._config.default_volatility
            total_change = (
                model.base_change(volatility)
                + model.trade_flow_impact(buy_volume, sell_volume)
                + model.news_shock()
                + self._momentum_term(guild_id, symbol, now)
            )
            change = model.clamp_change(total_change, volatility)
            new_price = model.next_price(old_price, change)
            volume = model.synthetic_volume(change)

            if new_price == old_price:
                return None

            await session.update_stock_price(guild_id, symbol, new_price)
            await self._aggregator.record_in(session, guild_id, symbol, new_price, volume, now)

        try:
            await self._limit_orders.check_and_execute(guild_id, symbol, new_price, now)
        except Exception:
            logger.exception("Error revisando órdenes limitadas de %s/%s", guild_id, symbol)

        change_pct = float((new_price - old_price) / old_price * 100)
        payload = {
            "guildId": guild_id,
            "symbol": symbol,
            "oldPrice": float(old_price),
            "newPrice": float(new_price),
            "changePercent": round(change_pct, 4),
            "volume": volume,
        }
        await self._event_publisher.publish(Topics.STOCK_PRICE_UPDATED, payload)
        logger.debug("%s/%s: %s → %s (%.3f%%)", guild_id, symbol, old_price, new_price, change_pct)

        breaker = self._breakers.evaluate(guild_id, symbol, new_price, now)
        if breaker is not None:
            await self._event_publisher.publish(Topics.CIRCUIT_BREAKER_TRIGGERED, breaker.to_dict())
        return payload

    async def _publish_resumed(self, breaker: CircuitBreaker, manual: bool) -> None:
        await self._event_publisher.publish(Topics.CIRCUIT_BREAKER_RESUMED, {
            "guildId": breaker.guild_id,
            "symbol": breaker.symbol,
            "level": breaker.level,
            "manualRelease": manual,
            "resumedAt": self._clock().isoformat(),
        })

    async def release_circuit_breaker(self, guild_id: str, symbol: str) -> bool:
        breaker = self._breakers.release(guild_id, symbol)
        if breaker is None:
            return False
        await self._publish_resumed(breaker, manual=True)
        return True
