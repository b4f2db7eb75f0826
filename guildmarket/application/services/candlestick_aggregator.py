"""
GuildMarket – Candlestick Aggregator
======================================
Mantiene velas OHLCV en 14 timeframes paralelos por (guild, symbol).

FLUJO POR TICK / TRADE:
  for tf in ALL_TIMEFRAMES:
      bucket = bucket_start(tf, now)          # función pura
      vela = store.get(guild, symbol, tf, bucket)
      no existe → INSERT open=high=low=close=precio, volume
      existe    → close=precio, volume+=vol, high/low amortiguados

Cada timeframe es independiente: agregar o quitar uno no toca esta
clase. Los instantes se llevan a la zona horaria del mercado antes de
alinear (el "día" de la vela diaria es el día local del mercado).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List
from zoneinfo import ZoneInfo

from guildmarket.domain.entities.candlestick import Candlestick
from guildmarket.domain.repositories.market_store import IMarketSession, IMarketStore
from guildmarket.domain.services.price_model import merge_candle_range
from guildmarket.domain.value_objects.money import quantize
from guildmarket.domain.value_objects.timeframe import ALL_TIMEFRAMES, Timeframe, bucket_start
from guildmarket.shared.config.settings import Settings, settings as default_settings
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("candlestick_aggregator")


class CandlestickAggregator:
    """Upsert idempotente de velas para cada timeframe."""

    def __init__(
        self,
        store: IMarketStore,
        config: Settings = None,
        timeframes: Iterable[Timeframe] = ALL_TIMEFRAMES,
    ):
        self._store = store
        self._config = config or default_settings
        self._timeframes = tuple(timeframes)
        self._tz = ZoneInfo(self._config.market_timezone)

    @property
    def timeframes(self) -> tuple:
        return self._timeframes

    async def record_tick(
        self,
        guild_id: str,
        symbol: str,
        price: Decimal,
        volume: int,
        now: datetime,
    ) -> List[Candlestick]:
        """Registra un tick en su propia transacción."""
        async with self._store.transaction() as session:
            return await self.record_in(session, guild_id, symbol, price, volume, now)

    async def record_in(
        self,
        session: IMarketSession,
        guild_id: str,
        symbol: str,
        price: Decimal,
        volume: int,
        now: datetime,
    ) -> List[Candlestick]:
        """
        Registra un tick dentro de una transacción ya abierta.

        Returns:
            Las velas resultantes, una por timeframe
        """
        local_now = now.astimezone(self._tz)
        places = self._config.price_decimal_places
        price = quantize(price, places)
        candles: List[Candlestick] = []

        for timeframe in self._timeframes:
            bucket = bucket_start(timeframe, local_now)
            candle = await session.get_candlestick(
                guild_id, symbol, timeframe, bucket, for_update=True,
            )

            if candle is None:
                candle = Candlestick(
                    guild_id=guild_id,
                    symbol=symbol,
                    timeframe=timeframe,
                    timestamp=bucket,
                    open=price,
                    high=price,
                    low=price,
                    close=price,
                    volume=volume,
                )
                await session.create_candlestick(candle)
            else:
                high, low = merge_candle_range(
                    candle.open,
                    candle.high,
                    candle.low,
                    price,
                    threshold=self._config.candle_wick_threshold,
                    step=self._config.candle_wick_step,
                )
                candle.high = quantize(high, places)
                candle.low = quantize(low, places)
                candle.close = price
                candle.volume += volume
                await session.update_candlestick(candle)

            candles.append(candle)

        logger.debug(
            "Velas actualizadas %s/%s @ %s (vol=%d, %d timeframes)",
            guild_id, symbol, price, volume, len(candles),
        )
        return candles

    async def get_candlesticks(
        self,
        guild_id: str,
        symbol: str,
        timeframe: Timeframe | str,
        limit: int = 100,
    ) -> List[Candlestick]:
        async with self._store.transaction() as session:
            return await session.get_candlesticks(guild_id, symbol, Timeframe(timeframe), limit)
