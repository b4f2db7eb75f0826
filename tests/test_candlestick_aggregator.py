"""Tests del agregador de velas multi-timeframe."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from guildmarket.domain.value_objects.timeframe import ALL_TIMEFRAMES, Timeframe
from support import FIXED_NOW, GUILD


def test_first_tick_opens_one_candle_per_timeframe(make_market):
    async def scenario():
        market = make_market()
        aggregator = market.engine.aggregator
        candles = await aggregator.record_tick(GUILD, "SAMSUNG", Decimal("10000"), 250, FIXED_NOW)

        assert [c.timeframe for c in candles] == list(ALL_TIMEFRAMES)
        for candle in candles:
            assert candle.open == candle.high == candle.low == candle.close == Decimal("10000")
            assert candle.volume == 250

    asyncio.run(scenario())


def test_ticks_in_same_bucket_merge(make_market):
    async def scenario():
        market = make_market()
        aggregator = market.engine.aggregator
        await aggregator.record_tick(GUILD, "SAMSUNG", Decimal("10000"), 100, FIXED_NOW)
        await aggregator.record_tick(
            GUILD, "SAMSUNG", Decimal("10100"), 50, FIXED_NOW + timedelta(seconds=10),
        )

        [candle] = await aggregator.get_candlesticks(GUILD, "SAMSUNG", Timeframe.M1)
        assert candle.open == Decimal("10000")
        assert candle.close == Decimal("10100")
        # el high solo se amplía 0.5% por actualización
        assert candle.high == Decimal("10050.00")
        assert candle.low == Decimal("10000")
        assert candle.volume == 150

    asyncio.run(scenario())


def test_new_minute_opens_new_short_candle_only(make_market):
    async def scenario():
        market = make_market()
        aggregator = market.engine.aggregator
        await aggregator.record_tick(GUILD, "SAMSUNG", Decimal("10000"), 100, FIXED_NOW)
        await aggregator.record_tick(
            GUILD, "SAMSUNG", Decimal("10020"), 100, FIXED_NOW + timedelta(minutes=1),
        )

        minutes = await aggregator.get_candlesticks(GUILD, "SAMSUNG", Timeframe.M1)
        hours = await aggregator.get_candlesticks(GUILD, "SAMSUNG", "1h")
        assert len(minutes) == 2
        assert minutes[0].timestamp < minutes[1].timestamp
        assert len(hours) == 1
        assert hours[0].volume == 200
        assert hours[0].close == Decimal("10020")

    asyncio.run(scenario())


def test_daily_candle_uses_market_timezone(make_market):
    async def scenario():
        market = make_market()
        # 15:30 UTC = 00:30 del día siguiente en Seúl
        now = datetime(2026, 3, 2, 15, 30, tzinfo=timezone.utc)
        await market.engine.aggregator.record_tick(GUILD, "SAMSUNG", Decimal("10000"), 1, now)

        [daily] = await market.engine.get_candlesticks(GUILD, "SAMSUNG", Timeframe.D1)
        assert daily.timestamp == datetime(2026, 3, 3, tzinfo=ZoneInfo("Asia/Seoul"))

    asyncio.run(scenario())


def test_price_is_quantized(make_market):
    async def scenario():
        market = make_market()
        await market.engine.aggregator.record_tick(
            GUILD, "SAMSUNG", Decimal("10000.126"), 1, FIXED_NOW,
        )
        [candle] = await market.engine.get_candlesticks(GUILD, "SAMSUNG", Timeframe.M5)
        assert candle.close == Decimal("10000.13")

    asyncio.run(scenario())


def test_get_candlesticks_limit_keeps_latest(make_market):
    async def scenario():
        market = make_market()
        aggregator = market.engine.aggregator
        for minute in range(5):
            await aggregator.record_tick(
                GUILD, "SAMSUNG", Decimal(10000 + minute), 1, FIXED_NOW + timedelta(minutes=minute),
            )
        candles = await aggregator.get_candlesticks(GUILD, "SAMSUNG", Timeframe.M1, limit=2)
        assert [c.close for c in candles] == [Decimal("10003"), Decimal("10004")]

    asyncio.run(scenario())


def test_symbols_are_independent(make_market):
    async def scenario():
        market = make_market()
        aggregator = market.engine.aggregator
        await aggregator.record_tick(GUILD, "SAMSUNG", Decimal("10000"), 1, FIXED_NOW)
        await aggregator.record_tick(GUILD, "KAKAO", Decimal("5000"), 1, FIXED_NOW)

        [samsung] = await aggregator.get_candlesticks(GUILD, "SAMSUNG", Timeframe.H1)
        [kakao] = await aggregator.get_candlesticks(GUILD, "KAKAO", Timeframe.H1)
        assert samsung.close == Decimal("10000")
        assert kakao.close == Decimal("5000")

    asyncio.run(scenario())
