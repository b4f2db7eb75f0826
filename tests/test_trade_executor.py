"""Tests de ejecución inmediata de trades."""

import asyncio
from decimal import Decimal

import pytest

from guildmarket.application.ports.event_publisher import Topics
from guildmarket.domain.entities.stock import StockStatus
from guildmarket.domain.entities.trade import LedgerType
from guildmarket.domain.exceptions.domain_errors import (
    AccountFrozenError,
    InsufficientFundsError,
    InsufficientSharesError,
    InvalidOrderError,
    NotFoundError,
    TradingHaltedError,
    TradingSuspendedError,
)
from guildmarket.domain.value_objects.timeframe import Timeframe
from support import GUILD, ScriptedRandom


class TestBuy:

    def test_buy_then_insufficient_funds(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock(price="9000")
            await market.add_account(balance="100000")
            engine = market.engine

            result = await engine.execute_trade(GUILD, "alice", "SAMSUNG", "buy", 10, Decimal("9000"))
            assert result.balance_after == Decimal("10000")
            assert result.holding_shares_after == 10
            holding = await market.holding()
            assert holding.shares == 10
            assert holding.avg_price == Decimal("9000")

            with pytest.raises(InsufficientFundsError):
                await engine.execute_trade(GUILD, "alice", "SAMSUNG", "buy", 2, Decimal("9000"))
            assert (await market.account()).balance == Decimal("10000")
            assert (await market.holding()).shares == 10

        asyncio.run(scenario())

    def test_minimum_balance_must_remain(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock(price="9000")
            await market.add_account(balance="90000")
            with pytest.raises(InsufficientFundsError) as exc:
                await market.engine.execute_trade(GUILD, "alice", "SAMSUNG", "buy", 10, Decimal("9000"))
            assert exc.value.code == "INSUFFICIENT_FUNDS"

        asyncio.run(scenario())

    def test_weighted_average_price(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock(price="9000")
            await market.add_account(balance="1000000")
            await market.engine.execute_trade(GUILD, "alice", "SAMSUNG", "buy", 10, Decimal("9000"))
            await market.engine.execute_trade(GUILD, "alice", "SAMSUNG", "buy", 10, Decimal("10000"))
            holding = await market.holding()
            assert holding.shares == 20
            assert holding.avg_price == Decimal("9500")

        asyncio.run(scenario())

    def test_records_transaction_ledger_candles_and_event(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock(price="9000")
            await market.add_account()
            result = await market.engine.execute_trade(
                GUILD, "alice", "SAMSUNG", "buy", 10, Decimal("9000"),
            )

            [tx] = market.store.stock_transactions
            assert tx == result.transaction
            assert tx.total_amount == Decimal("90000")

            [entry] = market.store.ledger_entries
            assert entry.type is LedgerType.STOCK_BUY
            assert entry.amount == Decimal("90000")

            [candle] = await market.engine.get_candlesticks(GUILD, "SAMSUNG", Timeframe.M1)
            assert candle.close == Decimal("9000")
            assert candle.volume == 10

            [event] = market.publisher.of(Topics.TRADE_EXECUTED)
            assert event["type"] == "buy"
            assert event["shares"] == 10
            assert event["guildId"] == GUILD

        asyncio.run(scenario())


class TestSell:

    def test_selling_everything_deletes_holding(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock(price="10000")
            await market.add_account(balance="0")
            await market.add_holding("alice", "SAMSUNG", 100, "8000")

            result = await market.engine.execute_trade(
                GUILD, "alice", "SAMSUNG", "sell", 100, Decimal("10000"),
            )
            assert result.holding_shares_after == 0
            assert result.balance_after == Decimal("1000000")
            assert await market.holding() is None

            [entry] = market.store.ledger_entries
            assert entry.type is LedgerType.STOCK_SELL

        asyncio.run(scenario())

    def test_partial_sell_keeps_average(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock(price="10000")
            await market.add_account(balance="0")
            await market.add_holding("alice", "SAMSUNG", 100, "8000")
            await market.engine.execute_trade(GUILD, "alice", "SAMSUNG", "sell", 40, Decimal("10000"))
            holding = await market.holding()
            assert holding.shares == 60
            assert holding.avg_price == Decimal("8000")

        asyncio.run(scenario())

    def test_cannot_sell_more_than_held(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock()
            await market.add_account()
            await market.add_holding("alice", "SAMSUNG", 5, "8000")
            with pytest.raises(InsufficientSharesError):
                await market.engine.execute_trade(GUILD, "alice", "SAMSUNG", "sell", 6, Decimal("10000"))
            assert (await market.holding()).shares == 5
            assert market.store.ledger_entries == []

        asyncio.run(scenario())


class TestPreconditions:

    def test_invalid_input_checked_first(self, make_market):
        async def scenario():
            market = make_market()
            for shares, price in [(0, "10"), (-1, "10"), (1.5, "10"), (1, "0"), (1, "-5"), (1, "NaN")]:
                with pytest.raises(InvalidOrderError):
                    await market.engine.execute_trade(GUILD, "ghost", "NOPE", "buy", shares, Decimal(price))
            with pytest.raises(InvalidOrderError):
                await market.engine.execute_trade(GUILD, "ghost", "NOPE", "hold", 1, Decimal("1"))

        asyncio.run(scenario())

    def test_price_rounding_to_zero_is_rejected(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock()
            await market.add_account(balance="100")
            with pytest.raises(InvalidOrderError) as exc:
                await market.engine.execute_trade(GUILD, "alice", "SAMSUNG", "buy", 500, Decimal("0.004"))
            assert exc.value.field == "price"
            assert (await market.account()).balance == Decimal("100")
            assert await market.holding() is None
            assert market.store.stock_transactions == []

        asyncio.run(scenario())

    def test_unknown_stock(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_account()
            with pytest.raises(NotFoundError):
                await market.engine.execute_trade(GUILD, "alice", "NOPE", "buy", 1, Decimal("100"))

        asyncio.run(scenario())

    def test_halted_stock_wins_over_frozen_account(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock(status=StockStatus.HALTED)
            await market.add_account(frozen=True)
            with pytest.raises(TradingHaltedError):
                await market.engine.execute_trade(GUILD, "alice", "SAMSUNG", "buy", 1, Decimal("100"))

        asyncio.run(scenario())

    def test_unknown_account(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock()
            with pytest.raises(NotFoundError) as exc:
                await market.engine.execute_trade(GUILD, "bob", "SAMSUNG", "buy", 1, Decimal("100"))
            assert exc.value.entity == "account"

        asyncio.run(scenario())

    def test_frozen_wins_over_suspended(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock()
            await market.add_account(frozen=True, trading_suspended=True)
            with pytest.raises(AccountFrozenError):
                await market.engine.execute_trade(GUILD, "alice", "SAMSUNG", "buy", 1, Decimal("100"))

        asyncio.run(scenario())

    def test_suspended_account(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock()
            await market.add_account(trading_suspended=True)
            with pytest.raises(TradingSuspendedError):
                await market.engine.execute_trade(GUILD, "alice", "SAMSUNG", "sell", 1, Decimal("100"))

        asyncio.run(scenario())

    def test_guilds_are_isolated(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock(guild_id="guild-2")
            await market.add_account()
            with pytest.raises(NotFoundError):
                await market.engine.execute_trade(GUILD, "alice", "SAMSUNG", "buy", 1, Decimal("100"))

        asyncio.run(scenario())


class TestMarketImpact:

    def test_large_trade_moves_price(self, make_market):
        async def scenario():
            market = make_market(rng=ScriptedRandom())
            await market.add_stock(price="10000")
            await market.add_account(balance="30000000")

            result = await market.engine.execute_trade(
                GUILD, "alice", "SAMSUNG", "buy", 2000, Decimal("10000"),
            )
            assert result.new_market_price == Decimal("10050.00")
            assert (await market.stock()).price == Decimal("10050.00")

            [update] = market.publisher.of(Topics.STOCK_PRICE_UPDATED)
            assert update["reason"] == "market_impact"
            [trade] = market.publisher.of(Topics.TRADE_EXECUTED)
            assert trade["newMarketPrice"] == 10050.0

        asyncio.run(scenario())

    def test_small_trade_leaves_price(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock(price="10000")
            await market.add_account(balance="30000000")
            result = await market.engine.execute_trade(
                GUILD, "alice", "SAMSUNG", "buy", 1000, Decimal("10000"),
            )
            assert result.new_market_price is None
            assert (await market.stock()).price == Decimal("10000")

        asyncio.run(scenario())


class TestConcurrency:

    def test_concurrent_buys_cannot_overdraw(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock(price="9000")
            await market.add_account(balance="100000")

            results = await asyncio.gather(
                *(
                    market.engine.execute_trade(GUILD, "alice", "SAMSUNG", "buy", 10, Decimal("9000"))
                    for _ in range(3)
                ),
                return_exceptions=True,
            )
            failures = [r for r in results if isinstance(r, InsufficientFundsError)]
            assert len(failures) == 2
            assert (await market.account()).balance == Decimal("10000")
            assert (await market.holding()).shares == 10

        asyncio.run(scenario())


class TestPortfolio:

    def test_portfolio_value_at_market_price(self, make_market):
        async def scenario():
            market = make_market()
            await market.add_stock(price="12000")
            await market.add_stock(symbol="KAKAO", price="5000")
            await market.add_account(balance="1000")
            await market.add_holding("alice", "SAMSUNG", 10, "10000")
            await market.add_holding("alice", "KAKAO", 4, "6000")

            value = await market.engine.calculate_portfolio_value(GUILD, "alice")
            assert value.balance == Decimal("1000")
            assert value.holdings_value == Decimal("140000.00")
            assert value.total_value == Decimal("141000.00")
            by_symbol = {p["symbol"]: p for p in value.to_dict()["positions"]}
            assert by_symbol["SAMSUNG"]["profitLoss"] == 20000.0
            assert by_symbol["KAKAO"]["profitLoss"] == -4000.0

        asyncio.run(scenario())

    def test_unknown_account(self, make_market):
        async def scenario():
            market = make_market()
            with pytest.raises(NotFoundError):
                await market.engine.calculate_portfolio_value(GUILD, "nobody")

        asyncio.run(scenario())
