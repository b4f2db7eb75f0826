"""
GuildMarket – SQLAlchemy Market Store
=======================================
Implementación de IMarketStore sobre SQLAlchemy 2.x asyncio (MySQL vía
aiomysql por defecto).

TRANSACCIONES:
- Una ``AsyncSession`` + ``session.begin()`` por ``transaction()``:
  commit al salir, rollback si sale una excepción.
- ``for_update=True`` agrega ``SELECT … FOR UPDATE`` (bloqueo de fila).
- Las transiciones de órdenes son compare-and-swap:
  ``UPDATE … WHERE status='pending'`` y se mira ``rowcount``.
- ``autoflush=False`` en la factory: cada escritura hace ``flush()``
  explícito para que las lecturas siguientes de la misma transacción
  la vean.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from guildmarket.domain.entities.account import Holding
from guildmarket.domain.entities.limit_order import LimitOrderStatus
from guildmarket.domain.repositories.market_store import IMarketSession, IMarketStore
from guildmarket.domain.value_objects.timeframe import Timeframe
from guildmarket.infrastructure.persistence.database import DatabaseManager
from guildmarket.infrastructure.persistence.mappers.market_mapper import MarketMapper, to_db_time
from guildmarket.infrastructure.persistence.models import (
    AccountModel,
    CandlestickModel,
    HoldingModel,
    LedgerEntryModel,
    LimitOrderModel,
    StockModel,
    StockTransactionModel,
)
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("sql_store")


class SqlAlchemyMarketSession(IMarketSession):
    """IMarketSession sobre una AsyncSession con transacción abierta."""

    def __init__(self, session: AsyncSession, mapper: MarketMapper):
        self._session = session
        self._mapper = mapper

    async def _one(self, stmt, for_update: bool = False):
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _all(self, stmt):
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ─── Acciones ───────────────────────────────────────────────────────

    def _stock_stmt(self, guild_id: str, symbol: str):
        return select(StockModel).where(
            StockModel.guild_id == guild_id, StockModel.symbol == symbol,
        )

    async def get_stock_by_symbol(self, guild_id, symbol, for_update=False):
        model = await self._one(self._stock_stmt(guild_id, symbol), for_update)
        return self._mapper.to_stock(model) if model else None

    async def get_all_active_stocks(self):
        rows = await self._all(
            select(StockModel).where(StockModel.status == "active").order_by(StockModel.guild_id)
        )
        return [self._mapper.to_stock(m) for m in rows]

    async def get_active_stocks_by_guild(self, guild_id):
        rows = await self._all(
            select(StockModel).where(
                StockModel.guild_id == guild_id, StockModel.status == "active",
            )
        )
        return [self._mapper.to_stock(m) for m in rows]

    async def update_stock_price(self, guild_id, symbol, price):
        await self._session.execute(
            update(StockModel)
            .where(StockModel.guild_id == guild_id, StockModel.symbol == symbol)
            .values(price=price)
        )

    async def create_stock(self, stock):
        self._session.add(StockModel(**self._mapper.stock_to_model(stock)))
        await self._session.flush()
        return stock

    # ─── Cuentas ────────────────────────────────────────────────────────

    def _account_stmt(self, guild_id: str, user_id: str):
        return select(AccountModel).where(
            AccountModel.guild_id == guild_id, AccountModel.user_id == user_id,
        )

    async def _require_account(self, guild_id: str, user_id: str) -> AccountModel:
        model = await self._one(self._account_stmt(guild_id, user_id), for_update=True)
        if model is None:
            raise KeyError(f"account {guild_id}/{user_id}")
        return model

    async def get_account_by_user(self, guild_id, user_id, for_update=False):
        model = await self._one(self._account_stmt(guild_id, user_id), for_update)
        return self._mapper.to_account(model) if model else None

    async def create_account(self, account):
        self._session.add(AccountModel(**self._mapper.account_to_model(account)))
        await self._session.flush()
        return account

    async def update_balance(self, guild_id, user_id, delta):
        model = await self._require_account(guild_id, user_id)
        model.balance = model.balance + delta
        await self._session.flush()
        return model.balance

    async def freeze_account(self, guild_id, user_id, frozen=True):
        model = await self._require_account(guild_id, user_id)
        model.frozen = frozen
        await self._session.flush()

    async def suspend_account_trading(self, guild_id, user_id, suspended=True):
        model = await self._require_account(guild_id, user_id)
        model.trading_suspended = suspended
        await self._session.flush()

    # ─── Holdings ───────────────────────────────────────────────────────

    def _holding_stmt(self, guild_id: str, user_id: str, symbol: str):
        return select(HoldingModel).where(
            HoldingModel.guild_id == guild_id,
            HoldingModel.user_id == user_id,
            HoldingModel.symbol == symbol,
        )

    async def get_holding(self, guild_id, user_id, symbol, for_update=False):
        model = await self._one(self._holding_stmt(guild_id, user_id, symbol), for_update)
        return self._mapper.to_holding(model) if model else None

    async def get_holdings_by_user(self, guild_id, user_id):
        rows = await self._all(
            select(HoldingModel)
            .where(HoldingModel.guild_id == guild_id, HoldingModel.user_id == user_id)
            .order_by(HoldingModel.symbol)
        )
        return [self._mapper.to_holding(m) for m in rows]

    async def update_holding(self, guild_id, user_id, symbol, shares, avg_price):
        if shares < 0:
            raise ValueError(f"Holding negativo para {user_id}/{symbol}: {shares}")
        if shares == 0:
            await self._session.execute(
                delete(HoldingModel).where(
                    HoldingModel.guild_id == guild_id,
                    HoldingModel.user_id == user_id,
                    HoldingModel.symbol == symbol,
                )
            )
            return None

        model = await self._one(self._holding_stmt(guild_id, user_id, symbol), for_update=True)
        if model is None:
            holding = Holding(guild_id, user_id, symbol, shares, avg_price)
            model = HoldingModel(
                id=holding.id, guild_id=guild_id, user_id=user_id, symbol=symbol,
                shares=shares, avg_price=avg_price,
            )
            self._session.add(model)
        else:
            model.shares = shares
            model.avg_price = avg_price
        await self._session.flush()
        return self._mapper.to_holding(model)

    # ─── Trades y libro general ─────────────────────────────────────────

    async def add_stock_transaction(self, transaction):
        self._session.add(StockTransactionModel(**self._mapper.stock_transaction_to_model(transaction)))
        await self._session.flush()

    async def get_recent_trades_by_symbol(self, guild_id, symbol, since):
        rows = await self._all(
            select(StockTransactionModel).where(
                StockTransactionModel.guild_id == guild_id,
                StockTransactionModel.symbol == symbol,
                StockTransactionModel.created_at >= to_db_time(since),
            )
        )
        return [self._mapper.to_stock_transaction(m) for m in rows]

    async def add_transaction(self, entry):
        self._session.add(LedgerEntryModel(**self._mapper.ledger_to_model(entry)))
        await self._session.flush()

    # ─── Velas ──────────────────────────────────────────────────────────

    def _candle_filter(self, guild_id, symbol, timeframe, timestamp):
        return and_(
            CandlestickModel.guild_id == guild_id,
            CandlestickModel.symbol == symbol,
            CandlestickModel.timeframe == Timeframe(timeframe).value,
            CandlestickModel.timestamp == to_db_time(timestamp),
        )

    async def get_candlestick(self, guild_id, symbol, timeframe, timestamp, for_update=False):
        model = await self._one(
            select(CandlestickModel).where(
                self._candle_filter(guild_id, symbol, timeframe, timestamp)
            ),
            for_update,
        )
        return self._mapper.to_candle(model) if model else None

    async def create_candlestick(self, candle):
        self._session.add(CandlestickModel(**self._mapper.candle_to_model(candle)))
        await self._session.flush()

    async def update_candlestick(self, candle):
        await self._session.execute(
            update(CandlestickModel)
            .where(self._candle_filter(candle.guild_id, candle.symbol, candle.timeframe, candle.timestamp))
            .values(high=candle.high, low=candle.low, close=candle.close, volume=candle.volume)
        )

    async def get_candlesticks(self, guild_id, symbol, timeframe, limit=100):
        rows = await self._all(
            select(CandlestickModel)
            .where(
                CandlestickModel.guild_id == guild_id,
                CandlestickModel.symbol == symbol,
                CandlestickModel.timeframe == Timeframe(timeframe).value,
            )
            .order_by(CandlestickModel.timestamp.desc())
            .limit(limit)
        )
        return [self._mapper.to_candle(m) for m in reversed(rows)]

    # ─── Órdenes limitadas ──────────────────────────────────────────────

    async def create_limit_order(self, order):
        self._session.add(LimitOrderModel(**self._mapper.order_to_model(order)))
        await self._session.flush()
        return order

    async def get_limit_order(self, order_id, for_update=False):
        model = await self._one(
            select(LimitOrderModel).where(LimitOrderModel.id == order_id), for_update,
        )
        return self._mapper.to_order(model) if model else None

    async def get_limit_orders_by_user(self, guild_id, user_id, status=None):
        stmt = select(LimitOrderModel).where(
            LimitOrderModel.guild_id == guild_id, LimitOrderModel.user_id == user_id,
        )
        if status is not None:
            stmt = stmt.where(LimitOrderModel.status == LimitOrderStatus(status).value)
        rows = await self._all(stmt.order_by(LimitOrderModel.created_at.desc()))
        return [self._mapper.to_order(m) for m in rows]

    async def check_pending_orders_for_symbol(self, guild_id, symbol, current_price):
        rows = await self._all(
            select(LimitOrderModel)
            .where(
                LimitOrderModel.guild_id == guild_id,
                LimitOrderModel.symbol == symbol,
                LimitOrderModel.status == LimitOrderStatus.PENDING.value,
                or_(
                    and_(LimitOrderModel.type == "buy", LimitOrderModel.target_price >= current_price),
                    and_(LimitOrderModel.type == "sell", LimitOrderModel.target_price <= current_price),
                ),
            )
            .order_by(LimitOrderModel.created_at)
        )
        return [self._mapper.to_order(m) for m in rows]

    async def get_expired_pending_orders(self, now):
        rows = await self._all(
            select(LimitOrderModel).where(
                LimitOrderModel.status == LimitOrderStatus.PENDING.value,
                LimitOrderModel.expires_at <= to_db_time(now),
            )
        )
        return [self._mapper.to_order(m) for m in rows]

    async def _transition(self, order, values: dict) -> bool:
        result = await self._session.execute(
            update(LimitOrderModel)
            .where(
                LimitOrderModel.id == order.id,
                LimitOrderModel.status == LimitOrderStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def execute_limit_order(self, order):
        return await self._transition(order, {
            "status": LimitOrderStatus.EXECUTED.value,
            "executed_price": order.executed_price,
            "executed_shares": order.executed_shares,
            "executed_at": to_db_time(order.executed_at),
        })

    async def cancel_limit_order(self, order):
        if order.status not in (LimitOrderStatus.CANCELLED, LimitOrderStatus.EXPIRED):
            raise ValueError(f"Transición inválida a {order.status.value}")
        return await self._transition(order, {"status": order.status.value})


class SqlAlchemyMarketStore(IMarketStore):
    """Store persistente: una transacción de BD por ``transaction()``."""

    def __init__(self, db_manager: DatabaseManager):
        self._db = db_manager
        self._mapper = MarketMapper()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlAlchemyMarketSession]:
        async with self._db.session() as session:
            async with session.begin():
                yield SqlAlchemyMarketSession(session, self._mapper)

    async def close(self) -> None:
        await self._db.close()
        logger.info("SqlAlchemyMarketStore cerrado")
