"""
GuildMarket – Market Mapper
=============================
Mapea entre entidades de dominio y modelos ORM.

Las fechas se guardan en UTC sin zona (MySQL DATETIME) y se devuelven
como datetime UTC con zona: las comparaciones entre instantes siguen
funcionando aunque el dominio trabaje en la zona del mercado.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from guildmarket.domain.entities.account import Account, Holding
from guildmarket.domain.entities.candlestick import Candlestick
from guildmarket.domain.entities.limit_order import LimitOrder, LimitOrderStatus
from guildmarket.domain.entities.stock import Stock, StockStatus
from guildmarket.domain.entities.trade import LedgerEntry, StockTransaction, TradeSide
from guildmarket.domain.value_objects.timeframe import Timeframe


def to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class MarketMapper:
    """Mapper bidireccional entidad ↔ modelo para todas las tablas del mercado."""

    # ─── Stock ──────────────────────────────────────────────────────────

    def stock_to_model(self, stock: Stock) -> Dict[str, Any]:
        return {
            "id": stock.id,
            "guild_id": stock.guild_id,
            "symbol": stock.symbol,
            "name": stock.name,
            "price": stock.price,
            "volatility": stock.volatility,
            "status": stock.status.value,
            "total_shares": stock.total_shares,
        }

    def to_stock(self, model: Any) -> Stock:
        return Stock(
            id=model.id,
            guild_id=model.guild_id,
            symbol=model.symbol,
            name=model.name,
            price=model.price,
            volatility=model.volatility,
            status=StockStatus(model.status),
            total_shares=model.total_shares,
        )

    # ─── Account / Holding ──────────────────────────────────────────────

    def account_to_model(self, account: Account) -> Dict[str, Any]:
        return {
            "id": account.id,
            "guild_id": account.guild_id,
            "user_id": account.user_id,
            "balance": account.balance,
            "frozen": account.frozen,
            "trading_suspended": account.trading_suspended,
        }

    def to_account(self, model: Any) -> Account:
        return Account(
            id=model.id,
            guild_id=model.guild_id,
            user_id=model.user_id,
            balance=model.balance,
            frozen=model.frozen,
            trading_suspended=model.trading_suspended,
        )

    def to_holding(self, model: Any) -> Holding:
        return Holding(
            id=model.id,
            guild_id=model.guild_id,
            user_id=model.user_id,
            symbol=model.symbol,
            shares=model.shares,
            avg_price=model.avg_price,
        )

    # ─── Trades / libro ─────────────────────────────────────────────────

    def stock_transaction_to_model(self, tx: StockTransaction) -> Dict[str, Any]:
        return {
            "id": tx.id,
            "guild_id": tx.guild_id,
            "user_id": tx.user_id,
            "symbol": tx.symbol,
            "type": tx.side.value,
            "shares": tx.shares,
            "price": tx.price,
            "total_amount": tx.total_amount,
            "created_at": to_db_time(tx.created_at),
        }

    def to_stock_transaction(self, model: Any) -> StockTransaction:
        return StockTransaction(
            id=model.id,
            guild_id=model.guild_id,
            user_id=model.user_id,
            symbol=model.symbol,
            side=TradeSide(model.type),
            shares=model.shares,
            price=model.price,
            total_amount=model.total_amount,
            created_at=from_db_time(model.created_at),
        )

    def ledger_to_model(self, entry: LedgerEntry) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "guild_id": entry.guild_id,
            "user_id": entry.user_id,
            "type": entry.type.value,
            "amount": entry.amount,
            "memo": entry.memo[:255],
            "created_at": to_db_time(entry.created_at),
        }

    # ─── Velas ──────────────────────────────────────────────────────────

    def candle_to_model(self, candle: Candlestick) -> Dict[str, Any]:
        return {
            "guild_id": candle.guild_id,
            "symbol": candle.symbol,
            "timeframe": candle.timeframe.value,
            "timestamp": to_db_time(candle.timestamp),
            "open": candle.open,
            "high": candle.high,
            "low": candle.low,
            "close": candle.close,
            "volume": candle.volume,
        }

    def to_candle(self, model: Any) -> Candlestick:
        return Candlestick(
            guild_id=model.guild_id,
            symbol=model.symbol,
            timeframe=Timeframe(model.timeframe),
            timestamp=from_db_time(model.timestamp),
            open=model.open,
            high=model.high,
            low=model.low,
            close=model.close,
            volume=model.volume,
        )

    # ─── Órdenes limitadas ──────────────────────────────────────────────

    def order_to_model(self, order: LimitOrder) -> Dict[str, Any]:
        return {
            "id": order.id,
            "guild_id": order.guild_id,
            "user_id": order.user_id,
            "symbol": order.symbol,
            "type": order.side.value,
            "shares": order.shares,
            "target_price": order.target_price,
            "total_amount": order.total_amount,
            "reserved_amount": order.reserved_amount,
            "reserved_shares": order.reserved_shares,
            "reserved_avg_price": order.reserved_avg_price,
            "status": order.status.value,
            "expires_at": to_db_time(order.expires_at),
            "created_at": to_db_time(order.created_at),
            "executed_price": order.executed_price,
            "executed_shares": order.executed_shares,
            "executed_at": to_db_time(order.executed_at),
        }

    def to_order(self, model: Any) -> LimitOrder:
        return LimitOrder(
            id=model.id,
            guild_id=model.guild_id,
            user_id=model.user_id,
            symbol=model.symbol,
            side=TradeSide(model.type),
            shares=model.shares,
            target_price=model.target_price,
            total_amount=model.total_amount,
            reserved_amount=model.reserved_amount,
            reserved_shares=model.reserved_shares,
            reserved_avg_price=model.reserved_avg_price,
            status=LimitOrderStatus(model.status),
            expires_at=from_db_time(model.expires_at),
            created_at=from_db_time(model.created_at),
            executed_price=model.executed_price,
            executed_shares=model.executed_shares,
            executed_at=from_db_time(model.executed_at),
        )
