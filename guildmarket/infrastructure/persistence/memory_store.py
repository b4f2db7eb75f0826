"""
GuildMarket – In-Memory Market Store
======================================
Implementación de IMarketStore en memoria del proceso.

Se usa en tests y cuando ``db_enabled=False``.

TRANSACCIONES:
- Un único ``asyncio.Lock`` serializa las transacciones: dentro de una
  transacción ninguna otra corrutina puede leer ni escribir, lo que
  equivale a bloquear TODAS las filas (``for_update`` se ignora).
- Cada escritura anota en un undo log el valor previo de la clave que
  toca (o el largo previo de la lista a la que agrega). Si el bloque sale
  con excepción se deshace el log en orden inverso; el costo es el de lo
  escrito, no el del historial acumulado.
- Las entidades se devuelven como copias: mutarlas no toca el store.

No anidar transacciones: el lock no es reentrante.
"""

from __future__ import annotations

import asyncio
import copy
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from guildmarket.domain.entities.account import Account, Holding
from guildmarket.domain.entities.candlestick import Candlestick
from guildmarket.domain.entities.limit_order import LimitOrder, LimitOrderStatus
from guildmarket.domain.entities.stock import Stock
from guildmarket.domain.entities.trade import LedgerEntry, StockTransaction
from guildmarket.domain.repositories.market_store import IMarketSession, IMarketStore
from guildmarket.domain.value_objects.timeframe import Timeframe
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("memory_store")

_MISSING = object()


@dataclass
class _MarketState:
    stocks: Dict[Tuple[str, str], Stock] = field(default_factory=dict)
    accounts: Dict[Tuple[str, str], Account] = field(default_factory=dict)
    holdings: Dict[Tuple[str, str, str], Holding] = field(default_factory=dict)
    stock_transactions: List[StockTransaction] = field(default_factory=list)
    ledger: List[LedgerEntry] = field(default_factory=list)
    candles: Dict[Tuple[str, str, Timeframe, datetime], Candlestick] = field(default_factory=dict)
    orders: Dict[str, LimitOrder] = field(default_factory=dict)


class InMemoryMarketSession(IMarketSession):
    """Sesión sobre el estado vivo; solo existe dentro de ``transaction()``."""

    def __init__(self, state: _MarketState):
        self._state = state
        self._undo: List[Tuple[Any, Any, Any]] = []
        self._saved: set = set()

    # ─── Undo log ───────────────────────────────────────────────────────

    def _remember(self, table: dict, key) -> None:
        """Guarda el valor previo de ``table[key]`` la primera vez que se toca."""
        marker = (id(table), key)
        if marker in self._saved:
            return
        self._saved.add(marker)
        previous = table.get(key, _MISSING)
        self._undo.append((table, key, copy.copy(previous) if previous is not _MISSING else _MISSING))

    def _remember_append(self, rows: list) -> None:
        marker = (id(rows), None)
        if marker in self._saved:
            return
        self._saved.add(marker)
        self._undo.append((rows, None, len(rows)))

    def rollback(self) -> None:
        for target, key, previous in reversed(self._undo):
            if isinstance(target, list):
                del target[previous:]
            elif previous is _MISSING:
                target.pop(key, None)
            else:
                target[key] = previous
        self._undo.clear()
        self._saved.clear()

    # ─── Acciones ───────────────────────────────────────────────────────

    async def get_stock_by_symbol(self, guild_id, symbol, for_update=False):
        stock = self._state.stocks.get((guild_id, symbol))
        return copy.copy(stock) if stock else None

    async def get_all_active_stocks(self):
        return [copy.copy(s) for s in self._state.stocks.values() if s.is_active]

    async def get_active_stocks_by_guild(self, guild_id):
        return [
            copy.copy(s) for s in self._state.stocks.values()
            if s.guild_id == guild_id and s.is_active
        ]

    async def update_stock_price(self, guild_id, symbol, price):
        stock = self._state.stocks.get((guild_id, symbol))
        if stock is None:
            raise KeyError(f"stock {guild_id}/{symbol}")
        self._remember(self._state.stocks, (guild_id, symbol))
        stock.price = price

    async def create_stock(self, stock):
        key = (stock.guild_id, stock.symbol)
        if key in self._state.stocks:
            raise ValueError(f"Símbolo duplicado en el guild: {stock.symbol}")
        self._remember(self._state.stocks, key)
        self._state.stocks[key] = copy.copy(stock)
        return stock

    # ─── Cuentas ────────────────────────────────────────────────────────

    async def get_account_by_user(self, guild_id, user_id, for_update=False):
        account = self._state.accounts.get((guild_id, user_id))
        return copy.copy(account) if account else None

    async def create_account(self, account):
        key = (account.guild_id, account.user_id)
        if key in self._state.accounts:
            raise ValueError(f"Cuenta duplicada: {account.user_id}")
        self._remember(self._state.accounts, key)
        self._state.accounts[key] = copy.copy(account)
        return account

    async def update_balance(self, guild_id, user_id, delta):
        account = self._require_account(guild_id, user_id)
        account.balance = account.balance + delta
        return account.balance

    async def freeze_account(self, guild_id, user_id, frozen=True):
        self._require_account(guild_id, user_id).frozen = frozen

    async def suspend_account_trading(self, guild_id, user_id, suspended=True):
        self._require_account(guild_id, user_id).trading_suspended = suspended

    def _require_account(self, guild_id: str, user_id: str) -> Account:
        account = self._state.accounts.get((guild_id, user_id))
        if account is None:
            raise KeyError(f"account {guild_id}/{user_id}")
        self._remember(self._state.accounts, (guild_id, user_id))
        return account

    # ─── Holdings ───────────────────────────────────────────────────────

    async def get_holding(self, guild_id, user_id, symbol, for_update=False):
        holding = self._state.holdings.get((guild_id, user_id, symbol))
        return copy.copy(holding) if holding else None

    async def get_holdings_by_user(self, guild_id, user_id):
        return [
            copy.copy(h) for (g, u, _), h in self._state.holdings.items()
            if g == guild_id and u == user_id
        ]

    async def update_holding(self, guild_id, user_id, symbol, shares, avg_price):
        if shares < 0:
            raise ValueError(f"Holding negativo para {user_id}/{symbol}: {shares}")
        key = (guild_id, user_id, symbol)
        self._remember(self._state.holdings, key)
        if shares == 0:
            self._state.holdings.pop(key, None)
            return None
        holding = self._state.holdings.get(key)
        if holding is None:
            holding = Holding(guild_id, user_id, symbol, shares, avg_price)
            self._state.holdings[key] = holding
        else:
            holding.shares = shares
            holding.avg_price = avg_price
        return copy.copy(holding)

    # ─── Trades y libro general ─────────────────────────────────────────

    async def add_stock_transaction(self, transaction):
        self._remember_append(self._state.stock_transactions)
        self._state.stock_transactions.append(transaction)

    async def get_recent_trades_by_symbol(self, guild_id, symbol, since):
        return [
            t for t in self._state.stock_transactions
            if t.guild_id == guild_id and t.symbol == symbol and t.created_at >= since
        ]

    async def add_transaction(self, entry):
        self._remember_append(self._state.ledger)
        self._state.ledger.append(entry)

    # ─── Velas ──────────────────────────────────────────────────────────

    async def get_candlestick(self, guild_id, symbol, timeframe, timestamp, for_update=False):
        candle = self._state.candles.get((guild_id, symbol, Timeframe(timeframe), timestamp))
        return copy.copy(candle) if candle else None

    async def create_candlestick(self, candle):
        key = (candle.guild_id, candle.symbol, candle.timeframe, candle.timestamp)
        if key in self._state.candles:
            raise ValueError(f"Vela duplicada {key}")
        self._remember(self._state.candles, key)
        self._state.candles[key] = copy.copy(candle)

    async def update_candlestick(self, candle):
        key = (candle.guild_id, candle.symbol, candle.timeframe, candle.timestamp)
        if key not in self._state.candles:
            raise KeyError(f"vela {key}")
        self._remember(self._state.candles, key)
        self._state.candles[key] = copy.copy(candle)

    async def get_candlesticks(self, guild_id, symbol, timeframe, limit=100):
        timeframe = Timeframe(timeframe)
        candles = sorted(
            (
                c for (g, s, tf, _), c in self._state.candles.items()
                if g == guild_id and s == symbol and tf == timeframe
            ),
            key=lambda c: c.timestamp,
        )
        return [copy.copy(c) for c in candles[-limit:]] if limit > 0 else []

    # ─── Órdenes limitadas ──────────────────────────────────────────────

    async def create_limit_order(self, order):
        self._remember(self._state.orders, order.id)
        self._state.orders[order.id] = copy.copy(order)
        return order

    async def get_limit_order(self, order_id, for_update=False):
        order = self._state.orders.get(order_id)
        return copy.copy(order) if order else None

    async def get_limit_orders_by_user(self, guild_id, user_id, status=None):
        orders = [
            o for o in self._state.orders.values()
            if o.guild_id == guild_id and o.user_id == user_id
            and (status is None or o.status == status)
        ]
        return [copy.copy(o) for o in sorted(orders, key=lambda o: o.created_at, reverse=True)]

    async def check_pending_orders_for_symbol(self, guild_id, symbol, current_price):
        orders = [
            o for o in self._state.orders.values()
            if o.guild_id == guild_id
            and o.symbol == symbol
            and o.status == LimitOrderStatus.PENDING
            and o.is_triggered_by(current_price)
        ]
        return [copy.copy(o) for o in sorted(orders, key=lambda o: o.created_at)]

    async def get_expired_pending_orders(self, now):
        return [
            copy.copy(o) for o in self._state.orders.values()
            if o.status == LimitOrderStatus.PENDING and o.expires_at <= now
        ]

    async def execute_limit_order(self, order):
        return self._transition(order, (LimitOrderStatus.EXECUTED,))

    async def cancel_limit_order(self, order):
        return self._transition(order, (LimitOrderStatus.CANCELLED, LimitOrderStatus.EXPIRED))

    def _transition(self, order: LimitOrder, allowed: tuple) -> bool:
        stored = self._state.orders.get(order.id)
        if stored is None or stored.status != LimitOrderStatus.PENDING:
            return False
        if order.status not in allowed:
            raise ValueError(f"Transición inválida a {order.status.value}")
        self._remember(self._state.orders, order.id)
        self._state.orders[order.id] = copy.copy(order)
        return True


class InMemoryMarketStore(IMarketStore):
    """Store en memoria con transacciones serializadas y rollback por undo log."""

    def __init__(self):
        self._state = _MarketState()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryMarketSession]:
        async with self._lock:
            session = InMemoryMarketSession(self._state)
            try:
                yield session
            except BaseException:
                session.rollback()
                logger.debug("Transacción revertida")
                raise

    # ─── Inspección (tests / diagnóstico) ──────────────────────────────

    @property
    def ledger_entries(self) -> List[LedgerEntry]:
        return list(self._state.ledger)

    @property
    def stock_transactions(self) -> List[StockTransaction]:
        return list(self._state.stock_transactions)

    def find_order(self, order_id: str) -> Optional[LimitOrder]:
        order = self._state.orders.get(order_id)
        return copy.copy(order) if order else None
