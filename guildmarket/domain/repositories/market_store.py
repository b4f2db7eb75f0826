"""
GuildMarket – Domain Repository Interface: Market Store
=========================================================
Contrato abstracto de persistencia transaccional del mercado.

Define lo que el motor consume de cualquier almacenamiento
(MySQL vía SQLAlchemy, InMemory para tests, etc.)

TRANSACCIONES:
    async with store.transaction() as session:
        account = await session.get_account_by_user(g, u, for_update=True)
        ...

    Todo lo que ocurre dentro del bloque se confirma junto al salir, o
    se revierte completo si sale una excepción. Las lecturas que preceden
    a una escritura dependiente piden ``for_update=True`` (bloqueo de
    fila): así ningún otro trade intercala entre el chequeo de saldo y
    su escritura.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import AsyncContextManager, List, Optional

from guildmarket.domain.entities.account import Account, Holding
from guildmarket.domain.entities.candlestick import Candlestick
from guildmarket.domain.entities.limit_order import LimitOrder, LimitOrderStatus
from guildmarket.domain.entities.stock import Stock
from guildmarket.domain.entities.trade import LedgerEntry, StockTransaction
from guildmarket.domain.value_objects.timeframe import Timeframe


class IMarketSession(ABC):
    """
    Unidad de trabajo abierta por ``IMarketStore.transaction()``.

    Las entidades devueltas son copias: mutarlas no cambia el store
    hasta llamar al método de escritura correspondiente.
    """

    # ─── Acciones ───────────────────────────────────────────────────────

    @abstractmethod
    async def get_stock_by_symbol(
        self, guild_id: str, symbol: str, for_update: bool = False,
    ) -> Optional[Stock]:
        pass

    @abstractmethod
    async def get_all_active_stocks(self) -> List[Stock]:
        """Acciones activas de TODOS los guilds (las recorre el simulador)."""
        pass

    @abstractmethod
    async def get_active_stocks_by_guild(self, guild_id: str) -> List[Stock]:
        pass

    @abstractmethod
    async def update_stock_price(self, guild_id: str, symbol: str, price: Decimal) -> None:
        pass

    @abstractmethod
    async def create_stock(self, stock: Stock) -> Stock:
        pass

    # ─── Cuentas ────────────────────────────────────────────────────────

    @abstractmethod
    async def get_account_by_user(
        self, guild_id: str, user_id: str, for_update: bool = False,
    ) -> Optional[Account]:
        pass

    @abstractmethod
    async def create_account(self, account: Account) -> Account:
        pass

    @abstractmethod
    async def update_balance(self, guild_id: str, user_id: str, delta: Decimal) -> Decimal:
        """
        Suma ``delta`` (negativo para débitos) al saldo.

        Returns:
            Saldo resultante
        """
        pass

    @abstractmethod
    async def freeze_account(self, guild_id: str, user_id: str, frozen: bool = True) -> None:
        pass

    @abstractmethod
    async def suspend_account_trading(
        self, guild_id: str, user_id: str, suspended: bool = True,
    ) -> None:
        pass

    # ─── Holdings ───────────────────────────────────────────────────────

    @abstractmethod
    async def get_holding(
        self, guild_id: str, user_id: str, symbol: str, for_update: bool = False,
    ) -> Optional[Holding]:
        pass

    @abstractmethod
    async def get_holdings_by_user(self, guild_id: str, user_id: str) -> List[Holding]:
        pass

    @abstractmethod
    async def update_holding(
        self, guild_id: str, user_id: str, symbol: str, shares: int, avg_price: Decimal,
    ) -> Optional[Holding]:
        """
        Upsert de la posición.

        Con ``shares == 0`` la fila se ELIMINA y se devuelve None.
        ``shares < 0`` es un error de programación (ValueError).
        """
        pass

    # ─── Trades y libro general ─────────────────────────────────────────

    @abstractmethod
    async def add_stock_transaction(self, transaction: StockTransaction) -> None:
        pass

    @abstractmethod
    async def get_recent_trades_by_symbol(
        self, guild_id: str, symbol: str, since: datetime,
    ) -> List[StockTransaction]:
        """Trades del símbolo con ``created_at >= since``."""
        pass

    @abstractmethod
    async def add_transaction(self, entry: LedgerEntry) -> None:
        pass

    # ─── Velas ──────────────────────────────────────────────────────────

    @abstractmethod
    async def get_candlestick(
        self,
        guild_id: str,
        symbol: str,
        timeframe: Timeframe,
        timestamp: datetime,
        for_update: bool = False,
    ) -> Optional[Candlestick]:
        pass

    @abstractmethod
    async def create_candlestick(self, candle: Candlestick) -> None:
        pass

    @abstractmethod
    async def update_candlestick(self, candle: Candlestick) -> None:
        pass

    @abstractmethod
    async def get_candlesticks(
        self, guild_id: str, symbol: str, timeframe: Timeframe, limit: int = 100,
    ) -> List[Candlestick]:
        """Últimas ``limit`` velas en orden cronológico ascendente."""
        pass

    # ─── Órdenes limitadas ──────────────────────────────────────────────

    @abstractmethod
    async def create_limit_order(self, order: LimitOrder) -> LimitOrder:
        pass

    @abstractmethod
    async def get_limit_order(self, order_id: str, for_update: bool = False) -> Optional[LimitOrder]:
        pass

    @abstractmethod
    async def get_limit_orders_by_user(
        self, guild_id: str, user_id: str, status: Optional[LimitOrderStatus] = None,
    ) -> List[LimitOrder]:
        pass

    @abstractmethod
    async def check_pending_orders_for_symbol(
        self, guild_id: str, symbol: str, current_price: Decimal,
    ) -> List[LimitOrder]:
        """
        Órdenes PENDING disparadas por ``current_price``:
        compras con objetivo ≥ precio y ventas con objetivo ≤ precio.
        """
        pass

    @abstractmethod
    async def get_expired_pending_orders(self, now: datetime) -> List[LimitOrder]:
        pass

    @abstractmethod
    async def execute_limit_order(self, order: LimitOrder) -> bool:
        """
        Persiste la transición PENDING → EXECUTED.

        Returns:
            False si la orden ya no estaba pendiente (no se escribe nada)
        """
        pass

    @abstractmethod
    async def cancel_limit_order(self, order: LimitOrder) -> bool:
        """Persiste PENDING → CANCELLED | EXPIRED según ``order.status``."""
        pass


class IMarketStore(ABC):
    """Fábrica de sesiones transaccionales."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager[IMarketSession]:
        pass

    async def close(self) -> None:
        """Libera recursos (pool de conexiones). Opcional."""
        return None
