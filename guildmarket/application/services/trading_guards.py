"""
Precondiciones comunes a trades inmediatos y órdenes limitadas.

Orden de chequeo (el primer fallo gana):
    acción existe → acción activa → cuenta existe → no congelada →
    trading no suspendido
"""

from __future__ import annotations

from guildmarket.domain.entities.account import Account
from guildmarket.domain.entities.stock import Stock
from guildmarket.domain.exceptions.domain_errors import (
    AccountFrozenError,
    NotFoundError,
    TradingHaltedError,
    TradingSuspendedError,
)
from guildmarket.domain.repositories.market_store import IMarketSession


async def load_tradable_stock(session: IMarketSession, guild_id: str, symbol: str) -> Stock:
    stock = await session.get_stock_by_symbol(guild_id, symbol)
    if stock is None:
        raise NotFoundError("stock", symbol)
    if not stock.is_active:
        raise TradingHaltedError(symbol, stock.status.value)
    return stock


async def load_tradable_account(session: IMarketSession, guild_id: str, user_id: str) -> Account:
    """Carga la cuenta con bloqueo de fila: el saldo se va a escribir."""
    account = await session.get_account_by_user(guild_id, user_id, for_update=True)
    if account is None:
        raise NotFoundError("account", user_id)
    if account.frozen:
        raise AccountFrozenError(user_id)
    if account.trading_suspended:
        raise TradingSuspendedError(user_id)
    return account
