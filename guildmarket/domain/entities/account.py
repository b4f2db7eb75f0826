"""
GuildMarket – Domain Entities: Account & Holding
==================================================

Account: saldo de un usuario dentro de un guild. El saldo se valida
ANTES de mutarlo (nunca después): tras una compra debe quedar al
menos ``min_balance_after_trade``.

Holding: posición de un usuario en un símbolo. Se crea con la primera
compra, recalcula su costo promedio ponderado en cada compra y se
ELIMINA cuando llega a 0 acciones (nunca queda una fila con shares=0).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass
class Account:
    guild_id: str
    user_id: str
    balance: Decimal
    frozen: bool = False
    trading_suspended: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "guildId": self.guild_id,
            "userId": self.user_id,
            "balance": float(self.balance),
            "frozen": self.frozen,
            "tradingSuspended": self.trading_suspended,
        }


@dataclass
class Holding:
    guild_id: str
    user_id: str
    symbol: str
    shares: int
    avg_price: Decimal
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def cost_basis(self) -> Decimal:
        return self.avg_price * self.shares

    def to_dict(self) -> dict:
        return {
            "guildId": self.guild_id,
            "userId": self.user_id,
            "symbol": self.symbol,
            "shares": self.shares,
            "avgPrice": float(self.avg_price),
        }


def weighted_average_price(
    held_shares: int,
    held_avg: Decimal,
    added_shares: int,
    added_price: Decimal,
) -> Decimal:
    """Costo promedio ponderado tras sumar ``added_shares`` a ``added_price``."""
    total_shares = held_shares + added_shares
    if total_shares <= 0:
        return Decimal("0")
    total_value = held_avg * held_shares + added_price * added_shares
    return total_value / total_shares
