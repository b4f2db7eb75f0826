"""
GuildMarket – Domain Entity: Stock
====================================
Acción emitida dentro de un servidor (guild). Es la raíz del modelo:
holdings, órdenes y velas la referencian por (guild_id, symbol).

El precio lo mutan el simulador, el impacto de trades grandes, las
noticias y los administradores. ``status`` habilita o bloquea TODA
operación de trading.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class StockStatus(str, Enum):
    ACTIVE = "active"
    HALTED = "halted"
    DELISTED = "delisted"


@dataclass
class Stock:
    guild_id: str
    symbol: str
    name: str
    price: Decimal
    volatility: Decimal = Decimal("1.2")   # en porcentaje
    status: StockStatus = StockStatus.ACTIVE
    total_shares: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_active(self) -> bool:
        return self.status == StockStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "guildId": self.guild_id,
            "symbol": self.symbol,
            "name": self.name,
            "price": float(self.price),
            "volatility": float(self.volatility),
            "status": self.status.value,
            "totalShares": self.total_shares,
        }
