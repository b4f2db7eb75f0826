"""
GuildMarket – Domain Entities: Trades & Ledger
================================================

StockTransaction: registro inmutable (append-only) de cada compra/venta
ejecutada. Alimenta la presión de flujo de órdenes del simulador.

LedgerEntry: movimiento del libro general de la economía del guild.
Los trades se etiquetan ``stock_buy`` / ``stock_sell``; las reservas de
órdenes limitadas ``limit_order_reserve`` / ``limit_order_release``.

TradeResult: lo que el executor devuelve al caller (bot / HTTP).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from guildmarket.domain.exceptions.domain_errors import InvalidOrderError
from guildmarket.domain.value_objects.money import quantize


class TradeSide(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @property
    def direction(self) -> int:
        """+1 compra, -1 venta (signo del impacto en precio)."""
        return 1 if self is TradeSide.BUY else -1

    @classmethod
    def parse(cls, value: "TradeSide | str") -> "TradeSide":
        try:
            return cls(value)
        except ValueError:
            raise InvalidOrderError(f"Tipo de orden inválido: {value!r}", field="side")


class LedgerType(str, Enum):
    STOCK_BUY = "stock_buy"
    STOCK_SELL = "stock_sell"
    LIMIT_ORDER_RESERVE = "limit_order_reserve"
    LIMIT_ORDER_RELEASE = "limit_order_release"


@dataclass(frozen=True)
class StockTransaction:
    guild_id: str
    user_id: str
    symbol: str
    side: TradeSide
    shares: int
    price: Decimal
    total_amount: Decimal
    created_at: datetime
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "guildId": self.guild_id,
            "userId": self.user_id,
            "symbol": self.symbol,
            "type": self.side.value,
            "shares": self.shares,
            "price": float(self.price),
            "totalAmount": float(self.total_amount),
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class LedgerEntry:
    guild_id: str
    user_id: str
    type: LedgerType
    amount: Decimal
    memo: str
    created_at: datetime
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class TradeResult:
    """Resultado de una ejecución inmediata."""
    transaction: StockTransaction
    balance_after: Decimal
    holding_shares_after: int
    new_market_price: Optional[Decimal] = None   # solo si hubo impacto de mercado

    def to_dict(self) -> dict:
        data = self.transaction.to_dict()
        data["balanceAfter"] = float(self.balance_after)
        data["holdingSharesAfter"] = self.holding_shares_after
        if self.new_market_price is not None:
            data["newMarketPrice"] = float(self.new_market_price)
        return data


def validate_order_input(
    shares: int, price: Union[Decimal, int, float, str], places: int = 2,
) -> Decimal:
    """
    Rechaza cantidades o precios no positivos antes de abrir transacción.

    Devuelve el precio ya cuantizado a ``places``: un precio que redondea
    a cero (ej. 0.004) es inválido.
    """
    if isinstance(shares, bool) or not isinstance(shares, int) or shares <= 0:
        raise InvalidOrderError("La cantidad de acciones debe ser un entero positivo", field="shares")
    try:
        value = price if isinstance(price, Decimal) else Decimal(str(price))
    except ArithmeticError:
        raise InvalidOrderError("Precio inválido", field="price")
    if not value.is_finite() or value <= 0:
        raise InvalidOrderError("El precio debe ser mayor que cero", field="price")
    value = quantize(value, places)
    if value <= 0:
        raise InvalidOrderError(
            f"El precio debe ser al menos {Decimal(1).scaleb(-places)}", field="price",
        )
    return value
