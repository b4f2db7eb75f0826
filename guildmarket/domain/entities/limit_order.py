"""
GuildMarket – Domain Entity: LimitOrder
========================================
Orden que solo se ejecuta al precio objetivo o mejor.

═══════════════════════════════════════════════════════════════
            CICLO DE VIDA
═══════════════════════════════════════════════════════════════

  create (fondos / acciones reservados)
       │
       ▼
    PENDING ──(precio cruza objetivo)──▸ EXECUTED
       │
       ├──(usuario cancela)──────────▸ CANCELLED
       └──(expires_at vencido)───────▸ EXPIRED

  Los tres estados finales son terminales: no hay re-entrada.

RESERVA:
  - Compra: se debita ``reserved_amount`` del saldo al crear.
  - Venta: se descuentan ``reserved_shares`` del holding visible al crear,
    recordando su costo promedio en ``reserved_avg_price`` para poder
    restaurarlo si la orden se cancela o vence.
  La reserva se consume (EXECUTED) o se libera (CANCELLED/EXPIRED) en la
  misma transacción que la transición de estado.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from guildmarket.domain.entities.trade import TradeSide
from guildmarket.domain.exceptions.domain_errors import InvalidOrderError


class LimitOrderStatus(str, Enum):
    PENDING = "pending"
    EXECUTED = "executed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not LimitOrderStatus.PENDING


@dataclass
class LimitOrder:
    guild_id: str
    user_id: str
    symbol: str
    side: TradeSide
    shares: int
    target_price: Decimal
    total_amount: Decimal
    expires_at: datetime
    created_at: datetime
    reserved_amount: Decimal = Decimal("0")
    reserved_shares: int = 0
    reserved_avg_price: Optional[Decimal] = None
    status: LimitOrderStatus = LimitOrderStatus.PENDING
    executed_price: Optional[Decimal] = None
    executed_shares: Optional[int] = None
    executed_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_pending(self) -> bool:
        return self.status == LimitOrderStatus.PENDING

    def is_triggered_by(self, price: Decimal) -> bool:
        """Compra: precio ≤ objetivo. Venta: precio ≥ objetivo."""
        if self.side is TradeSide.BUY:
            return price <= self.target_price
        return price >= self.target_price

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def mark_executed(self, price: Decimal, shares: int, at: datetime) -> None:
        self._ensure_pending()
        self.status = LimitOrderStatus.EXECUTED
        self.executed_price = price
        self.executed_shares = shares
        self.executed_at = at

    def mark_closed(self, status: LimitOrderStatus) -> None:
        """PENDING → CANCELLED | EXPIRED."""
        if status not in (LimitOrderStatus.CANCELLED, LimitOrderStatus.EXPIRED):
            raise InvalidOrderError(f"Estado de cierre inválido: {status.value}", field="status")
        self._ensure_pending()
        self.status = status

    def _ensure_pending(self) -> None:
        if self.status.is_terminal:
            raise InvalidOrderError(
                f"La orden {self.id} ya está {self.status.value}", field="status",
            )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "guildId": self.guild_id,
            "userId": self.user_id,
            "symbol": self.symbol,
            "type": self.side.value,
            "shares": self.shares,
            "targetPrice": float(self.target_price),
            "totalAmount": float(self.total_amount),
            "reservedAmount": float(self.reserved_amount),
            "reservedShares": self.reserved_shares,
            "status": self.status.value,
            "expiresAt": self.expires_at.isoformat(),
            "createdAt": self.created_at.isoformat(),
            "executedPrice": float(self.executed_price) if self.executed_price is not None else None,
            "executedShares": self.executed_shares,
        }
