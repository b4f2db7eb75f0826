"""
GuildMarket – Limit Order ORM Model
=====================================
Tabla ``limit_orders``.

DECISIONES DE DISEÑO:
- ENUM para status: pending, executed, cancelled, expired.
- reserved_amount (compras) y reserved_shares + reserved_avg_price
  (ventas) guardan exactamente lo reservado, para liberarlo igual.
- executed_* NULL hasta que la orden se ejecuta.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Enum as SQLEnum, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from guildmarket.infrastructure.persistence.database import Base


class LimitOrderModel(Base):
    __tablename__ = "limit_orders"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    type: Mapped[str] = mapped_column(
        SQLEnum("buy", "sell", name="limit_order_side_enum"), nullable=False,
    )
    shares: Mapped[int] = mapped_column(BigInteger, nullable=False)
    target_price: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    reserved_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    reserved_shares: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    reserved_avg_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 4), default=None)
    status: Mapped[str] = mapped_column(
        SQLEnum("pending", "executed", "cancelled", "expired", name="limit_order_status_enum"),
        nullable=False, default="pending",
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    executed_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 4), default=None)
    executed_shares: Mapped[Optional[int]] = mapped_column(BigInteger, default=None)
    executed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    __table_args__ = (
        Index("idx_limit_orders_trigger", "guild_id", "symbol", "status"),
        Index("idx_limit_orders_user", "guild_id", "user_id", "created_at"),
        Index("idx_limit_orders_expiry", "status", "expires_at"),
    )
