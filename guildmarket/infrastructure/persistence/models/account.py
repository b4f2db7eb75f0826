"""
GuildMarket – Account ORM Models
==================================
Tablas ``accounts`` y ``holdings``.

Un holding con 0 acciones no existe: la fila se borra.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import BigInteger, Boolean, Numeric, String, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from guildmarket.infrastructure.persistence.database import Base


class AccountModel(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    frozen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    trading_suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("guild_id", "user_id", name="uq_accounts_guild_user"),
    )


class HoldingModel(Base):
    __tablename__ = "holdings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    shares: Mapped[int] = mapped_column(BigInteger, nullable=False)
    avg_price: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)

    __table_args__ = (
        UniqueConstraint("guild_id", "user_id", "symbol", name="uq_holdings_position"),
        CheckConstraint("shares > 0", name="positive_shares"),
    )
