"""
GuildMarket – Transaction ORM Models
======================================
Registros append-only: ``stock_transactions`` (trades) y
``transactions`` (libro general del guild).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Enum as SQLEnum, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from guildmarket.infrastructure.persistence.database import Base


class StockTransactionModel(Base):
    __tablename__ = "stock_transactions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    type: Mapped[str] = mapped_column(
        SQLEnum("buy", "sell", name="trade_side_enum"), nullable=False,
    )
    shares: Mapped[int] = mapped_column(BigInteger, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_stock_tx_recent", "guild_id", "symbol", "created_at"),
    )


class LedgerEntryModel(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    memo: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_ledger_user_time", "guild_id", "user_id", "created_at"),
    )
