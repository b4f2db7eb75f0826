"""
GuildMarket – Market ORM Models
=================================
Tablas ``stocks`` y ``candlestick_data``.

DECISIONES DE DISEÑO:
- Numeric(20, 4) para precios: nunca float para dinero.
- (guild_id, symbol) único: un símbolo por guild.
- Una fila de vela por (guild, symbol, timeframe, timestamp); se muta
  in-place mientras el bucket está abierto.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger, DateTime, Enum as SQLEnum, Index, Integer, Numeric, String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from guildmarket.infrastructure.persistence.database import Base


class StockModel(Base):
    """Acción emitida en un guild."""

    __tablename__ = "stocks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    volatility: Mapped[Decimal] = mapped_column(
        Numeric(8, 4), nullable=False, default=Decimal("1.2"),
        comment="Volatilidad por tick en porcentaje",
    )
    status: Mapped[str] = mapped_column(
        SQLEnum("active", "halted", "delisted", name="stock_status_enum"),
        nullable=False, default="active",
    )
    total_shares: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("guild_id", "symbol", name="uq_stocks_guild_symbol"),
        Index("idx_stocks_status", "status"),
    )


class CandlestickModel(Base):
    """Vela OHLCV por bucket."""

    __tablename__ = "candlestick_data"

    # SQLite solo autoincrementa INTEGER PRIMARY KEY
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True,
    )
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    timeframe: Mapped[str] = mapped_column(String(8), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, comment="Inicio del bucket (UTC)")
    open: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    high: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    low: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    close: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    volume: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "guild_id", "symbol", "timeframe", "timestamp", name="uq_candles_bucket",
        ),
        Index("idx_candles_series", "guild_id", "symbol", "timeframe", "timestamp"),
    )
