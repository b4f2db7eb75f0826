"""
GuildMarket – Domain Entity: Candlestick
==========================================
Vela OHLCV de un bucket (guild, symbol, timeframe, timestamp).

A diferencia de una vela cerrada inmutable, esta fila se crea con el
primer tick del bucket y se muta in-place (high/low se amplían, close se
sobrescribe, volume se acumula) hasta que el bucket rota. Es un dato
derivado: ninguna otra entidad la referencia.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from guildmarket.domain.value_objects.timeframe import Timeframe


@dataclass
class Candlestick:
    guild_id: str
    symbol: str
    timeframe: Timeframe
    timestamp: datetime      # inicio del bucket
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int

    def to_dict(self) -> dict:
        return {
            "guildId": self.guild_id,
            "symbol": self.symbol,
            "timeframe": self.timeframe.value,
            "timestamp": self.timestamp.isoformat(),
            "open": float(self.open),
            "high": float(self.high),
            "low": float(self.low),
            "close": float(self.close),
            "volume": self.volume,
        }
