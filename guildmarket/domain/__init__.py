"""
GuildMarket – Domain Layer
============================
Núcleo puro del mercado. CERO dependencias externas.

Este módulo contiene:
- entities/: Stock, Account, Holding, LimitOrder, Candlestick, trades
- value_objects/: Timeframe y helpers de dinero (Decimal)
- services/: PriceModel (fórmulas del simulador y del impacto)
- repositories/: IMarketStore / IMarketSession (ABCs)
- exceptions/: Excepciones de dominio

REGLA DE DEPENDENCIA:
Este módulo NO puede importar de:
- infrastructure/
- presentation/
- application/
- Frameworks externos (SQLAlchemy, FastAPI, etc.)
"""

from guildmarket.domain.entities import (
    Stock,
    StockStatus,
    Account,
    Holding,
    LimitOrder,
    LimitOrderStatus,
    Candlestick,
    TradeSide,
)
from guildmarket.domain.value_objects import Timeframe

__all__ = [
    "Stock",
    "StockStatus",
    "Account",
    "Holding",
    "LimitOrder",
    "LimitOrderStatus",
    "Candlestick",
    "TradeSide",
    "Timeframe",
]
