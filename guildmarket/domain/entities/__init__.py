"""Domain entities."""
from guildmarket.domain.entities.stock import Stock, StockStatus
from guildmarket.domain.entities.account import Account, Holding, weighted_average_price
from guildmarket.domain.entities.trade import (
    TradeSide,
    LedgerType,
    StockTransaction,
    LedgerEntry,
    TradeResult,
    validate_order_input,
)
from guildmarket.domain.entities.limit_order import LimitOrder, LimitOrderStatus
from guildmarket.domain.entities.candlestick import Candlestick

__all__ = [
    "Stock",
    "StockStatus",
    "Account",
    "Holding",
    "weighted_average_price",
    "TradeSide",
    "LedgerType",
    "StockTransaction",
    "LedgerEntry",
    "TradeResult",
    "validate_order_input",
    "LimitOrder",
    "LimitOrderStatus",
    "Candlestick",
]
