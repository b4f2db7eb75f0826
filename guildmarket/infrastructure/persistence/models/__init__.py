"""
GuildMarket – ORM Models Package
==================================
Modelos SQLAlchemy. Representan la estructura de la base de datos,
NO las entidades de dominio (eso lo resuelven los mappers).

ESTRUCTURA:
    models/
    ├── market.py       # stocks, candlestick_data
    ├── account.py      # accounts, holdings
    ├── transaction.py  # stock_transactions, transactions
    └── limit_order.py  # limit_orders
"""

from guildmarket.infrastructure.persistence.models.market import StockModel, CandlestickModel
from guildmarket.infrastructure.persistence.models.account import AccountModel, HoldingModel
from guildmarket.infrastructure.persistence.models.transaction import (
    StockTransactionModel,
    LedgerEntryModel,
)
from guildmarket.infrastructure.persistence.models.limit_order import LimitOrderModel

__all__ = [
    "StockModel",
    "CandlestickModel",
    "AccountModel",
    "HoldingModel",
    "StockTransactionModel",
    "LedgerEntryModel",
    "LimitOrderModel",
]
