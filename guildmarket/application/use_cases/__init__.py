"""Application use cases."""
from guildmarket.application.use_cases.limit_order_usecase import LimitOrderEngine
from guildmarket.application.use_cases.execute_trade_usecase import TradeExecutor, PortfolioValue
from guildmarket.application.use_cases.simulate_prices_usecase import PriceSimulator

__all__ = [
    "LimitOrderEngine",
    "TradeExecutor",
    "PortfolioValue",
    "PriceSimulator",
]
