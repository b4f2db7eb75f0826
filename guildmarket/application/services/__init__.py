"""Application services."""
from guildmarket.application.services.candlestick_aggregator import CandlestickAggregator
from guildmarket.application.services.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from guildmarket.application.services.trading_guards import load_tradable_account, load_tradable_stock

__all__ = [
    "CandlestickAggregator",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "load_tradable_account",
    "load_tradable_stock",
]
