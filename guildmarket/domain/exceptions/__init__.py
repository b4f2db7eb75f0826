"""Domain exceptions."""
from guildmarket.domain.exceptions.domain_errors import (
    DomainError,
    NotFoundError,
    TradingHaltedError,
    AccountFrozenError,
    TradingSuspendedError,
    InsufficientFundsError,
    InsufficientSharesError,
    InvalidOrderError,
)

__all__ = [
    "DomainError",
    "NotFoundError",
    "TradingHaltedError",
    "AccountFrozenError",
    "TradingSuspendedError",
    "InsufficientFundsError",
    "InsufficientSharesError",
    "InvalidOrderError",
]
