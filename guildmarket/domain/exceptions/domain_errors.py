"""
GuildMarket – Domain Exceptions
=================================
Excepciones específicas del dominio de negocio.

Estas excepciones capturan errores de lógica de negocio,
NO errores técnicos (esos van en infrastructure). El mensaje es
apto para mostrarse al usuario final (bot / dashboard).

JERARQUÍA:
    DomainError (base)
    ├── NotFoundError
    ├── TradingHaltedError
    ├── AccountFrozenError
    ├── TradingSuspendedError
    ├── InsufficientFundsError
    ├── InsufficientSharesError
    └── InvalidOrderError

La protección flash-crash NO es una excepción: la orden queda
pendiente y se reintenta en el siguiente tick.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional


class DomainError(Exception):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
        }


class NotFoundError(DomainError):
    """Acción, cuenta u orden inexistente."""

    def __init__(self, entity: str, key: str):
        names = {
            "stock": "No se encontró la acción",
            "account": "No se encontró la cuenta",
            "order": "No se encontró la orden",
        }
        message = f"{names.get(entity, 'No se encontró')}: {key}"
        super().__init__(message, code="NOT_FOUND")
        self.entity = entity
        self.key = key


class TradingHaltedError(DomainError):
    """La acción no está activa (suspendida o deslistada)."""

    def __init__(self, symbol: str, status: str):
        if status == "halted":
            message = f"La negociación de {symbol} está suspendida"
        else:
            message = f"{symbol} fue retirada del mercado"
        super().__init__(message, code="TRADING_HALTED")
        self.symbol = symbol
        self.status = status


class AccountFrozenError(DomainError):
    """La cuenta está congelada por un administrador."""

    def __init__(self, user_id: str):
        super().__init__("La cuenta está congelada y no puede operar", code="ACCOUNT_FROZEN")
        self.user_id = user_id


class TradingSuspendedError(DomainError):
    """Un administrador suspendió el trading de la cuenta."""

    def __init__(self, user_id: str):
        super().__init__(
            "Un administrador suspendió el trading de esta cuenta",
            code="TRADING_SUSPENDED",
        )
        self.user_id = user_id


class InsufficientFundsError(DomainError):
    """El saldo no alcanza para la compra manteniendo el saldo mínimo."""

    def __init__(self, required: Decimal, available: Decimal, minimum: Decimal):
        super().__init__(
            f"Saldo insuficiente: se requieren {required} y hay {available} "
            f"(debe quedar al menos {minimum} tras operar)",
            code="INSUFFICIENT_FUNDS",
        )
        self.required = required
        self.available = available
        self.minimum = minimum


class InsufficientSharesError(DomainError):
    """No hay suficientes acciones en cartera para vender."""

    def __init__(self, symbol: str, required: int, available: int):
        super().__init__(
            f"Acciones insuficientes de {symbol}: se requieren {required} y hay {available}",
            code="INSUFFICIENT_SHARES",
        )
        self.symbol = symbol
        self.required = required
        self.available = available


class InvalidOrderError(DomainError):
    """Datos de orden inválidos o transición de estado ilegal."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, code="INVALID_ORDER")
        self.field = field
