"""
GuildMarket – Domain Value Object: Money helpers
==================================================
Todos los montos y precios del dominio son ``Decimal``. Los factores
aleatorios del simulador nacen como ``float`` y se convierten aquí vía
``str`` para no arrastrar errores binarios a los saldos.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convierte cualquier número a Decimal sin pasar por float binario."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def quantize(value: Number, places: int = 2) -> Decimal:
    """Redondea HALF_UP a ``places`` decimales."""
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)
