"""
GuildMarket – API Schemas
===========================
Modelos Pydantic de los cuerpos de request.

Solo validan forma (tipos, positivos); las reglas de negocio viven en el
motor y llegan como DomainError.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class TradeRequest(BaseModel):
    """Body de una compra/venta inmediata."""
    user_id: str = Field(min_length=1)
    symbol: str = Field(min_length=1)
    side: Literal["buy", "sell"]
    shares: int = Field(gt=0)
    price: Decimal = Field(gt=0, description="Precio de ejecución informado por el cliente")


class LimitOrderRequest(BaseModel):
    """Body para crear una orden limitada."""
    user_id: str = Field(min_length=1)
    symbol: str = Field(min_length=1)
    side: Literal["buy", "sell"]
    shares: int = Field(gt=0)
    target_price: Decimal = Field(gt=0)
    expires_at: Optional[datetime] = Field(
        default=None, description="Default: ahora + limit_order_default_ttl_days",
    )


class NewsImpactRequest(BaseModel):
    """Impacto de una noticia ya puntuada (fracción: 0.05 = +5%)."""
    impact: float
    symbol: Optional[str] = None


class NewsMomentumRequest(BaseModel):
    """Inercia de noticia sobre una acción durante los próximos ticks."""
    symbol: str = Field(min_length=1)
    direction: float = Field(ge=-1, le=1)
    intensity: float = Field(ge=0, le=1)
    duration_minutes: Optional[float] = Field(default=None, gt=0)
