"""
GuildMarket – Application Port: Event Publisher
=================================================
Interfaz para publicar eventos del mercado a sistemas externos.

Los use cases publican eventos; la infraestructura decide CÓMO
entregarlos (EventBus en memoria → WebSocket, bot de Discord, etc.)

Entrega fan-out, at-most-once, sin replay ni orden garantizado entre
suscriptores. Todo payload incluye ``guildId``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict


class Topics:
    """Tópicos emitidos por el motor de trading."""

    STOCK_PRICE_UPDATED = "stock_price_updated"
    TRADE_EXECUTED = "trade_executed"
    LIMIT_ORDER_EXECUTED = "limit_order_executed"
    LIMIT_ORDER_CANCELLED = "limit_order_cancelled"
    LIMIT_ORDER_EXPIRED = "limit_order_expired"
    CIRCUIT_BREAKER_TRIGGERED = "circuit_breaker_triggered"
    CIRCUIT_BREAKER_RESUMED = "circuit_breaker_resumed"
    TRADING_DAY_START = "trading_day_start"

    ALL = (
        STOCK_PRICE_UPDATED,
        TRADE_EXECUTED,
        LIMIT_ORDER_EXECUTED,
        LIMIT_ORDER_CANCELLED,
        LIMIT_ORDER_EXPIRED,
        CIRCUIT_BREAKER_TRIGGERED,
        CIRCUIT_BREAKER_RESUMED,
        TRADING_DAY_START,
    )


class IEventPublisher(ABC):
    """
    Interfaz para publicar eventos del sistema.

    IMPLEMENTACIONES:
    - EventBus (memoria/async, fan-out a WebSocket)
    - RecordingPublisher (tests)
    """

    @abstractmethod
    async def publish(
        self,
        topic: str,
        data: Dict[str, Any],
    ) -> None:
        """
        Publica un evento a un tópico.

        Args:
            topic: Nombre del tópico (ver ``Topics``)
            data: Datos del evento (serializable a JSON)
        """
        pass

    async def publish_many(
        self,
        events: list[tuple[str, Dict[str, Any]]],
    ) -> None:
        """Publica múltiples eventos en secuencia."""
        for topic, data in events:
            await self.publish(topic, data)
