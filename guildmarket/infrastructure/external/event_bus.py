"""
GuildMarket – Event Bus (asyncio.Queue fan-out)
=================================================
Entrega los eventos del motor (precios, trades, órdenes limitadas,
circuit breakers) a quien los quiera escuchar: hoy el broadcast
WebSocket, mañana el bot de Discord.

  motor ──publish(topic, data)──▸ EventBus ──▸ cola "ws_broadcast_…"
                                           └─▸ cola "discord_bot" …

ENTREGA:
- Una cola acotada por suscripción. Publicar nunca espera: si la cola
  está llena se descarta el evento más viejo de ESA cola y se cuenta
  en ``dropped``. Un consumidor lento pierde historia, no frena al motor.
- At-most-once, sin replay ni orden entre suscriptores distintos.
- Todo corre en un único event loop; el lock solo protege altas/bajas
  frente a un publish que itera la lista.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from guildmarket.application.ports.event_publisher import IEventPublisher
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("event_bus")


@dataclass(eq=False)
class Subscription:
    topic: str
    consumer: str
    queue: asyncio.Queue = field(repr=False)
    dropped: int = 0

    def offer(self, data: Dict[str, Any]) -> bool:
        """Encola sin bloquear; devuelve False si hubo que descartar uno viejo."""
        lost = False
        if self.queue.full():
            try:
                self.queue.get_nowait()
                self.dropped += 1
                lost = True
            except asyncio.QueueEmpty:
                pass
        self.queue.put_nowait(data)
        return not lost


class EventBus(IEventPublisher):
    """Publicador en memoria con una cola por suscripción."""

    def __init__(self, max_queue_size: int = 10_000) -> None:
        self._max_queue_size = max_queue_size
        self._by_topic: Dict[str, List[Subscription]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, topic: str, consumer_name: str) -> asyncio.Queue:
        """Alta de un consumidor; la cola devuelta es exclusiva suya."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        async with self._lock:
            self._by_topic.setdefault(topic, []).append(
                Subscription(topic, consumer_name, queue),
            )
        logger.info("'%s' suscrito a '%s' (cola máx. %d)", consumer_name, topic, self._max_queue_size)
        return queue

    async def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        async with self._lock:
            remaining = [s for s in self._by_topic.get(topic, []) if s.queue is not queue]
            if remaining:
                self._by_topic[topic] = remaining
            else:
                self._by_topic.pop(topic, None)

    async def publish(self, topic: str, data: Dict[str, Any]) -> None:
        for subscription in list(self._by_topic.get(topic, ())):
            try:
                delivered_all = subscription.offer(data)
            except asyncio.QueueFull:
                logger.error("Evento '%s' perdido para '%s'", topic, subscription.consumer)
                continue
            if not delivered_all:
                logger.warning(
                    "Cola de '%s' llena en '%s': evento más antiguo descartado (total %d)",
                    subscription.consumer, topic, subscription.dropped,
                )

    async def unsubscribe_all(self, topic: Optional[str] = None) -> None:
        """Baja masiva: un tópico, o todo el bus en el shutdown."""
        async with self._lock:
            if topic is None:
                self._by_topic.clear()
            else:
                self._by_topic.pop(topic, None)
        logger.info("Suscripciones eliminadas (%s)", topic or "todas")

    @property
    def subscriber_count(self) -> int:
        return sum(len(subs) for subs in self._by_topic.values())

    @property
    def dropped_events(self) -> int:
        """Eventos descartados por contrapresión desde el arranque."""
        return sum(s.dropped for subs in self._by_topic.values() for s in subs)
