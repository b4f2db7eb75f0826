"""
GuildMarket – WebSocket Manager (broadcast a clientes)
========================================================
Gestiona conexiones WebSocket (dashboard, bot de Discord) y les reenvía
los eventos del motor en tiempo real.

ARQUITECTURA:
  EventBus ──(stock_price_updated)──▸ WSManager._broadcast_loop()
  EventBus ──(trade_executed)───────▸ WSManager._broadcast_loop()
  EventBus ──(…)────────────────────▸ …
       │
       ▼
  [Cliente WS 1 (guild A), Cliente WS 2 (todos), ...]

FILTRO POR GUILD:
- Un cliente conectado con ``?guild_id=X`` solo recibe eventos cuyo
  ``guildId`` es X. Sin guild recibe todo.

NO BLOQUEA EL LOOP PRINCIPAL:
- Un task de broadcast por tópico.
- El envío a cada cliente usa asyncio.wait_for con timeout: un cliente
  lento o caído se descarta sin frenar al resto.

FORMATO:
  {"event": <tópico>, "data": {...}, "timestamp": <ISO-8601 UTC>}
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

from guildmarket.application.ports.event_publisher import Topics
from guildmarket.infrastructure.external.event_bus import EventBus
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("ws_manager")

SEND_TIMEOUT_SECONDS = 5.0


class WebSocketManager:
    """Gestiona conexiones de clientes y broadcast de eventos del mercado."""

    def __init__(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus
        # websocket → guild suscrito (None = todos)
        self._clients: Dict[WebSocket, Optional[str]] = {}
        self._broadcast_tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Lanzar un loop de broadcast por cada tópico del motor."""
        for topic in Topics.ALL:
            queue = await self._event_bus.subscribe(topic, f"ws_broadcast_{topic}")
            self._broadcast_tasks.append(
                asyncio.create_task(
                    self._broadcast_loop(queue, topic),
                    name=f"ws-broadcast-{topic}",
                )
            )
        logger.info("WebSocketManager iniciado – %d tópicos", len(Topics.ALL))

    async def stop(self) -> None:
        """Cancelar broadcast y cerrar todos los clientes."""
        for task in self._broadcast_tasks:
            task.cancel()
        if self._broadcast_tasks:
            await asyncio.gather(*self._broadcast_tasks, return_exceptions=True)
        self._broadcast_tasks.clear()

        for ws in list(self._clients):
            try:
                await ws.close()
            except Exception:
                logger.debug("Cliente WS ya cerrado al detener")
        self._clients.clear()
        logger.info("WebSocketManager detenido")

    async def connect(self, websocket: WebSocket, guild_id: Optional[str] = None) -> None:
        """Registrar un nuevo cliente WebSocket."""
        await websocket.accept()
        self._clients[websocket] = guild_id
        logger.info(
            "Cliente WS conectado (guild=%s). Total: %d",
            guild_id or "*", len(self._clients),
        )

    def disconnect(self, websocket: WebSocket) -> None:
        """Des-registrar un cliente desconectado."""
        self._clients.pop(websocket, None)
        logger.info("Cliente WS desconectado. Total: %d", len(self._clients))

    @staticmethod
    def build_message(topic: str, data: dict, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        return json.dumps(
            {"event": topic, "data": data, "timestamp": now.isoformat()},
            default=str,
        )

    def recipients(self, data: dict) -> list[WebSocket]:
        """Clientes que deben recibir un evento de ``data['guildId']``."""
        guild_id = data.get("guildId") if isinstance(data, dict) else None
        return [
            ws for ws, subscribed in self._clients.items()
            if subscribed is None or subscribed == guild_id
        ]

    async def _broadcast_loop(self, queue: asyncio.Queue, topic: str) -> None:
        """Consume eventos de una Queue y los envía a los clientes del guild."""
        try:
            while True:
                data = await queue.get()
                targets = self.recipients(data)
                if not targets:
                    continue

                payload = self.build_message(topic, data)
                disconnected: list[WebSocket] = []
                await asyncio.gather(
                    *(self._safe_send(ws, payload, disconnected) for ws in targets)
                )
                for ws in disconnected:
                    self._clients.pop(ws, None)
        except asyncio.CancelledError:
            pass  # Shutdown limpio

    async def _safe_send(
        self, ws: WebSocket, payload: str, disconnected: list[WebSocket]
    ) -> None:
        """
        Enviar payload a un cliente con timeout.
        Si falla, marcar como desconectado para limpieza.
        """
        try:
            await asyncio.wait_for(ws.send_text(payload), timeout=SEND_TIMEOUT_SECONDS)
        except (WebSocketDisconnect, asyncio.TimeoutError, RuntimeError, OSError):
            disconnected.append(ws)

    @property
    def client_count(self) -> int:
        return len(self._clients)
