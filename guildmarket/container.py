"""
Dependency Injection Container.

Único lugar donde se crean dependencias concretas: store (memoria o SQL
según ``db_enabled``), event bus, motor de trading y WebSocket manager.

Clean Architecture: este contenedor vive en la capa más externa; el
motor solo conoce IMarketStore e IEventPublisher.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Optional

from guildmarket.application.services.trading_engine import TradingEngine
from guildmarket.domain.repositories.market_store import IMarketStore
from guildmarket.infrastructure.external.event_bus import EventBus
from guildmarket.presentation.websocket.websocket_manager import WebSocketManager
from guildmarket.shared.config.settings import Settings
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("container")


@dataclass
class Container:
    """
    Contenedor de Inyección de Dependencias.

    Todas las instancias son lazy y se comparten (una por contenedor).
    """

    settings: Settings = field(default_factory=Settings)
    rng: Optional[random.Random] = None

    _db_manager: Any = None
    _store: Optional[IMarketStore] = None
    _event_bus: Optional[EventBus] = None
    _engine: Optional[TradingEngine] = None
    _ws_manager: Optional[WebSocketManager] = None

    # ==================== Infraestructura ====================

    @property
    def db_manager(self):
        """DatabaseManager (solo con ``db_enabled``)."""
        if self._db_manager is None:
            from guildmarket.infrastructure.persistence.database import DatabaseManager
            self._db_manager = DatabaseManager(self.settings)
        return self._db_manager

    @property
    def store(self) -> IMarketStore:
        if self._store is None:
            if self.settings.db_enabled:
                from guildmarket.infrastructure.persistence.sql_store import SqlAlchemyMarketStore
                self._store = SqlAlchemyMarketStore(self.db_manager)
                logger.info("Store: SQLAlchemy")
            else:
                from guildmarket.infrastructure.persistence.memory_store import InMemoryMarketStore
                self._store = InMemoryMarketStore()
                logger.info("Store: en memoria (db_enabled=False)")
        return self._store

    @property
    def event_bus(self) -> EventBus:
        if self._event_bus is None:
            self._event_bus = EventBus(max_queue_size=self.settings.event_bus_max_queue_size)
        return self._event_bus

    # ==================== Motor ====================

    @property
    def engine(self) -> TradingEngine:
        if self._engine is None:
            self._engine = TradingEngine.create(
                self.store, self.event_bus, self.settings, rng=self.rng,
            )
        return self._engine

    @property
    def ws_manager(self) -> WebSocketManager:
        if self._ws_manager is None:
            self._ws_manager = WebSocketManager(self.event_bus)
        return self._ws_manager

    def override(self, name: str, instance: Any) -> None:
        """
        Override una dependencia (útil para tests).

        Args:
            name: Nombre de la dependencia (ej: 'store')
            instance: Instancia a usar
        """
        attr_name = f"_{name}"
        if hasattr(self, attr_name):
            setattr(self, attr_name, instance)
        else:
            raise ValueError(f"Unknown dependency: {name}")


# ==================== Global Container ====================

_container: Optional[Container] = None


def init_container(settings: Optional[Settings] = None) -> Container:
    """Inicializa el contenedor global con configuración específica."""
    global _container
    _container = Container(settings=settings or Settings())
    return _container
