"""
GuildMarket – SQLAlchemy ORM Base Configuration
=================================================
Base declarativa y manager del engine async.

Clean Architecture: esta es la implementación concreta de la
infraestructura de base de datos. El motor depende de IMarketStore,
no de esta clase.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from guildmarket.shared.config.settings import Settings, settings as default_settings
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("database")

# ─── Nombres de constraints estables entre MySQL y SQLite ─────────────────
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base declarativa para todos los modelos ORM."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class DatabaseManager:
    """
    Dueño del engine async y de la fábrica de sesiones.

    Lo abre el lifespan de FastAPI (o un test con SQLite) y lo cierra
    ``SqlAlchemyMarketStore.close()``. Cada transacción del store pide
    una sesión nueva con ``session()`` y la envuelve en ``begin()``.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or default_settings
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def database_url(self) -> str:
        return self._settings.database_url

    async def initialize(self, create_tables: bool = True) -> None:
        """Crea el engine, la session factory y (opcionalmente) las tablas."""
        if self._engine is not None:
            return

        s = self._settings
        engine_kwargs = {"echo": s.db_echo, "pool_pre_ping": True}
        if not self.database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=s.db_pool_size,
                max_overflow=s.db_max_overflow,
                pool_recycle=3600,
            )
        self._engine = create_async_engine(self.database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        if create_tables:
            # Registra los modelos en Base.metadata antes de create_all
            from guildmarket.infrastructure.persistence import models  # noqa: F401

            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        logger.info("Base de datos inicializada")

    async def close(self) -> None:
        """Libera el pool; initialize() puede volver a llamarse después."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Conexiones a base de datos cerradas")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Sesión sin transacción abierta; el llamador decide el begin()."""
        if self._session_factory is None:
            raise RuntimeError("Base de datos sin inicializar: falta await initialize()")

        async with self._session_factory() as session:
            yield session
