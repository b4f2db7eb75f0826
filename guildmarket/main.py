"""
GuildMarket – Main Application Entry Point
============================================
Levanta el motor de trading detrás de FastAPI.

ARRANQUE:
  1. Configurar logging
  2. Crear el contenedor (store, event bus, motor, WS manager)
  3. Lifespan startup:
     a. Inicializar base de datos (si db_enabled)
     b. Iniciar WebSocketManager (broadcast a clientes)
     c. Iniciar TradingEngine (tick de precios + barrido de vencimientos)
  4. Lifespan shutdown: detener todo en orden inverso

FLUJO DE DATOS:
  tick loop → PriceSimulator → velas → órdenes limitadas
       → EventBus(stock_price_updated | limit_order_executed | circuit_breaker_*)
       → WebSocketManager → dashboard / bot de Discord
  request → TradeExecutor → EventBus(trade_executed) → …

  uvicorn guildmarket.main:app --host 0.0.0.0 --port 8888
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from guildmarket import __version__
from guildmarket.container import Container, init_container
from guildmarket.domain.exceptions.domain_errors import DomainError
from guildmarket.presentation.api.routes import domain_error_handler, init_routes, router
from guildmarket.shared.config.settings import settings
from guildmarket.shared.logging.logger import get_logger, setup_logging

# ─── Logging ────────────────────────────────────────────────────────────
setup_logging()
logger = get_logger("main")


def create_app(container: Container) -> FastAPI:
    """Arma la app FastAPI sobre un contenedor ya construido."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        s = container.settings
        logger.info("=" * 60)
        logger.info("  GuildMarket v%s", __version__)
        logger.info("  Tick de precios: %.1fs", s.price_tick_interval_seconds)
        logger.info("  Zona horaria de mercado: %s", s.market_timezone)
        logger.info(
            "  Circuit breakers: %s %s",
            "on" if s.circuit_breaker_enabled else "off",
            s.circuit_breaker_levels,
        )
        logger.info("=" * 60)

        if s.db_enabled:
            await container.db_manager.initialize()
            logger.info("  Database: conectada")
        else:
            logger.info("  Database: Deshabilitada (db_enabled=False)")

        init_routes(container.engine, container.ws_manager)
        await container.ws_manager.start()
        await container.engine.start()
        logger.info("✓ Todos los componentes iniciados correctamente")

        yield  # ← La app está corriendo aquí

        logger.info("Iniciando shutdown...")
        await container.engine.stop()
        await container.ws_manager.stop()
        await container.event_bus.unsubscribe_all()
        await container.store.close()
        logger.info("✓ Shutdown completo")

    app = FastAPI(
        title="GuildMarket",
        description="Motor de mercado de acciones virtual para servidores de Discord",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(DomainError, domain_error_handler)
    app.include_router(router)
    return app


app = create_app(init_container(settings))
