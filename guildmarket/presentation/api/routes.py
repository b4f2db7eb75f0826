"""
GuildMarket – API Routes (FastAPI)
====================================
Endpoints REST y WebSocket. Envoltorios delgados sobre TradingEngine:
validan forma con Pydantic y traducen DomainError a HTTP.

Endpoints disponibles:
  WS   /ws/market?guild_id=…                         → eventos en tiempo real
  GET  /api/health                                   → health check
  POST /api/guilds/{guild}/trades                    → compra/venta inmediata
  POST /api/guilds/{guild}/orders                    → crear orden limitada
  GET  /api/guilds/{guild}/orders?user_id=…          → órdenes de un usuario
  DELETE /api/guilds/{guild}/orders/{id}?user_id=…   → cancelar orden
  GET  /api/guilds/{guild}/portfolio/{user}          → valorización de cartera
  GET  /api/guilds/{guild}/candles/{symbol}/{tf}     → últimas N velas
  POST /api/guilds/{guild}/news                      → aplicar noticia puntuada
  POST /api/guilds/{guild}/news/momentum             → inercia por noticia
  GET  /api/guilds/{guild}/circuit-breakers          → breakers activos
  POST /api/guilds/{guild}/circuit-breakers/{symbol}/release → liberar breaker
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from guildmarket import __version__
from guildmarket.application.services.trading_engine import TradingEngine
from guildmarket.domain.exceptions.domain_errors import DomainError
from guildmarket.domain.value_objects.timeframe import Timeframe
from guildmarket.presentation.api.schemas import (
    LimitOrderRequest,
    NewsImpactRequest,
    NewsMomentumRequest,
    TradeRequest,
)
from guildmarket.presentation.websocket.websocket_manager import WebSocketManager
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("api.routes")

router = APIRouter()

# Referencias a componentes inyectados desde main.py
_engine: Optional[TradingEngine] = None
_ws_manager: Optional[WebSocketManager] = None

MAX_CANDLES = 500

# código de DomainError → status HTTP
ERROR_STATUS = {
    "NOT_FOUND": 404,
    "INVALID_ORDER": 400,
    "INSUFFICIENT_FUNDS": 409,
    "INSUFFICIENT_SHARES": 409,
    "TRADING_HALTED": 409,
    "ACCOUNT_FROZEN": 403,
    "TRADING_SUSPENDED": 403,
}


def init_routes(engine: TradingEngine, ws_manager: WebSocketManager) -> None:
    """Inyectar dependencias desde main.py al arrancar."""
    global _engine, _ws_manager
    _engine = engine
    _ws_manager = ws_manager


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status = ERROR_STATUS.get(exc.code, 400)
    logger.info("%s %s → %d %s", request.method, request.url.path, status, exc.code)
    return JSONResponse(status_code=status, content=exc.to_dict())


def _require_engine() -> TradingEngine:
    if _engine is None:
        raise HTTPException(status_code=503, detail="Server not ready")
    return _engine


# ─── WebSocket endpoint ────────────────────────────────────────────────

@router.websocket("/ws/market")
async def market_stream(websocket: WebSocket, guild_id: Optional[str] = None) -> None:
    """
    Stream de eventos del motor. Con ``guild_id`` solo llegan los eventos
    de ese guild. El broadcast lo maneja WebSocketManager; este handler
    solo gestiona el ciclo de vida de la conexión.
    """
    if _ws_manager is None:
        await websocket.close(code=1011, reason="Server not ready")
        return

    await _ws_manager.connect(websocket, guild_id)
    try:
        while True:
            try:
                data = await websocket.receive_text()
                logger.debug("Mensaje de cliente WS: %s", data[:100])
            except WebSocketDisconnect:
                break
    finally:
        _ws_manager.disconnect(websocket)


# ─── Estado ────────────────────────────────────────────────────────────

@router.get("/api/health")
async def health_check() -> dict:
    """Health check para monitoreo."""
    return {
        "status": "ok",
        "service": "guildmarket",
        "version": __version__,
        "engine_running": bool(_engine and _engine.is_running),
        "ws_clients": _ws_manager.client_count if _ws_manager else 0,
    }


# ─── Trading ───────────────────────────────────────────────────────────

@router.post("/api/guilds/{guild_id}/trades")
async def execute_trade(guild_id: str, body: TradeRequest) -> dict:
    engine = _require_engine()
    result = await engine.execute_trade(
        guild_id, body.user_id, body.symbol.upper(), body.side, body.shares, body.price,
    )
    return result.to_dict()


@router.post("/api/guilds/{guild_id}/orders")
async def create_limit_order(guild_id: str, body: LimitOrderRequest) -> dict:
    engine = _require_engine()
    order = await engine.create_limit_order(
        guild_id, body.user_id, body.symbol.upper(), body.side,
        body.shares, body.target_price, body.expires_at,
    )
    return order.to_dict()


@router.get("/api/guilds/{guild_id}/orders")
async def list_limit_orders(
    guild_id: str,
    user_id: str = Query(..., min_length=1),
    status: Optional[str] = Query(default=None, description="pending, executed, cancelled, expired"),
) -> dict:
    engine = _require_engine()
    orders = await engine.get_limit_orders(guild_id, user_id, status)
    return {"count": len(orders), "orders": [o.to_dict() for o in orders]}


@router.delete("/api/guilds/{guild_id}/orders/{order_id}")
async def cancel_limit_order(
    guild_id: str, order_id: str, user_id: str = Query(..., min_length=1),
) -> dict:
    engine = _require_engine()
    order = await engine.cancel_limit_order(guild_id, user_id, order_id)
    return order.to_dict()


@router.get("/api/guilds/{guild_id}/portfolio/{user_id}")
async def portfolio_value(guild_id: str, user_id: str) -> dict:
    engine = _require_engine()
    value = await engine.calculate_portfolio_value(guild_id, user_id)
    return value.to_dict()


@router.get("/api/guilds/{guild_id}/candles/{symbol}/{timeframe}")
async def get_candles(guild_id: str, symbol: str, timeframe: str, count: int = 100) -> dict:
    """Últimas N velas de un timeframe."""
    engine = _require_engine()
    try:
        tf = Timeframe(timeframe)
    except ValueError:
        return JSONResponse(status_code=400, content={
            "error": "INVALID_TIMEFRAME",
            "message": f"Timeframe '{timeframe}' no válido",
            "available": [t.value for t in Timeframe],
        })

    count = max(1, min(count, MAX_CANDLES))
    candles = await engine.get_candlesticks(guild_id, symbol.upper(), tf, count)
    return {
        "symbol": symbol.upper(),
        "timeframe": tf.value,
        "count": len(candles),
        "candles": [c.to_dict() for c in candles],
    }


# ─── Noticias ──────────────────────────────────────────────────────────

@router.post("/api/guilds/{guild_id}/news")
async def apply_news(guild_id: str, body: NewsImpactRequest) -> dict:
    engine = _require_engine()
    symbol = body.symbol.upper() if body.symbol else None
    updates = await engine.apply_news_impact(guild_id, body.impact, symbol)
    return {"count": len(updates), "updates": updates}


@router.post("/api/guilds/{guild_id}/news/momentum")
async def set_news_momentum(guild_id: str, body: NewsMomentumRequest) -> dict:
    engine = _require_engine()
    engine.set_news_momentum(
        guild_id, body.symbol.upper(), body.direction, body.intensity, body.duration_minutes,
    )
    return {"status": "ok"}


# ─── Circuit breakers ──────────────────────────────────────────────────

@router.get("/api/guilds/{guild_id}/circuit-breakers")
async def list_circuit_breakers(guild_id: str) -> dict:
    engine = _require_engine()
    breakers = engine.get_circuit_breakers(guild_id)
    return {"count": len(breakers), "breakers": [b.to_dict() for b in breakers]}


@router.post("/api/guilds/{guild_id}/circuit-breakers/{symbol}/release")
async def release_circuit_breaker(guild_id: str, symbol: str) -> dict:
    engine = _require_engine()
    released = await engine.release_circuit_breaker(guild_id, symbol.upper())
    if not released:
        raise HTTPException(status_code=404, detail=f"No hay circuit breaker activo en {symbol}")
    return {"released": True, "symbol": symbol.upper()}
