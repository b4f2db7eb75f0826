"""
GuildMarket – Circuit Breaker Registry
========================================
Pausa la simulación de una acción que cae demasiado en el día.

REGLAS:
- El precio base de cada (guild, symbol) se fija en el primer tick del
  día de mercado.
- Caída ≥ 8% / 15% / 20% desde la base → nivel 1 / 2 / 3.
- Un breaker activo detiene SOLO la simulación de precio de esa acción
  durante ``circuit_breaker_halt_minutes``. Trades y órdenes siguen.
- Tras reanudar, solo un nivel MAYOR vuelve a disparar en el mismo día.
- Al cambiar la fecha (zona horaria del mercado) se borran bases y
  breakers.

El estado vive en la instancia (inyectada por el contenedor), nunca en
variables de módulo.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from guildmarket.shared.logging.logger import get_logger

logger = get_logger("circuit_breaker")

Key = Tuple[str, str]


@dataclass
class CircuitBreaker:
    guild_id: str
    symbol: str
    level: int
    baseline_price: Decimal
    trigger_price: Decimal
    price_change_pct: float
    triggered_at: datetime
    resume_at: datetime

    @property
    def reason(self) -> str:
        return f"Caída de {abs(self.price_change_pct):.2f}% desde el precio base"

    def to_dict(self) -> dict:
        return {
            "guildId": self.guild_id,
            "symbol": self.symbol,
            "level": self.level,
            "reason": self.reason,
            "baselinePrice": float(self.baseline_price),
            "triggerPrice": float(self.trigger_price),
            "priceChange": round(self.price_change_pct, 2),
            "triggeredAt": self.triggered_at.isoformat(),
            "resumeAt": self.resume_at.isoformat(),
            "haltMinutes": int((self.resume_at - self.triggered_at).total_seconds() // 60),
        }


class CircuitBreakerRegistry:
    """Bases diarias y breakers activos por (guild, symbol)."""

    def __init__(
        self,
        levels: Sequence[float] = (8.0, 15.0, 20.0),
        halt_minutes: int = 20,
        enabled: bool = True,
    ):
        self._levels = sorted(levels)
        self._halt = timedelta(minutes=halt_minutes)
        self._enabled = enabled
        self._trading_day: Optional[date] = None
        self._baselines: Dict[Key, Decimal] = {}
        self._active: Dict[Key, CircuitBreaker] = {}
        self._max_level_today: Dict[Key, int] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def trading_day(self) -> Optional[date]:
        return self._trading_day

    # ─── Día de mercado ────────────────────────────────────────────────

    def roll_day(self, today: date) -> bool:
        """
        Registra el día de mercado actual.

        Returns:
            True si cambió la fecha y se reiniciaron bases y breakers
        """
        if self._trading_day == today:
            return False
        previous = self._trading_day
        self._trading_day = today
        self._baselines.clear()
        self._active.clear()
        self._max_level_today.clear()
        if previous is None:
            return False
        logger.info("Nuevo día de mercado %s: precios base reiniciados", today.isoformat())
        return True

    def baseline(self, guild_id: str, symbol: str, price: Decimal) -> Decimal:
        """Precio base del día; el primero observado queda fijado."""
        return self._baselines.setdefault((guild_id, symbol), price)

    # ─── Breakers ──────────────────────────────────────────────────────

    def is_halted(self, guild_id: str, symbol: str) -> bool:
        return (guild_id, symbol) in self._active

    def release_expired(self, now: datetime) -> List[CircuitBreaker]:
        expired = [b for b in self._active.values() if now >= b.resume_at]
        for breaker in expired:
            del self._active[(breaker.guild_id, breaker.symbol)]
            logger.info(
                "Circuit breaker reanudado %s/%s (nivel %d)",
                breaker.guild_id, breaker.symbol, breaker.level,
            )
        return expired

    def evaluate(
        self, guild_id: str, symbol: str, price: Decimal, now: datetime,
    ) -> Optional[CircuitBreaker]:
        """Dispara un breaker si la caída alcanza un nivel nuevo."""
        if not self._enabled:
            return None
        key = (guild_id, symbol)
        if key in self._active:
            return None
        baseline = self._baselines.get(key)
        if baseline is None or baseline <= 0:
            return None

        change_pct = float((price - baseline) / baseline * 100)
        level = 0
        for index, threshold in enumerate(self._levels, start=1):
            if change_pct <= -threshold:
                level = index
        if level == 0 or level <= self._max_level_today.get(key, 0):
            return None

        breaker = CircuitBreaker(
            guild_id=guild_id,
            symbol=symbol,
            level=level,
            baseline_price=baseline,
            trigger_price=price,
            price_change_pct=change_pct,
            triggered_at=now,
            resume_at=now + self._halt,
        )
        self._active[key] = breaker
        self._max_level_today[key] = level
        logger.warning(
            "Circuit breaker nivel %d en %s/%s: %.2f%% desde base %s",
            level, guild_id, symbol, change_pct, baseline,
        )
        return breaker

    def release(self, guild_id: str, symbol: str) -> Optional[CircuitBreaker]:
        """Liberación manual por un administrador."""
        breaker = self._active.pop((guild_id, symbol), None)
        if breaker is not None:
            logger.info(
                "Circuit breaker %s/%s liberado manualmente (nivel %d)",
                guild_id, symbol, breaker.level,
            )
        return breaker

    def active_for_guild(self, guild_id: str) -> List[CircuitBreaker]:
        return [b for b in self._active.values() if b.guild_id == guild_id]
