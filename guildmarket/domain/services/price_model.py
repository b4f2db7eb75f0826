"""
GuildMarket – Domain Service: Price Model
===========================================
Fórmulas puras del mercado simulado. Sin I/O ni estado global: el
generador aleatorio se inyecta para que los tests sean deterministas.

Todas las variaciones se expresan como FRACCIÓN del precio
(0.01 = 1%). La volatilidad de una acción se guarda en porcentaje.

TICK DEL SIMULADOR:
    total = base + flujo_de_trades + shock_noticia (+ inercia_noticia)
    total → clamp ±(3 × volatilidad)
    precio → clamp [max(0.95p, min(1000, p)), 1.05p]

VELAS:
    high/low solo se amplían si el precio se aleja del open más de
    0.01%, y como máximo un 0.5% respecto al high/low existente.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_DOWN, ROUND_UP, Decimal
from typing import Tuple

from guildmarket.domain.value_objects.money import quantize, to_decimal


@dataclass
class PriceModelConfig:
    """Parámetros del modelo (se construyen desde Settings en la capa de aplicación)."""

    trade_flow_volume_divisor: int = 10_000
    trade_flow_max_impact: float = 0.001
    news_shock_probability: float = 0.001
    news_shock_min: float = 0.002
    news_shock_max: float = 0.005
    volatility_clamp_multiplier: float = 3.0
    tick_max_move_pct: float = 0.05
    min_simulated_price: Decimal = Decimal("1000")
    volume_base_min: int = 100
    volume_base_max: int = 1100
    volume_change_multiplier: float = 20.0
    price_decimal_places: int = 2
    news_momentum_weight: float = 0.6
    news_momentum_noise: float = 0.3
    market_impact_divisor: int = 10_000
    market_impact_cap: float = 0.005
    market_impact_noise: float = 0.0005
    candle_wick_threshold: float = 0.0001
    candle_wick_step: float = 0.005

    @classmethod
    def from_settings(cls, settings) -> "PriceModelConfig":
        names = cls.__dataclass_fields__.keys()
        return cls(**{name: getattr(settings, name) for name in names})


@dataclass
class NewsMomentum:
    """Inercia temporal que deja una noticia sobre una acción."""

    direction: float        # -1.0 … 1.0
    intensity: float        # 0.0 … 1.0
    started_at: datetime
    duration: timedelta

    def time_decay(self, now: datetime) -> float:
        """Fracción de vida restante (1 → recién creada, 0 → vencida)."""
        elapsed = now - self.started_at
        if elapsed >= self.duration:
            return 0.0
        remaining = self.duration - elapsed
        return remaining / self.duration

    def is_expired(self, now: datetime) -> bool:
        return now - self.started_at >= self.duration


class PriceModel:
    """
    Calculadora de variaciones de precio.

    RESPONSABILIDAD:
    Traducir volatilidad, flujo de órdenes, noticias y tamaño de trade
    en un nuevo precio acotado. NO persiste nada.
    """

    def __init__(self, config: PriceModelConfig = None, rng: random.Random = None):
        self._config = config or PriceModelConfig()
        self._rng = rng or random.Random()

    @property
    def config(self) -> PriceModelConfig:
        return self._config

    # ─── Componentes del tick ──────────────────────────────────────────

    def base_change(self, volatility_pct: float) -> float:
        """Uniforme en [-volatilidad, +volatilidad]."""
        bound = abs(volatility_pct) / 100
        return self._rng.uniform(-bound, bound)

    def trade_flow_impact(self, buy_volume: int, sell_volume: int) -> float:
        """
        Presión neta de compras/ventas recientes.

        El volumen total escala el impacto hasta ``trade_flow_max_impact``;
        el desbalance fija el signo (más compras → positivo).
        """
        total = buy_volume + sell_volume
        if total <= 0:
            return 0.0
        cfg = self._config
        max_impact = min(total / cfg.trade_flow_volume_divisor, cfg.trade_flow_max_impact)
        return (buy_volume - sell_volume) / total * max_impact

    def news_shock(self) -> float:
        """Shock alcista O bajista con probabilidad baja, nunca ambos."""
        cfg = self._config
        roll = self._rng.random()
        if roll < cfg.news_shock_probability:
            return self._rng.uniform(cfg.news_shock_min, cfg.news_shock_max)
        if roll < 2 * cfg.news_shock_probability:
            return -self._rng.uniform(cfg.news_shock_min, cfg.news_shock_max)
        return 0.0

    def momentum_impact(self, momentum: NewsMomentum, now: datetime) -> float:
        decay = momentum.time_decay(now)
        if decay <= 0:
            return 0.0
        cfg = self._config
        noise = self._rng.uniform(-cfg.news_momentum_noise, cfg.news_momentum_noise)
        return (momentum.direction + noise) * momentum.intensity * decay * cfg.news_momentum_weight

    def clamp_change(self, total_change: float, volatility_pct: float) -> float:
        band = abs(volatility_pct) / 100 * self._config.volatility_clamp_multiplier
        return max(-band, min(band, total_change))

    # ─── Precio ────────────────────────────────────────────────────────

    def price_bounds(self, current: Decimal) -> Tuple[Decimal, Decimal]:
        """
        Banda absoluta por tick.

        Una acción que ya cotiza bajo el piso no puede caer más, pero
        sí subir hasta +5%.
        """
        cfg = self._config
        step = Decimal(1).scaleb(-cfg.price_decimal_places)
        move = to_decimal(cfg.tick_max_move_pct)
        lower = (current * (1 - move)).quantize(step, rounding=ROUND_UP)
        lower = max(lower, min(cfg.min_simulated_price, current))
        upper = (current * (1 + move)).quantize(step, rounding=ROUND_DOWN)
        return lower, max(upper, lower)

    def next_price(self, current: Decimal, change: float) -> Decimal:
        proposed = quantize(current * (1 + to_decimal(change)), self._config.price_decimal_places)
        lower, upper = self.price_bounds(current)
        return max(lower, min(upper, proposed))

    def synthetic_volume(self, change: float) -> int:
        cfg = self._config
        base = self._rng.randrange(cfg.volume_base_min, cfg.volume_base_max)
        multiplier = abs(change) * 100 * cfg.volume_change_multiplier + 1
        return int(round(base * multiplier))

    # ─── Impacto de trades grandes ─────────────────────────────────────

    def market_impact(self, shares: int, direction: int) -> float:
        cfg = self._config
        impact = min(shares / cfg.market_impact_divisor, cfg.market_impact_cap) * direction
        return impact + self._rng.uniform(-cfg.market_impact_noise, cfg.market_impact_noise)

    def apply_impact(self, current: Decimal, impact: float, floor: Decimal = Decimal("1")) -> Decimal:
        """Aplica una fracción sin banda por tick (noticias, trades grandes)."""
        moved = quantize(current * (1 + to_decimal(impact)), self._config.price_decimal_places)
        return max(floor, moved)


def merge_candle_range(
    open_price: Decimal,
    high: Decimal,
    low: Decimal,
    price: Decimal,
    threshold: float = 0.0001,
    step: float = 0.005,
) -> Tuple[Decimal, Decimal]:
    """
    Nuevo (high, low) de una vela existente tras un tick a ``price``.

    Si el precio apenas se mueve respecto al open, el rango no cambia.
    Si se mueve, high/low se amplían como máximo ``step`` por tick.
    """
    if open_price <= 0 or abs(price - open_price) / open_price <= to_decimal(threshold):
        return high, low
    widen = to_decimal(step)
    new_high = max(high, min(price, high * (1 + widen)))
    new_low = min(low, max(price, low * (1 - widen)))
    return new_high, new_low
