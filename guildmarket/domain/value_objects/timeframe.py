"""
GuildMarket – Domain Value Object: Timeframe
==============================================
Los 14 timeframes de velas y su alineación temporal.

ALINEACIÓN:
  Cada timeframe es una función pura ``bucket_start(tf, now)`` que trunca
  el instante al inicio de su intervalo, en la zona horaria de ``now``:

    - realtime, 1m      → minuto
    - 3m … 30m          → múltiplo de N minutos dentro de la hora
    - 1h, 2h, 4h        → múltiplo de N horas dentro del día
    - 1d                → medianoche
    - 7d                → lunes de la semana ISO
    - 30d               → día 1 del mes
    - 365d              → 1 de enero

  Agregar o quitar un timeframe solo toca la tabla ``_ALIGNERS``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Tuple


class Timeframe(str, Enum):
    REALTIME = "realtime"
    M1 = "1m"
    M3 = "3m"
    M5 = "5m"
    M10 = "10m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H2 = "2h"
    H4 = "4h"
    D1 = "1d"
    D7 = "7d"
    D30 = "30d"
    D365 = "365d"


def _floor_minutes(step: int) -> Callable[[datetime], datetime]:
    def align(now: datetime) -> datetime:
        return now.replace(minute=(now.minute // step) * step, second=0, microsecond=0)
    return align


def _floor_hours(step: int) -> Callable[[datetime], datetime]:
    def align(now: datetime) -> datetime:
        return now.replace(hour=(now.hour // step) * step, minute=0, second=0, microsecond=0)
    return align


def _floor_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _floor_week(now: datetime) -> datetime:
    return _floor_day(now) - timedelta(days=now.weekday())


def _floor_month(now: datetime) -> datetime:
    return _floor_day(now).replace(day=1)


def _floor_year(now: datetime) -> datetime:
    return _floor_day(now).replace(month=1, day=1)


_ALIGNERS: Dict[Timeframe, Callable[[datetime], datetime]] = {
    Timeframe.REALTIME: _floor_minutes(1),
    Timeframe.M1: _floor_minutes(1),
    Timeframe.M3: _floor_minutes(3),
    Timeframe.M5: _floor_minutes(5),
    Timeframe.M10: _floor_minutes(10),
    Timeframe.M15: _floor_minutes(15),
    Timeframe.M30: _floor_minutes(30),
    Timeframe.H1: _floor_hours(1),
    Timeframe.H2: _floor_hours(2),
    Timeframe.H4: _floor_hours(4),
    Timeframe.D1: _floor_day,
    Timeframe.D7: _floor_week,
    Timeframe.D30: _floor_month,
    Timeframe.D365: _floor_year,
}

ALL_TIMEFRAMES: Tuple[Timeframe, ...] = tuple(Timeframe)


def bucket_start(timeframe: Timeframe | str, now: datetime) -> datetime:
    """Inicio del bucket de ``timeframe`` que contiene a ``now``."""
    return _ALIGNERS[Timeframe(timeframe)](now)
