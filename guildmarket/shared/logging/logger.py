"""
GuildMarket – Logging configuration
=====================================
Logging a stdout con formato de columnas. Todos los loggers del
proyecto cuelgan del namespace ``guildmarket.*`` para poder subir o
bajar el nivel del motor sin tocar el de uvicorn.

Nivel: argumento explícito, o ``LOG_LEVEL`` del entorno (vía Settings).
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, Union

ROOT_NAMESPACE = "guildmarket"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"

# Librerías que a INFO inundan la salida
_NOISY_LOGGERS = (
    "websockets",
    "uvicorn.access",
    "sqlalchemy.engine",
    "aiomysql",
)


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        from guildmarket.shared.config.settings import settings
        level = settings.log_level
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_logging(level: Optional[Union[int, str]] = None) -> None:
    """Configura el root logger una sola vez al arranque."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    # Evitar handlers duplicados si se llama más de una vez
    if not root.handlers:
        root.addHandler(handler)
    root.setLevel(_resolve_level(level))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger hijo de ``guildmarket`` (ej: ``guildmarket.trade_executor``)."""
    return logging.getLogger(f"{ROOT_NAMESPACE}.{name}")
