"""
GuildMarket – Shared Module
=============================
Utilidades transversales usadas por todas las capas.

- config/: Settings y configuración
- logging/: Setup de logging

NOTA: Este módulo no contiene lógica de negocio.
"""

from guildmarket.shared.config.settings import settings
from guildmarket.shared.logging.logger import setup_logging, get_logger

__all__ = [
    "settings",
    "setup_logging",
    "get_logger",
]
