"""Logging compartido."""
from guildmarket.shared.logging.logger import setup_logging, get_logger

__all__ = ["setup_logging", "get_logger"]
