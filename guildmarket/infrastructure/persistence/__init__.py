"""Persistence adapters: in-memory and SQLAlchemy implementations of IMarketStore."""
from guildmarket.infrastructure.persistence.memory_store import InMemoryMarketStore
from guildmarket.infrastructure.persistence.database import Base, DatabaseManager
from guildmarket.infrastructure.persistence.sql_store import SqlAlchemyMarketStore

__all__ = ["InMemoryMarketStore", "Base", "DatabaseManager", "SqlAlchemyMarketStore"]
