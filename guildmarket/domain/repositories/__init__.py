"""Repository interfaces (ABCs) - implemented in infrastructure."""
from guildmarket.domain.repositories.market_store import IMarketStore, IMarketSession

__all__ = ["IMarketStore", "IMarketSession"]
