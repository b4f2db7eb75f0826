"""ORM ↔ domain mappers."""
from guildmarket.infrastructure.persistence.mappers.market_mapper import (
    MarketMapper,
    to_db_time,
    from_db_time,
)

__all__ = ["MarketMapper", "to_db_time", "from_db_time"]
