"""Domain services - Pure business logic with no external dependencies."""
from guildmarket.domain.services.price_model import (
    PriceModel,
    PriceModelConfig,
    NewsMomentum,
    merge_candle_range,
)

__all__ = ["PriceModel", "PriceModelConfig", "NewsMomentum", "merge_candle_range"]
