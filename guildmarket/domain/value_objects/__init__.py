"""Domain value objects."""
from guildmarket.domain.value_objects.money import to_decimal, quantize
from guildmarket.domain.value_objects.timeframe import Timeframe, ALL_TIMEFRAMES, bucket_start

__all__ = ["to_decimal", "quantize", "Timeframe", "ALL_TIMEFRAMES", "bucket_start"]
