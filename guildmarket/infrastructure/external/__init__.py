"""External adapters: in-process event delivery."""
from guildmarket.infrastructure.external.event_bus import EventBus

__all__ = ["EventBus"]
