"""Application ports - interfaces toward infrastructure."""
from guildmarket.application.ports.event_publisher import IEventPublisher, Topics

__all__ = ["IEventPublisher", "Topics"]
