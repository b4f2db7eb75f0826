"""Infrastructure layer: persistence and event delivery adapters."""
