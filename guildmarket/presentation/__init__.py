"""Presentation layer: FastAPI routes and WebSocket broadcast."""
