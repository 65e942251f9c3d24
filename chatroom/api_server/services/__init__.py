"""
Services for the API server.
"""

from .websocket_manager import ChatWebSocketManager

__all__ = ["ChatWebSocketManager"]
