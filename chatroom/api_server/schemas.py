"""
Pydantic models for API requests and responses.
"""

from typing import Any

from pydantic import BaseModel


class WebSocketFrame(BaseModel):
    """Envelope of every frame on the chat socket, in both directions."""

    event: str
    data: Any = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    service: str
    connections: int
    bot_enabled: bool
