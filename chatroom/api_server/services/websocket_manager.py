"""
WebSocket connection manager: the event hub behind the chat endpoint.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

from chatroom.core.events import ServerEvent

logger = logging.getLogger(__name__)


class ChatWebSocketManager:
    """Tracks open chat sockets by connection id and delivers event frames."""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.active_connections[connection_id] = websocket
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        self.active_connections.pop(connection_id, None)

    async def send(self, connection_id: str, event: ServerEvent, payload: Any) -> None:
        """Send one event to a single connection."""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            logger.debug(f"Dropping '{event.value}' for closed connection {connection_id}")
            return
        try:
            await websocket.send_json(self._frame(event, payload))
        except Exception as e:
            logger.debug(f"Send to {connection_id} failed, forgetting it: {e}")
            self.disconnect(connection_id)

    async def broadcast(self, event: ServerEvent, payload: Any, exclude: Optional[str] = None) -> None:
        """Broadcast one event to every connection except `exclude`."""
        frame = self._frame(event, payload)
        for connection_id, websocket in list(self.active_connections.items()):
            if connection_id == exclude:
                continue
            try:
                await websocket.send_json(frame)
            except Exception as e:
                # Remove disconnected clients
                logger.debug(f"Broadcast to {connection_id} failed, forgetting it: {e}")
                self.disconnect(connection_id)

    def connection_ids(self) -> List[str]:
        return list(self.active_connections)

    @staticmethod
    def _frame(event: ServerEvent, payload: Any) -> Dict[str, Any]:
        return {"event": event.value, "data": payload}
