"""
Connection Registry

In-memory presence tracking: one Participant per open connection, in the
order connections arrived. Nothing here is persisted, so presence starts
empty on every process start.
"""

import logging
from typing import Dict, List, Optional

from .models import Participant

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps live connection ids to display identities."""

    def __init__(self):
        # dicts keep insertion order, which is the registry iteration order
        self._participants: Dict[str, Participant] = {}

    def add_connection(self, connection_id: str) -> None:
        """Register a connection. Adding a known id is a no-op."""
        if connection_id in self._participants:
            return
        self._participants[connection_id] = Participant(id=connection_id)
        logger.debug(f"Registered connection {connection_id} ({len(self._participants)} total)")

    def identify(self, connection_id: str, display_name: str, stable_id: Optional[str] = None) -> bool:
        """
        Attach a display name and stable id to a connection.

        First identify wins: returns False without changing anything when the
        connection is unknown or already has a name.
        """
        participant = self._participants.get(connection_id)
        if participant is None or participant.identified:
            return False
        participant.name = display_name
        participant.uuid = stable_id
        return True

    def remove(self, connection_id: str) -> Optional[Participant]:
        """Forget a connection and return its last record, if any."""
        return self._participants.pop(connection_id, None)

    def find(self, connection_id: str) -> Optional[Participant]:
        participant = self._participants.get(connection_id)
        return participant.model_copy() if participant else None

    def all(self) -> List[Participant]:
        return [participant.model_copy() for participant in self._participants.values()]

    def __len__(self) -> int:
        return len(self._participants)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._participants
