"""
Event Definitions

Names of the events exchanged over a connection, the payloads clients send
with them, and the hub interface the core uses to emit events.
"""

from enum import Enum
from typing import Any, Optional, Protocol, Union

from pydantic import BaseModel, Field

from .models import ContentType, SenderKind


class ClientEvent(str, Enum):
    """Events a client sends to the server."""
    USER_JOIN = "user:join"
    USER_ALL = "user:all"
    MESSAGE_ALL = "message:all"
    MESSAGE_SEND = "message:send"
    MESSAGE_UPDATE = "message:update"


class ServerEvent(str, Enum):
    """Events the server sends to clients."""
    CONNECTION_ACK = "connection:ack"
    MESSAGE_ALL = "message:all"
    MESSAGE_NEW = "message:new"
    USER_ALL = "user:all"
    USER_JOIN = "user:join"
    USER_LEAVE = "user:leave"


# --- Inbound payloads ---

class JoinPayload(BaseModel):
    """`user:join` data. `id` is whatever the client believes its id is; the server uses its own."""

    id: Optional[str] = None
    name: str = Field(min_length=1)
    uuid: Optional[str] = None


class SendPayload(BaseModel):
    """`message:send` data."""
    model_config = {"populate_by_name": True}

    id: Optional[str] = None
    text: str
    sender_display_name: str = Field(alias="senderName")
    content_type: ContentType = Field(ContentType.TEXT, alias="type")
    sender_kind: SenderKind = Field(SenderKind.USER, alias="sender")
    sender_stable_id: Optional[str] = Field(None, alias="senderId")
    # Client-side correlation id; accepted and ignored
    client_msg_id: Optional[Union[int, str]] = Field(None, alias="clientMsgId")


class UpdatePayload(BaseModel):
    """`message:update` data."""

    id: str
    text: str


class EventHub(Protocol):
    """Fan-out surface implemented by the transport."""

    async def send(self, connection_id: str, event: ServerEvent, payload: Any) -> None:
        """Deliver one event to a single connection."""
        ...

    async def broadcast(self, event: ServerEvent, payload: Any, exclude: Optional[str] = None) -> None:
        """Deliver one event to every connection except `exclude`."""
        ...
