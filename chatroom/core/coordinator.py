"""
Broadcast Coordinator

Maps client intents onto the message store and the connection registry, and
fans the results out to the right connections:

- replies to queries go to the requester only
- a human message goes to everyone except its author, who already shows it
- a bot answer goes to everyone, the asker included

Each connection moves CONNECTED -> IDENTIFIED (first `user:join`) -> CLOSED.
"""

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from pydantic import ValidationError

from chatroom.exceptions import DuplicateMessageError

from .bot import BotReasoningEngine
from .connection_registry import ConnectionRegistry
from .events import ClientEvent, EventHub, JoinPayload, SendPayload, ServerEvent, UpdatePayload
from .message_store import MessageStore
from .models import ChatMessage, Participant

logger = logging.getLogger(__name__)


class BroadcastCoordinator:
    """Owns the wire protocol semantics, independent of the transport."""

    def __init__(
        self,
        store: MessageStore,
        registry: ConnectionRegistry,
        bot: BotReasoningEngine,
        hub: EventHub,
    ):
        self.store = store
        self.registry = registry
        self.bot = bot
        self.hub = hub
        self._bot_tasks: Set[asyncio.Task] = set()
        self._handlers: Dict[ClientEvent, Callable[[str, Any], Awaitable[Any]]] = {
            ClientEvent.USER_JOIN: self.handle_user_join,
            ClientEvent.USER_ALL: self.handle_user_all,
            ClientEvent.MESSAGE_ALL: self.handle_message_all,
            ClientEvent.MESSAGE_SEND: self.handle_message_send,
            ClientEvent.MESSAGE_UPDATE: self.handle_message_update,
        }

    # --- Connection lifecycle ---

    async def connect(self, connection_id: str) -> None:
        self.registry.add_connection(connection_id)
        logger.info(f"New connection: {connection_id}")

    async def disconnect(self, connection_id: str) -> None:
        participant = self.registry.remove(connection_id)
        await self.hub.broadcast(ServerEvent.USER_LEAVE, connection_id, exclude=connection_id)
        name = participant.name if participant else None
        logger.info(f"Connection closed: {connection_id} ({name or 'never joined'})")

    async def handle_event(self, connection_id: str, event: str, data: Any = None) -> Any:
        """Dispatch one inbound event. Unknown events and invalid payloads are dropped."""
        try:
            client_event = ClientEvent(event)
        except ValueError:
            logger.warning(f"Ignoring unknown event '{event}' from {connection_id}")
            return None

        try:
            return await self._handlers[client_event](connection_id, data)
        except ValidationError as e:
            logger.warning(f"Dropping invalid '{event}' payload from {connection_id}: {e}")
            return None

    # --- Intent handlers ---

    async def handle_user_join(self, connection_id: str, data: Any) -> Optional[Participant]:
        payload = JoinPayload.model_validate(data)
        logger.info(f"User joined: {payload.name} on {connection_id}")

        if not self.registry.identify(connection_id, payload.name, payload.uuid):
            existing = self.registry.find(connection_id)
            if existing is not None:
                logger.info(f"Client already joined as {existing.name}")
            else:
                logger.warning(f"Join from unregistered connection {connection_id}")
            return None

        participant = self.registry.find(connection_id)
        messages = await self.store.list_messages()

        await self.hub.send(connection_id, ServerEvent.MESSAGE_ALL, [m.to_wire() for m in messages])
        await self.hub.send(connection_id, ServerEvent.USER_ALL, self._participants_wire())
        await self.hub.broadcast(ServerEvent.USER_JOIN, participant.model_dump(), exclude=connection_id)
        return participant

    async def handle_user_all(self, connection_id: str, data: Any = None) -> None:
        await self.hub.send(connection_id, ServerEvent.USER_ALL, self._participants_wire())

    async def handle_message_all(self, connection_id: str, data: Any = None) -> None:
        messages = await self.store.list_messages()
        await self.hub.send(connection_id, ServerEvent.MESSAGE_ALL, [m.to_wire() for m in messages])

    async def handle_message_send(self, connection_id: str, data: Any) -> Optional[ChatMessage]:
        """
        Store a message, relay it to the other connections, then hand it to
        the bot without waiting for the verdict.
        """
        payload = SendPayload.model_validate(data)
        message = ChatMessage(
            id=payload.id or str(uuid.uuid4()),
            text=payload.text,
            sender_kind=payload.sender_kind,
            sender_display_name=payload.sender_display_name,
            sender_stable_id=payload.sender_stable_id,
            content_type=payload.content_type,
        )

        try:
            stored = await self.store.append(message)
        except DuplicateMessageError as e:
            logger.warning(f"Rejected message from {connection_id}: {e}")
            return None

        await self.hub.broadcast(ServerEvent.MESSAGE_NEW, stored.to_wire(), exclude=connection_id)
        self._schedule_classification(stored)
        return stored

    async def handle_message_update(self, connection_id: str, data: Any) -> None:
        payload = UpdatePayload.model_validate(data)
        messages = await self.store.update_text(payload.id, payload.text)
        await self.hub.broadcast(
            ServerEvent.MESSAGE_ALL, [m.to_wire() for m in messages], exclude=connection_id
        )

    # --- Bot hand-off ---

    def _schedule_classification(self, message: ChatMessage) -> None:
        if not self.bot.enabled:
            return
        task = asyncio.create_task(self._classify_and_announce(message), name=f"classify-{message.id}")
        self._bot_tasks.add(task)
        task.add_done_callback(self._bot_tasks.discard)

    async def _classify_and_announce(self, message: ChatMessage) -> None:
        # Runs detached; the sender's broadcast has already completed
        try:
            outcome = await self.bot.classify(message)
            if outcome and outcome.bot_message:
                await self.hub.broadcast(ServerEvent.MESSAGE_NEW, outcome.bot_message.to_wire())
        except Exception as e:
            logger.error(f"Bot classification failed for message {message.id}: {e}", exc_info=True)

    async def drain(self) -> None:
        """Wait for every pending bot classification to finish."""
        while self._bot_tasks:
            await asyncio.gather(*list(self._bot_tasks), return_exceptions=True)

    def _participants_wire(self) -> list:
        return [participant.model_dump() for participant in self.registry.all()]
