"""
Main FastAPI server for the chatroom.

Wires the core components together and exposes them over a WebSocket
endpoint. Every frame is a JSON object `{"event": ..., "data": ...}`.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from chatroom.config import AppConfig
from chatroom.core import (
    AIEngine,
    BotReasoningEngine,
    BroadcastCoordinator,
    CommentaryScheduler,
    ConnectionRegistry,
    MessageStore,
    ServerEvent,
    create_ai_engine,
)

from .schemas import HealthResponse, WebSocketFrame
from .services import ChatWebSocketManager

logger = logging.getLogger(__name__)


def build_ai_engine(settings: AppConfig) -> Optional[AIEngine]:
    """Create the reasoning client, or None when no credential is configured."""
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not provided; bot reasoning is disabled")
        return None

    engine = create_ai_engine(
        settings.openai_api_key,
        model=settings.ai.model,
        api_url=settings.ai.api_url,
        temperature=settings.ai.temperature,
        max_tokens=settings.ai.max_tokens,
        timeout=settings.ai.timeout,
        max_retries=settings.ai.max_retries,
    )
    logger.info("Reasoning client initialized")
    return engine


class ChatroomAPIServer:
    """Owns the shared components and the FastAPI application exposing them."""

    def __init__(
        self,
        settings: AppConfig,
        ai_engine: Optional[AIEngine] = None,
        store: Optional[MessageStore] = None,
    ):
        self.settings = settings
        self._start_time = datetime.now()

        self.store = store or MessageStore(settings.storage.database_path)
        self.registry = ConnectionRegistry()
        self.hub = ChatWebSocketManager()
        self.ai_engine = ai_engine
        self.bot = BotReasoningEngine(
            self.store,
            ai_engine,
            config=settings.bot,
            reasoning_timeout=settings.ai.reasoning_timeout,
        )
        self.coordinator = BroadcastCoordinator(self.store, self.registry, self.bot, self.hub)
        self.scheduler = CommentaryScheduler(
            self.bot,
            self.store,
            self.hub,
            interval=settings.bot.commentary_interval_seconds,
        )

        self.app = FastAPI(
            title="Chatroom API",
            description="Real-time chat room with a question-answering bot",
            version="1.0.0",
            lifespan=self._lifespan,
        )

        self._setup_middleware()
        self._setup_routes()
        self._setup_websocket_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.startup()
        try:
            yield
        finally:
            await self.shutdown()

    async def startup(self) -> None:
        if self.settings.bot.commentary_enabled and self.bot.enabled:
            await self.scheduler.start()
        else:
            logger.info("Commentary scheduler not started (disabled or no reasoning service)")
        logger.info("Chat server is running")

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        await self.coordinator.drain()
        if self.ai_engine is not None:
            await self.ai_engine.cleanup()
        logger.info("Chat server closed")

    def _setup_middleware(self):
        """Configure CORS middleware."""
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _setup_routes(self):
        @self.app.get("/health", response_model=HealthResponse)
        async def health_check():
            """Health check endpoint for container probes."""
            return HealthResponse(
                status="healthy",
                timestamp=datetime.now().isoformat(),
                service="chatroom",
                connections=len(self.registry),
                bot_enabled=self.bot.enabled,
            )

    def _setup_websocket_routes(self):
        @self.app.websocket("/ws")
        async def chat_socket(websocket: WebSocket):
            """One chat connection."""
            connection_id = await self.hub.connect(websocket)
            await self.coordinator.connect(connection_id)
            await self.hub.send(connection_id, ServerEvent.CONNECTION_ACK, {"id": connection_id})
            try:
                while True:
                    message = await websocket.receive()
                    if message["type"] == "websocket.disconnect":
                        logger.debug(f"Socket {connection_id} disconnected (code {message.get('code')})")
                        break
                    raw = message.get("text")
                    if raw is None:
                        logger.warning(f"Ignoring binary frame from {connection_id}")
                        continue
                    await self._dispatch_frame(connection_id, raw)
            finally:
                self.hub.disconnect(connection_id)
                await self.coordinator.disconnect(connection_id)

    async def _dispatch_frame(self, connection_id: str, raw: str) -> None:
        try:
            frame = WebSocketFrame.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed frame from {connection_id}: {e}")
            return

        try:
            await self.coordinator.handle_event(connection_id, frame.event, frame.data)
        except Exception as e:
            # No error channel on the wire: the client just never sees the reply
            logger.error(f"Error handling '{frame.event}' from {connection_id}: {e}", exc_info=True)


def create_api_server(settings: AppConfig) -> FastAPI:
    """Factory function to create the API server from settings."""
    server = ChatroomAPIServer(settings, ai_engine=build_ai_engine(settings))
    return server.app
