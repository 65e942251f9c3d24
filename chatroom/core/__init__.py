"""
Core chat components: storage, presence, protocol coordination and the bot.
"""

from .ai_engine import AIEngine, AIEngineConfig, create_ai_engine
from .bot import BotReasoningEngine, ClassificationOutcome, DecodeResult, decode_bot_response
from .commentary import CommentaryScheduler
from .connection_registry import ConnectionRegistry
from .coordinator import BroadcastCoordinator
from .events import ClientEvent, EventHub, ServerEvent
from .message_store import MessageStore
from .models import (
    BotResponse,
    ChatMessage,
    ContentType,
    LearnedAnswer,
    Participant,
    QuestionAnswer,
    SenderKind,
)

__all__ = [
    "AIEngine",
    "AIEngineConfig",
    "BotReasoningEngine",
    "BotResponse",
    "BroadcastCoordinator",
    "ChatMessage",
    "ClassificationOutcome",
    "ClientEvent",
    "CommentaryScheduler",
    "ConnectionRegistry",
    "ContentType",
    "DecodeResult",
    "EventHub",
    "LearnedAnswer",
    "MessageStore",
    "Participant",
    "QuestionAnswer",
    "SenderKind",
    "ServerEvent",
    "create_ai_engine",
    "decode_bot_response",
]
