"""
Global test configuration and fixtures.
"""

from pathlib import Path

import pytest

from chatroom.config import BotConfig
from chatroom.core import (
    BotReasoningEngine,
    BroadcastCoordinator,
    ChatMessage,
    ConnectionRegistry,
    MessageStore,
    SenderKind,
)
from tests.fakes import RecordingHub, ScriptedAIEngine


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Location of the JSON store for one test."""
    return tmp_path / "data" / "database.json"


@pytest.fixture
def store(db_path: Path) -> MessageStore:
    """Provide a MessageStore backed by a fresh temporary document."""
    return MessageStore(db_path)


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def hub() -> RecordingHub:
    return RecordingHub()


@pytest.fixture
def ai_engine() -> ScriptedAIEngine:
    """A reasoning engine with no scripted replies; tests queue what they need."""
    return ScriptedAIEngine()


@pytest.fixture
def bot_config() -> BotConfig:
    return BotConfig(
        display_name="Bot",
        stable_id="bot",
        persona_name="Chatitude",
        classification_history=100,
        commentary_history=50,
        commentary_enabled=False,
        commentary_interval_seconds=60.0,
    )


@pytest.fixture
def bot(store, ai_engine, bot_config) -> BotReasoningEngine:
    return BotReasoningEngine(store, ai_engine, config=bot_config, reasoning_timeout=5.0)


@pytest.fixture
def disabled_bot(store, bot_config) -> BotReasoningEngine:
    return BotReasoningEngine(store, None, config=bot_config)


@pytest.fixture
def coordinator(store, registry, bot, hub) -> BroadcastCoordinator:
    return BroadcastCoordinator(store, registry, bot, hub)


@pytest.fixture
def make_message():
    """Factory for user messages."""
    def _make(message_id: str, text: str, sender: str = "alice", kind: SenderKind = SenderKind.USER) -> ChatMessage:
        return ChatMessage(
            id=message_id,
            text=text,
            sender_kind=kind,
            sender_display_name=sender,
            sender_stable_id=f"{sender}-uuid",
        )
    return _make
