"""
Bot Reasoning Engine

Decides what the bot does with each human message. The reasoning service sees
the bot persona, everything the bot has learned so far and the recent chat
history, and classifies the newest message:

- an answer to an earlier question -> the pair is added to the knowledge base
- a repeat of a question the knowledge base can answer -> the bot replies
- anything else -> nothing happens

The same context also drives the periodic unsolicited commentary.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from chatroom.config import BotConfig
from chatroom.exceptions import AIResponseError, AIServiceError

from .ai_engine import AIEngine, extract_json_from_text
from .message_store import MessageStore
from .models import BotResponse, ChatMessage, ContentType, QuestionAnswer, SenderKind

logger = logging.getLogger(__name__)

NO_KNOWLEDGE = "No questions have been answered yet."
NO_RECENT_MESSAGES = "No recent messages."
KNOWLEDGE_DIVIDER = "\n\n---\n\n"

CLASSIFICATION_PROMPT = """
You are {persona}, a bot sitting in a chat room where people ask and answer each other's questions.
Your name means "a chat with an attitude".

Rules:
- Only answer a question when the knowledge base below already contains its answer. Never make answers up.
- Only react to questions. When the newest message reads like an answer, do not reply to it.
- When the newest message answers a question someone asked earlier in the chat, report the pair as a new answer so it can be remembered.
- Replies should be snarky, smart and a little toxic, but the facts must come from the knowledge base.

Respond with a single JSON object:
{{
    "message": "your reply, or an empty string when you are not answering",
    "isAnswerForPastQuestion": true or false,
    "newAnswer": {{"question": "the question user A asked", "answer": "the answer user B gave"}}
}}
Omit "newAnswer" unless the newest message answers an earlier question.

# Already Answered Questions:
{knowledge}

# Last messages from users in the chatroom:
{history}

# New message you are asked about:
{candidate}

# Your JSON response:"""

COMMENTARY_PROMPT = """
You are {persona}, a funny bot sitting in a chat room where people ask and answer each other's questions.
The people in this room are {audience}.
Write one short, random, toxic-but-funny remark to drop into the chat, roasting the users based on what they said recently.

# Knowledge Base:
{knowledge}

# Last messages from users in the chatroom:
{history}

Respond with a single JSON object:
{{
    "message": "your remark"
}}"""


@dataclass
class DecodeResult:
    """Outcome of decoding raw model output into a BotResponse."""
    raw: str
    response: Optional[BotResponse] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.response is not None


@dataclass
class ClassificationOutcome:
    """What a classification decided and which records it produced."""
    response: BotResponse
    learned: Optional[QuestionAnswer] = None
    bot_message: Optional[ChatMessage] = None


def decode_bot_response(raw: str) -> DecodeResult:
    """Decode model output without trusting its shape."""
    try:
        payload = extract_json_from_text(raw)
        return DecodeResult(raw=raw, response=BotResponse.model_validate(payload))
    except (ValueError, ValidationError) as e:
        return DecodeResult(raw=raw, error=str(e))


def render_knowledge(pairs: List[QuestionAnswer]) -> str:
    if not pairs:
        return NO_KNOWLEDGE
    return KNOWLEDGE_DIVIDER.join(f'Q: "{qa.question}"\nA: "{qa.answer}"' for qa in pairs)


def render_history(messages: List[ChatMessage]) -> str:
    if not messages:
        return NO_RECENT_MESSAGES
    return "\n".join(f'{message.sender_display_name}: "{message.text}"' for message in messages)


class BotReasoningEngine:
    """
    Classifies human messages and produces commentary.

    Without an AI engine the bot is disabled: it never learns and never
    speaks, and every call returns None.
    """

    def __init__(
        self,
        store: MessageStore,
        ai_engine: Optional[AIEngine] = None,
        config: Optional[BotConfig] = None,
        reasoning_timeout: float = 90.0,
    ):
        self.store = store
        self.ai_engine = ai_engine
        self.config = config or BotConfig()
        self.reasoning_timeout = reasoning_timeout

        if self.ai_engine is None:
            logger.warning("No reasoning service configured; the bot will stay silent and learn nothing")

    @property
    def enabled(self) -> bool:
        return self.ai_engine is not None

    def make_bot_message(self, text: str) -> ChatMessage:
        return ChatMessage(
            id=str(uuid.uuid4()),
            text=text,
            sender_kind=SenderKind.BOT,
            sender_display_name=self.config.display_name,
            sender_stable_id=self.config.stable_id,
            content_type=ContentType.TEXT,
        )

    async def classify(self, message: ChatMessage) -> Optional[ClassificationOutcome]:
        """
        Classify the newest human message and apply the side effects.

        A learned pair is stored before the bot reply. Reasoning failures and
        undecodable output raise (AIServiceError / AIResponseError) and leave
        the store untouched.
        """
        if not self.enabled:
            return None
        if message.sender_kind == SenderKind.BOT:
            logger.debug(f"Skipping classification of bot message {message.id}")
            return None

        prompt = await self.build_classification_prompt(message)
        raw = await self._reason(prompt, message.text)

        decoded = decode_bot_response(raw)
        if not decoded.ok:
            raise AIResponseError(
                f"Unparseable classification for message {message.id}: {decoded.error}",
                raw_content=raw,
            )
        response = decoded.response

        outcome = ClassificationOutcome(response=response)
        if response.new_answer:
            outcome.learned = await self.store.append_knowledge(response.new_answer)
            logger.info(f"Learned an answer for: {response.new_answer.question[:80]}")

        if response.should_reply:
            outcome.bot_message = await self.store.append(self.make_bot_message(response.message))
            logger.info(f"Bot answered a repeated question from {message.sender_display_name}")

        return outcome

    async def generate_commentary(self) -> Optional[str]:
        """Ask for an unsolicited remark. Every failure is logged and yields None."""
        if not self.enabled:
            return None

        try:
            prompt = await self.build_commentary_prompt()
            raw = await self._reason(prompt)
        except Exception as e:
            logger.error(f"Error generating commentary: {e}")
            return None

        decoded = decode_bot_response(raw)
        if not decoded.ok:
            logger.error(f"Discarding unparseable commentary: {decoded.error}")
            return None
        return decoded.response.message or None

    async def build_classification_prompt(self, message: ChatMessage) -> str:
        knowledge = render_knowledge(await self.store.list_knowledge())
        history = render_history(await self.store.recent_messages(self.config.classification_history))
        return CLASSIFICATION_PROMPT.format(
            persona=self.config.persona_name,
            knowledge=knowledge,
            history=history,
            candidate=message.text,
        )

    async def build_commentary_prompt(self) -> str:
        knowledge = render_knowledge(await self.store.list_knowledge())
        history = render_history(await self.store.recent_messages(self.config.commentary_history))
        return COMMENTARY_PROMPT.format(
            persona=self.config.persona_name,
            audience=self.config.audience,
            knowledge=knowledge,
            history=history,
        )

    async def _reason(self, prompt: str, user_message: str = "") -> str:
        try:
            return await asyncio.wait_for(
                self.ai_engine.generate_response(prompt, user_message),
                timeout=self.reasoning_timeout,
            )
        except asyncio.TimeoutError as e:
            raise AIServiceError(f"Reasoning call timed out after {self.reasoning_timeout}s") from e
