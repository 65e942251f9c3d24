"""
Chat Data Structures

Pydantic models shared by the store, the coordinator and the bot. Python
attributes are snake_case; the wire and on-disk representation uses the
camelCase aliases the browser client speaks.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SenderKind(str, Enum):
    """Who authored a message."""
    USER = "USER"
    BOT = "BOT"


class ContentType(str, Enum):
    """How the client should render a message body."""
    TEXT = "text"
    IMAGE = "image"


class Participant(BaseModel):
    """A live connection's presence record, keyed by connection id."""

    id: str = Field(description="Connection id assigned when the socket was accepted.")
    name: Optional[str] = Field(None, description="Display name, set on first join.")
    uuid: Optional[str] = Field(None, description="Stable client id, set on first join.")

    @property
    def identified(self) -> bool:
        return self.name is not None


class ChatMessage(BaseModel):
    """
    One entry of the transcript.

    Only `text` (and `created_at`, which is refreshed alongside it) ever
    changes after the message has been appended to the store.
    """
    model_config = {"populate_by_name": True}

    id: str
    text: str
    sender_kind: SenderKind = Field(SenderKind.USER, alias="senderType")
    sender_display_name: str = Field(alias="senderName")
    sender_stable_id: Optional[str] = Field(None, alias="senderId")
    content_type: ContentType = Field(ContentType.TEXT, alias="type")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class QuestionAnswer(BaseModel):
    """One fact the bot is allowed to recite later."""
    model_config = {"populate_by_name": True}

    question: str
    answer: str
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class LearnedAnswer(BaseModel):
    """A question/answer pair the reasoning service extracted from the chat."""

    question: str
    answer: str


class BotResponse(BaseModel):
    """The structured classification returned by the reasoning service."""
    model_config = {"populate_by_name": True, "extra": "ignore"}

    message: str = Field(
        "",
        description="The bot's reply; empty unless answering a previously answered question.",
    )
    is_answer_for_past_question: bool = Field(
        False,
        alias="isAnswerForPastQuestion",
        description="True when the newest message repeats a question found in the knowledge base.",
    )
    new_answer: Optional[LearnedAnswer] = Field(
        None,
        alias="newAnswer",
        description="Present when the newest message answers an earlier question.",
    )

    @field_validator("message", mode="before")
    @classmethod
    def _null_message_is_empty(cls, value):
        return "" if value is None else value

    @property
    def should_reply(self) -> bool:
        return self.is_answer_for_past_question and bool(self.message)
