"""
Message Store

Durable log of chat messages and of the question/answer pairs the bot has
learned, kept in a single JSON document:

    {"messages": [...], "pastQuestionsAndAnswers": [...]}

Every mutating call re-reads and rewrites the whole document. Those cycles
span suspension points (file I/O runs in a worker thread), so all mutations
are serialized behind one asyncio.Lock; otherwise two overlapping appends
could each write a document missing the other's record.
"""

import asyncio
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import List, Union

from pydantic import BaseModel, Field, ValidationError

from chatroom.exceptions import DuplicateMessageError, StorageError
from chatroom.utils.logging_config import performance_logger

from .models import ChatMessage, LearnedAnswer, QuestionAnswer, utc_now

logger = logging.getLogger(__name__)


class StoreDocument(BaseModel):
    """On-disk layout of the store."""
    model_config = {"populate_by_name": True}

    messages: List[ChatMessage] = Field(default_factory=list)
    past_questions_and_answers: List[QuestionAnswer] = Field(
        default_factory=list, alias="pastQuestionsAndAnswers"
    )


class MessageStore:
    """JSON-file repository shared by reference between the chat components."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).resolve()
        self._write_lock = asyncio.Lock()
        if not self.path.exists():
            self._write_document(StoreDocument())
            logger.info(f"Created empty message store at {self.path}")
        logger.info(f"MessageStore using document at {self.path}")

    # --- Reads ---

    async def list_messages(self) -> List[ChatMessage]:
        """All messages, oldest first."""
        document = await self._load()
        return list(document.messages)

    async def recent_messages(self, count: int) -> List[ChatMessage]:
        """The last `count` messages, oldest first."""
        if count <= 0:
            return []
        messages = await self.list_messages()
        return messages[-count:]

    async def list_knowledge(self) -> List[QuestionAnswer]:
        """All learned question/answer pairs, oldest first."""
        document = await self._load()
        return list(document.past_questions_and_answers)

    # --- Mutations ---

    async def append(self, message: ChatMessage) -> ChatMessage:
        """
        Append a message and return the stored copy.

        The server assigns `created_at`. Raises DuplicateMessageError when a
        message with the same id is already in the log.
        """
        async with self._write_lock:
            document = await self._load()
            if any(existing.id == message.id for existing in document.messages):
                raise DuplicateMessageError(str(self.path), message.id)

            stored = message.model_copy(update={"created_at": utc_now()})
            document.messages.append(stored)
            await self._save(document, "append")

        logger.debug(f"Stored message {stored.id} from {stored.sender_display_name}")
        return stored

    async def update_text(self, message_id: str, text: str) -> List[ChatMessage]:
        """
        Rewrite the text of one message and return the full log.

        Unknown ids are a no-op: nothing is written and the unchanged log is
        returned.
        """
        async with self._write_lock:
            document = await self._load()
            updated = False
            for index, existing in enumerate(document.messages):
                if existing.id == message_id:
                    document.messages[index] = existing.model_copy(
                        update={"text": text, "created_at": utc_now()}
                    )
                    updated = True

            if updated:
                await self._save(document, "update_text")
            else:
                logger.debug(f"update_text: no message with id {message_id}")

        return list(document.messages)

    async def append_knowledge(self, pair: Union[QuestionAnswer, LearnedAnswer]) -> QuestionAnswer:
        """Append a learned question/answer pair and return the stored copy."""
        stored = QuestionAnswer(question=pair.question, answer=pair.answer, created_at=utc_now())

        async with self._write_lock:
            document = await self._load()
            document.past_questions_and_answers.append(stored)
            await self._save(document, "append_knowledge")

        logger.info(f"Knowledge base grew to {len(document.past_questions_and_answers)} entries")
        return stored

    # --- Document I/O ---

    async def _load(self) -> StoreDocument:
        return await asyncio.to_thread(self._read_document)

    async def _save(self, document: StoreDocument, operation: str) -> None:
        started = time.perf_counter()
        await asyncio.to_thread(self._write_document, document)
        performance_logger.log_storage_write(
            operation,
            duration_ms=(time.perf_counter() - started) * 1000,
            records=len(document.messages) + len(document.past_questions_and_answers),
        )

    def _read_document(self) -> StoreDocument:
        # Reads never write; a document removed after startup reads as empty
        if not self.path.exists():
            return StoreDocument()

        try:
            raw = self.path.read_text(encoding="utf-8")
            return StoreDocument.model_validate_json(raw)
        except (OSError, ValidationError) as e:
            logger.error(f"Failed to read message store {self.path}: {e}")
            raise StorageError(str(self.path), e) from e

    def _write_document(self, document: StoreDocument) -> None:
        serialized = document.model_dump_json(by_alias=True, indent=2)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                dir=self.path.parent,
                prefix=f"{self.path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(serialized)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to write message store {self.path}: {e}")
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise StorageError(str(self.path), e) from e
