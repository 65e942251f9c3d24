"""
Commentary Scheduler

Background loop that periodically asks the bot for an unsolicited remark and
posts it to the room like any other message.
"""

import asyncio
import logging
from typing import Optional

from .bot import BotReasoningEngine
from .events import EventHub, ServerEvent
from .message_store import MessageStore
from .models import ChatMessage

logger = logging.getLogger(__name__)


class CommentaryScheduler:
    """
    Emits bot commentary at a fixed interval.

    The loop is owned by the server lifecycle (start on startup, stop on
    shutdown), not by any connection. A failing tick is logged and the loop
    carries on.
    """
    DEFAULT_INTERVAL = 60.0  # seconds

    def __init__(
        self,
        bot: BotReasoningEngine,
        store: MessageStore,
        hub: EventHub,
        interval: Optional[float] = None,
    ):
        self.bot = bot
        self.store = store
        self.hub = hub
        self.interval: float = interval or self.DEFAULT_INTERVAL
        self._task: Optional[asyncio.Task] = None
        logger.info(f"CommentaryScheduler initialized (interval {self.interval}s).")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run_loop(), name="commentary-scheduler")
        logger.info("Commentary scheduler task started.")

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.info("Commentary scheduler task cancelled successfully.")
        self._task = None
        logger.info("CommentaryScheduler stopped.")

    async def tick(self) -> Optional[ChatMessage]:
        """Run one iteration: fetch a remark and, if there is one, post it."""
        remark = await self.bot.generate_commentary()
        if not remark:
            logger.debug("No commentary this tick.")
            return None

        stored = await self.store.append(self.bot.make_bot_message(remark))
        await self.hub.broadcast(ServerEvent.MESSAGE_NEW, stored.to_wire())
        logger.info(f"Posted bot commentary {stored.id}")
        return stored

    async def _run_loop(self) -> None:
        logger.info("Starting commentary loop.")
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Error in commentary tick: {e}", exc_info=True)
