"""
Deep memory: durable cross-session conversation history.

The whole log is stored as one JSON array under one key and rewritten on
every change. On cold start the log is restored and, after a long absence,
the companion greets the user with a reference to their last conversation.
"""

import asyncio
import json
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..conversation.models import ConversationLog, Message, Sender, utc_now
from ..core.config import GenerationConfig, MemoryConfig
from ..core.exceptions import PersistenceError
from ..core.llm import ChatMessage, GenerationBackend
from ..core.logging import ProcessingTimer, get_logger
from ..core.persistence import KeyValueStore
from .error_messages import ServiceErrorMessages
from .prompts import SYSTEM_PROMPT, build_wake_up_prompt

logger = get_logger(__name__)

Clock = Callable[[], datetime]


class DeepMemoryStore:
    """Owns the conversation log and its write-through persistence."""

    def __init__(
        self,
        store: KeyValueStore,
        backend: Optional[GenerationBackend] = None,
        config: Optional[MemoryConfig] = None,
        generation: Optional[GenerationConfig] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.backend = backend
        self.config = config or MemoryConfig()
        self.generation = generation or GenerationConfig()
        self.clock = clock

        self.log = ConversationLog()
        self._loaded = False
        self._wake_check_done = False
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> ConversationLog:
        """Restore the log, seed it on first use and run the wake-up check.

        Safe to call repeatedly or concurrently: the log is read once and the
        wake-up check runs at most once until ``notify_foreground`` re-arms it.
        """
        async with self._init_lock:
            if not self._loaded:
                self.log = await self.load()
                self._loaded = True
                if self.log.is_empty():
                    self._wake_check_done = True
                    await self.append(
                        Message.create(
                            ServiceErrorMessages.WELCOME,
                            Sender.ASSISTANT,
                            timestamp=self.clock(),
                        )
                    )
                    logger.info("Seeded new vault with welcome message")

            if not self._wake_check_done:
                self._wake_check_done = True
                await self._wake_up_check()

        return self.log

    def notify_foreground(self) -> None:
        """Re-arm the wake-up check after the app returns to the foreground."""
        self._wake_check_done = False

    async def load(self) -> ConversationLog:
        """Read the durable log. Any read or decode failure yields an empty log."""
        try:
            raw = await self.store.get(self.config.storage_key)
        except PersistenceError as e:
            logger.error("Failed to read conversation history", error=str(e))
            return ConversationLog()

        if not raw:
            return ConversationLog()

        try:
            data = json.loads(raw)
        except ValueError:
            logger.error("Stored conversation history is not valid JSON")
            return ConversationLog()

        if not isinstance(data, list):
            logger.error("Stored conversation history is not a list")
            return ConversationLog()

        log = ConversationLog.from_list(data)
        logger.info("Restored conversation history", message_count=len(log))
        return log

    async def save(self) -> bool:
        """Overwrite the durable value with the full log.

        Write failures are logged and the conversation continues in memory.
        """
        value = json.dumps(self.log.to_list(), ensure_ascii=False)
        try:
            await self.store.set(self.config.storage_key, value)
        except PersistenceError as e:
            logger.error("Failed to save conversation history", error=str(e))
            return False
        logger.debug("Saved conversation history", message_count=len(self.log))
        return True

    async def append(self, message: Message) -> Message:
        """Append a message and persist the whole log."""
        self.log.append(message)
        await self.save()
        return message

    def time_since_last_message(self) -> Optional[timedelta]:
        last = self.log.last()
        if last is None:
            return None
        return self.clock() - last.timestamp

    async def _wake_up_check(self) -> Optional[Message]:
        gap = self.time_since_last_message()
        if gap is None or gap < timedelta(hours=self.config.wake_gap_hours):
            return None

        logger.info("Time gap detected", gap_hours=int(gap.total_seconds() // 3600))
        greeting = await self._generate_greeting()
        if not greeting:
            return None

        message = Message.create(greeting, Sender.ASSISTANT, timestamp=self.clock())
        await self.append(message)
        return message

    async def _generate_greeting(self) -> Optional[str]:
        if self.backend is None or not self.backend.is_configured:
            return None

        recent = self.log.recent_for_greeting(self.config.greeting_context_messages)
        if not recent:
            return None

        gap_hours = (self.clock() - recent[-1].timestamp).total_seconds() / 3600
        prompt = build_wake_up_prompt(gap_hours, recent)

        try:
            with ProcessingTimer(logger, "wake_up_greeting", "deep_memory"):
                greeting = await self.backend.complete(
                    [ChatMessage.system(SYSTEM_PROMPT), ChatMessage.user(prompt)],
                    temperature=self.generation.temperature,
                    max_tokens=self.generation.max_tokens,
                )
        except Exception as e:
            logger.warning("Wake-up greeting skipped", error_type=e.__class__.__name__)
            return None

        return greeting.strip() if greeting else None
