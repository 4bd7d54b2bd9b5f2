"""Conversation orchestration for the user -> companion -> guardian flow.

Each turn appends the user's message, asks the generation backend for a reply,
appends it unless a crisis notice has superseded the turn, and then moderates
the exchange in a supervised background task. Every mutation goes through the
deep memory store, which persists the full log.
"""

import asyncio
import random
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..conversation.models import (
    ConversationLog,
    InputType,
    Message,
    MessageKind,
    Sender,
    SessionContext,
)
from ..core.config import Config
from ..core.exceptions import ConfigurationError, ValidationError
from ..core.llm import AudioContent, ChatMessage, GenerationBackend, TextContent
from ..core.logging import (
    ProcessingTimer,
    clear_request_context,
    get_logger,
    set_request_context,
)
from ..safety.escalation import EscalationContact
from ..safety.moderation import SafetyModerationStage, crisis_text_for
from .base_service import BaseService
from .deep_memory import DeepMemoryStore
from .error_messages import ServiceErrorMessages
from .presence import PresenceState, derive_presence
from .prompts import SYSTEM_PROMPT, VOICE_TURN_INSTRUCTION, pick_shadow_prompt
from .task_supervisor import TurnTask, TurnTaskSupervisor

logger = get_logger(__name__)


@dataclass
class TurnResult:
    """What one submitted turn produced."""

    turn_id: str
    user_message: Message
    reply: Optional[Message] = None
    fallback: Optional[Message] = None
    moderation: Optional[TurnTask] = None
    superseded: bool = False

    @property
    def succeeded(self) -> bool:
        return self.reply is not None


class ConversationOrchestrator(BaseService):
    """Runs conversation turns against the generation backend."""

    def __init__(
        self,
        backend: GenerationBackend,
        memory: DeepMemoryStore,
        config: Optional[Config] = None,
        moderation: Optional[SafetyModerationStage] = None,
        escalation: Optional[EscalationContact] = None,
        supervisor: Optional[TurnTaskSupervisor] = None,
        rng: Optional[random.Random] = None,
    ):
        super().__init__()
        self.backend = backend
        self.memory = memory
        self.config = config or Config(runtime_yaml=None)
        self.moderation = moderation or SafetyModerationStage(
            backend, self.config.moderation
        )
        self.escalation = escalation or EscalationContact.from_config(
            self.config.escalation
        )
        self.supervisor = supervisor or TurnTaskSupervisor()
        self.rng = rng
        self.session = SessionContext()
        self._generations_in_flight = 0
        self._config_error_reported = False

    @property
    def log(self) -> ConversationLog:
        return self.memory.log

    @property
    def is_thinking(self) -> bool:
        return self._generations_in_flight > 0

    @property
    def is_reviewing(self) -> bool:
        return self.moderation.reviewing

    def presence(self, recording: bool = False) -> PresenceState:
        last = self.log.last()
        return derive_presence(
            thinking=self.is_thinking,
            reviewing=self.is_reviewing,
            recording=recording,
            last_sender=last.sender if last is not None else None,
        )

    # Lifecycle

    async def _do_initialize(self) -> None:
        await self.memory.initialize()
        if await self.report_configuration():
            logger.warning("Generation backend is not configured")

    async def _do_shutdown(self) -> None:
        cancelled = self.cancel_pending_moderation()
        if cancelled:
            logger.info("Cancelled pending moderation on shutdown", count=cancelled)
        await self.backend.aclose()
        clear_request_context()

    async def _do_health_check(self) -> bool:
        return self.backend.is_configured

    async def report_configuration(self) -> bool:
        """Append one configuration-error notice when no backend key is set.

        Returns True if a notice was appended.
        """
        if self.backend.is_configured or self._config_error_reported:
            return False
        self._config_error_reported = True
        await self.memory.append(
            Message.create(ServiceErrorMessages.CONFIGURATION_ERROR, Sender.SYSTEM)
        )
        return True

    def _require_configured(self) -> None:
        if not self.backend.is_configured:
            raise ConfigurationError(
                "Generation backend has no API key",
                error_code="MISSING_API_KEY",
                component="conversation",
            )

    # Turns

    async def submit_text(
        self, text: str, context: Optional[SessionContext] = None
    ) -> Optional[TurnResult]:
        """Run a text turn. Returns None when ``text`` is blank."""
        text = text.strip()
        if not text:
            return None
        self._require_configured()

        context = self._begin_turn(context, InputType.TEXT)
        turn_id = self._new_turn_id()
        set_request_context(session_id=context.session_id, turn_id=turn_id)

        user_message = await self.memory.append(
            Message.create(text, Sender.USER, turn_id=turn_id)
        )
        logger.info("User turn appended", input_type="text", length=len(text))

        messages = [ChatMessage.system(SYSTEM_PROMPT)] + self._history_messages()
        reply_text = await self._generate(messages)
        return await self._finish_turn(
            turn_id, user_message, reply_text, InputType.TEXT, moderation_prefix=text
        )

    async def submit_voice(
        self,
        artifact_ref: str,
        duration_seconds: float,
        context: Optional[SessionContext] = None,
    ) -> TurnResult:
        """Run a voice turn from a finalized recording."""
        if not artifact_ref:
            raise ValidationError("artifact_ref", artifact_ref, "empty artifact reference")
        if duration_seconds <= 0:
            raise ValidationError(
                "duration_seconds", duration_seconds, "recording has no duration"
            )
        self._require_configured()

        context = self._begin_turn(context, InputType.VOICE)
        turn_id = self._new_turn_id()
        set_request_context(session_id=context.session_id, turn_id=turn_id)

        user_message = await self.memory.append(
            Message.create(
                ServiceErrorMessages.VOICE_MESSAGE_LABEL,
                Sender.USER,
                MessageKind.VOICE,
                voice_artifact_ref=artifact_ref,
                duration_seconds=int(duration_seconds),
                turn_id=turn_id,
            )
        )
        logger.info(
            "User turn appended", input_type="voice", duration_s=int(duration_seconds)
        )

        reply_text: Optional[str] = None
        try:
            audio = await self._read_artifact(artifact_ref)
        except OSError as e:
            logger.error("Could not read voice artifact", error=str(e))
        else:
            messages = [
                ChatMessage.system(SYSTEM_PROMPT),
                ChatMessage.user([TextContent(text=VOICE_TURN_INSTRUCTION), audio]),
            ]
            reply_text = await self._generate(messages)

        return await self._finish_turn(
            turn_id,
            user_message,
            reply_text,
            InputType.VOICE,
            moderation_prefix=ServiceErrorMessages.VOICE_MESSAGE_LABEL,
        )

    async def offer_reflection_prompt(self) -> Message:
        """Append a random reflective question from the companion."""
        prompt = pick_shadow_prompt(self.rng)
        return await self.memory.append(Message.create(prompt, Sender.ASSISTANT))

    def cancel_pending_moderation(self, turn_id: Optional[str] = None) -> int:
        """Cancel moderation for one turn, or for every turn when None."""
        return self.supervisor.cancel(turn_id)

    async def wait_for_moderation(self) -> None:
        await self.supervisor.wait_all()

    # Internals

    def _begin_turn(
        self, context: Optional[SessionContext], input_type: InputType
    ) -> SessionContext:
        context = (context or self.session).with_input(input_type)
        self.session = context
        return context

    @staticmethod
    def _new_turn_id() -> str:
        return uuid.uuid4().hex

    def _history_messages(self) -> List[ChatMessage]:
        window = self.log.context_window(self.config.generation.context_turns)
        return [
            ChatMessage.user(m.text)
            if m.sender == Sender.USER
            else ChatMessage.assistant(m.text)
            for m in window
        ]

    @staticmethod
    async def _read_artifact(artifact_ref: str) -> AudioContent:
        path = Path(artifact_ref)
        raw = await asyncio.to_thread(path.read_bytes)
        audio_format = path.suffix.lstrip(".").lower() or "wav"
        return AudioContent.from_bytes(raw, audio_format)

    async def _generate(self, messages: List[ChatMessage]) -> Optional[str]:
        generation = self.config.generation
        self._generations_in_flight += 1
        try:
            with ProcessingTimer(logger, "generation", "conversation"):
                return await self.backend.complete(
                    messages,
                    temperature=generation.temperature,
                    max_tokens=generation.max_tokens,
                )
        except Exception as e:
            logger.warning("Generation failed", error_type=e.__class__.__name__)
            return None
        finally:
            self._generations_in_flight -= 1

    async def _finish_turn(
        self,
        turn_id: str,
        user_message: Message,
        reply_text: Optional[str],
        input_type: InputType,
        moderation_prefix: str,
    ) -> TurnResult:
        result = TurnResult(turn_id=turn_id, user_message=user_message)

        if not reply_text:
            result.fallback = await self.memory.append(
                Message.create(
                    ServiceErrorMessages.get_generation_fallback(input_type),
                    Sender.SYSTEM,
                    turn_id=turn_id,
                )
            )
            return result

        if self.log.is_superseded(turn_id):
            logger.info("Reply dropped, turn superseded by a crisis notice")
            result.superseded = True
            return result

        try:
            result.reply = await self.memory.append(
                Message.create(reply_text, Sender.ASSISTANT, turn_id=turn_id)
            )
        except ValidationError as e:
            logger.info("Reply dropped", reason=str(e))
            result.superseded = True
            return result

        combined = f"{moderation_prefix} {reply_text}"
        result.moderation = self.supervisor.spawn(
            turn_id, self._moderate(turn_id, combined)
        )
        return result

    async def _moderate(self, turn_id: str, combined_text: str) -> None:
        set_request_context(session_id=self.session.session_id, turn_id=turn_id)
        verdict = await self.moderation.classify(combined_text)
        if verdict.safe or self.log.has_crisis_for(turn_id):
            return

        await self.memory.append(
            Message.create(
                crisis_text_for(verdict),
                Sender.SYSTEM,
                MessageKind.CRISIS,
                turn_id=turn_id,
                action_ref=self.escalation.uri,
            )
        )
        logger.warning("Crisis notice appended", category=verdict.category.value)
