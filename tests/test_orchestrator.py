"""
Tests for the conversation orchestrator.
"""

import asyncio
import random
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from conftest import SELF_HARM_VERDICT, VIOLENCE_VERDICT, FakeBackend
from venting_vault.conversation import MessageKind, Sender
from venting_vault.core.config import Config
from venting_vault.core.exceptions import ConfigurationError, ValidationError
from venting_vault.core.llm import AudioContent, TextContent
from venting_vault.safety import CRISIS_DISTRESS_TEXT, CRISIS_VIOLENCE_TEXT
from venting_vault.services import (
    ConversationOrchestrator,
    DeepMemoryStore,
    PresenceState,
    ServiceErrorMessages,
    TurnTaskStatus,
)
from venting_vault.services.prompts import (
    SHADOW_PROMPTS,
    SYSTEM_PROMPT,
    VOICE_TURN_INSTRUCTION,
)


def _write_wav(path: Path, seconds: float = 1.0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    sf.write(str(path), np.zeros(int(16000 * seconds), dtype=np.float32), 16000)
    return path


class TestTextTurn:
    """Test text turns end to end against the fake backend."""

    async def test_reply_appended_and_persisted(
        self, orchestrator: ConversationOrchestrator, backend: FakeBackend, store
    ) -> None:
        """Test welcome, user message and reply, in order."""
        await orchestrator.initialize()

        result = await orchestrator.submit_text("  I feel exhausted  ")
        await orchestrator.wait_for_moderation()

        assert result is not None and result.succeeded
        log = orchestrator.log
        assert len(log) == 3
        assert log[1].text == "I feel exhausted"
        assert log[1].sender == Sender.USER
        assert log[2].text == "I hear you."
        assert log[2].sender == Sender.ASSISTANT
        assert log[1].turn_id == log[2].turn_id == result.turn_id
        assert result.moderation.status == TurnTaskStatus.COMPLETED
        assert store.write_count == 3

    async def test_generation_request(
        self, orchestrator: ConversationOrchestrator, backend: FakeBackend
    ) -> None:
        """Test the system prompt leads and history follows."""
        await orchestrator.initialize()
        await orchestrator.submit_text("I feel exhausted")
        await orchestrator.wait_for_moderation()

        call = backend.generation_calls[0]
        assert call["temperature"] == 0.7
        assert call["max_tokens"] == 150
        roles = [(m.role, m.content) for m in call["messages"]]
        assert roles == [
            ("system", SYSTEM_PROMPT),
            ("assistant", ServiceErrorMessages.WELCOME),
            ("user", "I feel exhausted"),
        ]

    async def test_moderation_sees_combined_exchange(
        self, orchestrator: ConversationOrchestrator, backend: FakeBackend
    ) -> None:
        """Test moderation classifies the user text plus reply."""
        await orchestrator.initialize()
        await orchestrator.submit_text("I feel exhausted")
        await orchestrator.wait_for_moderation()

        moderation = backend.moderation_calls[0]
        assert moderation["messages"][1].content == "I feel exhausted I hear you."

    async def test_context_window_is_bounded(
        self, backend: FakeBackend, memory: DeepMemoryStore, config: Config
    ) -> None:
        """Test only the most recent dialogue is sent."""
        config.generation.context_turns = 2
        orchestrator = ConversationOrchestrator(backend, memory, config=config)
        await orchestrator.initialize()
        await orchestrator.submit_text("one")
        await orchestrator.submit_text("two")
        await orchestrator.wait_for_moderation()

        last_call = backend.generation_calls[-1]["messages"]
        assert [m.content for m in last_call] == [SYSTEM_PROMPT, "I hear you.", "two"]

    async def test_blank_text_is_ignored(
        self, orchestrator: ConversationOrchestrator, backend: FakeBackend
    ) -> None:
        """Test whitespace-only input does nothing."""
        await orchestrator.initialize()
        assert await orchestrator.submit_text("   ") is None
        assert len(orchestrator.log) == 1
        assert backend.calls == []

    @pytest.mark.parametrize("reply", [None, "", RuntimeError("offline")])
    async def test_generation_failure_appends_fallback(
        self, memory: DeepMemoryStore, config: Config, reply: object
    ) -> None:
        """Test empty or failed generation yields the text fallback."""
        backend = FakeBackend(replies=[reply])
        orchestrator = ConversationOrchestrator(backend, memory, config=config)
        await orchestrator.initialize()

        result = await orchestrator.submit_text("hello")
        await orchestrator.wait_for_moderation()

        assert result.reply is None
        assert result.fallback.text == ServiceErrorMessages.TEXT_FALLBACK
        assert result.fallback.sender == Sender.SYSTEM
        assert result.fallback.turn_id == result.turn_id
        assert backend.moderation_calls == []
        assert orchestrator.is_thinking is False


class TestConfiguration:
    """Test behaviour without a backend key."""

    async def test_configuration_error_reported_once(
        self, memory: DeepMemoryStore, config: Config
    ) -> None:
        """Test the notice is appended once and turns are refused."""
        backend = FakeBackend(configured=False)
        orchestrator = ConversationOrchestrator(backend, memory, config=config)
        await orchestrator.initialize()

        assert [m.text for m in orchestrator.log] == [
            ServiceErrorMessages.WELCOME,
            ServiceErrorMessages.CONFIGURATION_ERROR,
        ]
        assert await orchestrator.report_configuration() is False

        with pytest.raises(ConfigurationError):
            await orchestrator.submit_text("hello")
        assert backend.calls == []
        assert len(orchestrator.log) == 2
        assert await orchestrator.health_check() is False


class TestModeration:
    """Test crisis escalation after a reply."""

    async def test_unsafe_exchange_appends_crisis_notice(
        self, memory: DeepMemoryStore, config: Config
    ) -> None:
        """Test the crisis notice follows the reply."""
        backend = FakeBackend(replies=["Tell me more."], verdicts=[SELF_HARM_VERDICT])
        orchestrator = ConversationOrchestrator(backend, memory, config=config)
        await orchestrator.initialize()

        result = await orchestrator.submit_text("I don't want to be here anymore")
        await orchestrator.wait_for_moderation()

        log = orchestrator.log
        assert len(log) == 4
        assert log[2].text == "Tell me more."
        crisis = log[3]
        assert crisis.kind == MessageKind.CRISIS
        assert crisis.sender == Sender.SYSTEM
        assert crisis.text == CRISIS_DISTRESS_TEXT
        assert crisis.action_ref == "tel:988"
        assert crisis.turn_id == result.turn_id

    async def test_violence_notice(self, memory: DeepMemoryStore, config: Config) -> None:
        """Test the violence wording."""
        backend = FakeBackend(verdicts=[VIOLENCE_VERDICT])
        orchestrator = ConversationOrchestrator(backend, memory, config=config)
        await orchestrator.initialize()
        await orchestrator.submit_text("text")
        await orchestrator.wait_for_moderation()
        assert orchestrator.log.last().text == CRISIS_VIOLENCE_TEXT

    async def test_moderation_failure_fails_open(
        self, memory: DeepMemoryStore, config: Config
    ) -> None:
        """Test a moderation error produces no notice."""
        backend = FakeBackend(verdicts=[RuntimeError("guardian offline")])
        orchestrator = ConversationOrchestrator(backend, memory, config=config)
        await orchestrator.initialize()
        result = await orchestrator.submit_text("text")
        await orchestrator.wait_for_moderation()

        assert len(orchestrator.log) == 3
        assert result.moderation.status == TurnTaskStatus.COMPLETED

    async def test_cancelled_moderation_appends_nothing(
        self, memory: DeepMemoryStore, config: Config
    ) -> None:
        """Test cancelling pending moderation drops its outcome."""
        backend = FakeBackend(verdicts=[SELF_HARM_VERDICT])
        backend.moderation_gate = asyncio.Event()
        orchestrator = ConversationOrchestrator(backend, memory, config=config)
        await orchestrator.initialize()

        result = await orchestrator.submit_text("text")
        await asyncio.sleep(0)
        assert orchestrator.is_reviewing is True
        assert orchestrator.presence() == PresenceState.THINKING

        assert orchestrator.cancel_pending_moderation(result.turn_id) == 1
        backend.moderation_gate.set()
        await orchestrator.wait_for_moderation()

        assert len(orchestrator.log) == 3
        assert result.moderation.status == TurnTaskStatus.CANCELLED
        assert orchestrator.is_reviewing is False

    async def test_late_reply_is_superseded_by_crisis(
        self, memory: DeepMemoryStore, config: Config
    ) -> None:
        """Test a reply arriving after a crisis notice is dropped."""
        backend = FakeBackend(
            replies=["first reply", "second reply"],
            verdicts=[SELF_HARM_VERDICT],
        )
        backend.moderation_gate = asyncio.Event()
        orchestrator = ConversationOrchestrator(backend, memory, config=config)
        await orchestrator.initialize()

        await orchestrator.submit_text("first")

        backend.generation_gate = asyncio.Event()
        second = asyncio.ensure_future(orchestrator.submit_text("second"))
        while len(backend.generation_calls) < 2:
            await asyncio.sleep(0)

        backend.moderation_gate.set()
        await orchestrator.wait_for_moderation()
        assert orchestrator.log.last().is_crisis

        backend.generation_gate.set()
        result = await second
        await orchestrator.wait_for_moderation()

        assert result.superseded is True
        assert result.reply is None
        assert orchestrator.log.last().is_crisis
        assert "second reply" not in [m.text for m in orchestrator.log]

    async def test_thinking_while_any_generation_pending(
        self, orchestrator: ConversationOrchestrator, backend: FakeBackend
    ) -> None:
        """Test overlapping turns keep the thinking state until the last reply."""
        first_gate, second_gate = asyncio.Event(), asyncio.Event()
        backend.generation_gates = [first_gate, second_gate]
        await orchestrator.initialize()

        first = asyncio.ensure_future(orchestrator.submit_text("first"))
        second = asyncio.ensure_future(orchestrator.submit_text("second"))
        while len(backend.generation_calls) < 2:
            await asyncio.sleep(0)

        first_gate.set()
        await first
        assert not second.done()
        assert orchestrator.is_thinking
        assert orchestrator.presence() == PresenceState.THINKING

        second_gate.set()
        await second
        assert not orchestrator.is_thinking
        await orchestrator.wait_for_moderation()


class TestVoiceTurn:
    """Test voice turns."""

    async def test_voice_turn(
        self,
        orchestrator: ConversationOrchestrator,
        backend: FakeBackend,
        tmp_path: Path,
    ) -> None:
        """Test a voice message is appended and its audio is sent inline."""
        artifact = _write_wav(tmp_path / "rec.wav")
        await orchestrator.initialize()

        result = await orchestrator.submit_voice(str(artifact), 5)
        await orchestrator.wait_for_moderation()

        user_message = orchestrator.log[1]
        assert user_message.kind == MessageKind.VOICE
        assert user_message.text == "Voice Message"
        assert user_message.duration_seconds == 5
        assert user_message.voice_artifact_ref == str(artifact)
        assert result.succeeded

        call = backend.generation_calls[0]
        assert len(call["messages"]) == 2
        parts = call["messages"][1].content
        assert isinstance(parts[0], TextContent)
        assert parts[0].text == VOICE_TURN_INSTRUCTION
        assert isinstance(parts[1], AudioContent)
        assert parts[1].input_audio.format == "wav"

        moderation = backend.moderation_calls[0]
        assert moderation["messages"][1].content == "Voice Message I hear you."

    async def test_missing_artifact_falls_back(
        self,
        orchestrator: ConversationOrchestrator,
        backend: FakeBackend,
        tmp_path: Path,
    ) -> None:
        """Test an unreadable recording yields the voice fallback."""
        await orchestrator.initialize()

        result = await orchestrator.submit_voice(str(tmp_path / "gone.wav"), 3)

        assert result.fallback.text == ServiceErrorMessages.VOICE_FALLBACK
        assert backend.calls == []
        assert len(orchestrator.log) == 3

    @pytest.mark.parametrize("ref,duration", [("", 5), ("/tmp/x.wav", 0)])
    async def test_invalid_voice_input(
        self, orchestrator: ConversationOrchestrator, ref: str, duration: int
    ) -> None:
        """Test empty references and zero durations are rejected."""
        await orchestrator.initialize()
        with pytest.raises(ValidationError):
            await orchestrator.submit_voice(ref, duration)
        assert len(orchestrator.log) == 1


class TestReflectionAndLifecycle:
    """Test reflection prompts and shutdown."""

    async def test_reflection_prompt(
        self, backend: FakeBackend, memory: DeepMemoryStore, config: Config
    ) -> None:
        """Test a reflective question is appended without a backend call."""
        orchestrator = ConversationOrchestrator(
            backend, memory, config=config, rng=random.Random(7)
        )
        await orchestrator.initialize()

        message = await orchestrator.offer_reflection_prompt()

        assert message.text in SHADOW_PROMPTS
        assert message.sender == Sender.ASSISTANT
        assert orchestrator.log.last() == message
        assert backend.calls == []
        assert orchestrator.presence() == PresenceState.TALKING

    async def test_shutdown_cancels_and_closes(
        self, memory: DeepMemoryStore, config: Config
    ) -> None:
        """Test shutdown cancels pending moderation and closes the backend."""
        backend = FakeBackend()
        backend.moderation_gate = asyncio.Event()
        orchestrator = ConversationOrchestrator(backend, memory, config=config)
        await orchestrator.initialize()
        assert await orchestrator.health_check() is True

        result = await orchestrator.submit_text("text")
        await orchestrator.shutdown()
        await orchestrator.wait_for_moderation()

        assert backend.closed is True
        assert result.moderation.status == TurnTaskStatus.CANCELLED
        assert orchestrator.is_initialized is False
