"""
Pytest configuration and fixtures for Venting Vault.
Only the generation backend and audio hardware are replaced with fakes.
"""

import asyncio
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

from venting_vault.core.audio_io import MockAudioSubsystem
from venting_vault.core.config import (
    Config,
    GenerationConfig,
    MemoryConfig,
    VoiceConfig,
)
from venting_vault.core.llm import GenerationBackend
from venting_vault.core.persistence import InMemoryKeyValueStore
from venting_vault.services import ConversationOrchestrator, DeepMemoryStore

os.environ["VAULT_USE_MOCK_AUDIO"] = "true"

SAFE_VERDICT = '{"safe": true, "category": "SAFE", "reason": "venting"}'
SELF_HARM_VERDICT = '{"safe": false, "category": "SELF_HARM", "reason": "risk"}'
VIOLENCE_VERDICT = '{"safe": false, "category": "VIOLENCE", "reason": "threat"}'

Reply = Union[str, None, Exception]


class FakeBackend(GenerationBackend):
    """Scripted backend.

    Conversation calls pop from ``replies`` and moderation calls (json_mode)
    pop from ``verdicts``. Exceptions in either queue are raised.
    """

    def __init__(
        self,
        replies: Optional[List[Reply]] = None,
        verdicts: Optional[List[Reply]] = None,
        configured: bool = True,
        default_reply: Reply = "I hear you.",
        default_verdict: Reply = SAFE_VERDICT,
    ):
        self.replies = list(replies or [])
        self.verdicts = list(verdicts or [])
        self.configured = configured
        self.default_reply = default_reply
        self.default_verdict = default_verdict
        self.calls: List[Dict[str, Any]] = []
        self.generation_gate: Optional[asyncio.Event] = None
        self.moderation_gate: Optional[asyncio.Event] = None
        # Per-call gates, consumed in call order before generation_gate
        self.generation_gates: List[asyncio.Event] = []
        self.closed = False

    @property
    def is_configured(self) -> bool:
        return self.configured

    @property
    def generation_calls(self) -> List[Dict[str, Any]]:
        return [c for c in self.calls if not c["json_mode"]]

    @property
    def moderation_calls(self) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["json_mode"]]

    async def complete(
        self,
        messages: Sequence[Any],
        *,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> Optional[str]:
        self.calls.append(
            {
                "messages": list(messages),
                "temperature": temperature,
                "max_tokens": max_tokens,
                "json_mode": json_mode,
            }
        )
        if json_mode:
            if self.moderation_gate is not None:
                await self.moderation_gate.wait()
            reply = self.verdicts.pop(0) if self.verdicts else self.default_verdict
        else:
            gate = (
                self.generation_gates.pop(0)
                if self.generation_gates
                else self.generation_gate
            )
            if gate is not None:
                await gate.wait()
            reply = self.replies.pop(0) if self.replies else self.default_reply

        if isinstance(reply, Exception):
            raise reply
        return reply

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the host's keys and overrides out of every test."""
    for name in list(os.environ):
        if name.startswith("VAULT_") and name != "VAULT_USE_MOCK_AUDIO":
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Test configuration with a key and temporary storage."""
    return Config(
        runtime_yaml=None,
        generation=GenerationConfig(api_key="sk-or-test"),
        memory=MemoryConfig(storage_path=tmp_path / "vault.json"),
        voice=VoiceConfig(recordings_dir=tmp_path / "recordings"),
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def audio(tmp_path: Path) -> MockAudioSubsystem:
    return MockAudioSubsystem(recordings_dir=tmp_path / "recordings")


@pytest.fixture
def memory(
    store: InMemoryKeyValueStore, backend: FakeBackend, config: Config
) -> DeepMemoryStore:
    return DeepMemoryStore(
        store, backend=backend, config=config.memory, generation=config.generation
    )


@pytest.fixture
def orchestrator(
    backend: FakeBackend, memory: DeepMemoryStore, config: Config
) -> ConversationOrchestrator:
    return ConversationOrchestrator(backend, memory, config=config)
