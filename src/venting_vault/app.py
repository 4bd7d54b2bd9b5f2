"""
Component wiring for a Venting Vault session.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .core.audio_io import AudioComponentFactory, AudioSubsystem
from .core.config import Config
from .core.llm import GenerationBackend, create_backend
from .core.persistence import JSONFileKeyValueStore, KeyValueStore
from .safety import EscalationContact, SafetyModerationStage
from .services import ConversationOrchestrator, DeepMemoryStore
from .voice import PlaybackController, VoiceCaptureStateMachine

logger = logging.getLogger(__name__)


@dataclass
class VaultApp:
    """Everything one conversation session needs."""

    config: Config
    backend: GenerationBackend
    memory: DeepMemoryStore
    orchestrator: ConversationOrchestrator
    audio: AudioSubsystem
    capture: VoiceCaptureStateMachine
    playback: PlaybackController

    async def start(self) -> None:
        await self.orchestrator.initialize()

    async def close(self) -> None:
        self.playback.stop()
        if self.capture.is_recording:
            await self.capture.cancel()
        await self.orchestrator.shutdown()


def create_app(
    config: Optional[Config] = None,
    backend: Optional[GenerationBackend] = None,
    store: Optional[KeyValueStore] = None,
    audio: Optional[AudioSubsystem] = None,
) -> VaultApp:
    """Build a session from configuration, accepting overrides for any component."""
    config = config or Config()
    backend = backend or create_backend(config.generation)
    store = store or JSONFileKeyValueStore(config.memory.storage_path)
    audio = audio or AudioComponentFactory.create_subsystem(config.voice)

    memory = DeepMemoryStore(
        store, backend=backend, config=config.memory, generation=config.generation
    )
    orchestrator = ConversationOrchestrator(
        backend,
        memory,
        config=config,
        moderation=SafetyModerationStage(backend, config.moderation),
        escalation=EscalationContact.from_config(config.escalation),
    )
    capture = VoiceCaptureStateMachine(
        audio.create_recorder(), on_finalized=orchestrator.submit_voice
    )
    playback = PlaybackController(audio, config.playback)

    logger.debug(f"Created session for store {config.memory.storage_path}")
    return VaultApp(
        config=config,
        backend=backend,
        memory=memory,
        orchestrator=orchestrator,
        audio=audio,
        capture=capture,
        playback=playback,
    )
