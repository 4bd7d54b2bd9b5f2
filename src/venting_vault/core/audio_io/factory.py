"""Factory for creating audio components based on configuration.

This allows switching between mock and real audio implementations
via environment variables or configuration files.
"""

import logging
import os
from typing import Optional

from ..config import VoiceConfig
from .interfaces import AudioSubsystem
from .mock_audio import MockAudioSubsystem

logger = logging.getLogger(__name__)


class AudioComponentFactory:
    """Factory for creating audio components."""

    @staticmethod
    def use_mocks_from_env() -> bool:
        return os.getenv("VAULT_USE_MOCK_AUDIO", "false").lower() == "true"

    @staticmethod
    def create_subsystem(
        voice_config: Optional[VoiceConfig] = None,
        use_mocks: Optional[bool] = None,
    ) -> AudioSubsystem:
        """Create the audio subsystem.

        Args:
            voice_config: Capture settings; defaults are used when omitted.
            use_mocks: If True, use mock implementations. If None, check environment.
        """
        voice_config = voice_config or VoiceConfig()
        if use_mocks is None:
            use_mocks = AudioComponentFactory.use_mocks_from_env()

        if use_mocks:
            logger.info("Using mock audio subsystem")
            return MockAudioSubsystem(recordings_dir=voice_config.recordings_dir)

        # Deferred so hosts without PortAudio can still use the mocks
        from .real_audio import SoundDeviceSubsystem

        logger.info("Using real audio subsystem")
        return SoundDeviceSubsystem(
            voice_config.recordings_dir,
            sample_rate=voice_config.sample_rate,
            channels=voice_config.channels,
        )
