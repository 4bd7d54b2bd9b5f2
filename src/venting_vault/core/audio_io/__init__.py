"""Audio I/O infrastructure for voice capture and playback.

This module provides interfaces and implementations for:
- Microphone recording into transient WAV artifacts
- Playback of recorded voice messages
- Mock implementations for testing without hardware

The sounddevice-backed implementations live in ``real_audio`` and are only
imported by the factory when real hardware is requested.
"""

from .factory import AudioComponentFactory
from .interfaces import (
    AudioPlayer,
    AudioRecorder,
    AudioSubsystem,
    PlaybackStatus,
    RecordedArtifact,
    StatusListener,
)
from .mock_audio import MockAudioSubsystem, MockPlayer, MockRecorder

__all__ = [
    # Factory
    "AudioComponentFactory",
    # Interfaces
    "AudioPlayer",
    "AudioRecorder",
    "AudioSubsystem",
    "PlaybackStatus",
    "RecordedArtifact",
    "StatusListener",
    # Mock implementations
    "MockAudioSubsystem",
    "MockPlayer",
    "MockRecorder",
]
