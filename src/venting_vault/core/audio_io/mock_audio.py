"""Mock audio implementations for testing without hardware.

The recorder writes a short silent WAV instead of reading a microphone, and the
player only records calls and lets tests emit status updates.
"""

import logging
import tempfile
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
import soundfile as sf

from .interfaces import (
    AudioPlayer,
    AudioRecorder,
    AudioSubsystem,
    PlaybackStatus,
    RecordedArtifact,
    StatusListener,
)

logger = logging.getLogger(__name__)


def _default_recordings_dir() -> Path:
    return Path(tempfile.gettempdir()) / "venting_vault_mock"


class MockRecorder(AudioRecorder):
    """Mock recorder producing silent WAV artifacts."""

    def __init__(
        self,
        recordings_dir: Optional[Path] = None,
        permission_granted: bool = True,
        sample_rate: int = 16000,
        artifact_seconds: float = 1.0,
        fail_on_stop: bool = False,
    ):
        self.recordings_dir = Path(recordings_dir or _default_recordings_dir())
        self.permission_granted = permission_granted
        self.sample_rate = sample_rate
        self.artifact_seconds = artifact_seconds
        self.fail_on_stop = fail_on_stop

        self.permission_requests = 0
        self.start_calls = 0
        self.stop_calls = 0
        self.release_calls = 0
        self.is_capturing = False
        self.artifacts: List[Path] = []

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.permission_granted

    async def start(self) -> None:
        self.start_calls += 1
        self.is_capturing = True
        logger.info("Started mock capture")

    async def stop(self) -> RecordedArtifact:
        self.stop_calls += 1
        self.is_capturing = False
        if self.fail_on_stop:
            raise OSError("mock recorder failed to stop")

        self.recordings_dir.mkdir(parents=True, exist_ok=True)
        path = self.recordings_dir / f"{uuid.uuid4().hex}.wav"
        frames = int(self.sample_rate * self.artifact_seconds)
        sf.write(str(path), np.zeros(frames, dtype=np.float32), self.sample_rate)
        self.artifacts.append(path)
        logger.info(f"Saved mock recording to {path}")
        return RecordedArtifact(uri=str(path), duration_seconds=self.artifact_seconds)

    async def release(self) -> None:
        self.release_calls += 1
        self.is_capturing = False

    @property
    def is_released(self) -> bool:
        return self.release_calls > 0 and not self.is_capturing


class MockPlayer(AudioPlayer):
    """Mock player that only tracks calls."""

    def __init__(self, uri: str, events: Optional[List[Tuple[str, str]]] = None):
        self.uri = uri
        self.events = events
        self.play_calls = 0
        self.pause_calls = 0
        self.release_calls = 0
        self.is_playing = False
        self._listeners: List[StatusListener] = []

    def play(self) -> None:
        self.play_calls += 1
        self.is_playing = True

    def pause(self) -> None:
        self.pause_calls += 1
        self.is_playing = False

    def release(self) -> None:
        if self.events is not None and self.release_calls == 0:
            self.events.append(("release", self.uri))
        self.release_calls += 1
        self.is_playing = False
        self._listeners.clear()

    @property
    def released(self) -> bool:
        return self.release_calls > 0

    def add_status_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def emit_status(self, playing: bool, current_time: float, duration: float) -> None:
        """Deliver a status update to every listener."""
        status = PlaybackStatus(
            playing=playing, current_time=current_time, duration=duration
        )
        for listener in list(self._listeners):
            listener(status)


class MockAudioSubsystem(AudioSubsystem):
    """Mock subsystem handing out mock recorders and players."""

    def __init__(
        self,
        recordings_dir: Optional[Path] = None,
        permission_granted: bool = True,
        fail_player_creation: bool = False,
    ):
        self.recordings_dir = recordings_dir
        self.permission_granted = permission_granted
        self.fail_player_creation = fail_player_creation
        self.recorders: List[MockRecorder] = []
        self.players: List[MockPlayer] = []
        # Ordered ("acquire" | "release", uri) pairs across all players
        self.events: List[Tuple[str, str]] = []

    def create_recorder(self) -> MockRecorder:
        recorder = MockRecorder(
            recordings_dir=self.recordings_dir,
            permission_granted=self.permission_granted,
        )
        self.recorders.append(recorder)
        return recorder

    def create_player(self, uri: str) -> MockPlayer:
        if self.fail_player_creation:
            raise OSError(f"cannot open {uri}")

        player = MockPlayer(uri, events=self.events)
        self.events.append(("acquire", uri))
        self.players.append(player)
        return player
