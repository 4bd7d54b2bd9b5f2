"""Audio I/O interfaces for dependency injection and testing.

These interfaces allow swapping between real hardware and mock implementations
without changing the calling code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class RecordedArtifact:
    """A finished recording on local storage."""

    uri: str
    duration_seconds: float


@dataclass(frozen=True)
class PlaybackStatus:
    """Snapshot reported by a player to its status listeners."""

    playing: bool
    current_time: float
    duration: float


StatusListener = Callable[[PlaybackStatus], None]


class AudioRecorder(ABC):
    """Captures audio from the microphone into a transient artifact."""

    @abstractmethod
    async def request_permission(self) -> bool:
        """Request microphone access. Returns True when granted."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Acquire the microphone and start capturing."""
        pass

    @abstractmethod
    async def stop(self) -> RecordedArtifact:
        """Stop capturing and materialize the recording."""
        pass

    @abstractmethod
    async def release(self) -> None:
        """Release the microphone. Safe to call more than once."""
        pass


class AudioPlayer(ABC):
    """Plays one recorded artifact."""

    @abstractmethod
    def play(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def release(self) -> None:
        """Free the output resource. Safe to call more than once."""
        pass

    @abstractmethod
    def add_status_listener(self, listener: StatusListener) -> None:
        pass


class AudioSubsystem(ABC):
    """Creates recorders and players."""

    @abstractmethod
    def create_recorder(self) -> AudioRecorder:
        pass

    @abstractmethod
    def create_player(self, uri: str) -> AudioPlayer:
        """Create a player for ``uri``.

        Raises:
            Exception: Implementation specific, when the artifact cannot be loaded.
        """
        pass
