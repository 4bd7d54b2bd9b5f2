"""
Voice message playback.

At most one message plays at a time. Playing the active message again stops
it; playing another message releases the current player first.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.audio_io import AudioPlayer, AudioSubsystem, PlaybackStatus
from ..core.config import PlaybackConfig
from ..core.exceptions import AudioPlaybackError

logger = logging.getLogger(__name__)


@dataclass
class PlaybackHandle:
    active_id: Optional[str] = None
    resource: Optional[AudioPlayer] = None


class PlaybackController:
    """Owns the single active voice message player."""

    def __init__(
        self, audio: AudioSubsystem, config: Optional[PlaybackConfig] = None
    ):
        self.audio = audio
        self.config = config or PlaybackConfig()
        self.handle = PlaybackHandle()

    @property
    def active_id(self) -> Optional[str]:
        return self.handle.active_id

    def play(self, artifact_ref: str, message_id: str) -> bool:
        """Toggle playback of ``message_id``.

        Returns True when playback started, False when it was toggled off.

        Raises:
            AudioPlaybackError: If a player cannot be created for the artifact.
        """
        if self.handle.active_id == message_id and self.handle.resource is not None:
            self._release_active(pause=True)
            logger.info(f"Stopped playback of {message_id}")
            return False

        self._release_active(pause=True)

        try:
            player = self.audio.create_player(artifact_ref)
        except Exception as e:
            logger.error(f"Could not create player for {message_id}: {e}")
            self.handle = PlaybackHandle()
            raise AudioPlaybackError(
                f"Cannot play voice message {message_id}",
                error_code="PLAYER_CREATE_FAILED",
                details={"message_id": message_id},
                component="playback",
            ) from e

        self.handle = PlaybackHandle(active_id=message_id, resource=player)
        player.add_status_listener(lambda status: self._on_status(player, status))
        try:
            player.play()
        except Exception as e:
            logger.error(f"Could not start playback of {message_id}: {e}")
            self._release_active()
            raise AudioPlaybackError(
                f"Cannot play voice message {message_id}",
                error_code="PLAYBACK_START_FAILED",
                details={"message_id": message_id},
                component="playback",
            ) from e

        logger.info(f"Playing {message_id}")
        return True

    def stop(self) -> None:
        """Release the active player, if any."""
        self._release_active()

    def _on_status(self, player: AudioPlayer, status: PlaybackStatus) -> None:
        # Late updates from a player that is no longer active are ignored
        if self.handle.resource is not player:
            return
        finished = (
            not status.playing
            and status.current_time > 0
            and status.current_time >= status.duration - self.config.completion_tolerance_s
        )
        if finished:
            logger.info(f"Playback of {self.handle.active_id} finished")
            self._release_active()

    def _release_active(self, pause: bool = False) -> None:
        resource = self.handle.resource
        self.handle = PlaybackHandle()
        if resource is None:
            return
        if pause:
            try:
                resource.pause()
            except Exception as e:
                logger.warning(f"Error pausing player: {e}")
        try:
            resource.release()
        except Exception as e:
            logger.error(f"Error releasing player: {e}")
