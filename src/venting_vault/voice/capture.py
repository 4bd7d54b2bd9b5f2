"""
Voice capture state machine.

A recording moves IDLE -> CAPTURING (optionally -> LOCKED) and then either
CANCELLED or FINALIZING, after which it returns to IDLE. The microphone is
released on every exit path.
"""

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from ..core.audio_io import AudioRecorder, RecordedArtifact
from ..core.exceptions import (
    AudioError,
    PermissionDeniedError,
    RecordingStateError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Receives (artifact_ref, duration_seconds) of a finalized recording
OnFinalized = Callable[[str, int], Awaitable[Any]]
Clock = Callable[[], float]


class RecordingState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    LOCKED = "locked"
    CANCELLED = "cancelled"
    FINALIZING = "finalizing"


ACTIVE_STATES = (RecordingState.CAPTURING, RecordingState.LOCKED)


@dataclass
class RecordingSession:
    state: RecordingState = RecordingState.IDLE
    started_at: Optional[float] = None
    artifact_ref: Optional[str] = None


class VoiceCaptureStateMachine:
    """Drives one microphone recording at a time."""

    def __init__(
        self,
        recorder: AudioRecorder,
        on_finalized: OnFinalized,
        clock: Clock = time.monotonic,
    ):
        self.recorder = recorder
        self.on_finalized = on_finalized
        self.clock = clock
        self.session = RecordingSession()

    @property
    def state(self) -> RecordingState:
        return self.session.state

    @property
    def is_recording(self) -> bool:
        return self.session.state in ACTIVE_STATES

    @property
    def elapsed_seconds(self) -> int:
        """Whole seconds since capture started, 0 when not recording."""
        if not self.is_recording or self.session.started_at is None:
            return 0
        return max(0, math.floor(self.clock() - self.session.started_at))

    def _require(self, action: str, *allowed: RecordingState) -> None:
        if self.session.state not in allowed:
            raise RecordingStateError(action, self.session.state.value, component="voice")

    async def start(self) -> None:
        """Begin capturing.

        Raises:
            RecordingStateError: If a recording is already in progress.
            PermissionDeniedError: If microphone access is refused.
        """
        self._require("start", RecordingState.IDLE)

        if not await self.recorder.request_permission():
            logger.warning("Microphone permission denied")
            raise PermissionDeniedError("microphone", component="voice")

        try:
            await self.recorder.start()
        except Exception:
            await self._release()
            raise

        self.session = RecordingSession(
            state=RecordingState.CAPTURING, started_at=self.clock()
        )
        logger.info("Recording started")

    def lock(self) -> None:
        """Keep capturing hands-free."""
        self._require("lock", RecordingState.CAPTURING)
        self.session.state = RecordingState.LOCKED

    async def cancel(self) -> None:
        """Stop and discard the recording. No message is produced."""
        self._require("cancel", *ACTIVE_STATES)
        self.session.state = RecordingState.CANCELLED
        try:
            artifact = await self.recorder.stop()
            self._discard(artifact)
        except Exception as e:
            logger.warning(f"Error stopping cancelled recording: {e}")
        finally:
            await self._release()
            self.session = RecordingSession()
        logger.info("Recording cancelled")

    async def send(self) -> Any:
        """Finalize the recording and hand it to the conversation.

        Returns whatever the finalize callback returns.

        Raises:
            RecordingStateError: If nothing is being recorded.
            ValidationError: If less than one second has been captured.
            AudioError: If the recorder fails to stop.
        """
        self._require("send", *ACTIVE_STATES)
        elapsed = self.elapsed_seconds
        if elapsed <= 0:
            raise ValidationError("duration_seconds", elapsed, "recording is too short")

        self.session.state = RecordingState.FINALIZING
        try:
            artifact = await self.recorder.stop()
        except Exception as e:
            raise AudioError(
                f"Failed to finalize recording: {e}",
                error_code="RECORDING_STOP_FAILED",
                component="voice",
            ) from e
        finally:
            await self._release()
            self.session = RecordingSession()

        logger.info(f"Recording finalized ({elapsed}s)")
        try:
            return await self.on_finalized(artifact.uri, elapsed)
        except Exception:
            # Rejected before any message referenced the recording
            self._discard(artifact)
            raise

    async def _release(self) -> None:
        try:
            await self.recorder.release()
        except Exception as e:
            logger.error(f"Failed to release microphone: {e}")

    @staticmethod
    def _discard(artifact: RecordedArtifact) -> None:
        try:
            Path(artifact.uri).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete discarded recording: {e}")
