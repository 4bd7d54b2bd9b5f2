"""Real audio implementations using sounddevice for hardware interaction.

These implementations provide actual microphone and speaker functionality
when hardware is available. Recordings are written as WAV files with
soundfile.
"""

import asyncio
import logging
import threading
import uuid
from pathlib import Path
from typing import Any, List, Optional

import numpy as np
import sounddevice as sd
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


class SoundDeviceRecorder(AudioRecorder):
    """Microphone recorder using a sounddevice input stream."""

    def __init__(self, recordings_dir: Path, sample_rate: int = 44100, channels: int = 1):
        self.recordings_dir = Path(recordings_dir)
        self.sample_rate = sample_rate
        self.channels = channels
        self._stream: Optional[sd.InputStream] = None
        self._frames: List[np.ndarray] = []
        self._lock = threading.Lock()

    def _audio_callback(
        self, indata: np.ndarray, frames: int, time: Any, status: Any
    ) -> None:
        """Callback for audio input stream."""
        if status:
            logger.warning(f"Audio input status: {status}")
        with self._lock:
            self._frames.append(indata.copy())

    async def request_permission(self) -> bool:
        """Microphone access is granted when a default input device exists."""
        try:
            sd.query_devices(kind="input")
            return True
        except (sd.PortAudioError, ValueError) as e:
            logger.warning(f"No usable input device: {e}")
            return False

    async def start(self) -> None:
        if self._stream is not None:
            await self.release()

        self._frames = []
        self._stream = sd.InputStream(
            channels=self.channels,
            samplerate=self.sample_rate,
            callback=self._audio_callback,
            dtype=np.float32,
        )
        self._stream.start()
        logger.info(
            f"Audio capture started: sample_rate={self.sample_rate}, channels={self.channels}"
        )

    async def stop(self) -> RecordedArtifact:
        if self._stream is not None:
            self._stream.stop()

        with self._lock:
            frames = list(self._frames)
            self._frames = []

        if frames:
            audio = np.concatenate(frames)
        else:
            audio = np.zeros((0, self.channels), dtype=np.float32)

        self.recordings_dir.mkdir(parents=True, exist_ok=True)
        path = self.recordings_dir / f"{uuid.uuid4().hex}.wav"
        await asyncio.to_thread(sf.write, str(path), audio, self.sample_rate)

        duration = len(audio) / float(self.sample_rate)
        logger.info(f"Saved recording to {path} ({duration:.1f}s)")
        return RecordedArtifact(uri=str(path), duration_seconds=duration)

    async def release(self) -> None:
        if self._stream is not None:
            stream, self._stream = self._stream, None
            try:
                stream.stop()
            finally:
                stream.close()
        with self._lock:
            self._frames = []


class SoundDevicePlayer(AudioPlayer):
    """Plays a WAV artifact through a sounddevice output stream.

    Stream callbacks run on the audio thread; status updates are marshalled
    back onto the event loop that created the player.
    """

    def __init__(self, uri: str, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.uri = uri
        self._data, self.sample_rate = sf.read(uri, dtype="float32", always_2d=True)
        self._position = 0
        self._stream: Optional[sd.OutputStream] = None
        self._listeners: List[StatusListener] = []
        self._playing = False
        self._loop = loop or asyncio.get_running_loop()

    @property
    def duration(self) -> float:
        return len(self._data) / float(self.sample_rate)

    @property
    def current_time(self) -> float:
        return self._position / float(self.sample_rate)

    def _audio_callback(
        self, outdata: np.ndarray, frames: int, time: Any, status: Any
    ) -> None:
        """Callback for audio output stream."""
        if status:
            logger.warning(f"Audio output status: {status}")

        chunk = self._data[self._position : self._position + frames]
        outdata[: len(chunk)] = chunk
        if len(chunk) < frames:
            outdata[len(chunk) :].fill(0)
        self._position += len(chunk)
        if self._position >= len(self._data):
            raise sd.CallbackStop()

    def _finished_callback(self) -> None:
        self._playing = False
        status = PlaybackStatus(
            playing=False, current_time=self.current_time, duration=self.duration
        )
        self._loop.call_soon_threadsafe(self._notify, status)

    def _notify(self, status: PlaybackStatus) -> None:
        for listener in list(self._listeners):
            listener(status)

    def play(self) -> None:
        if self._stream is None:
            self._stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=self._data.shape[1],
                callback=self._audio_callback,
                finished_callback=self._finished_callback,
                dtype=np.float32,
            )
        self._stream.start()
        self._playing = True
        self._notify(
            PlaybackStatus(
                playing=True, current_time=self.current_time, duration=self.duration
            )
        )

    def pause(self) -> None:
        if self._stream is not None and self._playing:
            self._stream.stop()
        self._playing = False

    def release(self) -> None:
        self._listeners.clear()
        if self._stream is not None:
            stream, self._stream = self._stream, None
            try:
                stream.abort()
            finally:
                stream.close()
        self._playing = False

    def add_status_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)


class SoundDeviceSubsystem(AudioSubsystem):
    """Audio subsystem backed by the default sounddevice devices."""

    def __init__(self, recordings_dir: Path, sample_rate: int = 44100, channels: int = 1):
        self.recordings_dir = Path(recordings_dir)
        self.sample_rate = sample_rate
        self.channels = channels

    def create_recorder(self) -> SoundDeviceRecorder:
        return SoundDeviceRecorder(
            self.recordings_dir, sample_rate=self.sample_rate, channels=self.channels
        )

    def create_player(self, uri: str) -> SoundDevicePlayer:
        return SoundDevicePlayer(uri)
