"""
Voice message capture and playback.
"""

from .capture import RecordingSession, RecordingState, VoiceCaptureStateMachine
from .playback import PlaybackController, PlaybackHandle

__all__ = [
    "PlaybackController",
    "PlaybackHandle",
    "RecordingSession",
    "RecordingState",
    "VoiceCaptureStateMachine",
]
