"""
Companion presence state shown alongside the conversation.
"""

from enum import Enum
from typing import Optional

from ..conversation.models import Sender


class PresenceState(Enum):
    IDLE = "idle"
    THINKING = "thinking"
    TALKING = "talking"
    SURPRISED = "surprised"


def derive_presence(
    thinking: bool,
    reviewing: bool,
    recording: bool,
    last_sender: Optional[Sender] = None,
) -> PresenceState:
    """Map the pipeline's activity flags onto one presence state.

    Generation or moderation in flight wins over recording; a fresh companion
    reply shows as talking once nothing else is happening.
    """
    if thinking or reviewing:
        return PresenceState.THINKING
    if recording:
        return PresenceState.SURPRISED
    if last_sender == Sender.ASSISTANT:
        return PresenceState.TALKING
    return PresenceState.IDLE
