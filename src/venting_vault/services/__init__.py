"""Top-level services package.

This package contains the services that run conversation turns, own durable
history and supervise background moderation.
"""

from .base_service import BaseService
from .conversation_orchestrator import ConversationOrchestrator, TurnResult
from .deep_memory import DeepMemoryStore
from .error_messages import ServiceErrorMessages
from .presence import PresenceState, derive_presence
from .task_supervisor import TurnTask, TurnTaskStatus, TurnTaskSupervisor

__all__ = [
    "BaseService",
    "ConversationOrchestrator",
    "TurnResult",
    "DeepMemoryStore",
    "ServiceErrorMessages",
    "PresenceState",
    "derive_presence",
    "TurnTask",
    "TurnTaskStatus",
    "TurnTaskSupervisor",
]
