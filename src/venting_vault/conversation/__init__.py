"""
Conversation data model.
"""

from .models import (
    TIMESTAMP_FORMAT,
    ConversationLog,
    InputType,
    Message,
    MessageKind,
    Sender,
    SessionContext,
    format_timestamp,
    parse_timestamp,
)

__all__ = [
    "TIMESTAMP_FORMAT",
    "ConversationLog",
    "InputType",
    "Message",
    "MessageKind",
    "Sender",
    "SessionContext",
    "format_timestamp",
    "parse_timestamp",
]
