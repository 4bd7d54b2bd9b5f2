"""
Conversation data model: messages, the ordered log and the session context.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Persisted timestamp layout, always UTC
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class Sender(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# Sender names written by earlier releases of the store
LEGACY_SENDERS = {"sentinel": Sender.ASSISTANT, "shadow": Sender.ASSISTANT}


class MessageKind(Enum):
    TEXT = "text"
    VOICE = "voice"
    CRISIS = "crisis"


LEGACY_KINDS = {"intervention": MessageKind.TEXT}


class InputType(Enum):
    """How the user produced the current turn."""

    TEXT = "text"
    VOICE = "voice"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_message_id() -> str:
    return uuid.uuid4().hex


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(raw: str) -> datetime:
    """Parse a persisted timestamp.

    Accepts the fixed layout as well as millisecond precision and ISO offsets,
    which older stores may contain.
    """
    try:
        return datetime.strptime(raw, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class Message:
    """A single immutable conversation entry."""

    id: str
    text: str
    sender: Sender
    kind: MessageKind = MessageKind.TEXT
    timestamp: datetime = field(default_factory=utc_now)
    voice_artifact_ref: Optional[str] = None
    duration_seconds: Optional[int] = None
    turn_id: Optional[str] = None
    action_ref: Optional[str] = None

    @classmethod
    def create(
        cls,
        text: str,
        sender: Sender,
        kind: MessageKind = MessageKind.TEXT,
        **kwargs: Any,
    ) -> "Message":
        return cls(id=new_message_id(), text=text, sender=sender, kind=kind, **kwargs)

    @property
    def is_crisis(self) -> bool:
        return self.kind == MessageKind.CRISIS

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "sender": self.sender.value,
            "type": self.kind.value,
            "timestamp": format_timestamp(self.timestamp),
        }
        if self.voice_artifact_ref is not None:
            data["voiceUri"] = self.voice_artifact_ref
        if self.duration_seconds is not None:
            data["duration"] = self.duration_seconds
        if self.turn_id is not None:
            data["turnId"] = self.turn_id
        if self.action_ref is not None:
            data["actionRef"] = self.action_ref
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Rebuild a message from its persisted form.

        Raises:
            ValidationError: If a required field is missing or invalid.
        """
        try:
            raw_sender = data["sender"]
            sender = LEGACY_SENDERS.get(raw_sender) or Sender(raw_sender)
            raw_kind = data.get("type", MessageKind.TEXT.value)
            kind = LEGACY_KINDS.get(raw_kind) or MessageKind(raw_kind)
            timestamp = parse_timestamp(data["timestamp"])
            message_id = str(data["id"])
            duration = data.get("duration")
            duration_seconds = int(duration) if duration is not None else None
        except KeyError as e:
            raise ValidationError(str(e.args[0]), None, "missing field") from e
        except (TypeError, ValueError) as e:
            raise ValidationError("message", data.get("id"), str(e)) from e

        return cls(
            id=message_id,
            text=str(data.get("text", "")),
            sender=sender,
            kind=kind,
            timestamp=timestamp,
            voice_artifact_ref=data.get("voiceUri"),
            duration_seconds=duration_seconds,
            turn_id=data.get("turnId"),
            action_ref=data.get("actionRef"),
        )


class ConversationLog:
    """Chronologically ordered, append-only sequence of messages."""

    def __init__(self, messages: Optional[List[Message]] = None):
        self._messages: List[Message] = []
        self._ids: set = set()
        for message in messages or []:
            self.append(message)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def is_empty(self) -> bool:
        return not self._messages

    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def has_crisis_for(self, turn_id: Optional[str]) -> bool:
        if turn_id is None:
            return False
        return any(m.is_crisis and m.turn_id == turn_id for m in self._messages)

    def is_superseded(self, turn_id: Optional[str]) -> bool:
        """True when an assistant reply for ``turn_id`` must not be appended."""
        last = self.last()
        if last is not None and last.is_crisis:
            return True
        return self.has_crisis_for(turn_id)

    def append(self, message: Message) -> Message:
        """Append a message.

        Raises:
            ValidationError: On a duplicate id, or an assistant reply for a turn
                that already carries a crisis notice.
        """
        if message.id in self._ids:
            raise ValidationError("id", message.id, "duplicate message id")
        if message.sender == Sender.ASSISTANT and self.has_crisis_for(message.turn_id):
            raise ValidationError(
                "turn_id", message.turn_id, "turn superseded by a crisis notice"
            )
        self._messages.append(message)
        self._ids.add(message.id)
        return message

    def context_window(self, max_turns: int) -> List[Message]:
        """The last ``max_turns`` user/assistant messages, oldest first."""
        dialogue = [
            m
            for m in self._messages
            if m.sender in (Sender.USER, Sender.ASSISTANT) and not m.is_crisis
        ]
        if max_turns <= 0:
            return []
        return dialogue[-max_turns:]

    def recent_for_greeting(self, limit: int) -> List[Message]:
        """The last ``limit`` non-system, non-crisis messages."""
        eligible = [
            m
            for m in self._messages
            if m.sender != Sender.SYSTEM and not m.is_crisis
        ]
        if limit <= 0:
            return []
        return eligible[-limit:]

    def to_list(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self._messages]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> "ConversationLog":
        """Restore a log, skipping entries that are malformed or repeat an id."""
        log = cls()
        for item in data:
            if not isinstance(item, dict):
                logger.warning("Skipping stored message that is not an object")
                continue
            try:
                log.append(Message.from_dict(item))
            except ValidationError as e:
                logger.warning(f"Skipping stored message: {e}")
        return log


@dataclass
class SessionContext:
    """Per-session state passed explicitly through the orchestrator."""

    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    last_input_type: InputType = InputType.TEXT

    def with_input(self, input_type: InputType) -> "SessionContext":
        return replace(self, last_input_type=input_type)
