"""
Chat message and content-part models for the generation backend.

Message content is either a plain string or a list of typed parts. Parts form a
tagged union discriminated on ``type`` and are validated at the boundary, so a
malformed payload surfaces as a TransportError instead of travelling onward.
"""

import base64
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..exceptions import TransportError

Role = Literal["system", "user", "assistant"]

AUDIO_MIME_TYPES = {
    "wav": "audio/wav",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "mp4": "audio/mp4",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
}


class TextContent(BaseModel):
    """Plain text part."""

    type: Literal["text"] = "text"
    text: str


class MediaURL(BaseModel):
    url: str


class MediaReference(BaseModel):
    """Media addressed by URL (including ``data:`` URIs)."""

    type: Literal["image_url"] = "image_url"
    image_url: MediaURL


class AudioPayload(BaseModel):
    data: str  # base64
    format: str = "wav"


class AudioContent(BaseModel):
    """Inline audio part."""

    type: Literal["input_audio"] = "input_audio"
    input_audio: AudioPayload

    @classmethod
    def from_bytes(cls, raw: bytes, audio_format: str = "wav") -> "AudioContent":
        encoded = base64.b64encode(raw).decode("ascii")
        return cls(input_audio=AudioPayload(data=encoded, format=audio_format))

    def as_data_uri(self) -> MediaReference:
        """Express the audio as a ``data:`` URI media reference."""
        mime = AUDIO_MIME_TYPES.get(self.input_audio.format, "audio/mp4")
        url = f"data:{mime};base64,{self.input_audio.data}"
        return MediaReference(image_url=MediaURL(url=url))


ContentPart = Annotated[
    Union[TextContent, MediaReference, AudioContent], Field(discriminator="type")
]


class ChatMessage(BaseModel):
    """One message in a chat completion request."""

    role: Role
    content: Union[str, List[ContentPart]]

    @classmethod
    def system(cls, text: str) -> "ChatMessage":
        return cls(role="system", content=text)

    @classmethod
    def user(cls, content: Union[str, List[Any]]) -> "ChatMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, text: str) -> "ChatMessage":
        return cls(role="assistant", content=text)

    def to_wire(self, audio_transport: str = "input_audio") -> Dict[str, Any]:
        """Serialize for the backend, mapping audio to the chosen transport."""
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}

        parts: List[Dict[str, Any]] = []
        for part in self.content:
            if isinstance(part, AudioContent) and audio_transport == "data_uri":
                parts.append(part.as_data_uri().model_dump())
            else:
                parts.append(part.model_dump())
        return {"role": self.role, "content": parts}


class CompletionMessage(BaseModel):
    content: Optional[str] = None


class CompletionChoice(BaseModel):
    message: CompletionMessage


class ChatCompletionResponse(BaseModel):
    choices: List[CompletionChoice] = Field(default_factory=list)


def parse_completion(payload: Any) -> Optional[str]:
    """Extract the first choice's text from a chat completion body.

    Returns None when there is no choice or its content is empty.

    Raises:
        TransportError: If the body does not match the completion shape.
    """
    try:
        response = ChatCompletionResponse.model_validate(payload)
    except ValidationError as e:
        raise TransportError(
            f"Malformed completion payload: {e.error_count()} validation errors",
            error_code="MALFORMED_RESPONSE",
            component="llm",
        ) from e

    if not response.choices:
        return None
    return response.choices[0].message.content or None


def validate_messages(messages: List[Any]) -> List[ChatMessage]:
    """Validate loosely-typed message dicts into ChatMessage models.

    Raises:
        TransportError: If any message has an unknown role or part type.
    """
    validated: List[ChatMessage] = []
    for index, message in enumerate(messages):
        if isinstance(message, ChatMessage):
            validated.append(message)
            continue
        try:
            validated.append(ChatMessage.model_validate(message))
        except ValidationError as e:
            raise TransportError(
                f"Malformed chat message at index {index}",
                error_code="MALFORMED_REQUEST",
                details={"index": index, "errors": e.error_count()},
                component="llm",
            ) from e
    return validated
