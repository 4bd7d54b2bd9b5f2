"""
Chat completion transport for Venting Vault.
"""

from .content import (
    AudioContent,
    ChatMessage,
    MediaReference,
    MediaURL,
    TextContent,
    parse_completion,
    validate_messages,
)
from .providers import GenerationBackend, OpenRouterProvider, create_backend

__all__ = [
    "AudioContent",
    "ChatMessage",
    "MediaReference",
    "MediaURL",
    "TextContent",
    "parse_completion",
    "validate_messages",
    "GenerationBackend",
    "OpenRouterProvider",
    "create_backend",
]
