"""
Centralized fallback, welcome and configuration messages.

Provides consistent user-facing text for every path where the conversation
cannot produce a normal companion reply.
"""

from ..conversation.models import InputType


class ServiceErrorMessages:
    """Centralized user-facing messages for services."""

    # Generation fallbacks
    VOICE_FALLBACK = "I cannot hear you clearly..."
    TEXT_FALLBACK = "The connection is weak..."

    # Session
    WELCOME = "The Vault is open. I am listening. What is weighing on you?"
    VOICE_MESSAGE_LABEL = "Voice Message"
    CONFIGURATION_ERROR = (
        "CONFIGURATION ERROR: No API Key found.\n\n"
        "Please set one of these environment variables:\n"
        "VAULT_OPENROUTER_KEY=sk-or-...\n"
        "OPENROUTER_API_KEY=sk-or-..."
    )

    @classmethod
    def get_generation_fallback(cls, input_type: InputType) -> str:
        """Get the fallback shown when a reply could not be generated."""
        return cls.VOICE_FALLBACK if input_type == InputType.VOICE else cls.TEXT_FALLBACK


# Convenience constants for direct import
VOICE_FALLBACK = ServiceErrorMessages.VOICE_FALLBACK
TEXT_FALLBACK = ServiceErrorMessages.TEXT_FALLBACK
WELCOME = ServiceErrorMessages.WELCOME
