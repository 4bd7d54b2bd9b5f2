"""
Configuration management for Venting Vault.

Provides a clean public API for all configuration components.
"""

from .base import DEFAULT_MODEL, Environment
from .main import Config
from .runtime import (
    EscalationConfig,
    GenerationConfig,
    MemoryConfig,
    ModerationConfig,
    MonitoringConfig,
    PlaybackConfig,
    VoiceConfig,
)

__all__ = [
    # Main class
    "Config",
    # Base
    "Environment",
    "DEFAULT_MODEL",
    # Sections
    "EscalationConfig",
    "GenerationConfig",
    "MemoryConfig",
    "ModerationConfig",
    "MonitoringConfig",
    "PlaybackConfig",
    "VoiceConfig",
]
