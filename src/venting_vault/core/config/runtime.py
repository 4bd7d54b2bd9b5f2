"""
Runtime configuration for Venting Vault.

Contains the generation, moderation, memory, voice and monitoring sections.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .base import DEFAULT_MODEL


def _api_key_from_env() -> str:
    return os.environ.get("VAULT_OPENROUTER_KEY") or os.environ.get(
        "OPENROUTER_API_KEY", ""
    )


@dataclass
class GenerationConfig:
    """Chat completion backend configuration."""

    model: str = DEFAULT_MODEL
    base_url: str = "https://openrouter.ai/api/v1"
    api_key: str = field(default_factory=_api_key_from_env)
    temperature: float = 0.7
    max_tokens: int = 150
    context_turns: int = 10
    referer: str = "https://venting-vault.app"
    title: str = "Venting Vault"
    # None keeps the historical behaviour of waiting indefinitely
    request_timeout_s: Optional[float] = None
    audio_transport: str = "input_audio"  # input_audio | data_uri


@dataclass
class ModerationConfig:
    """Safety moderation configuration."""

    temperature: float = 0.0
    max_tokens: int = 150
    enabled: bool = True


@dataclass
class MemoryConfig:
    """Deep memory configuration."""

    storage_key: str = "@venting_vault_messages"
    storage_path: Path = field(default_factory=lambda: Path.cwd() / "data/vault.json")
    wake_gap_hours: float = 24.0
    greeting_context_messages: int = 8


@dataclass
class VoiceConfig:
    """Voice capture configuration."""

    sample_rate: int = 44100
    channels: int = 1
    recordings_dir: Path = field(
        default_factory=lambda: Path.cwd() / "data/recordings"
    )


@dataclass
class PlaybackConfig:
    """Voice message playback configuration."""

    completion_tolerance_s: float = 0.5


@dataclass
class EscalationConfig:
    """External escalation contact configuration."""

    label: str = "CALL 988 LIFELINE"
    uri: str = "tel:988"


@dataclass
class MonitoringConfig:
    """Logging configuration."""

    log_level: str = "INFO"
    json_logs: bool = True
