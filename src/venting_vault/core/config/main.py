"""
Main configuration class for Venting Vault.

Contains the Config class that combines all configuration sections, overlaid
with ``configs/runtime.yaml`` and ``VAULT_<SECTION>__<FIELD>`` environment
variables.
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .base import ENV_PREFIX, Environment
from .runtime import (
    EscalationConfig,
    GenerationConfig,
    MemoryConfig,
    ModerationConfig,
    MonitoringConfig,
    PlaybackConfig,
    VoiceConfig,
)

logger = logging.getLogger(__name__)

SECTIONS = (
    "generation",
    "moderation",
    "memory",
    "voice",
    "playback",
    "escalation",
    "monitoring",
)


def load_runtime_yaml(path: Path) -> Dict[str, Any]:
    """Read a ``{section: {field: value}}`` mapping from YAML.

    A missing, unreadable or non-mapping file contributes no overrides.
    """
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring runtime config {path}: {e}")
        return {}

    if not isinstance(data, dict):
        if data is not None:
            logger.warning(f"Runtime config {path} is not a mapping")
        return {}
    logger.debug(f"Loaded runtime config from {path}")
    return data


def _coerce(raw: Any, current: Any) -> Any:
    """Convert a raw YAML/env value to the type of the current value."""
    if isinstance(current, bool):
        if isinstance(raw, str):
            return raw.lower() in {"1", "true", "yes", "on"}
        return bool(raw)
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    if isinstance(current, Path):
        return Path(raw)
    if current is None:
        if raw in (None, "", "none", "None"):
            return None
        try:
            return float(raw)
        except (TypeError, ValueError):
            return raw
    return str(raw)


@dataclass
class Config:
    """Main configuration class for Venting Vault."""

    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    generation: GenerationConfig = field(default_factory=GenerationConfig)
    moderation: ModerationConfig = field(default_factory=ModerationConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    escalation: EscalationConfig = field(default_factory=EscalationConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    runtime_yaml: Optional[Path] = field(
        default_factory=lambda: Path("configs/runtime.yaml")
    )

    def __post_init__(self) -> None:
        """Overlay runtime YAML and environment overrides."""
        if self.runtime_yaml is not None:
            self.apply_overrides(load_runtime_yaml(self.runtime_yaml))

        self._apply_env_overrides()

        if self.environment == Environment.TESTING:
            self.debug = True
            self.monitoring.json_logs = False
        elif self.environment == Environment.PRODUCTION:
            self.debug = False

    def apply_overrides(self, data: Dict[str, Any]) -> None:
        """Apply a nested ``{section: {field: value}}`` mapping."""
        if "environment" in data:
            self.environment = Environment(data["environment"])
        if "debug" in data:
            self.debug = bool(data["debug"])

        for section_name in SECTIONS:
            section_data = data.get(section_name) or {}
            if not isinstance(section_data, dict):
                logger.warning(f"Ignoring non-mapping config section: {section_name}")
                continue
            section = getattr(self, section_name)
            for key, raw in section_data.items():
                if not hasattr(section, key):
                    logger.warning(f"Unknown config key: {section_name}.{key}")
                    continue
                setattr(section, key, _coerce(raw, getattr(section, key)))

    def _apply_env_overrides(self) -> None:
        """Apply ``VAULT_<SECTION>__<FIELD>`` environment overrides."""
        env_name = os.getenv(f"{ENV_PREFIX}ENV")
        if env_name:
            self.environment = Environment(env_name.lower())

        for section_name in SECTIONS:
            section = getattr(self, section_name)
            for section_field in fields(section):
                var = f"{ENV_PREFIX}{section_name.upper()}__{section_field.name.upper()}"
                raw = os.getenv(var)
                if raw is None:
                    continue
                current = getattr(section, section_field.name)
                setattr(section, section_field.name, _coerce(raw, current))
                logger.debug(f"Applied environment override {var}")

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "Config":
        """Load configuration from a YAML file."""
        return cls(runtime_yaml=Path(config_path))

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a plain dictionary (API key redacted)."""

        def _plain(value: Any) -> Any:
            if isinstance(value, Path):
                return str(value)
            if isinstance(value, Enum):
                return value.value
            return value

        result: Dict[str, Any] = {
            "environment": self.environment.value,
            "debug": self.debug,
        }
        for section_name in SECTIONS:
            section = getattr(self, section_name)
            if is_dataclass(section):
                result[section_name] = {
                    key: _plain(value) for key, value in asdict(section).items()
                }
        if result["generation"].get("api_key"):
            result["generation"]["api_key"] = "***"
        return result

    def save(self, config_path: Union[str, Path]) -> None:
        """Save configuration to a YAML file. The API key is never written."""
        data = self.to_dict()
        data["generation"].pop("api_key", None)
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        logger.debug(f"Saved configuration to {path}")
