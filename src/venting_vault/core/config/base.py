"""
Base configuration infrastructure for Venting Vault.

Contains shared constants and the Environment enum.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)

# Environment variable prefix for configuration overrides
ENV_PREFIX = "VAULT_"

# Default generation model served through OpenRouter
DEFAULT_MODEL = "google/gemini-3-flash-preview"


class Environment(Enum):
    """Environment types for configuration."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
