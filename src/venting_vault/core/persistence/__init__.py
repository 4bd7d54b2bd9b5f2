"""
Persistence utilities for Venting Vault.

Provides JSON persistence and the durable key-value store.
"""

from .json_manager import JSONRepository
from .key_value_store import InMemoryKeyValueStore, JSONFileKeyValueStore, KeyValueStore

__all__ = [
    "JSONRepository",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JSONFileKeyValueStore",
]
