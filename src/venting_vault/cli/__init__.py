"""
Command-line interface for Venting Vault.
"""

from .main import cli

__all__ = ["cli"]
