"""
Venting Vault: a companion chat pipeline with safety moderation, durable
memory and voice messages.
"""

__version__ = "0.1.0"
