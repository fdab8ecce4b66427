"""Configuration module: settings loaded from AGONES_ environment variables."""

from allocator_client.config.settings import AllocatorSettings, parse_key_values

__all__ = [
    "AllocatorSettings",
    "parse_key_values",
]
