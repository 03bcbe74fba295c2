"""Configuration package for chatgate."""

from chatgate.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
