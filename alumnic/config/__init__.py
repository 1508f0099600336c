"""Configuration - environment-driven settings."""

from .settings import AccountDefaults, Settings, get_settings

__all__ = ["AccountDefaults", "Settings", "get_settings"]
