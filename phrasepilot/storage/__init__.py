"""Local persistence for the active provider configuration."""

from phrasepilot.storage.config_store import CONFIG_KEY, ConfigStore

__all__ = ["CONFIG_KEY", "ConfigStore"]
