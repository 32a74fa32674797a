"""Configuration management for podshelf."""

from podshelf.config.manager import STORAGE_ROOT_ENV_VAR, ConfigManager
from podshelf.config.schema import DownloadConfig, GlobalConfig

__all__ = ["ConfigManager", "DownloadConfig", "GlobalConfig", "STORAGE_ROOT_ENV_VAR"]
