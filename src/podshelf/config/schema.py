"""Configuration schema models using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from podshelf.utils.http import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT
from podshelf.utils.paths import get_default_storage_root

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class DownloadConfig(BaseModel):
    """Media and feed transfer settings."""

    chunk_size: int = Field(default=20, gt=0)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    user_agent: str = DEFAULT_USER_AGENT


class GlobalConfig(BaseModel):
    """Global podshelf configuration."""

    version: str = "1"
    storage_root: Path = Field(default_factory=get_default_storage_root)
    log_level: LogLevel = "INFO"

    download: DownloadConfig = Field(default_factory=DownloadConfig)

    @field_validator("storage_root")
    @classmethod
    def expand_storage_root(cls, v: Path) -> Path:
        """Expand ``~`` in the configured root."""
        return v.expanduser()
