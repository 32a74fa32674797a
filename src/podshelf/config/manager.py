"""Configuration manager for loading and saving podshelf config."""

import logging
import os
from pathlib import Path

import yaml

from podshelf.config.schema import GlobalConfig
from podshelf.utils.errors import InvalidConfigError, ValidationError
from podshelf.utils.paths import get_config_dir, get_config_file

logger = logging.getLogger(__name__)

STORAGE_ROOT_ENV_VAR = "PODSHELF_STORAGE_ROOT"


class ConfigManager:
    """Manages the podshelf configuration file."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize the config manager.

        Args:
            config_dir: Optional custom config directory. Defaults to the
                platform config dir.
        """
        if config_dir is None:
            self.config_dir = get_config_dir()
            self.config_file = get_config_file()
        else:
            self.config_dir = config_dir
            self.config_file = config_dir / "config.yaml"

    def load_config(self) -> GlobalConfig:
        """Load and validate global configuration.

        A default config file is written on first use.

        Returns:
            Validated GlobalConfig instance

        Raises:
            InvalidConfigError: If config is invalid
        """
        if not self.config_file.exists():
            config = GlobalConfig()
            self.save_config(config)
            logger.info("Created default config at %s", self.config_file)
            return config

        try:
            with open(self.config_file) as f:
                data = yaml.safe_load(f) or {}
            return GlobalConfig(**data)
        except Exception as e:
            raise InvalidConfigError(
                f"Invalid configuration in {self.config_file}: {e}"
            ) from e

    def save_config(self, config: GlobalConfig) -> None:
        """Save global configuration.

        Args:
            config: GlobalConfig instance to save
        """
        data = config.model_dump(mode="json")

        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_file, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def get_storage_root(self) -> Path:
        """Get the effective storage root.

        ``PODSHELF_STORAGE_ROOT`` takes precedence over the config file.
        """
        override = os.environ.get(STORAGE_ROOT_ENV_VAR, "").strip()
        if override:
            return Path(override).expanduser()
        return self.load_config().storage_root

    def set_storage_root(self, path: str | Path) -> Path:
        """Persist a new storage root and make sure it exists.

        Args:
            path: Absolute directory path

        Returns:
            The stored root

        Raises:
            ValidationError: If the path is blank or relative
        """
        if not str(path).strip():
            raise ValidationError("Storage root cannot be blank")

        root = Path(path).expanduser()
        if not root.is_absolute():
            raise ValidationError(
                f"Storage root must be an absolute path: {path}",
                suggestion="Pass a full path, e.g. ~/Music/podshelf",
            )

        root.mkdir(parents=True, exist_ok=True)

        config = self.load_config()
        config.storage_root = root
        self.save_config(config)
        logger.info("Storage root set to %s", root)
        return root
