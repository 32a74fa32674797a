"""Platform-specific locations for podshelf files."""

import os
from pathlib import Path

import platformdirs

APP_NAME = "podshelf"
CONFIG_DIR_ENV_VAR = "PODSHELF_CONFIG_DIR"


def get_config_dir() -> Path:
    """Get the podshelf configuration directory.

    ``PODSHELF_CONFIG_DIR`` overrides the platform default (XDG config dir
    on Linux).
    """
    override = os.environ.get(CONFIG_DIR_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_config_dir(APP_NAME))


def get_config_file() -> Path:
    """Get path to config.yaml."""
    return get_config_dir() / "config.yaml"


def get_default_storage_root() -> Path:
    """Get the default storage root for metadata and downloaded media.

    Falls back to the home directory when the platform has no music folder.
    """
    music_dir = platformdirs.user_music_dir()
    base = Path(music_dir) if music_dir else Path.home()
    return base / APP_NAME
