"""Storage root providers.

The storage root is the directory holding ``podcasts.json`` and all
downloaded media. It can change while the program runs; repositories and
the layout ask the provider every time instead of caching it.
"""

import logging
from pathlib import Path
from typing import Protocol

from podshelf.config.manager import ConfigManager
from podshelf.storage.paths import normalize_root
from podshelf.utils.errors import ValidationError

logger = logging.getLogger(__name__)


class StorageRootProvider(Protocol):
    """Supplies the current storage root."""

    def get_root_path(self) -> str: ...

    def set_root_path(self, path: str) -> None: ...


def _validate_root(path: str | Path) -> str:
    if not str(path).strip():
        raise ValidationError("Storage root cannot be blank")
    expanded = Path(path).expanduser()
    if not expanded.is_absolute():
        raise ValidationError(f"Storage root must be an absolute path: {path}")
    return normalize_root(expanded)


class StaticStorageRootProvider:
    """In-process storage root, used by tests and embedding callers."""

    def __init__(self, root: str | Path) -> None:
        self._root = _validate_root(root)

    def get_root_path(self) -> str:
        return self._root

    def set_root_path(self, path: str) -> None:
        self._root = _validate_root(path)


class ConfigStorageRootProvider:
    """Storage root backed by the user's config file.

    The ``PODSHELF_STORAGE_ROOT`` environment variable overrides the
    configured value. The root is resolved and its directory created once,
    then cached until ``set_root_path`` changes it.
    """

    def __init__(self, config_manager: ConfigManager | None = None) -> None:
        self.config_manager = config_manager or ConfigManager()
        self._root: str | None = None

    def get_root_path(self) -> str:
        if self._root is None:
            root = Path(normalize_root(self.config_manager.get_storage_root()))
            root.mkdir(parents=True, exist_ok=True)
            self._root = str(root)
        return self._root

    def set_root_path(self, path: str) -> None:
        self.config_manager.set_storage_root(path)
        self._root = None
