"""Persistence of podcasts and the on-disk media layout."""

from podshelf.storage.base import PodcastRepository
from podshelf.storage.json_file import METADATA_FILE_NAME, JsonFilePodcastRepository
from podshelf.storage.layout import StorageLayout, sanitize_path_segment
from podshelf.storage.memory import InMemoryPodcastRepository
from podshelf.storage.paths import to_absolute_path, to_relative_path
from podshelf.storage.root import (
    ConfigStorageRootProvider,
    StaticStorageRootProvider,
    StorageRootProvider,
)

__all__ = [
    "PodcastRepository",
    "InMemoryPodcastRepository",
    "JsonFilePodcastRepository",
    "METADATA_FILE_NAME",
    "StorageLayout",
    "sanitize_path_segment",
    "StorageRootProvider",
    "StaticStorageRootProvider",
    "ConfigStorageRootProvider",
    "to_absolute_path",
    "to_relative_path",
]
