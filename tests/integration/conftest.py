"""Fixtures for CLI integration tests."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from podshelf.feeds.models import Podcast
from podshelf.storage.json_file import JsonFilePodcastRepository
from podshelf.storage.root import StaticStorageRootProvider


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by the CLI callback."""
    yield
    logger = logging.getLogger("podshelf")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def library(isolated_env) -> JsonFilePodcastRepository:
    """Repository over the storage root the CLI will use."""
    return JsonFilePodcastRepository(StaticStorageRootProvider(isolated_env["storage_root"]))


@pytest.fixture
def seed(library) -> Callable[[Podcast], None]:
    def _seed(podcast: Podcast) -> None:
        asyncio.run(library.upsert(podcast))

    return _seed


@pytest.fixture
def stored(isolated_env) -> Callable[[str], Podcast | None]:
    """Read a podcast back with a fresh repository."""

    def _stored(podcast_id: str) -> Podcast | None:
        root: Path = isolated_env["storage_root"]
        repository = JsonFilePodcastRepository(StaticStorageRootProvider(root))
        return asyncio.run(repository.get(podcast_id))

    return _stored
