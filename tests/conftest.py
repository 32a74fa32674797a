"""Shared fixtures for podshelf tests."""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from podshelf.feeds.models import Episode, Podcast, create_episode_id
from podshelf.storage.root import StaticStorageRootProvider
from podshelf.subscriptions.protocols import DownloadedMedia, ProgressCallback

FEED_URI = "https://example.com/feed.xml"


def make_episode(number: int, **overrides) -> Episode:
    """Build an episode published on 2024-01-<number>."""
    fields = {
        "id": create_episode_id(f"guid-{number}"),
        "media_uri": f"https://cdn.example.com/ep{number}.mp3",
        "title": f"Episode {number}",
        "summary": f"Summary of episode {number}",
        "duration": timedelta(minutes=30 + number),
        "published_at": datetime(2024, 1, number, tzinfo=timezone.utc),
        "episode_number": number,
        "artwork_uri": None,
    }
    fields.update(overrides)
    return Episode(**fields)


def make_podcast(
    episode_count: int = 3,
    feed_uri: str = FEED_URI,
    title: str = "Test Podcast",
    last_updated: datetime | None = None,
) -> Podcast:
    return Podcast.create(
        feed_uri=feed_uri,
        title=title,
        description="A podcast used in tests",
        artwork_uri="https://cdn.example.com/cover.jpg",
        last_updated=last_updated or datetime(2024, 2, 1, tzinfo=timezone.utc),
        episodes=[make_episode(n) for n in range(1, episode_count + 1)],
    )


class StubFeedService:
    """Returns a fixed podcast (or raises) and records requested URIs."""

    def __init__(self, podcast: Podcast | None = None, error: Exception | None = None):
        self.podcast = podcast
        self.error = error
        self.requested: list[str] = []

    async def get_podcast(self, feed_uri: str) -> Podcast:
        self.requested.append(feed_uri)
        if self.error is not None:
            raise self.error
        return self.podcast.clone()


class StubTransferService:
    """Writes small placeholder files and records every call.

    Set ``fail_with`` to make media downloads raise, ``artwork_error`` to
    make artwork downloads raise, or ``during_download`` to run a coroutine
    while a transfer is "in flight".
    """

    def __init__(self, root: Path):
        self.root = root
        self.downloaded: list[str] = []
        self.artwork_requests: list[str] = []
        self.received: list[Episode] = []
        self.fail_with: BaseException | None = None
        self.fail_on: set[str] = set()
        self.artwork_error: Exception | None = None
        self.during_download: Callable[[Podcast, Episode], Awaitable[None]] | None = None

    async def download_episode(
        self,
        podcast: Podcast,
        episode: Episode,
        progress: ProgressCallback | None = None,
    ) -> DownloadedMedia:
        self.downloaded.append(episode.id)
        self.received.append(episode)

        if self.during_download is not None:
            await self.during_download(podcast, episode)
        if self.fail_with is not None and (not self.fail_on or episode.id in self.fail_on):
            raise self.fail_with

        target = self.root / podcast.title / f"{episode.episode_number}.mp3"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(b"audio")

        if progress is not None:
            progress(0.5)
            progress(1.0)
        return DownloadedMedia(local_file_path=str(target))

    async def download_episode_artwork(self, podcast: Podcast, episode: Episode) -> str | None:
        self.artwork_requests.append(episode.id)
        if self.artwork_error is not None:
            raise self.artwork_error

        target = self.root / podcast.title / "Art" / f"{episode.episode_number}.jpg"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(b"image")
        return str(target)


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest.fixture
def root_provider(storage_root: Path) -> StaticStorageRootProvider:
    return StaticStorageRootProvider(storage_root)


@pytest.fixture
def podcast() -> Podcast:
    """Podcast with three episodes, newest (episode 3) first."""
    return make_podcast()


@pytest.fixture
def episode_factory() -> Callable[..., Episode]:
    return make_episode


@pytest.fixture
def podcast_factory() -> Callable[..., Podcast]:
    return make_podcast


@pytest.fixture
def feed_service(podcast: Podcast) -> StubFeedService:
    return StubFeedService(podcast)


@pytest.fixture
def transfer_service(tmp_path: Path) -> StubTransferService:
    media_root = tmp_path / "media"
    media_root.mkdir()
    return StubTransferService(media_root)


@pytest.fixture(autouse=True)
def fast_retry_config(monkeypatch):
    """Use the fast retry policy everywhere."""
    from podshelf.utils import retry

    monkeypatch.setattr(retry, "DEFAULT_RETRY_CONFIG", retry.TEST_RETRY_CONFIG)


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch) -> dict[str, Path]:
    """Point config and storage at temporary directories."""
    config_dir = tmp_path / "config"
    storage = tmp_path / "storage"
    monkeypatch.setenv("PODSHELF_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("PODSHELF_STORAGE_ROOT", str(storage))
    return {"config_dir": config_dir, "storage_root": storage}