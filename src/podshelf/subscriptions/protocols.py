"""Collaborator contracts used by the podcast manager."""

from collections.abc import Callable
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from podshelf.feeds.models import Episode, Podcast

# Receives completion as a fraction in [0, 1]. Called on the event loop.
ProgressCallback = Callable[[float], None]


class DownloadedMedia(BaseModel):
    """Where a finished transfer left its files."""

    model_config = ConfigDict(frozen=True)

    local_file_path: str
    artwork_file_path: str | None = None


class FeedService(Protocol):
    """Fetches a feed and maps it to a podcast with its episodes."""

    async def get_podcast(self, feed_uri: str) -> Podcast:
        """Fetch and parse ``feed_uri``.

        Raises:
            FeedError: If the document cannot be parsed
            NetworkError: On transport failures
        """
        ...


class TransferService(Protocol):
    """Moves episode media and artwork onto local storage.

    Implementations must not change the episode they are given; the
    manager records the outcome.
    """

    async def download_episode(
        self,
        podcast: Podcast,
        episode: Episode,
        progress: ProgressCallback | None = None,
    ) -> DownloadedMedia: ...

    async def download_episode_artwork(self, podcast: Podcast, episode: Episode) -> str | None: ...
