"""In-memory podcast repository."""

import asyncio

from podshelf.feeds.models import Podcast
from podshelf.storage.base import PodcastRepository, repository_key


class InMemoryPodcastRepository(PodcastRepository):
    """Process-local repository, mainly for tests and dry runs."""

    def __init__(self) -> None:
        self._podcasts: dict[str, Podcast] = {}
        self._lock = asyncio.Lock()

    async def list(self) -> list[Podcast]:
        async with self._lock:
            podcasts = [p.clone() for p in self._podcasts.values()]
        podcasts.sort(key=lambda p: p.last_updated, reverse=True)
        return podcasts

    async def get(self, podcast_id: str) -> Podcast | None:
        async with self._lock:
            podcast = self._podcasts.get(repository_key(podcast_id))
            return podcast.clone() if podcast is not None else None

    async def upsert(self, podcast: Podcast) -> None:
        async with self._lock:
            self._podcasts[repository_key(podcast.id)] = podcast.clone()

    async def remove(self, podcast_id: str) -> None:
        async with self._lock:
            self._podcasts.pop(repository_key(podcast_id), None)
