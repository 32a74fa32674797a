"""Repository contract for persisted podcasts."""

from abc import ABC, abstractmethod

from podshelf.feeds.models import Podcast


class PodcastRepository(ABC):
    """Async store of podcasts keyed by id.

    Implementations hand out and keep independent copies: mutating a
    returned podcast never changes stored state, and mutating a podcast
    after ``upsert`` never changes what was stored. Ids are matched
    case-insensitively.
    """

    @abstractmethod
    async def list(self) -> list[Podcast]:
        """Return copies of all podcasts, most recently updated first."""

    @abstractmethod
    async def get(self, podcast_id: str) -> Podcast | None:
        """Return a copy of the podcast, or None when it is not stored."""

    @abstractmethod
    async def upsert(self, podcast: Podcast) -> None:
        """Insert or replace the podcast with the same id."""

    @abstractmethod
    async def remove(self, podcast_id: str) -> None:
        """Delete the podcast. Removing an unknown id is a no-op."""


def repository_key(podcast_id: str) -> str:
    """Normalize an id for case-insensitive lookups."""
    return podcast_id.strip().lower()
