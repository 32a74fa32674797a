"""Tests for the in-memory podcast repository."""

from datetime import datetime, timezone

import pytest

from podshelf.feeds.models import DownloadStatus
from podshelf.storage.memory import InMemoryPodcastRepository


class TestInMemoryPodcastRepository:
    """Tests for InMemoryPodcastRepository."""

    @pytest.mark.asyncio
    async def test_upsert_get_remove(self, podcast):
        """Basic lifecycle of a stored podcast."""
        repo = InMemoryPodcastRepository()

        await repo.upsert(podcast)
        assert (await repo.get(podcast.id)).title == "Test Podcast"

        await repo.remove(podcast.id)
        assert await repo.get(podcast.id) is None

    @pytest.mark.asyncio
    async def test_remove_unknown_is_noop(self):
        """Removing an unknown id does not raise."""
        await InMemoryPodcastRepository().remove("missing")

    @pytest.mark.asyncio
    async def test_ids_are_case_insensitive(self, podcast):
        """Lookups ignore case."""
        repo = InMemoryPodcastRepository()
        await repo.upsert(podcast)

        assert await repo.get(podcast.id.upper()) is not None

    @pytest.mark.asyncio
    async def test_copies_are_independent(self, podcast):
        """Stored state is isolated from callers."""
        repo = InMemoryPodcastRepository()
        await repo.upsert(podcast)
        podcast.episodes[0].mark_in_progress()

        fetched = await repo.get(podcast.id)
        assert fetched.episodes[0].download_status == DownloadStatus.NOT_STARTED

        fetched.title = "Changed"
        assert (await repo.get(podcast.id)).title == "Test Podcast"

    @pytest.mark.asyncio
    async def test_list_newest_first(self, podcast_factory):
        """list() orders by last_updated descending."""
        repo = InMemoryPodcastRepository()
        for n, month in enumerate([3, 1, 7]):
            await repo.upsert(
                podcast_factory(
                    feed_uri=f"https://a.com/{n}.xml",
                    title=f"Month {month}",
                    last_updated=datetime(2024, month, 1, tzinfo=timezone.utc),
                )
            )

        assert [p.title for p in await repo.list()] == ["Month 7", "Month 3", "Month 1"]
