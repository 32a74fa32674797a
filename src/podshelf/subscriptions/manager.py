"""Subscription and download orchestration.

The manager composes a feed service, a repository and a transfer service.
It owns two policies:

- **Merge**: a refreshed feed never replaces stored episodes. Metadata is
  taken from the feed, download state is kept from storage.
- **Download state timing**: an episode is persisted as ``IN_PROGRESS``
  before its transfer starts and as ``COMPLETED`` or ``FAILED`` after it
  ends, so storage always reflects the last known outcome.
"""

import asyncio
import logging
import os
from urllib.parse import urlparse

from podshelf.feeds.models import DownloadStatus, Episode, Podcast
from podshelf.storage.base import PodcastRepository
from podshelf.subscriptions.protocols import FeedService, ProgressCallback, TransferService
from podshelf.utils.errors import EpisodeNotFoundError, PodcastNotFoundError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 20


def _require(value: str | None, name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{name} cannot be blank")
    return value.strip()


def _validate_feed_uri(feed_uri: str | None) -> str:
    uri = _require(feed_uri, "Feed URI")
    if not urlparse(uri).scheme:
        raise ValidationError(
            f"Feed URI must be absolute: {uri}",
            suggestion="Include the scheme, e.g. https://example.com/feed.xml",
        )
    return uri


def _report(progress: ProgressCallback | None, value: float) -> None:
    if progress is not None:
        progress(min(1.0, max(0.0, value)))


def _record_failure(episode: Episode) -> None:
    if episode.download_status == DownloadStatus.IN_PROGRESS:
        episode.mark_failed()
    else:
        # Completed in memory but the save was interrupted
        episode.restore_download_state(DownloadStatus.FAILED, None, None)


class PodcastManager:
    """Subscribe to podcasts, refresh them and download their episodes.

    Example:
        >>> manager = PodcastManager(RSSParser(), repository, MediaDownloader(layout))
        >>> podcast = await manager.subscribe("https://example.com/feed.xml")
        >>> await manager.download_episode(podcast.id, podcast.episodes[0].id)
    """

    def __init__(
        self,
        feed_service: FeedService,
        repository: PodcastRepository,
        transfer_service: TransferService,
    ) -> None:
        self.feed_service = feed_service
        self.repository = repository
        self.transfer_service = transfer_service

    async def list_podcasts(self) -> list[Podcast]:
        """All stored podcasts, most recently updated first."""
        return await self.repository.list()

    async def get_podcast(self, podcast_id: str) -> Podcast:
        """Load a stored podcast.

        Raises:
            ValidationError: If the id is blank
            PodcastNotFoundError: If no podcast has this id
        """
        podcast_id = _require(podcast_id, "Podcast id")
        podcast = await self.repository.get(podcast_id)
        if podcast is None:
            raise PodcastNotFoundError(f"No podcast found with id '{podcast_id}'")
        return podcast

    async def subscribe(self, feed_uri: str) -> Podcast:
        """Subscribe to a feed, or refresh it if already subscribed.

        Re-subscribing keeps every stored download.

        Args:
            feed_uri: Absolute feed URI

        Returns:
            The stored podcast

        Raises:
            ValidationError: If the URI is blank or not absolute
            FeedError: If the feed could not be parsed
            NetworkError: If the feed could not be fetched
        """
        feed_uri = _validate_feed_uri(feed_uri)
        logger.info("Subscribing to podcast feed %s", feed_uri)

        fresh = await self.feed_service.get_podcast(feed_uri)
        stored = await self.repository.get(fresh.id)
        podcast = self._reconcile(fresh, stored)

        await self._ensure_episode_artworks(podcast)
        await self.repository.upsert(podcast)

        logger.info("Subscribed to %r (%d episodes)", podcast.title, len(podcast.episodes))
        return podcast

    async def refresh(self, podcast_id: str) -> Podcast:
        """Re-fetch a stored podcast's feed and merge the result.

        Episodes that disappeared from the feed are kept, as is every
        episode's download state.

        Raises:
            PodcastNotFoundError: If no podcast has this id
            FeedError: If the feed could not be parsed
            NetworkError: If the feed could not be fetched
        """
        stored = await self.get_podcast(podcast_id)
        logger.info("Refreshing podcast %r", stored.title)

        fresh = await self.feed_service.get_podcast(stored.feed_uri)
        podcast = self._reconcile(fresh, stored)

        await self._ensure_episode_artworks(podcast)
        await self.repository.upsert(podcast)

        logger.info("Refreshed %r (%d episodes)", podcast.title, len(podcast.episodes))
        return podcast

    async def remove(self, podcast_id: str) -> None:
        """Forget a podcast. Unknown ids are ignored. Media files are kept."""
        podcast_id = _require(podcast_id, "Podcast id")
        logger.info("Removing podcast %s", podcast_id)
        await self.repository.remove(podcast_id)

    async def download_episode(
        self,
        podcast_id: str,
        episode_id: str,
        progress: ProgressCallback | None = None,
    ) -> Episode:
        """Download one episode and record the outcome.

        The episode is stored as ``IN_PROGRESS`` before the transfer starts.
        On success it is stored as ``COMPLETED`` with its file paths. On any
        failure, cancellation included, it is stored as ``FAILED`` and the
        original exception is re-raised.

        Args:
            podcast_id: Podcast id
            episode_id: Episode id within the podcast
            progress: Optional callback receiving fractions in [0, 1]

        Returns:
            Copy of the completed episode

        Raises:
            PodcastNotFoundError: If no podcast has this id
            EpisodeNotFoundError: If the podcast has no such episode
        """
        episode_id = _require(episode_id, "Episode id")
        podcast = await self.get_podcast(podcast_id)

        episode = podcast.get_episode(episode_id)
        if episode is None:
            raise EpisodeNotFoundError(
                f"No episode '{episode_id}' found for podcast '{podcast.title}'"
            )

        if episode.download_status == DownloadStatus.IN_PROGRESS:
            logger.warning(
                "Episode %r was left in progress by an earlier run; retrying", episode.title
            )
            episode.mark_failed()

        logger.info("Starting download of %r from %r", episode.title, podcast.title)
        episode.mark_in_progress()
        await self.repository.upsert(podcast)

        try:
            media = await self.transfer_service.download_episode(
                podcast, episode.clone(), progress
            )
            episode.mark_completed(media.local_file_path, media.artwork_file_path)
            await self._save_episode_state(podcast.id, episode)
        except asyncio.CancelledError:
            logger.warning("Download cancelled for episode %r", episode.title)
            _record_failure(episode)
            await self._save_episode_state(podcast.id, episode)
            raise
        except Exception as e:
            logger.error("Download failed for episode %r: %s", episode.title, e)
            _record_failure(episode)
            await self._save_episode_state(podcast.id, episode)
            raise

        logger.info("Downloaded %r to %s", episode.title, episode.local_file_path)
        return episode.clone()

    async def download_all_episodes(
        self,
        podcast_id: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress: ProgressCallback | None = None,
    ) -> int:
        """Download every episode not yet downloaded, one at a time.

        Works from a single snapshot of the podcast. ``chunk_size`` only
        groups the log output. After each episode (downloaded or skipped)
        ``progress`` receives ``done / total``; an empty podcast reports 1.0.

        Returns:
            Number of episodes actually downloaded

        Raises:
            ValidationError: If ``chunk_size`` is not positive
            PodcastNotFoundError: If no podcast has this id
        """
        if chunk_size <= 0:
            raise ValidationError(f"Chunk size must be greater than zero, got {chunk_size}")

        snapshot = await self.get_podcast(podcast_id)
        episodes = list(snapshot.episodes)
        total = len(episodes)

        if total == 0:
            _report(progress, 1.0)
            return 0

        done = 0
        downloaded = 0

        for start in range(0, total, chunk_size):
            chunk = episodes[start : start + chunk_size]
            logger.info(
                "Downloading episodes %d-%d of %d for podcast %r",
                start + 1,
                start + len(chunk),
                total,
                snapshot.title,
            )

            for episode in chunk:
                # Cancellation checkpoint between episodes
                await asyncio.sleep(0)

                if not episode.is_downloaded:
                    await self.download_episode(snapshot.id, episode.id)
                    downloaded += 1

                done += 1
                _report(progress, done / total)

        return downloaded

    async def recover_interrupted_downloads(self) -> int:
        """Mark episodes stuck in ``IN_PROGRESS`` as ``FAILED``.

        An episode stays ``IN_PROGRESS`` in storage when the process died
        mid-transfer.

        Returns:
            Number of episodes recovered
        """
        recovered = 0

        for podcast in await self.repository.list():
            stale = [e for e in podcast.episodes if e.download_status == DownloadStatus.IN_PROGRESS]
            if not stale:
                continue

            for episode in stale:
                episode.mark_failed()
            await self.repository.upsert(podcast)

            logger.warning(
                "Marked %d interrupted downloads as failed in %r", len(stale), podcast.title
            )
            recovered += len(stale)

        return recovered

    def _reconcile(self, fresh: Podcast, stored: Podcast | None) -> Podcast:
        """Fold a freshly fetched podcast into the stored one."""
        if stored is None:
            return fresh

        stored.update_metadata(
            fresh.title, fresh.description, fresh.artwork_uri, fresh.last_updated
        )
        stored.merge_episodes(fresh.episodes)
        return stored

    async def _save_episode_state(self, podcast_id: str, episode: Episode) -> None:
        """Write one episode's download state onto the latest stored podcast.

        Re-reading keeps changes made while the transfer ran (e.g. a refresh).
        A podcast removed in the meantime stays removed.
        """
        latest = await self.repository.get(podcast_id)
        if latest is None:
            logger.warning(
                "Podcast %s was removed during download; not saving episode %r",
                podcast_id,
                episode.title,
            )
            return

        stored_episode = latest.get_episode(episode.id)
        if stored_episode is None:
            latest.merge_episodes([episode])
        else:
            stored_episode.restore_download_state(
                episode.download_status, episode.local_file_path, episode.artwork_file_path
            )

        await self.repository.upsert(latest)

    async def _ensure_episode_artworks(self, podcast: Podcast) -> None:
        """Fetch missing episode artwork. Failures are logged, not raised."""
        for episode in podcast.episodes:
            if not episode.artwork_uri:
                continue

            if episode.artwork_file_path and await asyncio.to_thread(
                os.path.exists, episode.artwork_file_path
            ):
                continue

            try:
                path = await self.transfer_service.download_episode_artwork(podcast, episode)
            except asyncio.CancelledError:
                logger.warning("Artwork download cancelled for episode %r", episode.title)
                raise
            except Exception as e:
                logger.warning("Failed to download artwork for episode %r: %s", episode.title, e)
                continue

            episode.set_artwork_file_path(path)
