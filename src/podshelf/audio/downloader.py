"""Episode media and artwork downloader using httpx."""

import asyncio
import logging
from pathlib import Path

import aiofiles
import httpx

from podshelf.feeds.models import Episode, Podcast
from podshelf.storage.layout import StorageLayout
from podshelf.subscriptions.protocols import DownloadedMedia, ProgressCallback
from podshelf.utils.errors import MediaDownloadError, PodshelfError
from podshelf.utils.http import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT, open_client
from podshelf.utils.retry import RetryConfig, classify_httpx_error, with_network_retry

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".part"


def _report(progress: ProgressCallback | None, value: float) -> None:
    if progress is not None:
        progress(min(1.0, max(0.0, value)))


def _content_length(response: httpx.Response) -> int:
    """Declared body size, or 0 when missing or malformed."""
    try:
        return max(0, int(response.headers.get("Content-Length") or 0))
    except ValueError:
        return 0


class MediaDownloader:
    """Download episode media into the storage layout.

    Media is streamed to a ``.part`` file next to the target and renamed
    once complete, so a file at the target path is always whole. A target
    that already exists is treated as downloaded.

    Network failures are classified (see ``classify_httpx_error``) and the
    whole transfer is retried for the retryable ones. Artwork is
    best-effort: failures are logged and yield None.

    Example:
        >>> downloader = MediaDownloader(StorageLayout(root_provider))
        >>> media = await downloader.download_episode(podcast, episode)
        >>> media.local_file_path
        '/home/me/Music/podshelf/My Show/EP001-Pilot/pilot.mp3'
    """

    STREAM_CHUNK_BYTES = 64 * 1024

    def __init__(
        self,
        layout: StorageLayout,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        retry_config: RetryConfig | None = None,
    ):
        """Initialize the downloader.

        Args:
            layout: Resolves target paths
            client: Shared client (owned by the caller). When None, a client
                is created per transfer.
            timeout_seconds: Per-request timeout for created clients
            user_agent: User-Agent header for created clients
            retry_config: Retry policy for media transfers
        """
        self.layout = layout
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.retry_config = retry_config
        self._client = client

    async def download_episode(
        self,
        podcast: Podcast,
        episode: Episode,
        progress: ProgressCallback | None = None,
    ) -> DownloadedMedia:
        """Download an episode's media file (and its artwork).

        Args:
            podcast: Owning podcast, used for the target folder
            episode: Episode to fetch; not modified
            progress: Optional callback receiving fractions in [0, 1]

        Returns:
            Paths of the media file and cached artwork

        Raises:
            NetworkError: If the media could not be fetched
            RequestRejectedError: If the server refused the request
            MediaDownloadError: If the file could not be written
        """
        target = self.layout.episode_file(podcast, episode)
        artwork_path = await self.download_episode_artwork(podcast, episode)
        artwork_path = artwork_path or episode.artwork_file_path

        if await asyncio.to_thread(target.exists):
            logger.info("Episode %r already downloaded to %s", episode.title, target)
            _report(progress, 1.0)
            return DownloadedMedia(local_file_path=str(target), artwork_file_path=artwork_path)

        try:
            await self.layout.ensure_directory(target.parent)
        except OSError as e:
            raise MediaDownloadError(f"Could not create {target.parent}: {e}") from e

        fetch = with_network_retry(self.retry_config)(self._stream_to_file)
        await fetch(episode.media_uri, target, progress)

        logger.info("Episode %r downloaded to %s", episode.title, target)
        return DownloadedMedia(local_file_path=str(target), artwork_file_path=artwork_path)

    async def download_episode_artwork(self, podcast: Podcast, episode: Episode) -> str | None:
        """Cache the episode's artwork image.

        Returns:
            Path of the cached image (existing files are reused), the
            episode's current artwork path when it has no artwork URI, or
            None if the download failed
        """
        if not episode.artwork_uri:
            return episode.artwork_file_path

        target = self.layout.artwork_file(podcast, episode)
        if await asyncio.to_thread(target.exists):
            return str(target)

        try:
            await self.layout.ensure_directory(target.parent)
            await self._stream_to_file(episode.artwork_uri, target)
        except (PodshelfError, OSError) as e:
            logger.warning("Failed to download artwork for episode %r: %s", episode.title, e)
            return None

        return str(target)

    async def _stream_to_file(
        self,
        url: str,
        target: Path,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Stream ``url`` into ``target`` through a partial file.

        The partial file is removed if anything goes wrong, cancellation
        included.
        """
        partial = target.with_name(target.name + PARTIAL_SUFFIX)
        reported = 0.0

        try:
            async with open_client(self._client, self.timeout_seconds, self.user_agent) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    total = _content_length(response)
                    received = 0

                    async with aiofiles.open(partial, "wb") as f:
                        async for chunk in response.aiter_bytes(self.STREAM_CHUNK_BYTES):
                            await f.write(chunk)
                            received += len(chunk)
                            if total > 0:
                                reported = min(1.0, received / total)
                                _report(progress, reported)

            await asyncio.to_thread(partial.replace, target)

        except httpx.HTTPError as e:
            partial.unlink(missing_ok=True)
            raise classify_httpx_error(e, url) from e
        except OSError as e:
            partial.unlink(missing_ok=True)
            raise MediaDownloadError(f"Could not write {target}: {e}") from e
        except asyncio.CancelledError:
            partial.unlink(missing_ok=True)
            logger.warning("Download of %s cancelled", url)
            raise

        if reported < 1.0:
            _report(progress, 1.0)
