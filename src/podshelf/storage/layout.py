"""On-disk layout of podcast media under the storage root.

    <root>/<podcast title>/EP001-<episode title>/<media file>
    <root>/<podcast title>/Art/EP001-<episode title>.jpg

Resolving a path never touches the filesystem; call ``ensure_directory``
before writing.
"""

import asyncio
import re
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

from podshelf.feeds.models import UNSET_PUBLISHED_AT, Episode, Podcast
from podshelf.storage.root import StorageRootProvider

ARTWORK_DIR_NAME = "Art"
DEFAULT_MEDIA_SUFFIX = ".mp3"
DEFAULT_ARTWORK_SUFFIX = ".jpg"

# Characters rejected in file names on at least one major platform
_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_path_segment(value: str | None) -> str:
    """Make ``value`` safe to use as a single file or directory name.

    Unsafe characters become ``-``. Blank input gives ``"unknown"``.
    """
    if value is None or not value.strip():
        return "unknown"
    cleaned = _UNSAFE_CHARS.sub("-", value).strip()
    # Trailing dots and spaces are stripped by Windows
    cleaned = cleaned.rstrip(". ")
    return cleaned or "unknown"


def _uri_path(uri: str | None) -> PurePosixPath:
    if not uri:
        return PurePosixPath("")
    return PurePosixPath(unquote(urlparse(uri).path))


class StorageLayout:
    """Resolves where podcasts, episodes and artwork live on disk."""

    def __init__(self, root_provider: StorageRootProvider) -> None:
        self.root_provider = root_provider

    @property
    def root(self) -> Path:
        return Path(self.root_provider.get_root_path())

    def podcast_dir(self, podcast: Podcast) -> Path:
        """``<root>/<title>``, falling back to the podcast id."""
        name = podcast.title if podcast.title.strip() else podcast.id
        return self.root / sanitize_path_segment(name)

    def episode_dir_name(self, episode: Episode) -> str:
        """Folder name for an episode.

        Prefers the episode number, then the publish timestamp, then the id.
        """
        title = sanitize_path_segment(episode.title)

        if episode.episode_number is not None:
            return f"EP{episode.episode_number:03d}-{title}"

        if episode.published_at != UNSET_PUBLISHED_AT:
            return f"{episode.published_at:%Y%m%d%H%M%S}-{title}"

        return f"{episode.id}-{title}"

    def episode_dir(self, podcast: Podcast, episode: Episode) -> Path:
        return self.podcast_dir(podcast) / self.episode_dir_name(episode)

    def episode_file(self, podcast: Podcast, episode: Episode) -> Path:
        """Media file path, named after the last segment of the media URI."""
        media_path = _uri_path(episode.media_uri)
        suffix = media_path.suffix or DEFAULT_MEDIA_SUFFIX
        stem = media_path.stem if media_path.stem.strip() else episode.id

        return self.episode_dir(podcast, episode) / f"{sanitize_path_segment(stem)}{suffix}"

    def artwork_file(self, podcast: Podcast, episode: Episode) -> Path:
        """Cached artwork path under the podcast's ``Art`` folder."""
        suffix = _uri_path(episode.artwork_uri).suffix or DEFAULT_ARTWORK_SUFFIX
        number = episode.episode_number if episode.episode_number is not None else 0
        name = f"EP{number:03d}-{sanitize_path_segment(episode.title)}{suffix}"

        return self.podcast_dir(podcast) / ARTWORK_DIR_NAME / name

    async def ensure_directory(self, path: Path) -> Path:
        """Create ``path`` (and parents) if missing."""
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        return path
