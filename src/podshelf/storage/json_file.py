"""JSON file podcast repository.

All podcasts live in a single ``podcasts.json`` at the storage root::

    {"Podcasts": [{"Id": "...", "FeedUri": "...", "Episodes": [...]}]}

Local file paths under the root are stored root-relative, so the root
directory can be moved or synced between machines without losing track
of downloaded media.
"""

import asyncio
import json
import logging
import os
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import aiofiles
import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_pascal

from podshelf.feeds.models import UNSET_PUBLISHED_AT, DownloadStatus, Episode, Podcast
from podshelf.storage.base import PodcastRepository, repository_key
from podshelf.storage.paths import normalize_root, to_absolute_path, to_relative_path
from podshelf.storage.root import StorageRootProvider
from podshelf.utils.datetime import now_utc
from podshelf.utils.errors import CorruptStateError, InvalidConfigError

logger = logging.getLogger(__name__)

METADATA_FILE_NAME = "podcasts.json"

# [-][d.]hh:mm:ss[.fffffff], fraction in 100ns ticks
_TIMESPAN_RE = re.compile(
    r"^(?P<sign>-)?(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{1,2})"
    r"(?::(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,7}))?)?$"
)
_STATUS_BY_NUMBER = dict(enumerate(DownloadStatus))


def format_timespan(value: timedelta) -> str:
    """Format a duration as ``[d.]hh:mm:ss[.fffffff]``."""
    total_us = (value.days * 86_400 + value.seconds) * 1_000_000 + value.microseconds
    sign = "-" if total_us < 0 else ""
    seconds, micros = divmod(abs(total_us), 1_000_000)
    minutes, secs = divmod(seconds, 60)
    hours, mins = divmod(minutes, 60)
    days, hrs = divmod(hours, 24)

    text = f"{hrs:02d}:{mins:02d}:{secs:02d}"
    if days:
        text = f"{days}.{text}"
    if micros:
        text = f"{text}.{micros * 10:07d}"
    return sign + text


def parse_timespan(value: str) -> timedelta | None:
    """Parse ``[d.]hh:mm[:ss[.fffffff]]``. Returns None if the text doesn't match."""
    match = _TIMESPAN_RE.match(value.strip())
    if match is None:
        return None

    ticks = int((match["fraction"] or "0").ljust(7, "0"))
    result = timedelta(
        days=int(match["days"] or 0),
        hours=int(match["hours"]),
        minutes=int(match["minutes"]),
        seconds=int(match["seconds"] or 0),
        microseconds=ticks // 10,
    )
    return -result if match["sign"] else result


class _PersistedModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        extra="ignore",
    )


class PersistedEpisode(_PersistedModel):
    """Episode as written to ``podcasts.json``. Every field may be absent."""

    id: str | None = None
    title: str | None = None
    summary: str | None = None
    artwork_uri: str | None = None
    media_uri: str | None = None
    duration: timedelta | None = None
    published_at: datetime | None = None
    download_status: DownloadStatus | None = None
    local_file_path: str | None = None
    episode_number: int | None = None
    artwork_file_path: str | None = None

    @field_validator("duration", mode="before")
    @classmethod
    def parse_duration(cls, v: Any) -> Any:
        """Accept timespan text, ISO-8601 durations and plain seconds."""
        if isinstance(v, str):
            parsed = parse_timespan(v)
            if parsed is not None:
                return parsed
            try:
                v = float(v)
            except ValueError:
                # ISO-8601 is handled by pydantic's own timedelta parsing
                return v
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            try:
                return timedelta(seconds=v)
            except (ValueError, OverflowError) as e:
                raise ValueError(f"Invalid duration: {v}") from e
        return v

    @field_validator("download_status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> Any:
        """Accept the numeric form (0-3) as well as the name."""
        if isinstance(v, str) and v.strip().isdigit():
            v = int(v)
        if isinstance(v, int) and not isinstance(v, bool):
            if v not in _STATUS_BY_NUMBER:
                raise ValueError(f"Unknown download status: {v}")
            return _STATUS_BY_NUMBER[v]
        return v

    @field_serializer("duration")
    def serialize_duration(self, v: timedelta | None) -> str | None:
        return format_timespan(v) if v is not None else None


class PersistedPodcast(_PersistedModel):
    """Podcast as written to ``podcasts.json``."""

    id: str | None = None
    feed_uri: str | None = None
    title: str | None = None
    description: str | None = None
    artwork_uri: str | None = None
    last_updated: datetime | None = None
    episodes: list[PersistedEpisode] = Field(default_factory=list)

    @field_validator("episodes", mode="before")
    @classmethod
    def null_episodes(cls, v: Any) -> Any:
        return [] if v is None else v


class PersistedState(_PersistedModel):
    """Root object of ``podcasts.json``."""

    podcasts: list[PersistedPodcast] = Field(default_factory=list)

    @field_validator("podcasts", mode="before")
    @classmethod
    def null_podcasts(cls, v: Any) -> Any:
        return [] if v is None else v


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def decode_state(raw: bytes) -> PersistedState:
    """Decode the bytes of ``podcasts.json``.

    Raises:
        CorruptStateError: If the content is not valid UTF-8 JSON of the
            expected shape
    """
    try:
        return PersistedState.model_validate(json.loads(raw.decode("utf-8-sig")))
    except (UnicodeDecodeError, json.JSONDecodeError, pydantic.ValidationError) as e:
        raise CorruptStateError(f"Unreadable podcast metadata: {e}") from e


def _episode_from_persisted(entry: PersistedEpisode, root: str) -> Episode:
    episode = Episode(
        id=entry.id,
        media_uri=entry.media_uri,
        title=entry.title or "",
        summary=entry.summary,
        duration=entry.duration,
        published_at=entry.published_at or UNSET_PUBLISHED_AT,
        episode_number=entry.episode_number,
        artwork_uri=entry.artwork_uri,
    )
    episode.restore_download_state(
        entry.download_status or DownloadStatus.NOT_STARTED,
        to_absolute_path(root, entry.local_file_path),
        to_absolute_path(root, entry.artwork_file_path),
    )
    return episode


def podcast_from_persisted(entry: PersistedPodcast, root: str) -> Podcast | None:
    """Rebuild a domain podcast, resolving stored paths against ``root``.

    Returns None (after logging a warning) when the entry lacks an id or
    feed URI. Episodes lacking an id or media URI are dropped the same way.
    """
    if _is_blank(entry.id) or _is_blank(entry.feed_uri):
        logger.warning("Skipping persisted podcast without Id or FeedUri: %r", entry.title)
        return None

    podcast = Podcast(
        id=entry.id,
        feed_uri=entry.feed_uri,
        title=entry.title if not _is_blank(entry.title) else entry.feed_uri,
        description=entry.description,
        artwork_uri=entry.artwork_uri,
        last_updated=entry.last_updated or now_utc(),
    )

    episodes = []
    for episode_entry in entry.episodes:
        if _is_blank(episode_entry.id) or _is_blank(episode_entry.media_uri):
            logger.warning(
                "Skipping persisted episode without Id or MediaUri in podcast %s",
                podcast.id,
            )
            continue
        episodes.append(_episode_from_persisted(episode_entry, root))

    podcast.replace_episodes(episodes)
    return podcast


def podcast_to_persisted(podcast: Podcast, root: str) -> PersistedPodcast:
    """Convert a podcast for writing, making paths under ``root`` relative."""
    return PersistedPodcast(
        id=podcast.id,
        feed_uri=podcast.feed_uri,
        title=podcast.title,
        description=podcast.description,
        artwork_uri=podcast.artwork_uri,
        last_updated=podcast.last_updated,
        episodes=[
            PersistedEpisode(
                id=episode.id,
                title=episode.title,
                summary=episode.summary,
                artwork_uri=episode.artwork_uri,
                media_uri=episode.media_uri,
                duration=episode.duration,
                published_at=(
                    None if episode.published_at == UNSET_PUBLISHED_AT else episode.published_at
                ),
                download_status=episode.download_status,
                local_file_path=to_relative_path(root, episode.local_file_path),
                episode_number=episode.episode_number,
                artwork_file_path=to_relative_path(root, episode.artwork_file_path),
            )
            for episode in podcast.episodes
        ],
    )


class JsonFilePodcastRepository(PodcastRepository):
    """Repository persisted to ``<storage root>/podcasts.json``.

    State is loaded lazily on first access and reloaded whenever the
    storage root changes. Every operation, reads included, runs under one
    ``asyncio.Lock``, so a read never observes a half-applied write. A
    corrupt file is logged and treated as empty; the next write replaces it.

    Example:
        >>> repo = JsonFilePodcastRepository(StaticStorageRootProvider("/srv/podcasts"))
        >>> await repo.upsert(podcast)
        >>> stored = await repo.get(podcast.id)
    """

    def __init__(self, root_provider: StorageRootProvider) -> None:
        """Initialize the repository.

        Args:
            root_provider: Supplies the current storage root
        """
        self.root_provider = root_provider
        self._lock = asyncio.Lock()
        self._root: str | None = None
        self._podcasts: dict[str, Podcast] = {}

    async def list(self) -> list[Podcast]:
        async with self._lock:
            await self._ensure_loaded()
            podcasts = [p.clone() for p in self._podcasts.values()]
        podcasts.sort(key=lambda p: p.last_updated, reverse=True)
        return podcasts

    async def get(self, podcast_id: str) -> Podcast | None:
        async with self._lock:
            await self._ensure_loaded()
            podcast = self._podcasts.get(repository_key(podcast_id))
            return podcast.clone() if podcast is not None else None

    async def upsert(self, podcast: Podcast) -> None:
        async with self._lock:
            root = await self._ensure_loaded()
            updated = dict(self._podcasts)
            updated[repository_key(podcast.id)] = podcast.clone()
            await self._write(root, updated)

    async def remove(self, podcast_id: str) -> None:
        async with self._lock:
            root = await self._ensure_loaded()
            key = repository_key(podcast_id)
            if key not in self._podcasts:
                return
            updated = dict(self._podcasts)
            del updated[key]
            await self._write(root, updated)

    def metadata_path(self, root: str) -> Path:
        return Path(root) / METADATA_FILE_NAME

    async def _ensure_loaded(self) -> str:
        """Load state for the current root if not already loaded.

        Returns:
            The normalized root the in-memory state belongs to

        Raises:
            InvalidConfigError: If the provider returns no root
        """
        raw_root = self.root_provider.get_root_path()
        if raw_root is None or not str(raw_root).strip():
            raise InvalidConfigError("Storage root path is not configured")

        root = normalize_root(raw_root)
        if self._root is not None and os.path.normcase(self._root) == os.path.normcase(root):
            return self._root

        if self._root is not None:
            logger.info("Storage root changed from %s to %s, reloading", self._root, root)

        self._podcasts = await self._read(root)
        self._root = root
        return root

    async def _read(self, root: str) -> dict[str, Podcast]:
        await asyncio.to_thread(Path(root).mkdir, parents=True, exist_ok=True)
        path = self.metadata_path(root)

        if not path.exists():
            return {}

        async with aiofiles.open(path, "rb") as f:
            raw = await f.read()

        try:
            state = decode_state(raw)
        except CorruptStateError as e:
            logger.error("Ignoring podcast metadata at %s: %s", path, e)
            return {}

        podcasts: dict[str, Podcast] = {}
        for entry in state.podcasts:
            try:
                podcast = podcast_from_persisted(entry, root)
            except (ValueError, OverflowError) as e:
                logger.error("Skipping unreadable podcast %r in %s: %s", entry.id, path, e)
                continue
            if podcast is not None:
                podcasts[repository_key(podcast.id)] = podcast

        logger.debug("Loaded %d podcasts from %s", len(podcasts), path)
        return podcasts

    async def _write(self, root: str, podcasts: dict[str, Podcast]) -> None:
        """Atomically replace the metadata file, then adopt ``podcasts`` in memory.

        In-memory state changes only once the file has been replaced, so it
        always matches what is on disk.
        """
        state = PersistedState(
            podcasts=[podcast_to_persisted(p, root) for p in podcasts.values()]
        )
        content = state.model_dump_json(by_alias=True, exclude_none=True, indent=2)

        path = self.metadata_path(root)
        temp_file = path.with_suffix(".tmp")

        try:
            async with aiofiles.open(temp_file, "w", encoding="utf-8") as f:
                await f.write(content)
        except (OSError, asyncio.CancelledError):
            await asyncio.to_thread(temp_file.unlink, missing_ok=True)
            raise

        rename = asyncio.ensure_future(asyncio.to_thread(temp_file.replace, path))
        try:
            await asyncio.shield(rename)
        except asyncio.CancelledError:
            # The rename thread cannot be interrupted; record its outcome
            await asyncio.wait([rename])
            if rename.exception() is None:
                self._podcasts = podcasts
            else:
                await asyncio.to_thread(temp_file.unlink, missing_ok=True)
            raise
        except OSError:
            await asyncio.to_thread(temp_file.unlink, missing_ok=True)
            raise

        self._podcasts = podcasts
