"""Domain models for podcasts, episodes and their download state."""

import hashlib
from collections.abc import Iterable
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from podshelf.utils.datetime import UNSET_DATETIME, ensure_utc, now_utc
from podshelf.utils.errors import InvalidStateTransitionError, ValidationError

UNSET_PUBLISHED_AT = UNSET_DATETIME


class DownloadStatus(str, Enum):
    """Download state of a single episode.

    Values are the names written to ``podcasts.json``.
    """

    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"


# Every member must appear as a key; checked in the test suite.
ALLOWED_TRANSITIONS: dict[DownloadStatus, frozenset[DownloadStatus]] = {
    DownloadStatus.NOT_STARTED: frozenset({DownloadStatus.IN_PROGRESS}),
    DownloadStatus.IN_PROGRESS: frozenset(
        {DownloadStatus.COMPLETED, DownloadStatus.FAILED}
    ),
    DownloadStatus.COMPLETED: frozenset({DownloadStatus.IN_PROGRESS}),
    DownloadStatus.FAILED: frozenset({DownloadStatus.IN_PROGRESS}),
}


def can_transition(current: DownloadStatus, target: DownloadStatus) -> bool:
    """Check whether the state machine allows ``current -> target``."""
    return target in ALLOWED_TRANSITIONS[current]


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def create_podcast_id(feed_uri: str) -> str:
    """Derive the stable podcast id from its feed URI.

    The URI is trimmed and lower-cased before hashing, so two URIs that
    differ only by casing or surrounding whitespace share an id.

    Args:
        feed_uri: Feed URI as given by the user or the feed

    Returns:
        SHA-256 hex digest of the normalized URI

    Raises:
        ValidationError: If the URI is blank
    """
    if _is_blank(feed_uri):
        raise ValidationError("Feed URI cannot be blank")
    return _sha256_hex(feed_uri.strip().lower())


def create_episode_id(unique_key: str) -> str:
    """Derive an episode id from the feed item's unique key.

    The key is the item's guid, or ``"{feed_uri}:{media_uri}"`` for items
    without one.
    """
    if _is_blank(unique_key):
        raise ValidationError("Episode key cannot be blank")
    return _sha256_hex(unique_key)


class Episode(BaseModel):
    """A single podcast episode and its local download state.

    Descriptive fields are plain attributes. Download state (status and the
    local file paths) only changes through the ``mark_*`` transition methods
    or ``restore_download_state``.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(frozen=True)
    media_uri: str = Field(frozen=True)
    title: str = ""
    summary: str | None = None
    duration: timedelta | None = None
    published_at: datetime = UNSET_PUBLISHED_AT
    episode_number: int | None = None
    artwork_uri: str | None = None

    _download_status: DownloadStatus = PrivateAttr(default=DownloadStatus.NOT_STARTED)
    _local_file_path: str | None = PrivateAttr(default=None)
    _artwork_file_path: str | None = PrivateAttr(default=None)

    @field_validator("id", "media_uri")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Ensure identity fields are not blank."""
        if not v.strip():
            raise ValueError("Value cannot be blank")
        return v.strip()

    @field_validator("published_at")
    @classmethod
    def validate_published_at(cls, v: datetime) -> datetime:
        """Store publish dates as aware UTC."""
        return ensure_utc(v)

    @property
    def download_status(self) -> DownloadStatus:
        return self._download_status

    @property
    def local_file_path(self) -> str | None:
        return self._local_file_path

    @property
    def artwork_file_path(self) -> str | None:
        return self._artwork_file_path

    @property
    def is_downloaded(self) -> bool:
        """True iff the download completed and a local file is recorded."""
        return (
            self._download_status == DownloadStatus.COMPLETED
            and not _is_blank(self._local_file_path)
        )

    def _transition(self, target: DownloadStatus) -> None:
        if not can_transition(self._download_status, target):
            raise InvalidStateTransitionError(
                f"Episode '{self.id}' cannot move from "
                f"{self._download_status.value} to {target.value}"
            )
        self._download_status = target

    def mark_in_progress(self) -> None:
        """Start (or retry) a download."""
        self._transition(DownloadStatus.IN_PROGRESS)

    def mark_failed(self) -> None:
        """Record that the in-flight download did not finish."""
        self._transition(DownloadStatus.FAILED)

    def mark_completed(self, local_file_path: str, artwork_file_path: str | None = None) -> None:
        """Record a finished download.

        Args:
            local_file_path: Where the media file was written
            artwork_file_path: Optional cached artwork path

        Raises:
            ValidationError: If ``local_file_path`` is blank
            InvalidStateTransitionError: If no download is in progress
        """
        if _is_blank(local_file_path):
            raise ValidationError("Local file path cannot be blank")

        self._transition(DownloadStatus.COMPLETED)
        self._local_file_path = local_file_path
        self.set_artwork_file_path(artwork_file_path)

    def set_artwork_file_path(self, artwork_file_path: str | None) -> None:
        """Record a cached artwork file. Blank values are ignored."""
        if not _is_blank(artwork_file_path):
            self._artwork_file_path = artwork_file_path

    def restore_download_state(
        self,
        status: DownloadStatus,
        local_file_path: str | None,
        artwork_file_path: str | None = None,
    ) -> None:
        """Overwrite download state with previously recorded values.

        Used when rehydrating persisted state or carrying state across a
        merge; this is not a state-machine transition.
        """
        self._download_status = DownloadStatus(status)
        self._local_file_path = local_file_path
        self.set_artwork_file_path(artwork_file_path)

    def update_metadata(
        self,
        summary: str | None,
        duration: timedelta | None,
        published_at: datetime,
        artwork_uri: str | None = None,
        episode_number: int | None = None,
    ) -> None:
        """Overwrite descriptive metadata.

        ``artwork_uri`` and ``episode_number`` keep their current values
        when the new value is None.
        """
        self.summary = summary
        self.duration = duration
        self.published_at = published_at
        if artwork_uri is not None:
            self.artwork_uri = artwork_uri
        if episode_number is not None:
            self.episode_number = episode_number

    def rename(self, title: str) -> None:
        if _is_blank(title):
            raise ValidationError("Title cannot be blank")
        self.title = title

    def merge_from(self, other: "Episode") -> None:
        """Take descriptive metadata from a newer copy of this episode.

        The current download state is kept unless ``other`` carries a
        populated local file path.

        Raises:
            ValidationError: If the ids differ
        """
        if other.id != self.id:
            raise ValidationError(
                f"Cannot merge episode '{other.id}' into episode '{self.id}'"
            )

        self.title = other.title
        self.update_metadata(
            other.summary,
            other.duration,
            other.published_at,
            other.artwork_uri,
            other.episode_number,
        )

        if not _is_blank(other.local_file_path):
            self.restore_download_state(
                other.download_status, other.local_file_path, other.artwork_file_path
            )
        else:
            self.set_artwork_file_path(other.artwork_file_path)

    def clone(self) -> "Episode":
        """Return an independent deep copy, download state included."""
        return self.model_copy(deep=True)


class Podcast(BaseModel):
    """A subscribed podcast and the episodes it owns.

    Episodes are kept unique by id and ordered newest first. The live list
    is private: ``episodes`` hands out a tuple snapshot, and changes go
    through ``merge_episodes`` or ``replace_episodes``.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(frozen=True)
    feed_uri: str = Field(frozen=True)
    title: str
    description: str | None = None
    artwork_uri: str | None = None
    last_updated: datetime = Field(default_factory=now_utc)

    _episodes: list[Episode] = PrivateAttr(default_factory=list)

    @field_validator("id", "feed_uri", "title")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Ensure identity and title are not blank."""
        if not v.strip():
            raise ValueError("Value cannot be blank")
        return v.strip()

    @field_validator("last_updated")
    @classmethod
    def validate_last_updated(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @staticmethod
    def create_id(feed_uri: str) -> str:
        return create_podcast_id(feed_uri)

    @classmethod
    def create(
        cls,
        feed_uri: str,
        title: str,
        description: str | None = None,
        artwork_uri: str | None = None,
        last_updated: datetime | None = None,
        episodes: Iterable[Episode] | None = None,
    ) -> "Podcast":
        """Build a podcast whose id is derived from ``feed_uri``."""
        podcast = cls(
            id=create_podcast_id(feed_uri),
            feed_uri=feed_uri.strip(),
            title=title,
            description=description,
            artwork_uri=artwork_uri,
            last_updated=last_updated or now_utc(),
        )
        if episodes is not None:
            podcast.merge_episodes(episodes)
        return podcast

    @property
    def episodes(self) -> tuple[Episode, ...]:
        return tuple(self._episodes)

    def get_episode(self, episode_id: str) -> Episode | None:
        for episode in self._episodes:
            if episode.id == episode_id:
                return episode
        return None

    def update_metadata(
        self,
        title: str,
        description: str | None,
        artwork_uri: str | None,
        last_updated: datetime,
    ) -> None:
        """Overwrite podcast metadata. A blank title keeps the current one."""
        if not _is_blank(title):
            self.title = title
        self.description = description
        self.artwork_uri = artwork_uri
        self.last_updated = last_updated

    def merge_episodes(self, incoming: Iterable[Episode]) -> None:
        """Merge a batch of episodes into this podcast.

        Unknown ids are appended (as copies); known ids take the incoming
        metadata through ``Episode.merge_from``. The list is re-sorted newest
        first once the whole batch is in. Merging the same batch twice gives
        the same result.
        """
        for episode in incoming:
            existing = self.get_episode(episode.id)
            if existing is None:
                self._episodes.append(episode.clone())
            else:
                existing.merge_from(episode)

        # list.sort is stable: equal publish dates keep insertion order
        self._episodes.sort(key=lambda e: e.published_at, reverse=True)

    def replace_episodes(self, episodes: Iterable[Episode]) -> None:
        """Replace all episodes. Later duplicates of an id win."""
        by_id: dict[str, Episode] = {}
        for episode in episodes:
            by_id[episode.id] = episode.clone()
        self._episodes = sorted(by_id.values(), key=lambda e: e.published_at, reverse=True)

    def clone(self) -> "Podcast":
        """Return an independent deep copy including every episode."""
        return self.model_copy(deep=True)
