"""Podcast domain model and RSS parsing for podshelf."""

from podshelf.feeds.models import (
    DownloadStatus,
    Episode,
    Podcast,
    create_episode_id,
    create_podcast_id,
)
from podshelf.feeds.parser import RSSParser

__all__ = [
    "DownloadStatus",
    "Episode",
    "Podcast",
    "RSSParser",
    "create_episode_id",
    "create_podcast_id",
]
