"""Subscription management and download orchestration."""

from podshelf.subscriptions.manager import PodcastManager
from podshelf.subscriptions.protocols import (
    DownloadedMedia,
    FeedService,
    ProgressCallback,
    TransferService,
)

__all__ = [
    "PodcastManager",
    "DownloadedMedia",
    "FeedService",
    "ProgressCallback",
    "TransferService",
]
