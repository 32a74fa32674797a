"""Utility functions and helpers for podshelf."""

from podshelf.utils.errors import (
    AuthenticationError,
    ConfigError,
    CorruptStateError,
    EpisodeNotFoundError,
    FeedError,
    FeedParseError,
    InvalidConfigError,
    InvalidStateTransitionError,
    MediaDownloadError,
    NetworkConnectionError,
    NetworkError,
    NetworkTimeoutError,
    NotFoundError,
    PodcastNotFoundError,
    PodshelfError,
    RateLimitError,
    RequestRejectedError,
    ServerError,
    TransientIOError,
    ValidationError,
)
from podshelf.utils.paths import (
    get_config_dir,
    get_config_file,
    get_default_storage_root,
)

__all__ = [
    # Errors
    "PodshelfError",
    "ConfigError",
    "InvalidConfigError",
    "ValidationError",
    "NotFoundError",
    "PodcastNotFoundError",
    "EpisodeNotFoundError",
    "InvalidStateTransitionError",
    "FeedError",
    "FeedParseError",
    "TransientIOError",
    "NetworkError",
    "NetworkConnectionError",
    "NetworkTimeoutError",
    "ServerError",
    "RateLimitError",
    "MediaDownloadError",
    "RequestRejectedError",
    "AuthenticationError",
    "CorruptStateError",
    # Paths
    "get_config_dir",
    "get_config_file",
    "get_default_storage_root",
]
