"""Custom exceptions for podshelf."""


class PodshelfError(Exception):
    """Base exception for all podshelf errors."""

    pass


class ConfigError(PodshelfError):
    """Configuration-related errors."""

    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration data."""

    pass


class ValidationError(PodshelfError, ValueError):
    """Malformed identifiers, URIs or out-of-range parameters.

    Raised before any I/O takes place.
    """

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        super().__init__(message)
        self.suggestion = suggestion


class NotFoundError(PodshelfError):
    """A referenced resource does not exist."""

    pass


class PodcastNotFoundError(NotFoundError):
    """No podcast stored under the given id."""

    pass


class EpisodeNotFoundError(NotFoundError):
    """No episode with the given id in the podcast."""

    pass


class InvalidStateTransitionError(PodshelfError):
    """Download status change not permitted by the state machine."""

    pass


class FeedError(PodshelfError):
    """Feed retrieval errors."""

    pass


class FeedParseError(FeedError):
    """RSS feed parsing errors."""

    pass


class TransientIOError(PodshelfError):
    """Network or filesystem failure during a transfer."""

    pass


class NetworkError(TransientIOError):
    """Network-related errors."""

    pass


class NetworkConnectionError(NetworkError):
    """Connection failures."""

    pass


class NetworkTimeoutError(NetworkError):
    """Request timeout."""

    pass


class ServerError(NetworkError):
    """Server-side error (5xx)."""

    pass


class RateLimitError(NetworkError):
    """Remote host asked us to slow down (429)."""

    pass


class MediaDownloadError(TransientIOError):
    """Filesystem failure while writing downloaded media."""

    pass


class RequestRejectedError(PodshelfError):
    """Remote host rejected the request (4xx). Not retried."""

    pass


class AuthenticationError(RequestRejectedError):
    """Feed or media host requires credentials."""

    pass


class CorruptStateError(PodshelfError):
    """Persisted podcast state could not be decoded."""

    pass
