"""RSS feed parser using feedparser."""

import asyncio
import calendar
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import unquote, urlparse

import feedparser
import httpx

from podshelf.feeds.models import Episode, Podcast, create_episode_id
from podshelf.utils.datetime import now_utc
from podshelf.utils.errors import FeedParseError
from podshelf.utils.http import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT, open_client
from podshelf.utils.retry import RetryConfig, classify_httpx_error, with_network_retry

logger = logging.getLogger(__name__)


def parse_duration(value: str | int | float | None) -> timedelta | None:
    """Parse an ``itunes:duration`` value.

    Accepts ``hh:mm:ss``, ``mm:ss`` and plain seconds. Anything else
    returns None.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return timedelta(seconds=value) if value >= 0 else None

    text = value.strip()
    if not text:
        return None

    parts = text.split(":")
    try:
        if len(parts) == 3:
            hours, minutes, seconds = (int(p) for p in parts)
            return timedelta(hours=hours, minutes=minutes, seconds=seconds)
        if len(parts) == 2:
            minutes, seconds = (int(p) for p in parts)
            return timedelta(minutes=minutes, seconds=seconds)
        if len(parts) == 1:
            seconds = float(text)
            return timedelta(seconds=seconds) if seconds >= 0 else None
    except (ValueError, OverflowError):
        return None

    return None


def parse_episode_number(value: Any) -> int | None:
    """Parse ``itunes:episode``; non-numeric values give None."""
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _to_datetime(parsed: time.struct_time | None) -> datetime | None:
    """Convert feedparser's UTC struct_time to an aware datetime."""
    if parsed is None:
        return None
    try:
        return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        return None


def _text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _image_link(links: list[dict[str, Any]]) -> str | None:
    for link in links:
        if link.get("rel") == "image" and link.get("href"):
            return link["href"]
    for link in links:
        if str(link.get("type", "")).lower().startswith("image") and link.get("href"):
            return link["href"]
    return None


def _podcast_artwork(feed: dict[str, Any]) -> str | None:
    image = feed.get("image") or {}
    return _text(image.get("href")) or _image_link(feed.get("links", []))


def _episode_artwork(entry: dict[str, Any]) -> str | None:
    image = entry.get("image") or {}
    if _text(image.get("href")):
        return image["href"].strip()

    for thumbnail in entry.get("media_thumbnail", []):
        if _text(thumbnail.get("url")):
            return thumbnail["url"].strip()

    return _image_link(entry.get("links", []))


def _media_uri(entry: dict[str, Any]) -> str | None:
    """Enclosure URL, falling back to the first link of any kind."""
    for enclosure in entry.get("enclosures", []):
        if _text(enclosure.get("href")):
            return enclosure["href"].strip()

    for link in entry.get("links", []):
        if _text(link.get("href")):
            return link["href"].strip()

    return _text(entry.get("link"))


def _title_from_uri(uri: str) -> str:
    path = unquote(urlparse(uri).path)
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    return segment or path or uri


def map_episode(entry: dict[str, Any], feed_uri: str) -> Episode | None:
    """Map a feedparser entry to an episode.

    Returns None for entries with nothing downloadable.
    """
    media_uri = _media_uri(entry)
    if media_uri is None:
        return None

    guid = _text(entry.get("id"))
    episode_id = create_episode_id(guid or f"{feed_uri}:{media_uri}")

    published = _to_datetime(entry.get("published_parsed")) or _to_datetime(
        entry.get("updated_parsed")
    )

    return Episode(
        id=episode_id,
        media_uri=media_uri,
        title=_text(entry.get("title")) or _title_from_uri(media_uri),
        summary=_text(entry.get("summary")),
        duration=parse_duration(entry.get("itunes_duration")),
        published_at=published or now_utc(),
        episode_number=parse_episode_number(entry.get("itunes_episode")),
        artwork_uri=_episode_artwork(entry),
    )


def build_podcast(parsed: feedparser.FeedParserDict, feed_uri: str) -> Podcast:
    """Map a parsed feed document to a podcast with its episodes.

    Raises:
        FeedParseError: If the document is not a feed at all
    """
    feed = parsed.get("feed", {})
    entries = parsed.get("entries", [])

    if parsed.get("bozo") and not entries and not feed.get("title"):
        raise FeedParseError(
            f"Unable to parse feed from {feed_uri}: {parsed.get('bozo_exception')}"
        )

    title = _text(feed.get("title")) or urlparse(feed_uri).hostname or feed_uri

    episodes = []
    for entry in entries:
        episode = map_episode(entry, feed_uri)
        if episode is None:
            logger.debug("Skipping feed item without media: %r", entry.get("title"))
            continue
        episodes.append(episode)

    return Podcast.create(
        feed_uri=feed_uri,
        title=title,
        description=_text(feed.get("subtitle")) or _text(feed.get("summary")),
        artwork_uri=_podcast_artwork(feed),
        last_updated=_to_datetime(feed.get("updated_parsed")) or now_utc(),
        episodes=episodes,
    )


class RSSParser:
    """Fetches RSS feeds and maps them to podcasts.

    Implements the manager's ``FeedService`` contract.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        retry_config: RetryConfig | None = None,
    ) -> None:
        """Initialize the RSS parser.

        Args:
            timeout: HTTP request timeout in seconds.
            client: Optional shared client, owned by the caller.
            user_agent: User-Agent header for created clients.
            retry_config: Retry policy for feed requests.
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.retry_config = retry_config
        self._client = client

    async def get_podcast(self, feed_uri: str) -> Podcast:
        """Fetch and parse a feed.

        Raises:
            NetworkError: If the feed could not be fetched
            RequestRejectedError: If the server refused the request
            FeedParseError: If the response is not a feed
        """
        logger.info("Fetching podcast feed %s", feed_uri)
        fetch = with_network_retry(self.retry_config)(self._fetch)
        content = await fetch(feed_uri)
        podcast = await self.parse_feed(content, feed_uri)
        logger.info("Parsed %d episodes from %s", len(podcast.episodes), feed_uri)
        return podcast

    async def parse_feed(self, content: bytes, feed_uri: str) -> Podcast:
        """Parse feed bytes off the event loop."""
        parsed = await asyncio.to_thread(feedparser.parse, content)
        return build_podcast(parsed, feed_uri)

    async def _fetch(self, url: str) -> bytes:
        try:
            async with open_client(self._client, self.timeout, self.user_agent) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.content
        except httpx.HTTPError as e:
            raise classify_httpx_error(e, url) from e
