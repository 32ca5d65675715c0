"""RSS/Atom feed parser for podcast metadata.

Feeds are downloaded through :class:`SafeFetcher` (never by feedparser
itself, which would follow redirects unchecked) and the bytes are handed to
feedparser for parsing.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import List, Optional

import feedparser

from .safe_fetch import SafeFetcher

logger = logging.getLogger(__name__)


@dataclass
class ParsedEpisode:
    """Parsed episode data from RSS feed."""

    guid: str
    title: str
    audio_url: Optional[str] = None
    description: Optional[str] = None
    published_date: Optional[datetime] = None
    duration_seconds: Optional[int] = None


@dataclass
class ParsedPodcast:
    """Parsed podcast data from RSS feed."""

    feed_url: str
    title: str

    description: Optional[str] = None
    publisher: Optional[str] = None
    website_url: Optional[str] = None
    image_url: Optional[str] = None
    language: Optional[str] = None

    episodes: List[ParsedEpisode] = field(default_factory=list)


def parse_duration(value) -> Optional[int]:
    """Parse an iTunes duration into seconds.

    Handles various formats:
    - Seconds: "3600" or 3600
    - MM:SS: "60:00"
    - HH:MM:SS: "1:00:00"

    Returns None for missing or unparseable values.
    """
    if value is None or value == "":
        return None

    value_str = str(value).strip()

    try:
        return round(float(value_str))
    except (ValueError, OverflowError):
        pass

    parts = value_str.split(":")
    try:
        numbers = [int(part) for part in parts]
    except ValueError:
        return None

    if len(numbers) == 3:
        return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]
    if len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    return None


class FeedParser:
    """Parser for podcast RSS/Atom feeds.

    Example:
        parser = FeedParser()
        podcast = parser.parse_url("https://example.com/feed.xml")
        print(f"Podcast: {podcast.title}")
    """

    def __init__(self, fetcher: Optional[SafeFetcher] = None):
        """Initialize the feed parser.

        Args:
            fetcher: Fetcher used for all network access; a default SafeFetcher when omitted
        """
        self.fetcher = fetcher or SafeFetcher()

    def parse_url(self, feed_url: str) -> ParsedPodcast:
        """Fetch and parse a podcast feed.

        Args:
            feed_url: URL of the RSS/Atom feed

        Returns:
            ParsedPodcast with podcast and episode data

        Raises:
            SafeFetchError: If the feed cannot be fetched safely
            ValueError: If the response is not a feed
        """
        logger.info(f"Parsing feed: {feed_url}")
        result = self.fetcher.fetch(feed_url)
        if result.url != feed_url:
            logger.info(f"Feed {feed_url} redirected to {result.url}")
        return self.parse_string(result.content, feed_url)

    def parse_string(self, content, feed_url: str = "") -> ParsedPodcast:
        """Parse a podcast feed from string or bytes content.

        Args:
            content: RSS/Atom feed content
            feed_url: Original URL of the feed (for reference)

        Raises:
            ValueError: If the content has no feed-level data
        """
        feed = feedparser.parse(content)

        if feed.bozo and feed.get("bozo_exception"):
            logger.warning(f"Feed parsing warning for {feed_url}: {feed.bozo_exception}")

        if not feed.feed:
            raise ValueError(f"Failed to parse feed: {feed_url or 'content'}")

        return self._parse_feed(feed, feed_url)

    def _parse_feed(self, feed: feedparser.FeedParserDict, feed_url: str) -> ParsedPodcast:
        f = feed.feed

        podcast = ParsedPodcast(
            feed_url=feed_url,
            title=f.get("title") or "Unknown Podcast",
            description=self._clean_html(f.get("description") or f.get("subtitle")),
            publisher=f.get("itunes_author") or f.get("author"),
            website_url=f.get("link"),
            image_url=self._extract_image_url(f),
            language=f.get("language"),
        )

        for entry in feed.entries:
            podcast.episodes.append(self._parse_episode(entry))

        logger.info(f"Parsed podcast '{podcast.title}' with {len(podcast.episodes)} episodes")
        return podcast

    def _parse_episode(self, entry: feedparser.FeedParserDict) -> ParsedEpisode:
        audio_url = None
        for enclosure in entry.get("enclosures", []):
            audio_url = enclosure.get("href") or enclosure.get("url")
            if audio_url:
                break

        # GUID falls back through link and title
        guid = entry.get("id") or entry.get("link") or entry.get("title") or ""

        episode = ParsedEpisode(
            guid=guid,
            title=entry.get("title") or "Untitled Episode",
            audio_url=audio_url,
            description=self._clean_html(entry.get("summary") or entry.get("description")),
            duration_seconds=parse_duration(entry.get("itunes_duration")),
        )

        if entry.get("published_parsed"):
            try:
                episode.published_date = datetime(*entry.published_parsed[:6])
            except (TypeError, ValueError):
                pass
        elif entry.get("published"):
            try:
                episode.published_date = parsedate_to_datetime(entry.published)
            except (TypeError, ValueError):
                pass

        return episode

    def _extract_image_url(self, feed: feedparser.FeedParserDict) -> Optional[str]:
        """Extract podcast image URL from itunes:image or the image element."""
        if feed.get("itunes_image"):
            if isinstance(feed.itunes_image, dict):
                return feed.itunes_image.get("href")
            return feed.itunes_image

        if feed.get("image"):
            if isinstance(feed.image, dict):
                return feed.image.get("href") or feed.image.get("url")
            return feed.image

        return None

    def _clean_html(self, text: Optional[str]) -> Optional[str]:
        """Remove HTML tags and collapse whitespace."""
        if not text:
            return None

        clean = re.sub(r"<[^>]+>", "", text)
        clean = clean.replace("&amp;", "&")
        clean = clean.replace("&lt;", "<")
        clean = clean.replace("&gt;", ">")
        clean = clean.replace("&quot;", '"')
        clean = clean.replace("&#39;", "'")
        clean = clean.replace("&nbsp;", " ")
        clean = re.sub(r"\s+", " ", clean).strip()

        return clean if clean else None
