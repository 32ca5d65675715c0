"""Podcast feed handling.

Provides functionality for:
- URL safety checks and SSRF-safe fetching
- OPML import
- RSS feed parsing
- Catalog synchronization
"""

from .feed_parser import FeedParser, ParsedEpisode, ParsedPodcast
from .feed_sync import FeedSyncService
from .opml_parser import OPMLFeed, OPMLParseError, OPMLParser, parse_opml
from .safe_fetch import SafeFetcher, SafeFetchError, SafeFetchResult, safe_fetch
from .url_safety import is_private_address, is_safe_url

__all__ = [
    "FeedParser",
    "FeedSyncService",
    "OPMLFeed",
    "OPMLParseError",
    "OPMLParser",
    "ParsedEpisode",
    "ParsedPodcast",
    "SafeFetchError",
    "SafeFetchResult",
    "SafeFetcher",
    "is_private_address",
    "is_safe_url",
    "parse_opml",
    "safe_fetch",
]
