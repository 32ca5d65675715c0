"""Feed synchronization service for the podcast catalog.

Adds podcasts from feed URLs and refreshes catalog metadata from their
feeds. Every catalog write is followed by a search index invalidation so
new or changed podcasts become searchable on the next query.
"""

import hashlib
import logging
from datetime import UTC, datetime
from typing import Any, Dict, Optional

from ..db.repository import PodcastRepositoryInterface
from ..search.podcast_search import invalidate_index
from .feed_parser import FeedParser

logger = logging.getLogger(__name__)

SYNTHETIC_ID_PREFIX = "rss-"


def generate_synthetic_id(feed_url: str) -> str:
    """Stable external ID for a podcast known only by its feed URL."""
    digest = hashlib.sha256(feed_url.encode("utf-8")).hexdigest()
    return f"{SYNTHETIC_ID_PREFIX}{digest[:16]}"


class FeedSyncService:
    """Service for synchronizing podcast feeds with the catalog.

    Example:
        sync_service = FeedSyncService(repository)
        result = sync_service.add_podcast_from_url("https://example.com/feed.xml")
        print(f"Added: {result['title']}")
    """

    def __init__(
        self,
        repository: PodcastRepositoryInterface,
        feed_parser: Optional[FeedParser] = None,
    ):
        """
        Create a FeedSyncService bound to a catalog repository.

        Parameters:
            repository (PodcastRepositoryInterface): Catalog store.
            feed_parser (Optional[FeedParser]): Parser used to fetch feeds; defaults to one
                backed by a SafeFetcher.
        """
        self.repository = repository
        self.feed_parser = feed_parser or FeedParser()

    def add_podcast_from_url(self, feed_url: str) -> Dict[str, Any]:
        """
        Add a podcast to the catalog by fetching and parsing its feed.

        Parameters:
            feed_url (str): URL of the podcast feed.

        Returns:
            dict: Result dictionary containing:
                - podcast_id: ID of the created or existing podcast, or `None` on failure.
                - external_id: External ID of the created or existing podcast, or `None`.
                - title: Podcast title, or `None` on failure.
                - episodes: Number of episodes found in the feed.
                - error: Error message if the operation failed, `None` otherwise.
        """
        result = {
            "podcast_id": None,
            "external_id": None,
            "title": None,
            "episodes": 0,
            "error": None,
        }

        existing = self.repository.get_podcast_by_feed_url(feed_url)
        if existing:
            result["error"] = f"Podcast already exists: {existing.title}"
            result["podcast_id"] = existing.id
            result["external_id"] = existing.external_id
            result["title"] = existing.title
            return result

        try:
            parsed = self.feed_parser.parse_url(feed_url)

            podcast = self.repository.create_podcast(
                external_id=generate_synthetic_id(feed_url),
                title=parsed.title,
                publisher=parsed.publisher,
                description=parsed.description,
                feed_url=feed_url,
                website_url=parsed.website_url,
                image_url=parsed.image_url,
                language=parsed.language,
                source="rss",
                last_polled_at=datetime.now(UTC),
            )
            invalidate_index()

            result["podcast_id"] = podcast.id
            result["external_id"] = podcast.external_id
            result["title"] = podcast.title
            result["episodes"] = len(parsed.episodes)

            logger.info(f"Added podcast '{podcast.title}' from {feed_url}")

        except Exception as e:
            logger.error(f"Failed to add podcast from {feed_url}: {e}")
            result["error"] = str(e)

        return result

    def refresh_podcast(self, podcast_id: int) -> Dict[str, Any]:
        """
        Re-fetch a podcast's feed and update its catalog metadata.

        Returns:
            dict: ``podcast_id``, ``updated`` (bool) and ``error`` (str or None).
        """
        result = {
            "podcast_id": podcast_id,
            "updated": False,
            "error": None,
        }

        podcast = self.repository.get_podcast(podcast_id)
        if not podcast:
            result["error"] = f"Podcast not found: {podcast_id}"
            return result

        if not podcast.feed_url:
            result["error"] = f"Podcast has no feed URL: {podcast.title}"
            return result

        logger.info(f"Refreshing podcast: {podcast.title}")

        try:
            parsed = self.feed_parser.parse_url(podcast.feed_url)

            self.repository.update_podcast(
                podcast_id,
                title=parsed.title or podcast.title,
                publisher=parsed.publisher or podcast.publisher,
                description=parsed.description or podcast.description,
                image_url=parsed.image_url or podcast.image_url,
                last_polled_at=datetime.now(UTC),
            )
            invalidate_index()
            result["updated"] = True

        except Exception as e:
            logger.error(f"Failed to refresh podcast {podcast.title}: {e}")
            result["error"] = str(e)

        return result

    def refresh_all_podcasts(self, subscribed_only: bool = True) -> Dict[str, Any]:
        """
        Refresh every podcast in the catalog.

        Returns:
            dict: ``refreshed`` and ``failed`` counts plus per-podcast ``results``.
        """
        podcasts = self.repository.list_podcasts(subscribed_only=subscribed_only)

        overall = {"refreshed": 0, "failed": 0, "results": []}
        for podcast in podcasts:
            result = self.refresh_podcast(podcast.id)
            overall["results"].append(result)
            if result["error"]:
                overall["failed"] += 1
            else:
                overall["refreshed"] += 1

        logger.info(
            f"Refresh complete: {overall['refreshed']} refreshed, {overall['failed']} failed"
        )
        return overall
