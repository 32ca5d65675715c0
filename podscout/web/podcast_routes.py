"""API routes for the podcast catalog: searching, adding, and importing podcasts.

Provides endpoints for:
- Searching the local catalog index
- Adding podcasts by feed URL
- Importing podcasts from OPML files
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from ..podcast.feed_sync import FeedSyncService
from ..podcast.opml_parser import OPMLParseError, import_opml_to_repository
from ..podcast.url_safety import is_safe_url
from ..search.podcast_search import search_local_podcasts
from .models import (
    AddPodcastByUrlRequest,
    AddPodcastResponse,
    OPMLImportRequest,
    OPMLImportResponse,
    OPMLImportResult,
    PodcastSearchResponse,
    PodcastSearchResult,
)
from .rate_limit import OPML_IMPORT_RATE_LIMIT, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/podcasts", tags=["podcasts"])

MAX_SEARCH_LIMIT = 50
MAX_QUERY_LENGTH = 200


def get_sync_service(request: Request) -> FeedSyncService:
    """Return the feed sync service installed on the app at startup."""
    return request.app.state.sync_service


@router.get("/search", response_model=PodcastSearchResponse)
async def search_podcasts(
    request: Request,
    q: str = Query(..., max_length=MAX_QUERY_LENGTH),
    limit: Optional[int] = None,
):
    """
    Search the local podcast catalog.

    Matching tolerates typos and partial trailing words. Title matches rank above
    publisher matches, which rank above description matches.

    Args:
        request: FastAPI request object for accessing repository
        q: Search query string (at most 200 characters)
        limit: Maximum number of results (1-50, default SEARCH_MAX_RESULTS)

    Returns:
        PodcastSearchResponse with ranked results
    """
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail="Search query cannot be empty")

    query = q.strip()
    repository = request.app.state.repository
    config = request.app.state.config
    if limit is None:
        limit = config.SEARCH_MAX_RESULTS
    limit = max(1, min(MAX_SEARCH_LIMIT, limit))

    try:
        matches = await asyncio.to_thread(
            search_local_podcasts,
            query,
            repository,
            limit=limit,
            ttl_seconds=config.SEARCH_INDEX_TTL_SECONDS,
        )
    except Exception as e:
        logger.exception("Error searching podcasts")
        raise HTTPException(
            status_code=500,
            detail="Failed to search podcasts"
        ) from e

    results = [
        PodcastSearchResult(
            external_id=match.external_id,
            title=match.title,
            publisher=match.publisher,
            score=match.score,
        )
        for match in matches
    ]

    return PodcastSearchResponse(
        query=query,
        results=results,
        count=len(results),
    )


@router.post("/add", response_model=AddPodcastResponse)
async def add_podcast_by_url(
    request: Request,
    body: AddPodcastByUrlRequest,
):
    """
    Add a podcast to the catalog by its RSS feed URL.

    The URL must pass the SSRF check before anything is fetched. If the feed is
    already in the catalog the existing entry is returned.

    Args:
        body: Request containing the feed URL

    Returns:
        AddPodcastResponse with podcast details
    """
    repository = request.app.state.repository
    feed_url = body.feed_url.strip()

    # Normalize feed:// URLs to https://
    if feed_url.lower().startswith("feed://"):
        feed_url = "https://" + feed_url[7:]

    is_safe = await asyncio.to_thread(is_safe_url, feed_url)
    if not is_safe:
        raise HTTPException(
            status_code=400,
            detail="Feed URL is not allowed. It must be a public http(s) address"
        )

    existing_podcast = await asyncio.to_thread(
        repository.get_podcast_by_feed_url, feed_url
    )
    if existing_podcast:
        return AddPodcastResponse(
            podcast_id=existing_podcast.id,
            external_id=existing_podcast.external_id,
            title=existing_podcast.title,
            is_new=False,
            message="Podcast already in catalog",
        )

    sync_service = get_sync_service(request)

    try:
        # add_podcast_from_url does blocking HTTP requests and DB writes
        result = await asyncio.to_thread(
            sync_service.add_podcast_from_url, feed_url
        )
    except Exception as e:
        logger.exception(f"Error adding podcast from {feed_url}")
        raise HTTPException(
            status_code=500,
            detail="Failed to add podcast"
        ) from e

    if result["error"]:
        raise HTTPException(
            status_code=400,
            detail=f"Failed to add podcast: {result['error']}"
        )

    episode_count = result["episodes"]
    logger.info(f"Added new podcast: {result['title']}")

    return AddPodcastResponse(
        podcast_id=result["podcast_id"],
        external_id=result["external_id"],
        title=result["title"],
        is_new=True,
        episode_count=episode_count,
        message=f"Added podcast with {episode_count} episodes",
    )


@router.post("/import-opml", response_model=OPMLImportResponse)
@limiter.limit(OPML_IMPORT_RATE_LIMIT)
async def import_opml(
    request: Request,
    body: OPMLImportRequest,
):
    """
    Import podcasts from an OPML file.

    Parses the OPML content and adds every feed not yet in the catalog. Feeds
    already in the catalog are reported as existing. Content over OPML_MAX_BYTES
    is refused with 413; more than OPML_MAX_FEEDS feeds is refused with 400.

    Args:
        body: Request containing OPML XML content

    Returns:
        OPMLImportResponse with import statistics and per-feed results
    """
    repository = request.app.state.repository
    config = request.app.state.config

    content_size = len(body.content.encode("utf-8"))
    if content_size > config.OPML_MAX_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"OPML content is larger than {config.OPML_MAX_BYTES} bytes"
        )

    sync_service = get_sync_service(request)

    try:
        stats = await asyncio.to_thread(
            import_opml_to_repository,
            body.content,
            repository,
            sync_service,
            max_feeds=config.OPML_MAX_FEEDS,
        )
    except OPMLParseError as e:
        logger.warning(f"Rejected OPML import: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.exception("Error importing OPML")
        raise HTTPException(
            status_code=500,
            detail="Failed to import OPML"
        ) from e

    return OPMLImportResponse(
        total=stats["total"],
        added=stats["added"],
        existing=stats["existing"],
        failed=stats["failed"],
        results=[OPMLImportResult(**entry) for entry in stats["results"]],
    )
