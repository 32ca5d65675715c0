"""
FastAPI web application for the podscout podcast catalog.

Serves local catalog search, adding podcasts by feed URL, and OPML import.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .. import __version__
from ..config import Config
from ..db.factory import create_repository_from_config
from ..podcast.feed_parser import FeedParser
from ..podcast.feed_sync import FeedSyncService
from ..podcast.safe_fetch import create_fetcher_from_config
from ..search.podcast_search import index_status, invalidate_index
from .podcast_routes import router as podcast_router
from .rate_limit import limiter

# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Initialize configuration
config = Config()

# Initialize repository for database access
_repository = create_repository_from_config(config, create_tables=True)

# One outbound HTTP session shared by all feed fetches
_fetcher = create_fetcher_from_config(config)
_sync_service = FeedSyncService(repository=_repository, feed_parser=FeedParser(fetcher=_fetcher))


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    FastAPI lifespan context manager.

    Handles startup logging and cleanup.
    """
    logger.info("Application started")

    yield

    invalidate_index()
    _fetcher.close()
    _repository.close()
    logger.info("Application shutdown")


# Initialize FastAPI app
app = FastAPI(
    title="Podscout",
    description="Podcast discovery: local catalog search, feed import and OPML import",
    version=__version__,
    lifespan=lifespan
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware (configurable via environment variable)
allowed_origins = config.WEB_ALLOWED_ORIGINS.split(",") if config.WEB_ALLOWED_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=allowed_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Store config, repository and sync service in app state for access in routes
app.state.config = config
app.state.repository = _repository
app.state.sync_service = _sync_service

# Include podcast routes (search, add, import)
app.include_router(podcast_router)


@app.get("/health")
async def health():
    """Health check endpoint, including the state of the search index cache."""
    return {
        "status": "healthy",
        "service": "podscout",
        "search_index": index_status(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.WEB_PORT)
