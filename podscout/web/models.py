"""
Pydantic models for web API request/response validation.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class PodcastSearchResult(BaseModel):
    """Single result from local podcast search."""
    external_id: str = Field(..., description="External podcast ID")
    title: str = Field(..., description="Podcast title")
    publisher: Optional[str] = Field(default=None, description="Podcast publisher, if known")
    score: float = Field(..., description="Relevance score (higher is better)")


class PodcastSearchResponse(BaseModel):
    """Response model for podcast search."""
    query: str = Field(..., description="Search query used")
    results: List[PodcastSearchResult] = Field(..., description="Search results")
    count: int = Field(..., description="Number of results returned")


class AddPodcastByUrlRequest(BaseModel):
    """Request model for adding a podcast by feed URL."""
    feed_url: str = Field(
        ...,
        min_length=1,
        max_length=2048,
        description="RSS/Atom feed URL of the podcast"
    )

    @field_validator('feed_url')
    @classmethod
    def validate_feed_url(cls, v: str) -> str:
        """Validate that the feed URL has a valid scheme."""
        v = v.strip()
        valid_schemes = ('http://', 'https://', 'feed://')
        if not v.lower().startswith(valid_schemes):
            raise ValueError(
                'Invalid URL scheme. Must start with http://, https://, or feed://'
            )
        return v


class AddPodcastResponse(BaseModel):
    """Response model for adding a podcast."""
    podcast_id: int = Field(..., description="Catalog ID of the added/existing podcast")
    external_id: str = Field(..., description="External podcast ID")
    title: str = Field(..., description="Podcast title")
    is_new: bool = Field(..., description="Whether the podcast was newly added to the catalog")
    episode_count: int = Field(default=0, description="Number of episodes in the feed")
    message: str = Field(..., description="Human-readable status message")


class OPMLImportRequest(BaseModel):
    """Request model for OPML import."""
    content: str = Field(
        ...,
        min_length=1,
        description="OPML file content (XML string); size is capped by OPML_MAX_BYTES"
    )


class OPMLImportResult(BaseModel):
    """Result for a single podcast from OPML import."""
    feed_url: str = Field(..., description="Feed URL from OPML")
    title: Optional[str] = Field(default=None, description="Podcast title")
    status: Literal["added", "existing", "failed"] = Field(
        ..., description="Import status"
    )
    podcast_id: Optional[int] = Field(default=None, description="Podcast ID if added or existing")
    error: Optional[str] = Field(default=None, description="Error message if failed")


class OPMLImportResponse(BaseModel):
    """Response model for OPML import."""
    total: int = Field(..., description="Total unique feeds found in OPML")
    added: int = Field(..., description="Number of new podcasts added")
    existing: int = Field(..., description="Number of feeds already in the catalog")
    failed: int = Field(..., description="Number of failed imports")
    results: List[OPMLImportResult] = Field(..., description="Per-feed results")
