"""Local podcast search.

Provides:
- A full-text index with fuzzy and prefix matching
- A process-wide, TTL-bounded cache of the catalog index
"""

from .podcast_search import (
    LocalSearchResult,
    get_or_build_index,
    index_status,
    invalidate_index,
    search_local_podcasts,
)
from .text_index import SearchHit, TextIndex

__all__ = [
    "LocalSearchResult",
    "SearchHit",
    "TextIndex",
    "get_or_build_index",
    "index_status",
    "invalidate_index",
    "search_local_podcasts",
]
