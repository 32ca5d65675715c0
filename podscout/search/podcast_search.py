"""Local podcast search over a cached in-memory index of the catalog.

The index is built from a full catalog snapshot and kept in a single
process-wide slot. It is rebuilt lazily: the first search after the TTL
expires, or after :func:`invalidate_index`, reloads the catalog.

Only the swap of the slot is locked. Two requests that both find the cache
stale will both rebuild; the later one replaces the earlier, and readers
always get a fully built index.
"""

import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional

from .text_index import TextIndex

logger = logging.getLogger(__name__)

INDEX_TTL_SECONDS = 300  # 5 minutes

SEARCH_FIELDS = ("title", "publisher", "description")
STORE_FIELDS = ("external_id", "title", "publisher")
FIELD_BOOSTS = {"title": 2.0, "publisher": 1.5, "description": 1.0}
FUZZY_TOLERANCE = 0.2

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "of", "in", "to",
        "for", "with", "on", "at", "by", "is", "it", "be",
    }
)


@dataclass(frozen=True)
class IndexedPodcast:
    """Catalog row as stored in the search index. Text fields are never None."""

    id: int
    external_id: str
    title: str
    publisher: str
    description: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "IndexedPodcast":
        return cls(
            id=row["id"],
            external_id=row["external_id"],
            title=row["title"] or "",
            publisher=row.get("publisher") or "",
            description=row.get("description") or "",
        )


@dataclass
class LocalSearchResult:
    """A ranked local search match."""

    external_id: str
    title: str
    publisher: Optional[str]
    score: float


@dataclass
class CachedIndex:
    index: TextIndex
    last_built: float
    document_count: int


_cache: Optional[CachedIndex] = None
_cache_lock = threading.Lock()


def _process_term(term: str) -> Optional[str]:
    lower = term.lower()
    return None if lower in STOP_WORDS else lower


def create_index() -> TextIndex:
    """Create an empty index with the catalog search configuration."""
    return TextIndex(
        fields=SEARCH_FIELDS,
        id_field="id",
        store_fields=STORE_FIELDS,
        boost=FIELD_BOOSTS,
        fuzzy=FUZZY_TOLERANCE,
        prefix=True,
        process_term=_process_term,
    )


def load_catalog_snapshot(repository) -> List[IndexedPodcast]:
    """Read every catalog row from the repository and normalize it for indexing."""
    return [IndexedPodcast.from_row(row) for row in repository.list_catalog_entries()]


def get_or_build_index(repository, ttl_seconds: float = INDEX_TTL_SECONDS) -> TextIndex:
    """
    Return the cached search index, rebuilding it from the catalog when stale or missing.

    Parameters:
        repository: Catalog store providing ``list_catalog_entries()``.
        ttl_seconds (float): Maximum age of a cached index before it is rebuilt.

    Returns:
        TextIndex: A fully built index.

    Raises:
        Exception: Any error raised while reading the catalog. A stale index is not served
            as a fallback.
    """
    global _cache

    now = time.monotonic()
    with _cache_lock:
        cached = _cache

    if cached is not None and now - cached.last_built < ttl_seconds:
        return cached.index

    documents = load_catalog_snapshot(repository)
    index = create_index()
    index.add_all(asdict(document) for document in documents)

    with _cache_lock:
        _cache = CachedIndex(index=index, last_built=now, document_count=len(documents))

    logger.info(f"Built podcast search index with {len(documents)} documents")
    return index


def invalidate_index() -> None:
    """Discard the cached index so the next search rebuilds it from the catalog."""
    global _cache

    with _cache_lock:
        had_index = _cache is not None
        _cache = None

    if had_index:
        logger.debug("Podcast search index invalidated")


def index_status() -> Dict[str, Any]:
    """Diagnostic snapshot of the cache slot."""
    with _cache_lock:
        cached = _cache

    if cached is None:
        return {"built": False, "document_count": 0, "age_seconds": None}

    return {
        "built": True,
        "document_count": cached.document_count,
        "age_seconds": round(time.monotonic() - cached.last_built, 3),
    }


def search_local_podcasts(
    query: str,
    repository,
    limit: Optional[int] = None,
    ttl_seconds: float = INDEX_TTL_SECONDS,
) -> List[LocalSearchResult]:
    """
    Search the local catalog.

    A blank query returns an empty list without touching the index or the catalog.
    Results keep the index ranking: title matches outrank publisher matches, which
    outrank description matches of the same quality.

    Parameters:
        query (str): Free-text query; misspellings and partial trailing words are tolerated.
        repository: Catalog store used when the index has to be (re)built.
        limit (Optional[int]): Maximum number of results.
        ttl_seconds (float): Cache TTL passed to :func:`get_or_build_index`.

    Returns:
        List[LocalSearchResult]: Matches ordered by descending score.
    """
    if not query or not query.strip():
        return []

    index = get_or_build_index(repository, ttl_seconds=ttl_seconds)
    hits = index.search(query, limit=limit)

    return [
        LocalSearchResult(
            external_id=hit.get("external_id"),
            title=hit.get("title"),
            publisher=hit.get("publisher") or None,
            score=hit.score,
        )
        for hit in hits
    ]
