"""In-memory full-text index with fuzzy and prefix matching.

Documents are split into terms per field and kept in an inverted index
(term -> field -> document -> term frequency). Queries are tokenized the
same way; each query term is expanded to the indexed terms it matches:

- exact matches, weight 1.0
- prefix completions, weight ``PREFIX_WEIGHT * n / (n + 0.3 * extra)`` where
  ``extra`` is how many characters the completion adds
- fuzzy matches within ``round(fuzzy * n)`` edits (capped at ``max_fuzzy``),
  weight ``FUZZY_WEIGHT * n / (n + distance)``

Each (document, field) hit is scored with BM25+ and multiplied by the field
boost and the match weight. Query terms combine with OR: every matching term
adds to a document's score.
"""

import bisect
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# Whitespace, punctuation and underscores separate terms
_SEPARATOR_RE = re.compile(r"[\W_]+")

PREFIX_WEIGHT = 0.375
FUZZY_WEIGHT = 0.45

# Distinct query terms beyond this are ignored
MAX_QUERY_TERMS = 16

# BM25+ parameters
BM25_K1 = 1.2
BM25_B = 0.7
BM25_DELTA = 0.5


def tokenize(text: str) -> List[str]:
    """Split text on whitespace and punctuation."""
    if not text:
        return []
    return [token for token in _SEPARATOR_RE.split(text) if token]


def bounded_levenshtein(a: str, b: str, max_distance: int) -> Optional[int]:
    """Edit distance between ``a`` and ``b``, or None if it exceeds ``max_distance``."""
    if abs(len(a) - len(b)) > max_distance:
        return None
    if a == b:
        return 0

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        row_min = current[0]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current[j] = min(
                previous[j] + 1,  # deletion
                current[j - 1] + 1,  # insertion
                previous[j - 1] + cost,  # substitution
            )
            row_min = min(row_min, current[j])
        if row_min > max_distance:
            return None
        previous = current

    distance = previous[-1]
    return distance if distance <= max_distance else None


@dataclass
class SearchHit:
    """One ranked search result."""

    id: Any
    score: float
    terms: List[str] = field(default_factory=list)
    fields: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)


class TextIndex:
    """Full-text index over a fixed set of document fields.

    Example:
        index = TextIndex(fields=["title", "description"], boost={"title": 2})
        index.add_all([{"id": 1, "title": "Lex Fridman Podcast", "description": ""}])
        hits = index.search("fridman")
    """

    def __init__(
        self,
        fields: Sequence[str],
        id_field: str = "id",
        store_fields: Sequence[str] = (),
        boost: Optional[Mapping[str, float]] = None,
        fuzzy: float = 0.2,
        max_fuzzy: int = 6,
        prefix: bool = True,
        process_term: Optional[Callable[[str], Optional[str]]] = None,
        max_query_terms: int = MAX_QUERY_TERMS,
    ):
        """Create an empty index.

        Args:
            fields: Document fields to index
            id_field: Field holding the unique document key
            store_fields: Fields copied into search hits
            boost: Per-field score multipliers (default 1.0)
            fuzzy: Allowed edit distance as a fraction of query term length; 0 disables
            max_fuzzy: Upper bound on the allowed edit distance
            prefix: Whether query terms also match longer indexed terms
            process_term: Normalizes a raw token, or returns None to drop it
                (defaults to lower-casing)
            max_query_terms: Distinct query terms searched; later ones are ignored
        """
        if not fields:
            raise ValueError("At least one field is required")

        self.fields = tuple(fields)
        self.id_field = id_field
        self.store_fields = tuple(store_fields)
        self.boost = {name: float((boost or {}).get(name, 1.0)) for name in self.fields}
        self.fuzzy = fuzzy
        self.max_fuzzy = max_fuzzy
        self.prefix = prefix
        self.process_term = process_term or (lambda term: term.lower())
        self.max_query_terms = max_query_terms

        # term -> field -> doc_id -> term frequency
        self._postings: Dict[str, Dict[str, Dict[Any, int]]] = {}
        self._field_lengths: Dict[Any, Dict[str, int]] = {}
        self._total_field_length: Dict[str, int] = {name: 0 for name in self.fields}
        self._stored: Dict[Any, Dict[str, Any]] = {}
        self._order: Dict[Any, int] = {}
        self._vocabulary: List[str] = []
        self._terms_by_length: Dict[int, List[str]] = {}
        self._vocabulary_dirty = False

    @property
    def document_count(self) -> int:
        return len(self._stored)

    def __len__(self) -> int:
        return self.document_count

    def __contains__(self, doc_id: Any) -> bool:
        return doc_id in self._stored

    def _terms(self, text: str) -> List[str]:
        terms = []
        for token in tokenize(text):
            term = self.process_term(token)
            if term:
                terms.append(term)
        return terms

    def add(self, document: Mapping[str, Any]) -> None:
        """Index one document.

        Raises:
            ValueError: If the document has no id or the id is already indexed
        """
        doc_id = document.get(self.id_field)
        if doc_id is None:
            raise ValueError(f"Document is missing id field '{self.id_field}'")
        if doc_id in self._stored:
            raise ValueError(f"Duplicate document id: {doc_id!r}")

        lengths = {}
        for name in self.fields:
            terms = self._terms(document.get(name) or "")
            lengths[name] = len(terms)
            self._total_field_length[name] += len(terms)
            for term in terms:
                by_field = self._postings.get(term)
                if by_field is None:
                    by_field = self._postings[term] = {}
                    self._vocabulary_dirty = True
                docs = by_field.setdefault(name, {})
                docs[doc_id] = docs.get(doc_id, 0) + 1

        self._field_lengths[doc_id] = lengths
        self._stored[doc_id] = {name: document.get(name) for name in self.store_fields}
        self._order[doc_id] = len(self._order)

    def add_all(self, documents: Iterable[Mapping[str, Any]]) -> None:
        for document in documents:
            self.add(document)
        self._refresh_vocabulary()

    def _refresh_vocabulary(self) -> None:
        if not self._vocabulary_dirty:
            return
        vocabulary = sorted(self._postings)
        by_length: Dict[int, List[str]] = {}
        for term in vocabulary:
            by_length.setdefault(len(term), []).append(term)
        self._vocabulary = vocabulary
        self._terms_by_length = by_length
        self._vocabulary_dirty = False

    def _fuzzy_candidates(self, length: int, max_distance: int) -> Iterable[str]:
        """Indexed terms whose length is within `max_distance` of `length`."""
        for candidate_length in range(max(1, length - max_distance), length + max_distance + 1):
            yield from self._terms_by_length.get(candidate_length, ())

    def _max_distance(self, term: str) -> int:
        if self.fuzzy <= 0:
            return 0
        # Round half up
        return min(self.max_fuzzy, int(len(term) * self.fuzzy + 0.5))

    def _expand_term(self, query_term: str) -> Dict[str, float]:
        """Map a query term to the indexed terms it matches and their weights."""
        matches: Dict[str, float] = {}
        length = len(query_term)

        if query_term in self._postings:
            matches[query_term] = 1.0

        self._refresh_vocabulary()
        vocabulary = self._vocabulary

        if self.prefix:
            position = bisect.bisect_left(vocabulary, query_term)
            while position < len(vocabulary) and vocabulary[position].startswith(query_term):
                candidate = vocabulary[position]
                position += 1
                if candidate == query_term:
                    continue
                extra = len(candidate) - length
                weight = PREFIX_WEIGHT * length / (length + 0.3 * extra)
                if weight > matches.get(candidate, 0.0):
                    matches[candidate] = weight

        max_distance = self._max_distance(query_term)
        if max_distance > 0:
            for candidate in self._fuzzy_candidates(length, max_distance):
                if candidate == query_term:
                    continue
                distance = bounded_levenshtein(query_term, candidate, max_distance)
                if distance is None:
                    continue
                weight = FUZZY_WEIGHT * length / (length + distance)
                if weight > matches.get(candidate, 0.0):
                    matches[candidate] = weight

        return matches

    def _bm25(self, term_frequency: int, matching_docs: int, field_length: int, average_length: float) -> float:
        total = self.document_count
        idf = math.log(1 + (total - matching_docs + 0.5) / (matching_docs + 0.5))
        norm = 1 - BM25_B + BM25_B * (field_length / average_length if average_length else 0)
        return idf * (
            BM25_DELTA + (term_frequency * (BM25_K1 + 1)) / (term_frequency + BM25_K1 * norm)
        )

    def search(self, query: str, limit: Optional[int] = None) -> List[SearchHit]:
        """Run a query and return hits ordered by descending score.

        Documents tied on score keep insertion order. A query whose terms are all
        dropped by term processing matches nothing. Only the first
        ``max_query_terms`` distinct terms are searched.
        """
        query_terms = list(dict.fromkeys(self._terms(query)))
        if not query_terms or not self._stored:
            return []

        if len(query_terms) > self.max_query_terms:
            logger.debug(
                f"Query has {len(query_terms)} distinct terms, searching the first {self.max_query_terms}"
            )
            query_terms = query_terms[:self.max_query_terms]

        averages = {
            name: self._total_field_length[name] / self.document_count for name in self.fields
        }
        scores: Dict[Any, float] = {}
        matched: Dict[Any, List[str]] = {}

        for query_term in query_terms:
            for indexed_term, weight in self._expand_term(query_term).items():
                for name, docs in self._postings[indexed_term].items():
                    boost = self.boost[name]
                    for doc_id, term_frequency in docs.items():
                        score = boost * weight * self._bm25(
                            term_frequency,
                            len(docs),
                            self._field_lengths[doc_id][name],
                            averages[name],
                        )
                        scores[doc_id] = scores.get(doc_id, 0.0) + score
                        terms = matched.setdefault(doc_id, [])
                        if indexed_term not in terms:
                            terms.append(indexed_term)

        ranked: List[Tuple[Any, float]] = sorted(
            scores.items(), key=lambda item: (-item[1], self._order[item[0]])
        )
        if limit is not None:
            ranked = ranked[:limit]

        return [
            SearchHit(id=doc_id, score=score, terms=matched[doc_id], fields=dict(self._stored[doc_id]))
            for doc_id, score in ranked
        ]
