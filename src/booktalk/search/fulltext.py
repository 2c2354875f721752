"""Full-text search over annotation captions and transcriptions.

Ranks with SQLite FTS5 ``bm25()`` and decorates each hit with its book and the
highlight spans to render.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from booktalk.storage.models import Annotation, Book
from booktalk.storage.store import RecordStore

from .highlight import HighlightRange, find_highlight_ranges, matched_text

logger = logging.getLogger(__name__)

MAX_RESULTS = 50

# Mirrors the unicode61 tokenizer: runs of letters and digits.
_TOKEN = re.compile(r"[^\W_]+")


@dataclass(slots=True)
class SearchResult:
    """Represents a single search hit."""

    annotation: Annotation
    book: Optional[Book]
    matched_text: str
    highlight_ranges: List[HighlightRange] = field(default_factory=list)
    score: float = 0.0


def build_match_expression(query: str) -> Optional[str]:
    """FTS5 expression treating `query` as one phrase with a prefix final token.

    ``"quick bro"`` becomes ``"quick bro"*``. Returns None when the query has
    no searchable tokens.
    """
    tokens = _TOKEN.findall(query)
    if not tokens:
        return None
    return '"' + " ".join(tokens) + '"*'


class AnnotationSearchEngine:
    """Stateless search: every call reads the store afresh."""

    def __init__(self, store: RecordStore, *, limit: int = MAX_RESULTS) -> None:
        self.store = store
        self.limit = max(1, min(int(limit), MAX_RESULTS))

    def search(self, query: str) -> List[SearchResult]:
        """Return ranked matches for `query`, best first, at most 50.

        Blank queries return an empty list. Store failures raise `StoreError`.
        """
        term = (query or "").strip()
        if not term:
            return []
        expression = build_match_expression(term)
        if expression is None:
            return []

        hits = self.store.match_annotations(expression, self.limit)
        books = self.store.find_books(a.book_id for a, _ in hits)
        results: List[SearchResult] = []
        for annotation, rank in hits:
            text = matched_text(annotation)
            results.append(
                SearchResult(
                    annotation=annotation,
                    book=books.get(annotation.book_id),
                    matched_text=text,
                    highlight_ranges=find_highlight_ranges(text, term),
                    score=-rank,
                )
            )
        logger.debug("search %r -> %d results", term, len(results))
        return results
