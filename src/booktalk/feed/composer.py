"""Joins search hits and feed pages with their books for display.

A missing book (deleted out-of-band) becomes ``book=None``; rows are never
dropped because of it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from booktalk.search.fulltext import AnnotationSearchEngine, SearchResult
from booktalk.storage.models import Annotation, Book
from booktalk.storage.store import RecordStore

from .paginator import FeedPaginator


@dataclass(slots=True)
class FeedItem:
    annotation: Annotation
    book: Optional[Book] = None


@dataclass(slots=True)
class FeedPage:
    """One page of the feed; nothing about it is persisted."""

    seed: Optional[int]
    limit: int
    offset: int
    items: List[FeedItem] = field(default_factory=list)

    @property
    def has_more(self) -> bool:
        # A short page means the end of the feed was reached.
        return len(self.items) == self.limit

    @property
    def next_offset(self) -> int:
        return self.offset + len(self.items)


def attach_books(store: RecordStore, annotations: Sequence[Annotation]) -> List[FeedItem]:
    books = store.find_books(a.book_id for a in annotations)
    return [FeedItem(annotation=a, book=books.get(a.book_id)) for a in annotations]


class FeedComposer:
    """Display-ready entry points over the search engine and paginator."""

    def __init__(
        self,
        store: RecordStore,
        *,
        engine: Optional[AnnotationSearchEngine] = None,
        paginator: Optional[FeedPaginator] = None,
    ) -> None:
        self.store = store
        self.engine = engine or AnnotationSearchEngine(store)
        self.paginator = paginator or FeedPaginator(store)

    def search(self, query: str) -> List[SearchResult]:
        return self.engine.search(query)

    def page(self, seed: int, limit: int, offset: int = 0) -> FeedPage:
        annotations = self.paginator.randomized_page(seed, limit, offset)
        return FeedPage(
            seed=seed, limit=limit, offset=offset, items=attach_books(self.store, annotations)
        )

    def recent(self, limit: int, offset: int = 0) -> FeedPage:
        """Chronological feed, newest first."""
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if offset < 0:
            raise ValueError("offset must be non-negative")
        annotations = self.store.paginate_annotations(limit, offset)
        return FeedPage(
            seed=None, limit=limit, offset=offset, items=attach_books(self.store, annotations)
        )
