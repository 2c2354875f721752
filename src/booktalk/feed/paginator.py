"""Seeded shuffle pagination over all annotations."""

from __future__ import annotations

from typing import List

from booktalk.storage.models import Annotation
from booktalk.storage.store import RecordStore

from .ordering import normalize_seed


class FeedPaginator:
    """Stable, gapless shuffled pages for a fixed seed.

    Concatenating ``randomized_page(seed, n, 0)``, ``randomized_page(seed, n, n)``
    and so on yields each annotation exactly once while no writes intervene.
    Reuse the seed while loading more pages; pick a new one to reshuffle.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def randomized_page(self, seed: int, limit: int, offset: int) -> List[Annotation]:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if offset < 0:
            raise ValueError("offset must be non-negative")
        return self.store.shuffled_annotations(normalize_seed(seed), limit, offset)
