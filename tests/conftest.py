import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator

import pytest

from booktalk.storage.store import RecordStore


class TickingClock:
    """Strictly increasing timestamps so ordering by time is deterministic."""

    def __init__(self) -> None:
        self._now = datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "booktalk.sqlite"


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    return tmp_path / "media"


@pytest.fixture
def store(db_path: Path, media_root: Path) -> Iterator[RecordStore]:
    s = RecordStore.open(str(db_path), media_root=media_root, clock=TickingClock())
    yield s
    s.engine.dispose()


@pytest.fixture
def delete_book_row(db_path: Path):
    """Delete a book row with a plain connection (foreign keys off).

    Its annotations survive, like a delete racing with a reader.
    """

    def _delete(book_id: str) -> None:
        conn = sqlite3.connect(str(db_path))
        try:
            conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
            conn.commit()
        finally:
            conn.close()

    return _delete
