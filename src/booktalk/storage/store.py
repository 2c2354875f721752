"""Typed access to books and annotations.

`RecordStore` wraps a session factory; every public method runs in its own
transaction through `session_scope`, so each read sees a consistent snapshot
and each write is an atomic single-row upsert. Returned records are detached
with their columns loaded; relationships are not meant to be traversed by
callers.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy import Float, column, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from booktalk.feed.ordering import SQL_FUNCTION_NAME

from .database import FTS_TABLE, get_engine, init_db, make_session_factory, session_scope
from .media import MediaLibrary
from .models import Annotation, AnnotationType, Book, new_id, utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_RANK = column("rank", Float)

# Listed explicitly so result columns line up with the mapped ones by position.
_ANNOTATION_COLUMNS = ", ".join(f"annotations.{c.name}" for c in Annotation.__table__.columns)

_MATCH_SQL = text(
    f"""
    SELECT {_ANNOTATION_COLUMNS},
           bm25({FTS_TABLE}) AS rank
    FROM annotations
    JOIN {FTS_TABLE} ON annotations.rowid = {FTS_TABLE}.rowid
    WHERE {FTS_TABLE} MATCH :match
    ORDER BY rank, annotations.rowid
    LIMIT :limit
    """
).columns(*Annotation.__table__.columns, _RANK)


class RecordStore:
    """CRUD and query operations over the books/annotations tables."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        media: Optional[MediaLibrary] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._factory = session_factory
        self.media = media
        self._clock = clock

    @classmethod
    def open(
        cls,
        url: str,
        *,
        media_root: Optional[Union[str, Path]] = None,
        echo: bool = False,
        clock: Clock = utcnow,
    ) -> "RecordStore":
        """Create the engine, make sure the schema exists, and return a store."""
        engine = get_engine(url, echo=echo)
        database = engine.url.database
        if database and database != ":memory:":
            Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        init_db(engine)
        media = MediaLibrary(media_root) if media_root is not None else None
        return cls(make_session_factory(engine), media=media, clock=clock)

    @property
    def engine(self) -> Engine:
        return self._factory.kw["bind"]

    # ----- Books -----

    def find_book(self, book_id: str) -> Optional[Book]:
        with session_scope(self._factory) as session:
            return session.get(Book, book_id)

    def find_books(self, book_ids: Iterable[str]) -> Dict[str, Book]:
        """Resolve many book ids in one round trip; unknown ids are absent."""
        ids = sorted(set(book_ids))
        if not ids:
            return {}
        with session_scope(self._factory) as session:
            books = session.scalars(select(Book).where(Book.id.in_(ids))).all()
            return {b.id: b for b in books}

    def list_books(self, archived: bool = False) -> List[Book]:
        """Books with the given archived flag, most recently updated first."""
        stmt = (
            select(Book)
            .where(Book.archived == archived)
            .order_by(Book.updated_at.desc(), Book.id)
        )
        with session_scope(self._factory) as session:
            return list(session.scalars(stmt).all())

    def add_book(
        self,
        title: str,
        *,
        author: Optional[str] = None,
        isbn: Optional[str] = None,
        cover_image_path: Optional[str] = None,
    ) -> Book:
        now = self._clock()
        book = Book(
            id=new_id(),
            title=title,
            author=author,
            isbn=isbn,
            cover_image_path=cover_image_path,
            archived=False,
            created_at=now,
            updated_at=now,
        )
        return self.save_book(book)

    def save_book(self, book: Book) -> Book:
        """Insert or update `book`, refreshing its updated timestamp."""
        if not (book.title or "").strip():
            raise ValueError("Book title is required")
        now = self._clock()
        if book.id is None:
            book.id = new_id()
        if book.created_at is None:
            book.created_at = now
        if book.archived is None:
            book.archived = False
        book.updated_at = now
        with session_scope(self._factory) as session:
            saved = session.merge(book)
        logger.debug("Saved book %s", saved.id)
        return saved

    def set_archived(self, book_id: str, archived: bool) -> Optional[Book]:
        with session_scope(self._factory) as session:
            book = session.get(Book, book_id)
            if book is None:
                return None
            book.archived = archived
            book.updated_at = self._clock()
            return book

    def toggle_archived(self, book_id: str) -> Optional[Book]:
        with session_scope(self._factory) as session:
            book = session.get(Book, book_id)
            if book is None:
                return None
            book.archived = not book.archived
            book.updated_at = self._clock()
            return book

    def delete_book(self, book_id: str) -> bool:
        """Delete a book, its annotations, and all of their media files."""
        files: List[Path] = []
        with session_scope(self._factory) as session:
            book = session.get(Book, book_id)
            if book is None:
                return False
            count = len(book.annotations)
            if self.media is not None:
                for annotation in book.annotations:
                    files.extend(self.media.annotation_files(annotation))
                cover = self.media.cover_file(book)
                if cover is not None:
                    files.append(cover)
            session.delete(book)
        if self.media is not None:
            self.media.remove(files)
        logger.info("Deleted book %s with %d annotations", book_id, count)
        return True

    # ----- Annotations -----

    def find_annotation(self, annotation_id: str) -> Optional[Annotation]:
        with session_scope(self._factory) as session:
            return session.get(Annotation, annotation_id)

    def list_annotations_for_book(self, book_id: str) -> List[Annotation]:
        """Annotations of a book, newest first."""
        stmt = (
            select(Annotation)
            .where(Annotation.book_id == book_id)
            .order_by(Annotation.created_at.desc(), Annotation.id)
        )
        with session_scope(self._factory) as session:
            return list(session.scalars(stmt).all())

    def count_annotations_for_book(self, book_id: str) -> int:
        stmt = select(func.count()).select_from(Annotation).where(Annotation.book_id == book_id)
        with session_scope(self._factory) as session:
            return int(session.scalar(stmt) or 0)

    def list_annotations(self, limit: Optional[int] = None) -> List[Annotation]:
        """All annotations across books, newest first."""
        stmt = select(Annotation).order_by(Annotation.created_at.desc(), Annotation.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        with session_scope(self._factory) as session:
            return list(session.scalars(stmt).all())

    def paginate_annotations(self, limit: int, offset: int) -> List[Annotation]:
        """Chronological (newest first) page of annotations."""
        stmt = (
            select(Annotation)
            .order_by(Annotation.created_at.desc(), Annotation.id)
            .limit(limit)
            .offset(offset)
        )
        with session_scope(self._factory) as session:
            return list(session.scalars(stmt).all())

    def add_annotation(
        self,
        book_id: str,
        type: Union[AnnotationType, str],
        *,
        audio_path: Optional[str] = None,
        image_path: Optional[str] = None,
        video_path: Optional[str] = None,
        caption: Optional[str] = None,
        transcription: Optional[str] = None,
        duration: Optional[float] = None,
        page_number: Optional[str] = None,
    ) -> Annotation:
        annotation = Annotation(
            id=new_id(),
            book_id=book_id,
            type=AnnotationType(type),
            audio_path=audio_path,
            image_path=image_path,
            video_path=video_path,
            caption=caption,
            transcription=transcription,
            duration=duration,
            page_number=page_number,
            created_at=self._clock(),
        )
        return self.save_annotation(annotation)

    def save_annotation(self, annotation: Annotation) -> Annotation:
        """Insert or update `annotation`.

        Raises ``ValueError`` if the media paths do not match the type, and
        `StoreError` if the owning book does not exist.
        """
        annotation.type = AnnotationType(annotation.type)
        annotation.validate()
        if annotation.id is None:
            annotation.id = new_id()
        if annotation.created_at is None:
            annotation.created_at = self._clock()
        with session_scope(self._factory) as session:
            saved = session.merge(annotation)
        logger.debug("Saved %s annotation %s", saved.type.value, saved.id)
        return saved

    def _update(
        self, annotation_id: str, change: Callable[[Annotation], None]
    ) -> Optional[Annotation]:
        with session_scope(self._factory) as session:
            annotation = session.get(Annotation, annotation_id)
            if annotation is None:
                return None
            change(annotation)
            return annotation

    def update_transcription(self, annotation_id: str, text: Optional[str]) -> Optional[Annotation]:
        def change(a: Annotation) -> None:
            a.transcription = text

        return self._update(annotation_id, change)

    def update_caption(self, annotation_id: str, text: Optional[str]) -> Optional[Annotation]:
        def change(a: Annotation) -> None:
            a.caption = text

        return self._update(annotation_id, change)

    def update_page_number(self, annotation_id: str, page: Optional[str]) -> Optional[Annotation]:
        def change(a: Annotation) -> None:
            a.page_number = page

        return self._update(annotation_id, change)

    def update_text(
        self, annotation_id: str, text: Optional[str], page_number: Optional[str]
    ) -> Optional[Annotation]:
        """Edit the user-visible text: transcription for audio, caption otherwise."""

        def change(a: Annotation) -> None:
            if a.type == AnnotationType.AUDIO:
                a.transcription = text
            else:
                a.caption = text
            a.page_number = page_number

        return self._update(annotation_id, change)

    def delete_annotation(self, annotation_id: str) -> bool:
        """Delete an annotation and its media file."""
        with session_scope(self._factory) as session:
            annotation = session.get(Annotation, annotation_id)
            if annotation is None:
                return False
            files = self.media.annotation_files(annotation) if self.media is not None else []
            session.delete(annotation)
        if self.media is not None:
            self.media.remove(files)
        logger.info("Deleted annotation %s", annotation_id)
        return True

    # ----- Ranked / ordered queries -----

    def match_annotations(self, match_expression: str, limit: int) -> List[Tuple[Annotation, float]]:
        """Run an FTS5 MATCH and return (annotation, bm25 rank), best first.

        bm25 ranks are negative; lower is more relevant. Ties fall back to
        insertion order.
        """
        with session_scope(self._factory) as session:
            stmt = select(Annotation, _RANK).from_statement(_MATCH_SQL)
            rows = session.execute(stmt, {"match": match_expression, "limit": limit}).all()
            return [(annotation, float(rank)) for annotation, rank in rows]

    def shuffled_annotations(self, seed: int, limit: int, offset: int) -> List[Annotation]:
        """Page over all annotations in the seed-dependent feed order.

        `seed` must already be reduced into key space (see
        `booktalk.feed.ordering.normalize_seed`).
        """
        key = getattr(func, SQL_FUNCTION_NAME)(Annotation.id, seed)
        stmt = select(Annotation).order_by(key, Annotation.id).limit(limit).offset(offset)
        with session_scope(self._factory) as session:
            return list(session.scalars(stmt).all())
