"""SQLAlchemy models for BookTalk storage.

Defines core entities: Book and Annotation. The full-text index over
annotation captions and transcriptions is not mapped; it is maintained by
triggers created in `booktalk.storage.database.init_db`.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored by SQLite."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4()).upper()


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""


class AnnotationType(str, enum.Enum):
    """Kinds of annotation a reader can attach to a book."""

    AUDIO = "audio"
    IMAGE = "image"
    VIDEO = "video"
    TEXT = "text"

    @property
    def media_field(self) -> Optional[str]:
        """Name of the media path attribute this type requires, if any."""
        return _MEDIA_FIELDS.get(self)


_MEDIA_FIELDS = {
    AnnotationType.AUDIO: "audio_path",
    AnnotationType.IMAGE: "image_path",
    AnnotationType.VIDEO: "video_path",
}
MEDIA_FIELDS = tuple(_MEDIA_FIELDS.values())


class Book(Base):
    """A book in the reader's library."""

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(512))
    author: Mapped[Optional[str]] = mapped_column(String(512), default=None)
    cover_image_path: Mapped[Optional[str]] = mapped_column(String(1024), default=None)
    isbn: Mapped[Optional[str]] = mapped_column(String(32), default=None)
    archived: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    annotations: Mapped[list[Annotation]] = relationship(
        back_populates="book", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"Book(id={self.id!r}, title={self.title!r})"


class Annotation(Base):
    """A single voice, photo, video or text note attached to a book."""

    __tablename__ = "annotations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    book_id: Mapped[str] = mapped_column(
        ForeignKey("books.id", ondelete="CASCADE"), index=True
    )
    type: Mapped[AnnotationType] = mapped_column(
        Enum(
            AnnotationType,
            native_enum=False,
            length=16,
            values_callable=lambda kinds: [k.value for k in kinds],
        )
    )

    audio_path: Mapped[Optional[str]] = mapped_column(String(1024), default=None)
    image_path: Mapped[Optional[str]] = mapped_column(String(1024), default=None)
    video_path: Mapped[Optional[str]] = mapped_column(String(1024), default=None)

    caption: Mapped[Optional[str]] = mapped_column(Text, default=None)
    # Filled in asynchronously once speech-to-text finishes
    transcription: Mapped[Optional[str]] = mapped_column(Text, default=None)
    duration: Mapped[Optional[float]] = mapped_column(Float, default=None)
    page_number: Mapped[Optional[str]] = mapped_column(String(64), default=None)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    book: Mapped[Book] = relationship(back_populates="annotations")

    @property
    def media_path(self) -> Optional[str]:
        """The populated media path for this annotation's type, if any."""
        field = AnnotationType(self.type).media_field
        return getattr(self, field) if field else None

    def validate(self) -> None:
        """Check that exactly the media path required by `type` is populated.

        Raises ``ValueError`` when the invariant does not hold.
        """
        kind = AnnotationType(self.type)
        populated = [name for name in MEDIA_FIELDS if getattr(self, name)]
        required = kind.media_field
        if required is None:
            if populated:
                raise ValueError(f"{kind.value} annotation must not carry media ({', '.join(populated)})")
            return
        if populated != [required]:
            raise ValueError(
                f"{kind.value} annotation requires exactly {required}; got {populated or 'none'}"
            )

    def __repr__(self) -> str:
        return f"Annotation(id={self.id!r}, type={self.type!r}, book_id={self.book_id!r})"
