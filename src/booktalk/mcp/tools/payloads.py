"""JSON payload shapes returned by the tools."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from booktalk.feed.composer import FeedItem, FeedPage
from booktalk.search.fulltext import SearchResult
from booktalk.storage.models import Annotation, AnnotationType, Book


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def book_payload(book: Optional[Book]) -> Optional[Dict[str, Any]]:
    if book is None:
        return None
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "isbn": book.isbn,
        "cover_image_path": book.cover_image_path,
        "archived": bool(book.archived),
        "created_at": _iso(book.created_at),
        "updated_at": _iso(book.updated_at),
    }


def annotation_payload(annotation: Annotation) -> Dict[str, Any]:
    return {
        "id": annotation.id,
        "book_id": annotation.book_id,
        "type": AnnotationType(annotation.type).value,
        "audio_path": annotation.audio_path,
        "image_path": annotation.image_path,
        "video_path": annotation.video_path,
        "caption": annotation.caption,
        "transcription": annotation.transcription,
        "duration": annotation.duration,
        "page_number": annotation.page_number,
        "created_at": _iso(annotation.created_at),
    }


def search_result_payload(result: SearchResult) -> Dict[str, Any]:
    return {
        "annotation": annotation_payload(result.annotation),
        "book": book_payload(result.book),
        "matched_text": result.matched_text,
        "highlight_ranges": [list(r) for r in result.highlight_ranges],
        "score": result.score,
    }


def feed_item_payload(item: FeedItem) -> Dict[str, Any]:
    return {"annotation": annotation_payload(item.annotation), "book": book_payload(item.book)}


def feed_page_payload(page: FeedPage) -> Dict[str, Any]:
    return {
        # Seeds are 64-bit; as strings they survive JSON clients without loss.
        "seed": str(page.seed) if page.seed is not None else None,
        "limit": page.limit,
        "offset": page.offset,
        "next_offset": page.next_offset,
        "has_more": page.has_more,
        "items": [feed_item_payload(i) for i in page.items],
    }
