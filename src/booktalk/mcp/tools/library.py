"""Library tools for FastMCP: books and their annotations."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from fastmcp import FastMCP

from booktalk.connectors.openlibrary import OpenLibraryConnector
from booktalk.storage.models import AnnotationType

from .payloads import annotation_payload, book_payload


def register_library_tools(mcp: FastMCP, get_state: Callable[[], Any]) -> None:
    """Register book and annotation tools on the given FastMCP instance.

    Reads state.store (a `RecordStore`) and state.settings.openlibrary.
    """

    def _make_lookup(state_obj: Any) -> OpenLibraryConnector:
        settings = getattr(state_obj, "settings", None)
        cfg = getattr(settings, "openlibrary", None)
        return OpenLibraryConnector(
            base_url=getattr(cfg, "base_url", "https://openlibrary.org"),
            covers_base_url=getattr(cfg, "covers_base_url", "https://covers.openlibrary.org"),
            timeout=float(getattr(cfg, "timeout", 15.0)),
            verify_ssl=bool(getattr(cfg, "verify_ssl", True)),
            user_agent=getattr(cfg, "user_agent", None),
        )

    @mcp.tool
    def list_books(archived: bool = False) -> List[Dict[str, Any]]:
        """List books, most recently updated first, with annotation counts."""
        store = get_state().store
        out: List[Dict[str, Any]] = []
        for book in store.list_books(archived=archived):
            payload = book_payload(book) or {}
            payload["annotation_count"] = store.count_annotations_for_book(book.id)
            out.append(payload)
        return out

    @mcp.tool
    def get_book(book_id: str) -> Optional[Dict[str, Any]]:
        """Get a book and its annotations (newest first). Null if it does not exist."""
        store = get_state().store
        payload = book_payload(store.find_book(book_id))
        if payload is None:
            return None
        payload["annotations"] = [
            annotation_payload(a) for a in store.list_annotations_for_book(book_id)
        ]
        return payload

    @mcp.tool
    def add_book(
        title: str,
        *,
        author: Optional[str] = None,
        isbn: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Add a book to the library."""
        book = get_state().store.add_book(title, author=author, isbn=isbn)
        return book_payload(book) or {}

    @mcp.tool
    async def add_book_by_isbn(isbn: str) -> Dict[str, Any]:
        """Look up an ISBN on Open Library and add the book, with its cover when available."""
        state = get_state()
        lookup = _make_lookup(state)
        meta = await lookup.lookup(isbn)
        if meta is None:
            raise ValueError(f"No book found for ISBN {isbn}")
        cover_path = None
        media = getattr(state.store, "media", None)
        if meta.cover_url and media is not None:
            cover_path = await lookup.download_cover(meta.cover_url, media)
        book = state.store.add_book(
            meta.title, author=meta.author, isbn=meta.isbn, cover_image_path=cover_path
        )
        return book_payload(book) or {}

    @mcp.tool
    def archive_book(book_id: str, archived: bool = True) -> Optional[Dict[str, Any]]:
        """Archive or unarchive a book. Null if it does not exist."""
        return book_payload(get_state().store.set_archived(book_id, archived))

    @mcp.tool
    def delete_book(book_id: str) -> Dict[str, Any]:
        """Delete a book together with all of its annotations and media."""
        return {"deleted": get_state().store.delete_book(book_id), "book_id": book_id}

    @mcp.tool
    def list_book_annotations(book_id: str) -> List[Dict[str, Any]]:
        """List a book's annotations, newest first."""
        return [annotation_payload(a) for a in get_state().store.list_annotations_for_book(book_id)]

    @mcp.tool
    def add_text_annotation(
        book_id: str, text: str, page_number: Optional[str] = None
    ) -> Dict[str, Any]:
        """Attach a text note to a book."""
        annotation = get_state().store.add_annotation(
            book_id, AnnotationType.TEXT, caption=text, page_number=page_number
        )
        return annotation_payload(annotation)

    @mcp.tool
    def update_annotation(
        annotation_id: str, text: Optional[str] = None, page_number: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Edit an annotation's text (transcription for audio, caption otherwise) and page."""
        annotation = get_state().store.update_text(annotation_id, text, page_number)
        return annotation_payload(annotation) if annotation is not None else None

    @mcp.tool
    def delete_annotation(annotation_id: str) -> Dict[str, Any]:
        """Delete an annotation and its media file."""
        return {
            "deleted": get_state().store.delete_annotation(annotation_id),
            "annotation_id": annotation_id,
        }
