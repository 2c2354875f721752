"""Open Library connector for looking up book metadata by ISBN.

Uses the public Open Library JSON API via httpx. No authentication.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from booktalk.exceptions import LookupServiceError
from booktalk.storage.media import MediaLibrary

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BookMetadata:
    title: str
    isbn: str
    author: Optional[str] = None
    cover_url: Optional[str] = None


def clean_isbn(isbn: str) -> str:
    return isbn.replace("-", "").replace(" ", "").strip()


class OpenLibraryConnector:
    def __init__(
        self,
        *,
        base_url: str = "https://openlibrary.org",
        covers_base_url: str = "https://covers.openlibrary.org",
        timeout: float = 15.0,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.covers_base_url = covers_base_url.rstrip("/")
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            verify=self.verify_ssl,
            headers=headers,
            follow_redirects=True,
        )

    def cover_url(self, cover_id: int) -> str:
        return f"{self.covers_base_url}/b/id/{cover_id}-L.jpg"

    async def lookup(self, isbn: str) -> Optional[BookMetadata]:
        """Fetch title, first author and cover URL for `isbn`.

        Returns None when the ISBN is unknown or the record has no title.
        Raises `LookupServiceError` when Open Library cannot be reached.
        """
        isbn = clean_isbn(isbn)
        if not isbn:
            return None
        try:
            async with self._client() as client:
                resp = await client.get(f"/isbn/{isbn}.json")
                if resp.status_code != 200:
                    logger.info("Book not found for ISBN %s (HTTP %s)", isbn, resp.status_code)
                    return None
                try:
                    data = resp.json()
                except ValueError:
                    logger.info("Unreadable record for ISBN %s", isbn)
                    return None
                if not isinstance(data, dict):
                    return None
                title = data.get("title")
                if not isinstance(title, str) or not title.strip():
                    return None
                author = await self._first_author(client, data)
        except httpx.TransportError as exc:
            raise LookupServiceError(f"Open Library unreachable: {exc}") from exc

        cover_url = None
        covers = data.get("covers")
        if isinstance(covers, list):
            cover_id = next((c for c in covers if isinstance(c, int) and c > 0), None)
            if cover_id is not None:
                cover_url = self.cover_url(cover_id)
        return BookMetadata(title=title.strip(), isbn=isbn, author=author, cover_url=cover_url)

    async def _first_author(self, client: httpx.AsyncClient, data: Dict[str, Any]) -> Optional[str]:
        authors = data.get("authors")
        if not isinstance(authors, list) or not authors:
            return None
        first = authors[0]
        key = first.get("key") if isinstance(first, dict) else None
        if not isinstance(key, str):
            return None
        # Losing the author must not lose the book.
        try:
            resp = await client.get(f"{key}.json")
            if resp.status_code != 200:
                return None
            payload = resp.json()
        except (httpx.TransportError, ValueError) as exc:
            logger.info("Author lookup failed for %s: %s", key, exc)
            return None
        name = payload.get("name") if isinstance(payload, dict) else None
        return name if isinstance(name, str) else None

    async def download_cover(self, url: str, media: MediaLibrary) -> Optional[str]:
        """Download a cover image into the media library.

        Returns the stored path relative to ``covers/``, or None on failure.
        """
        try:
            async with self._client() as client:
                resp = await client.get(url)
        except httpx.TransportError as exc:
            logger.warning("Cover download failed for %s: %s", url, exc)
            return None
        if resp.status_code != 200 or not resp.content:
            return None
        return media.write_cover(resp.content)
