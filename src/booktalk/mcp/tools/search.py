"""Search and feed tools for FastMCP."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from fastmcp import FastMCP

from booktalk.feed.ordering import new_seed

from .payloads import feed_page_payload, search_result_payload


def register_search_tools(mcp: FastMCP, get_state: Callable[[], Any]) -> None:
    """Register annotation search and feed tools on the given FastMCP instance.

    Uses state.composer (a `FeedComposer`) and state.settings.feed.page_size.
    """

    def _page_size(state: Any, limit: Optional[int]) -> int:
        if limit:
            return int(limit)
        settings = getattr(state, "settings", None)
        feed_cfg = getattr(settings, "feed", None)
        return int(getattr(feed_cfg, "page_size", 20))

    @mcp.tool
    def search_annotations(query: str) -> List[Dict[str, Any]]:
        """Full-text search over annotation captions and transcriptions.

        The last word is matched as a prefix. Returns at most 50 results, best
        first, each with its book and highlight ranges into matched_text.
        """
        state = get_state()
        return [search_result_payload(r) for r in state.composer.search(query)]

    @mcp.tool
    def feed_new_seed() -> str:
        """Start a fresh shuffle: returns a new seed for feed_page."""
        return str(new_seed())

    @mcp.tool
    def feed_page(seed: str, offset: int = 0, limit: Optional[int] = None) -> Dict[str, Any]:
        """Fetch one page of the shuffled feed.

        Parameters
        ----------
        seed: str
            Seed from feed_new_seed. Keep it while loading more pages.
        offset: int
            Rows already shown; pass the previous page's next_offset.
        limit: int | None
            Page size (defaults to the configured feed page size).
        """
        state = get_state()
        page = state.composer.page(int(seed), _page_size(state, limit), offset)
        return feed_page_payload(page)

    @mcp.tool
    def recent_annotations(offset: int = 0, limit: Optional[int] = None) -> Dict[str, Any]:
        """Fetch one page of annotations across all books, newest first."""
        state = get_state()
        page = state.composer.recent(_page_size(state, limit), offset)
        return feed_page_payload(page)
