"""BookTalk MCP server entrypoint using FastMCP.

Exposes the library, annotation search and shuffled feed as tools.
Run with:
  - poetry run booktalk-mcp
  - or: python -m booktalk.mcp.server (ensure PYTHONPATH includes ./src)
"""
from __future__ import annotations

import logging
from typing import Optional

from fastmcp import FastMCP

from booktalk.config import Settings, load_settings
from booktalk.feed.composer import FeedComposer
from booktalk.mcp.tools import register_library_tools, register_search_tools
from booktalk.storage.store import RecordStore

logger = logging.getLogger(__name__)


class AppState:
    """Application state shared by MCP tools."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.store: Optional[RecordStore] = None
        self.composer: Optional[FeedComposer] = None

    def init_store(self) -> None:
        """Open the record store and build the search/feed layer on top of it."""
        db = self.settings.database
        self.store = RecordStore.open(db.url, media_root=self.settings.media.root, echo=db.echo)
        self.composer = FeedComposer(self.store)


# Global state and server instance
_state: Optional[AppState] = None
mcp = FastMCP("BookTalk MCP Server")


# ----- Tools -----

@mcp.tool
def health() -> str:
    """Simple health check tool."""
    return "ok"


# ----- Entrypoint -----

def main() -> None:
    """Initialize state and run the MCP server."""
    global _state
    settings = load_settings()
    logging.basicConfig(
        level=settings.app.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _state = AppState(settings)
    _state.init_store()
    logger.info("Starting %s (%s transport)", settings.app.name, settings.app.transport)
    register_library_tools(mcp, get_state=lambda: _state)
    register_search_tools(mcp, get_state=lambda: _state)
    # Choose transport based on configuration: stdio (default), http, or sse
    transport = settings.app.transport
    if transport in ("http", "sse"):
        mcp.run(transport=transport, host=settings.app.host, port=settings.app.port)
    else:
        mcp.run()


if __name__ == "__main__":  # pragma: no cover
    main()
