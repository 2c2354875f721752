"""Tool registration modules for the BookTalk MCP server."""

from .library import register_library_tools
from .search import register_search_tools

__all__ = [
    "register_library_tools",
    "register_search_tools",
]
