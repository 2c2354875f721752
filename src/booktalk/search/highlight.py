"""Display highlighting for search results.

Highlighting is a literal, case-insensitive substring match of the typed
query. It is deliberately independent of the tokenised prefix match used for
ranking, so multi-word or partially typed queries may highlight less than
what matched.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from booktalk.storage.models import Annotation

HighlightRange = Tuple[int, int]


def matched_text(annotation: Annotation) -> str:
    """Transcription when present and non-empty, else caption, else ""."""
    if annotation.transcription:
        return annotation.transcription
    return annotation.caption or ""


def find_highlight_ranges(text: str, query: Optional[str]) -> List[HighlightRange]:
    """Half-open ``(start, end)`` spans of every occurrence of `query` in `text`.

    Left to right and non-overlapping: scanning resumes at the end of each match.
    """
    if not text or not query:
        return []
    pattern = re.compile(re.escape(query), re.IGNORECASE)
    return [m.span() for m in pattern.finditer(text)]
