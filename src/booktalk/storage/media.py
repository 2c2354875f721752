"""On-disk media for annotations and book covers.

Records store paths relative to a per-kind directory under the media root
(``audio/``, ``images/``, ``videos/``, ``covers/``).
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .models import Annotation, Book

logger = logging.getLogger(__name__)

_DIRECTORIES = {
    "audio_path": "audio",
    "image_path": "images",
    "video_path": "videos",
}
COVERS_DIR = "covers"


class MediaLibrary:
    """Resolves and removes media files referenced by records."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser()

    def directory(self, name: str) -> Path:
        path = self.root / name
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def covers_directory(self) -> Path:
        return self.directory(COVERS_DIR)

    def annotation_files(self, annotation: Annotation) -> List[Path]:
        """Absolute paths of every media file referenced by `annotation`."""
        files: List[Path] = []
        for field, dirname in _DIRECTORIES.items():
            rel = getattr(annotation, field)
            if rel:
                files.append(self.root / dirname / rel)
        return files

    def cover_file(self, book: Book) -> Optional[Path]:
        if not book.cover_image_path:
            return None
        return self.root / COVERS_DIR / book.cover_image_path

    def write_cover(self, data: bytes, *, suffix: str = ".jpg") -> str:
        """Store cover image bytes and return the path relative to ``covers/``."""
        name = f"{uuid.uuid4()}{suffix}"
        (self.covers_directory / name).write_bytes(data)
        return name

    def remove(self, paths: Iterable[Path]) -> int:
        """Best-effort removal; the records are already gone when this runs.

        Returns how many files were actually deleted.
        """
        removed = 0
        for path in paths:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not remove media file %s: %s", path, exc)
        return removed
