"""Per-language batch of curated songs with a cyclic cursor.

The batch is replaced wholesale on language change, on an empty batch, or on
an explicit refresh. The lock only covers in-memory reads and swaps; callers
must never hold it across a curation or search call.
"""

import logging
import threading
from typing import List, Optional

from .curator import SongCurator
from .errors import EmptyCache
from .filters import SongCandidate

logger = logging.getLogger(__name__)


class LanguageSongCache:
    def __init__(self, curator: SongCurator):
        self.curator = curator
        self._lock = threading.Lock()
        self._language = ""
        self._items: List[SongCandidate] = []
        self._cursor = 0

    def _is_fresh_for(self, language: str) -> bool:
        with self._lock:
            return bool(self._items) and self._language == language

    def ensure_fresh(self, language: str) -> int:
        """Load a batch for ``language`` unless one is already cached.

        Returns the batch size. Raises CurationError on failure, leaving the
        previous batch untouched.
        """
        if self._is_fresh_for(language):
            with self._lock:
                return len(self._items)
        logger.info("Refreshing song cache for language: %s", language)
        return self.refresh(language)

    def refresh(self, language: str) -> int:
        """Unconditionally replace the batch with a fresh one for ``language``."""
        # Curation runs outside the lock
        songs = self.curator.craft_song_list(language)
        with self._lock:
            self._items = list(songs)
            self._cursor = 0
            self._language = language
            size = len(self._items)
        logger.info("Cache refreshed with %d songs for language: %s", size, language)
        return size

    def next_candidate(self, language: Optional[str] = None) -> SongCandidate:
        """Return the song at the cursor and advance it, wrapping at the end.

        When ``language`` is given, a batch for any other language counts as
        empty.
        """
        with self._lock:
            if not self._items:
                raise EmptyCache("no cached song batch")
            if language is not None and language != self._language:
                raise EmptyCache(f"cached batch is for {self._language!r}, not {language!r}")
            song = self._items[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._items)
            return song

    def size(self, language: Optional[str] = None) -> int:
        with self._lock:
            if language is not None and language != self._language:
                return 0
            return len(self._items)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "language": self._language,
                "items": list(self._items),
                "cursor": self._cursor,
            }
