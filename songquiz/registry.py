"""Process-wide record of media that has already been served.

A video used for one language is barred for every language. Entries are never
removed for the lifetime of the process.
"""

import logging
import re
import threading
from typing import Optional, Set
from urllib.parse import urlparse, parse_qs

logger = logging.getLogger(__name__)

# Real YouTube ids are 11 characters, but shorter ids are accepted for testing
YOUTUBE_URL_PATTERNS = [
    re.compile(r'(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([a-zA-Z0-9_-]+)'),
    re.compile(r'youtube\.com/v/([a-zA-Z0-9_-]+)'),
    re.compile(r'youtube\.com/shorts/([a-zA-Z0-9_-]+)'),
]
# Only a standalone v parameter, never the tail of a longer key like dev=
_V_PARAM = re.compile(r"[?&]v=([^&?#]+)")


def extract_video_id(url: str) -> str:
    """Return the canonical video id embedded in a source URL, or "".

    Structured parsing handles both the path form (youtu.be/<id>, /embed/<id>)
    and the query form (?v=<id>); a plain ``v=`` scan is the last resort.
    """
    if not url:
        return ""

    try:
        parsed = urlparse(url)
    except ValueError:
        parsed = None

    if parsed is not None and parsed.netloc:
        host = parsed.netloc.lower()
        if host in ("youtu.be", "www.youtu.be"):
            vid = parsed.path.lstrip("/").split("/")[0]
            if vid:
                return vid
        values = parse_qs(parsed.query).get("v")
        if values and values[0]:
            return values[0]

    for pattern in YOUTUBE_URL_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)

    match = _V_PARAM.search(url)
    return match.group(1) if match else ""


class UsedVideoRegistry:
    """Set of media identifiers already handed out, guarded by its own lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._used: Set[str] = set()

    def contains(self, video_id: str) -> bool:
        if not video_id:
            return False
        with self._lock:
            return video_id in self._used

    def mark_used(self, video_id: str) -> None:
        if not video_id:
            return
        with self._lock:
            self._used.add(video_id)

    def claim(self, video_id: str) -> bool:
        """Atomically check and mark an identifier.

        Returns:
            True if the id was unused and is now recorded
            False if it was already used (or empty)
        """
        if not video_id:
            return False
        with self._lock:
            if video_id in self._used:
                return False
            self._used.add(video_id)
        logger.info("Marked video %s as used", video_id)
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._used)


# Global instance
_registry: Optional[UsedVideoRegistry] = None
_registry_lock = threading.Lock()


def get_used_registry() -> UsedVideoRegistry:
    """Get or create the process-wide registry."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = UsedVideoRegistry()
        return _registry
