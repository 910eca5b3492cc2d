"""Candidate types and the accept/reject chain applied at every tier."""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .registry import UsedVideoRegistry, extract_video_id

logger = logging.getLogger(__name__)

BANNED_KEYWORDS = [
    "mix", "compilation", "medley", "playlist", "full album", "full song",
    "continuous", "best of", "mega mix", "mashup", "various artists",
    "compilations", "album", "album version", "greatest hits",
    "popular songs", "top hits",
]

MIN_SONG_SECONDS = 20
MAX_SONG_SECONDS = 480


@dataclass(frozen=True)
class SongCandidate:
    """A curated (title, artist) pair, not yet matched to any media."""
    title: str
    artist: str = ""

    def search_query(self) -> str:
        if self.artist:
            return f"{self.title} {self.artist}"
        return self.title


@dataclass(frozen=True)
class Candidate:
    """A song proposed by a tier, tied to a concrete source reference."""
    title: str
    artist: str
    source_ref: str
    duration: Optional[float] = None

    @property
    def video_id(self) -> str:
        return extract_video_id(self.source_ref)


def is_banned(text: str, banned: Iterable[str] = BANNED_KEYWORDS) -> bool:
    lowered = (text or "").lower()
    return any(word in lowered for word in banned)


class FilterChain:
    """Duration window, banned keywords, then global dedup.

    ``rejection_reason`` is a pure check; ``accept`` additionally claims the
    video id in the registry, so only one concurrent caller can win it.
    """

    def __init__(self, registry: UsedVideoRegistry, banned_keywords: Optional[List[str]] = None,
                 min_seconds: int = MIN_SONG_SECONDS, max_seconds: int = MAX_SONG_SECONDS):
        self.registry = registry
        self.banned_keywords = list(banned_keywords if banned_keywords is not None else BANNED_KEYWORDS)
        self.min_seconds = min_seconds
        self.max_seconds = max_seconds

    def rejection_reason(self, candidate: Candidate) -> Optional[str]:
        # Unknown duration gets the benefit of the doubt
        if candidate.duration is not None and candidate.duration > 0:
            if candidate.duration < self.min_seconds or candidate.duration > self.max_seconds:
                return f"duration {int(candidate.duration)}s outside [{self.min_seconds}, {self.max_seconds}]"
        if is_banned(candidate.title, self.banned_keywords):
            return "title contains banned keywords"
        vid = candidate.video_id
        if not vid:
            return "no video id in source reference"
        if self.registry.contains(vid):
            return f"video {vid} already used"
        return None

    def survivors(self, candidates: Iterable[Candidate]) -> List[Candidate]:
        """Candidates passing every check, without claiming any of them."""
        kept = []
        for candidate in candidates:
            reason = self.rejection_reason(candidate)
            if reason:
                logger.info("Skipping %r (%s): %s", candidate.title, candidate.source_ref, reason)
                continue
            kept.append(candidate)
        return kept

    def accept(self, candidate: Candidate) -> bool:
        """Run the chain and claim the video id if everything passes."""
        reason = self.rejection_reason(candidate)
        if reason:
            logger.info("Skipping %r (%s): %s", candidate.title, candidate.source_ref, reason)
            return False
        if not self.registry.claim(candidate.video_id):
            logger.info("Skipping %r: video %s claimed by a concurrent resolution",
                        candidate.title, candidate.video_id)
            return False
        return True
