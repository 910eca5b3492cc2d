"""Resolve a language into a playable song through ordered fallback tiers.

Tiers are tried in a fixed order until one accepts a candidate:

1. curated cache, searched one song at a time in cursor order
2. SerpAPI web search (only with SERPAPI_API_KEY), random pick among survivors
3. generic yt-dlp search, random pick among survivors
4. a fixed placeholder, so resolution never fails
"""

import logging
import random
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from .curator import SongCurator
from .errors import CurationError, EmptyCache, SongQuizError, ToolInvocationError
from .fallback_search import OEmbedLookup, SerpApiSearch
from .filters import Candidate, FilterChain
from .media import MediaTool
from .song_cache import LanguageSongCache

logger = logging.getLogger(__name__)

GENERIC_QUERY = "popular songs in {language} YouTube from the last 2 years"


@dataclass(frozen=True)
class Resolution:
    title: str
    artist: str
    source_ref: str
    tier: str = ""


PLACEHOLDER = Resolution(
    title="Sample Song",
    artist="Sample Artist",
    source_ref="https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    tier="placeholder",
)


class ResolutionContext:
    """Per-request state shared by the tiers (the crafted query is built once)."""

    def __init__(self, language: str, clip_length: Optional[int] = None,
                 curator: Optional[SongCurator] = None):
        self.language = language
        self.clip_length = clip_length
        self.curator = curator
        self._query: Optional[str] = None

    def query(self) -> str:
        if self._query is None:
            crafted = ""
            if self.curator is not None and self.curator.is_enabled():
                try:
                    crafted = self.curator.craft_search_query(self.language)
                except CurationError as exc:
                    logger.warning("Search query crafting failed: %s", exc)
            self._query = crafted or GENERIC_QUERY.format(language=self.language)
        return self._query


def pick_and_claim(chain: FilterChain, survivors: Sequence[Candidate],
                   rng: random.Random) -> Optional[Candidate]:
    """Pick uniformly among survivors; re-pick if a concurrent caller won the claim."""
    pool = list(survivors)
    while pool:
        choice = rng.choice(pool)
        if chain.accept(choice):
            return choice
        pool.remove(choice)
    return None


class Tier:
    name = ""

    def is_available(self) -> bool:
        return True

    def resolve(self, ctx: ResolutionContext) -> Optional[Resolution]:
        raise NotImplementedError


class CachedSongTier(Tier):
    """Search curated songs in cursor order, at most one full cycle."""

    name = "cache"

    def __init__(self, cache: LanguageSongCache, media: MediaTool, chain: FilterChain):
        self.cache = cache
        self.media = media
        self.chain = chain

    def resolve(self, ctx):
        try:
            size = self.cache.ensure_fresh(ctx.language)
        except CurationError as exc:
            logger.warning("Song cache unavailable for %s: %s", ctx.language, exc)
            return None

        for _ in range(size):
            try:
                song = self.cache.next_candidate(ctx.language)
            except EmptyCache as exc:
                # Another request swapped the batch to a different language
                logger.info("Song cache changed under iteration: %s", exc)
                return None

            query = song.search_query()
            logger.info("Searching for cached song: %s", query)
            try:
                hits = self.media.search(query, 1)
            except ToolInvocationError as exc:
                logger.warning("Search error for %s: %s", query, exc)
                continue
            if not hits:
                logger.info("No video found for %s", query)
                continue

            hit = hits[0]
            candidate = Candidate(title=song.title, artist=song.artist,
                                  source_ref=hit.source_ref, duration=hit.duration)
            if self.chain.accept(candidate):
                logger.info("Using cached song: %s by %s", song.title, song.artist)
                return Resolution(song.title, song.artist, hit.source_ref, self.name)

        logger.info("No usable songs in cache for %s", ctx.language)
        return None


class FallbackSearchTier(Tier):
    """Web search for YouTube links; display fields come from oEmbed."""

    name = "fallback_search"

    def __init__(self, serp: SerpApiSearch, oembed: OEmbedLookup, media: MediaTool,
                 chain: FilterChain, rng: Optional[random.Random] = None):
        self.serp = serp
        self.oembed = oembed
        self.media = media
        self.chain = chain
        self.rng = rng or random.Random()

    def is_available(self):
        return self.serp.is_enabled()

    def resolve(self, ctx):
        links = self.serp.youtube_links(ctx.query())
        # Cheap checks first, then probe durations only for what is left
        survivors = self.chain.survivors(links)
        probed = [replace(c, duration=self.media.probe_duration(c.source_ref)) for c in survivors]
        survivors = self.chain.survivors(probed)

        chosen = pick_and_claim(self.chain, survivors, self.rng)
        if chosen is None:
            logger.info("No usable fallback search results for %r", ctx.query())
            return None

        title, artist = chosen.title, ""
        try:
            meta = self.oembed.lookup(chosen.source_ref)
            title = meta["title"] or title
            artist = meta["author_name"]
        except ToolInvocationError as exc:
            logger.warning("Metadata lookup failed, keeping search title: %s", exc)
        return Resolution(title, artist, chosen.source_ref, self.name)


class GenericSearchTier(Tier):
    """Top-K media search for the crafted (or generic) query."""

    name = "generic_search"

    def __init__(self, media: MediaTool, chain: FilterChain, top_k: int = 5,
                 rng: Optional[random.Random] = None):
        self.media = media
        self.chain = chain
        self.top_k = top_k
        self.rng = rng or random.Random()

    def resolve(self, ctx):
        hits = self.media.search(ctx.query(), self.top_k)
        chosen = pick_and_claim(self.chain, self.chain.survivors(hits), self.rng)
        if chosen is None:
            return None
        return Resolution(chosen.title, chosen.artist, chosen.source_ref, self.name)


class ResolutionPipeline:
    """Total resolver: always returns a song, degrading to the placeholder."""

    def __init__(self, tiers: List[Tier], curator: Optional[SongCurator] = None,
                 placeholder: Resolution = PLACEHOLDER):
        self.tiers = list(tiers)
        self.curator = curator
        self.placeholder = placeholder

    def resolve(self, language: str, clip_length: Optional[int] = None) -> Resolution:
        ctx = ResolutionContext(language, clip_length, self.curator)
        for tier in self.tiers:
            if not tier.is_available():
                logger.debug("Tier %s not configured, skipping", tier.name)
                continue
            try:
                result = tier.resolve(ctx)
            except SongQuizError as exc:
                logger.warning("Tier %s failed for %s: %s", tier.name, language, exc)
                continue
            except Exception:  # noqa: BLE001
                logger.exception("Tier %s crashed for %s", tier.name, language)
                continue
            if result is not None:
                logger.info("Resolved %s via %s: %s by %s (%s)",
                            language, tier.name, result.title, result.artist, result.source_ref)
                return result
        logger.warning("All tiers exhausted for %s, using placeholder", language)
        return self.placeholder
