"""Round operations, independent of the HTTP transport."""

import logging
from typing import Optional
from urllib.parse import quote

from .config import get_config
from .curator import SongCurator
from .errors import ValidationError
from .fallback_search import OEmbedLookup, SerpApiSearch
from .filters import FilterChain
from .media import AudioTrimmer, MediaTool
from .preparer import ClipPreparer
from .registry import UsedVideoRegistry, get_used_registry
from .resolver import (CachedSongTier, FallbackSearchTier, GenericSearchTier,
                       ResolutionPipeline)
from .rounds import Round, RoundState, RoundStore, evaluate_guess
from .song_cache import LanguageSongCache

logger = logging.getLogger(__name__)

MIN_CLIP_SECONDS = 1


def normalize_language(language: Optional[str]) -> str:
    lang = (language or "").strip().lower()
    if not lang:
        raise ValidationError("missing lang parameter, e.g. ?lang=english")
    return lang


def parse_clip_length(value, default: int = 30, maximum: int = 300) -> int:
    """Parse the requested clip length, clamped to [1, maximum]."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"clipLength must be an integer, got {value!r}")
    return max(MIN_CLIP_SECONDS, min(maximum, seconds))


class SongGame:
    """Wires the resolver, round store and clip preparer into the six round operations."""

    def __init__(self, resolver: ResolutionPipeline, store: RoundStore, preparer: ClipPreparer,
                 cache: LanguageSongCache, default_clip_seconds: int = 30, max_clip_seconds: int = 300):
        self.resolver = resolver
        self.store = store
        self.preparer = preparer
        self.cache = cache
        self.default_clip_seconds = default_clip_seconds
        self.max_clip_seconds = max_clip_seconds

    @classmethod
    def from_config(cls, config: Optional[dict] = None,
                    registry: Optional[UsedVideoRegistry] = None) -> "SongGame":
        config = config or get_config()
        registry = registry or get_used_registry()

        curator = SongCurator(
            api_key=config['OPENAI_API_KEY'],
            model=config['OPENAI_MODEL'],
            list_timeout=float(config['CURATION_TIMEOUT_SECONDS']),
            query_timeout=float(config['QUERY_TIMEOUT_SECONDS']),
        )
        media = MediaTool(
            search_timeout=float(config['SEARCH_TIMEOUT_SECONDS']),
            probe_timeout=float(config['METADATA_TIMEOUT_SECONDS']),
        )
        chain = FilterChain(
            registry,
            min_seconds=int(config['MIN_SONG_SECONDS']),
            max_seconds=int(config['MAX_SONG_SECONDS']),
        )
        cache = LanguageSongCache(curator)
        serp = SerpApiSearch(config['SERPAPI_API_KEY'], timeout=float(config['SEARCH_TIMEOUT_SECONDS']))
        oembed = OEmbedLookup(timeout=float(config['METADATA_TIMEOUT_SECONDS']))

        resolver = ResolutionPipeline([
            CachedSongTier(cache, media, chain),
            FallbackSearchTier(serp, oembed, media, chain),
            GenericSearchTier(media, chain, top_k=int(config['GENERIC_SEARCH_RESULTS'])),
        ], curator=curator)

        store = RoundStore()
        preparer = ClipPreparer(
            store, media, AudioTrimmer(),
            workers=int(config['PREPARE_WORKERS']),
            timeout=float(config['PREPARE_TIMEOUT_SECONDS']),
            clip_dir=config['CLIP_DIR'],
        )
        logger.info("Curation enabled: %s, fallback search enabled: %s",
                    curator.is_enabled(), serp.is_enabled())
        return cls(resolver, store, preparer, cache,
                   default_clip_seconds=int(config['DEFAULT_CLIP_SECONDS']),
                   max_clip_seconds=int(config['MAX_CLIP_SECONDS']))

    def start(self, language: Optional[str], clip_length=None) -> dict:
        """Resolve a song synchronously, create a Pending round, prepare the clip in the background."""
        lang = normalize_language(language)
        seconds = parse_clip_length(clip_length, self.default_clip_seconds, self.max_clip_seconds)
        song = self.resolver.resolve(lang, seconds)
        round_id = self.store.create(song.title, song.artist, song.source_ref, seconds)
        self.preparer.dispatch(round_id)
        return {"id": round_id, "clip_url": f"/clip?id={quote(round_id)}"}

    def status(self, round_id: str) -> dict:
        rnd = self.store.get(round_id)
        return {
            "ready": rnd.ready,
            "error": rnd.error if rnd.state is RoundState.FAILED else None,
            "state": rnd.state.value,
        }

    def clip(self, round_id: str) -> Round:
        """Return the round; the caller decides between audio, not-ready and error."""
        return self.store.get(round_id)

    def guess(self, round_id: str, guess: str) -> dict:
        rnd = self.store.get(round_id)
        return {"correct": evaluate_guess(guess, rnd.title, rnd.artist)}

    def reveal(self, round_id: str) -> dict:
        rnd = self.store.get(round_id)
        return {"title": rnd.title, "artist": rnd.artist, "youtube": rnd.source_ref}

    def refresh_cache(self, language: Optional[str]) -> dict:
        """Force a new curated batch; CurationError propagates to the caller."""
        lang = normalize_language(language)
        logger.info("Refreshing song cache for language: %s", lang)
        loaded = self.cache.refresh(lang)
        return {"status": "cache refreshed", "songs_loaded": loaded}

    def shutdown(self) -> None:
        self.preparer.shutdown()
