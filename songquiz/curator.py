"""OpenAI-powered song curation and search query crafting."""

import json
import logging
import re
from typing import Any, List, Optional

from openai import OpenAI, OpenAIError

from .errors import CurationError, short
from .filters import SongCandidate

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

SONG_LIST_PROMPT = """Provide a JSON array of 10-15 popular and recent songs in the {language} language from the last 2 years.
For each song, include the title and artist name.
Return ONLY a valid JSON array like:
[{{"title":"Song Title","artist":"Artist Name"}}]

Requirements:
- Include only well-known official songs
- Avoid compilations, covers, remixes, and album uploads
- Prefer recent releases from the last 2 years
- One song per entry"""

SEARCH_QUERY_PROMPT = (
    "Produce a short web search query (one line) to find popular YouTube songs in the {language} "
    "language. Prefer concise keywords only, suitable for use in a search engine (no extra "
    "explanation). Bias results toward recent releases (last 2 years)."
)

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def _field(entry: dict, name: str) -> str:
    """Look up a key regardless of casing (title / Title / TITLE)."""
    for key, value in entry.items():
        if isinstance(key, str) and key.strip().lower() == name and isinstance(value, str):
            return value.strip()
    return ""


def _find_list(data: Any) -> Optional[list]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        # Some answers wrap the array: {"songs": [...]}
        for value in data.values():
            if isinstance(value, list):
                return value
    return None


def parse_song_list(text: str) -> List[SongCandidate]:
    """Tolerantly parse a curated song list.

    Accepts markdown fences and prose around the JSON, wrapped arrays, and
    title/artist keys in any casing. Entries without a title are dropped.

    Raises:
        CurationError: if nothing usable remains.
    """
    text = (text or "").strip()
    if not text:
        raise CurationError("no content from curation service")

    text = _FENCE.sub("", text).strip()

    data = None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("[")
        end = text.rfind("]")
        if start >= 0 and end > start:
            try:
                data = json.loads(text[start:end + 1])
            except json.JSONDecodeError as exc:
                logger.warning("Song list JSON parse failed: %s; raw: %s", exc, short(text, 500))
                raise CurationError(f"could not parse song list: {exc}") from exc

    entries = _find_list(data)
    if entries is None:
        raise CurationError("could not find a song list in curation response")

    songs: List[SongCandidate] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        title = _field(entry, "title")
        if not title:
            continue
        songs.append(SongCandidate(title=title, artist=_field(entry, "artist")))

    if not songs:
        raise CurationError("no valid songs found")
    logger.info("Extracted %d valid songs from %d entries", len(songs), len(entries))
    return songs


class SongCurator:
    """Thin client over the generative text service."""

    def __init__(self, api_key: str = "", model: str = DEFAULT_MODEL,
                 list_timeout: float = 20.0, query_timeout: float = 15.0, client=None):
        self.api_key = (api_key or "").strip()
        self.model = model or DEFAULT_MODEL
        self.list_timeout = list_timeout
        self.query_timeout = query_timeout
        self._client = client

    def is_enabled(self) -> bool:
        return bool(self._client is not None or self.api_key)

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise CurationError("curation service not configured (OPENAI_API_KEY missing)")
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def generate(self, prompt: str, timeout: float) -> str:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": "You are a music expert. Follow the output format exactly."},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.7,
                max_tokens=1200,
                timeout=timeout,
            )
        except OpenAIError as exc:
            raise CurationError(f"curation request failed: {exc}") from exc
        content = response.choices[0].message.content if response.choices else None
        return (content or "").strip()

    def craft_song_list(self, language: str) -> List[SongCandidate]:
        """Ask for a fresh batch of (title, artist) candidates."""
        text = self.generate(SONG_LIST_PROMPT.format(language=language), self.list_timeout)
        logger.info("Curation song list response: %s", short(text, 800))
        return parse_song_list(text)

    def craft_search_query(self, language: str) -> str:
        """Return a concise one-line search query for popular songs in ``language``."""
        text = self.generate(SEARCH_QUERY_PROMPT.format(language=language), self.query_timeout)
        lines = [line.strip().strip('"\'').strip() for line in _FENCE.sub("", text).splitlines()]
        query = next((line for line in lines if line), "")
        if not query:
            raise CurationError("no content from curation service")
        logger.info("Crafted search query: %s", query)
        return query
