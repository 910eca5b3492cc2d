"""SerpAPI web search fallback and YouTube oEmbed metadata lookup."""

import json
import logging
from typing import Dict, List, Optional

import requests

from .errors import ToolInvocationError, short
from .filters import Candidate

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search.json"
OEMBED_URL = "https://www.youtube.com/oembed"


class SerpApiSearch:
    """Google results via SerpAPI, reduced to YouTube watch links."""

    def __init__(self, api_key: str, timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.api_key = (api_key or "").strip()
        self.timeout = timeout
        self.session = session or requests.Session()

    def is_enabled(self) -> bool:
        return bool(self.api_key)

    def search(self, query: str) -> Dict[str, list]:
        """Return ``{"organic_results": [...], "video_results": [...]}``."""
        params = {"q": query, "engine": "google", "api_key": self.api_key}
        try:
            resp = self.session.get(SERPAPI_URL, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, json.JSONDecodeError) as exc:
            raise ToolInvocationError(f"SerpAPI request failed: {exc}") from exc
        logger.debug("SerpAPI response (truncated): %s", short(json.dumps(data), 800))
        if not isinstance(data, dict):
            raise ToolInvocationError("SerpAPI returned a non-object response")
        return {
            "organic_results": data.get("organic_results") or [],
            "video_results": data.get("video_results") or [],
        }

    def youtube_links(self, query: str) -> List[Candidate]:
        """Watch links from organic then video results, durations unknown."""
        data = self.search(query)
        found = []
        for section in ("organic_results", "video_results"):
            for item in data[section]:
                if not isinstance(item, dict):
                    continue
                link = item.get("link") or ""
                if "youtube.com/watch" not in link:
                    continue
                found.append(Candidate(title=item.get("title") or "", artist="", source_ref=link))
        logger.info("SerpAPI %r: %d YouTube links", query, len(found))
        return found


class OEmbedLookup:
    """Public title/author lookup keyed by a video URL."""

    def __init__(self, timeout: float = 8.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def lookup(self, url: str) -> Dict[str, str]:
        try:
            resp = self.session.get(OEMBED_URL, params={"url": url, "format": "json"}, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, json.JSONDecodeError) as exc:
            raise ToolInvocationError(f"oEmbed lookup failed for {url}: {exc}") from exc
        if not isinstance(data, dict):
            raise ToolInvocationError(f"oEmbed returned a non-object response for {url}")
        return {
            "title": data.get("title") or "",
            "author_name": data.get("author_name") or "",
        }
