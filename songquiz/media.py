"""Search, download and trim audio using yt-dlp and pydub.

- MediaTool.search(): top-K search results as candidates
- MediaTool.probe_duration(): duration lookup for a single link
- MediaTool.download(): best audio stream into a scratch directory
- AudioTrimmer.trim(): clip from offset zero, exported as mp3
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError, CouldntEncodeError
from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError, ExtractorError

from .errors import ToolInvocationError, short
from .filters import Candidate

logger = logging.getLogger(__name__)

CLIP_FILENAME = "clip.mp3"


class YDLLogger:
    """Forward yt-dlp messages to the module logger."""

    def debug(self, msg):
        txt = str(msg)
        if not txt.startswith('[debug] '):
            logger.debug(txt)

    def info(self, msg):
        logger.debug(str(msg))

    def warning(self, msg):
        logger.warning("yt-dlp: %s", short(msg, 800))

    def error(self, msg):
        logger.error("yt-dlp: %s", short(msg, 800))


def _duration(entry: Dict[str, Any]) -> Optional[float]:
    for key in ("duration", "duration_seconds", "length"):
        value = entry.get(key)
        if isinstance(value, (int, float)) and value > 0:
            return float(value)
    return None


def _entry_url(entry: Dict[str, Any]) -> str:
    url = entry.get("webpage_url") or entry.get("url") or ""
    if not url.startswith("http") and entry.get("id"):
        url = f"https://www.youtube.com/watch?v={entry['id']}"
    return url


def entries_from_info(info: Optional[Dict[str, Any]]) -> List[Candidate]:
    """Read search output either from ``entries`` or from top-level fields."""
    if not isinstance(info, dict):
        return []
    raw = info.get("entries")
    if not raw:
        raw = [info] if info.get("webpage_url") else []
    results = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        url = _entry_url(entry)
        if not url:
            continue
        results.append(Candidate(
            title=entry.get("title") or "",
            artist=entry.get("uploader") or entry.get("channel") or "",
            source_ref=url,
            duration=_duration(entry),
        ))
    return results


class MediaTool:
    """yt-dlp backed media search and download."""

    def __init__(self, search_timeout: float = 15.0, probe_timeout: float = 8.0,
                 download_timeout: float = 60.0, audio_format: str = "bestaudio/best"):
        self.search_timeout = search_timeout
        self.probe_timeout = probe_timeout
        self.download_timeout = download_timeout
        self.audio_format = audio_format

    def _base_opts(self, timeout: float) -> dict:
        return {
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "cachedir": False,
            "socket_timeout": timeout,
            "logger": YDLLogger(),
        }

    def search(self, query: str, top_k: int = 1) -> List[Candidate]:
        """Run ``ytsearchN:query`` and return the hits, best first.

        Raises:
            ToolInvocationError: if the search fails or yields nothing parseable.
        """
        if not query:
            return []
        opts = self._base_opts(self.search_timeout)
        opts.update({"skip_download": True, "extract_flat": "in_playlist"})
        term = f"ytsearch{int(top_k)}:{query}"
        try:
            with YoutubeDL(opts) as ydl:
                info = ydl.extract_info(term, download=False)
        except (DownloadError, ExtractorError) as exc:
            raise ToolInvocationError(f"search failed for {query!r}: {short(exc, 800)}") from exc
        if info is None:
            raise ToolInvocationError(f"search returned no output for {query!r}")
        results = entries_from_info(info)
        logger.info("Search %r: %d results", query, len(results))
        return results

    def probe_duration(self, url: str) -> Optional[float]:
        """Best-effort duration lookup; None when it cannot be determined."""
        if not url:
            return None
        opts = self._base_opts(self.probe_timeout)
        opts["skip_download"] = True
        try:
            with YoutubeDL(opts) as ydl:
                info = ydl.extract_info(url, download=False)
        except (DownloadError, ExtractorError) as exc:
            logger.info("Duration probe failed for %s: %s", url, short(exc, 200))
            return None
        return _duration(info) if isinstance(info, dict) else None

    def download(self, url: str, dest_dir: Path) -> Path:
        """Fetch the best audio stream for ``url`` into ``dest_dir``.

        Raises:
            ToolInvocationError: on download failure or when no file appears.
        """
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        opts = self._base_opts(self.download_timeout)
        opts.update({
            "format": self.audio_format,
            "paths": {"home": str(dest_dir)},
            "outtmpl": {"default": "%(id)s.%(ext)s"},
        })
        logger.info("Downloading audio for %s into %s", url, dest_dir)
        try:
            with YoutubeDL(opts) as ydl:
                ydl.download([url])
        except (DownloadError, ExtractorError) as exc:
            raise ToolInvocationError(f"yt-dlp error: {short(exc, 800)}") from exc

        files = [p for p in sorted(dest_dir.iterdir())
                 if p.is_file() and p.name != CLIP_FILENAME and not p.name.endswith(".part")]
        if not files:
            raise ToolInvocationError("no file downloaded")
        if files[0].stat().st_size == 0:
            raise ToolInvocationError(f"downloaded file is empty: {files[0].name}")
        return files[0]


class AudioTrimmer:
    """Cut the first N seconds of a downloaded track with pydub (ffmpeg)."""

    def __init__(self, bitrate: str = "192k"):
        self.bitrate = bitrate

    def trim(self, raw_path: Path, seconds: int, out_path: Optional[Path] = None) -> Path:
        raw_path = Path(raw_path)
        out_path = Path(out_path) if out_path else raw_path.with_name(CLIP_FILENAME)
        try:
            sound = AudioSegment.from_file(raw_path)
            # Shorter sources are kept whole
            clip = sound[: int(seconds) * 1000]
            clip.export(out_path, format="mp3", codec="libmp3lame", bitrate=self.bitrate).close()
        except (CouldntDecodeError, CouldntEncodeError) as exc:
            raise ToolInvocationError(f"ffmpeg error: {short(exc, 800)}") from exc
        except OSError as exc:
            raise ToolInvocationError(f"ffmpeg error: {exc}") from exc

        if not out_path.exists() or out_path.stat().st_size == 0:
            raise ToolInvocationError("ffmpeg produced no output")
        logger.info("Trimmed %s to %ds -> %s", raw_path.name, seconds, out_path)
        return out_path
