import sys
import threading
from pathlib import Path

import pytest

# Ensure tests can import the project package regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from songquiz.errors import CurationError  # noqa: E402
from songquiz.filters import Candidate, SongCandidate  # noqa: E402
from songquiz.registry import UsedVideoRegistry  # noqa: E402

SONGS = [SongCandidate(f"Song {i}", f"Artist {i}") for i in range(12)]


class FakeCurator:
    """Stands in for the curation service; returns canned batches."""

    def __init__(self, songs=None, query="crafted query"):
        self.batches = {}
        self.default = list(songs if songs is not None else SONGS)
        self.query = query
        self.fail = False
        self.list_calls = []
        self.query_calls = 0

    def is_enabled(self):
        return True

    def craft_song_list(self, language):
        self.list_calls.append(language)
        if self.fail:
            raise CurationError("curation service unreachable")
        return list(self.batches.get(language, self.default))

    def craft_search_query(self, language):
        self.query_calls += 1
        if self.fail or not self.query:
            raise CurationError("no query")
        return self.query


class FakeMedia:
    """Search, probe and download without network access."""

    def __init__(self):
        self.results = {}
        self.durations = {}
        self.search_error = None
        self.download_error = None
        self.searches = []
        self.on_search = None
        self._lock = threading.Lock()

    def add(self, query, *candidates):
        self.results[query] = list(candidates)

    def search(self, query, top_k=1):
        with self._lock:
            self.searches.append((query, top_k))
        if self.on_search is not None:
            self.on_search(query)
        if self.search_error is not None:
            raise self.search_error
        return list(self.results.get(query, []))[:top_k]

    def probe_duration(self, url):
        return self.durations.get(url)

    def download(self, url, dest_dir):
        if self.download_error is not None:
            raise self.download_error
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        raw = dest_dir / "raw.webm"
        raw.write_bytes(b"raw-audio")
        return raw


class FakeTrimmer:
    def __init__(self, gate=None):
        self.requests = []
        self.gate = gate
        self.error = None

    def trim(self, raw_path, seconds, out_path=None):
        self.requests.append(seconds)
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        out = Path(out_path) if out_path else Path(raw_path).with_name("clip.mp3")
        out.write_bytes(b"ID3" + b"\x00" * 64)
        return out


def video(vid, title="Some Song", artist="Uploader", duration=200.0):
    return Candidate(title=title, artist=artist,
                     source_ref=f"https://www.youtube.com/watch?v={vid}", duration=duration)


@pytest.fixture
def registry():
    return UsedVideoRegistry()


@pytest.fixture
def curator():
    return FakeCurator()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def trimmer():
    return FakeTrimmer()
