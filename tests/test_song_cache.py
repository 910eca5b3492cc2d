import pytest
from conftest import SONGS, FakeCurator

from songquiz.errors import CurationError, EmptyCache
from songquiz.filters import SongCandidate
from songquiz.song_cache import LanguageSongCache


def test_cycles_without_repetition_and_wraps(curator):
    cache = LanguageSongCache(curator)
    size = cache.ensure_fresh("english")
    assert size == len(SONGS)

    for cycle in range(3):
        seen = [cache.next_candidate("english") for _ in range(size)]
        assert seen == SONGS, f"Cycle {cycle} should visit the batch in order exactly once"
    assert cache.snapshot()["cursor"] == 0


def test_ensure_fresh_reuses_batch_for_same_language(curator):
    cache = LanguageSongCache(curator)
    cache.ensure_fresh("hindi")
    cache.next_candidate()
    cache.ensure_fresh("hindi")
    assert curator.list_calls == ["hindi"], "Same-language requests must not refetch"
    assert cache.snapshot()["cursor"] == 1, "Cursor must survive a no-op ensure_fresh"


def test_language_change_replaces_batch(curator):
    curator.batches["tamil"] = [SongCandidate("Tamil Song", "Tamil Artist")]
    cache = LanguageSongCache(curator)
    cache.ensure_fresh("english")
    cache.next_candidate()
    cache.ensure_fresh("tamil")
    snap = cache.snapshot()
    assert snap["language"] == "tamil"
    assert snap["items"] == [SongCandidate("Tamil Song", "Tamil Artist")]
    assert snap["cursor"] == 0


def test_failed_refresh_keeps_previous_batch(curator):
    cache = LanguageSongCache(curator)
    cache.ensure_fresh("english")
    curator.fail = True
    with pytest.raises(CurationError):
        cache.refresh("english")
    with pytest.raises(CurationError):
        cache.ensure_fresh("punjabi")
    snap = cache.snapshot()
    assert snap["language"] == "english"
    assert len(snap["items"]) == len(SONGS)


def test_refresh_is_unconditional(curator):
    cache = LanguageSongCache(curator)
    cache.ensure_fresh("english")
    cache.next_candidate()
    curator.batches["english"] = [SongCandidate("New One")]
    assert cache.refresh("english") == 1
    assert cache.next_candidate("english") == SongCandidate("New One")
    assert curator.list_calls == ["english", "english"]


def test_next_candidate_on_empty_cache():
    cache = LanguageSongCache(FakeCurator())
    with pytest.raises(EmptyCache):
        cache.next_candidate()


def test_next_candidate_for_other_language(curator):
    cache = LanguageSongCache(curator)
    cache.ensure_fresh("english")
    with pytest.raises(EmptyCache):
        cache.next_candidate("hindi")
    assert cache.size("hindi") == 0
    assert cache.size("english") == len(SONGS)
