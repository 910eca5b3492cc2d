from concurrent.futures import ThreadPoolExecutor

import pytest

from songquiz.errors import NotFoundError
from songquiz.rounds import MAX_ERROR_DETAIL, RoundState, RoundStore, evaluate_guess


def _new_round(store):
    return store.create("Kesariya", "Arijit Singh", "https://www.youtube.com/watch?v=abc", 30)


def test_new_round_is_pending():
    store = RoundStore()
    round_id = _new_round(store)
    rnd = store.get(round_id)
    assert len(round_id) == 8
    assert rnd.state is RoundState.PENDING
    assert rnd.clip_path is None and rnd.error is None
    assert rnd.clip_length == 30


def test_ready_is_terminal():
    store = RoundStore()
    round_id = _new_round(store)
    assert store.mark_ready(round_id, "/tmp/clip.mp3")
    assert not store.mark_failed(round_id, "late failure"), "Terminal rounds must not transition again"
    assert not store.mark_ready(round_id, "/tmp/other.mp3")
    rnd = store.get(round_id)
    assert rnd.state is RoundState.READY
    assert rnd.clip_path == "/tmp/clip.mp3"
    assert rnd.error is None


def test_failed_is_terminal_and_bounded():
    store = RoundStore()
    round_id = _new_round(store)
    assert store.mark_failed(round_id, "x" * 5000)
    assert not store.mark_ready(round_id, "/tmp/clip.mp3")
    rnd = store.get(round_id)
    assert rnd.state is RoundState.FAILED
    assert rnd.clip_path is None
    assert len(rnd.error) <= MAX_ERROR_DETAIL + 3


def test_concurrent_terminal_writes_apply_once():
    store = RoundStore()
    round_id = _new_round(store)
    with ThreadPoolExecutor(max_workers=8) as executor:
        futures = [executor.submit(store.mark_ready if i % 2 else store.mark_failed, round_id, f"r{i}")
                   for i in range(16)]
        outcomes = [f.result() for f in futures]
    assert outcomes.count(True) == 1


def test_unknown_rounds():
    store = RoundStore()
    with pytest.raises(NotFoundError):
        store.get("missing")
    assert not store.mark_ready("missing", "/tmp/x.mp3")
    assert not store.mark_failed("missing", "boom")


def test_round_ids_are_unique():
    store = RoundStore()
    ids = {_new_round(store) for _ in range(200)}
    assert len(ids) == 200
    assert len(store) == 200


def test_guess_matches_in_both_directions():
    assert evaluate_guess("artist name", "Song by Artist Name", "Someone")
    assert evaluate_guess("  KESARIYA ", "Kesariya", "Arijit Singh")
    assert evaluate_guess("I think it is Kesariya by Arijit", "Kesariya", "Arijit Singh")
    assert not evaluate_guess("Unrelated", "Kesariya", "Arijit Singh")


def test_guess_edge_cases():
    assert not evaluate_guess("", "Kesariya", "Arijit Singh")
    assert not evaluate_guess("   ", "Kesariya", "Arijit Singh")
    assert not evaluate_guess("anything", "Kesariya", ""), "An empty artist must not match every guess"
