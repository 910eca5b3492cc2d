"""Video id extraction and the global no-repeat registry."""

from concurrent.futures import ThreadPoolExecutor, as_completed

from songquiz.registry import UsedVideoRegistry, extract_video_id, get_used_registry


def test_video_id_extraction_formats():
    """Different URL forms of the same video share one id."""
    urls = [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ",
        "https://youtube.com/watch?v=dQw4w9WgXcQ",
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=10s",
        "https://www.youtube.com/watch?list=PLrAXtmRdnEQy4&v=dQw4w9WgXcQ",
        "https://youtube.com/embed/dQw4w9WgXcQ",
        "https://www.youtube.com/v/dQw4w9WgXcQ",
        "https://www.youtube.com/shorts/dQw4w9WgXcQ",
    ]
    ids = {extract_video_id(u) for u in urls}
    assert ids == {"dQw4w9WgXcQ"}, f"Expected a single id, got {ids}"


def test_video_id_textual_fallback():
    assert extract_video_id("watch?v=abc123&feature=share") == "abc123"
    assert extract_video_id("") == ""
    assert extract_video_id("https://example.com/page") == ""


def test_video_id_ignores_longer_keys_ending_in_v():
    assert extract_video_id("https://x.com/?dev=abc") == ""
    assert extract_video_id("page?dev=abc&prev=xyz") == ""
    assert extract_video_id("page?dev=abc&v=real1") == "real1"


def test_claim_is_atomic():
    """Only one of many concurrent claims on the same id succeeds."""
    registry = UsedVideoRegistry()

    with ThreadPoolExecutor(max_workers=10) as executor:
        futures = [executor.submit(registry.claim, "same_video") for _ in range(10)]
        results = [f.result() for f in as_completed(futures)]

    assert results.count(True) == 1, f"Expected exactly 1 successful claim, got {results.count(True)}"
    assert registry.contains("same_video")


def test_used_ids_never_come_back():
    registry = UsedVideoRegistry()
    assert not registry.contains("v1")
    registry.mark_used("v1")
    assert registry.contains("v1")
    assert not registry.claim("v1"), "A used id must not be claimable again"
    assert registry.claim("v2")
    assert len(registry) == 2


def test_empty_ids_are_ignored():
    registry = UsedVideoRegistry()
    registry.mark_used("")
    assert not registry.claim("")
    assert len(registry) == 0


def test_global_registry_is_shared():
    assert get_used_registry() is get_used_registry()
