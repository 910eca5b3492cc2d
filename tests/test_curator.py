from types import SimpleNamespace

import pytest
from openai import OpenAIError

from songquiz.curator import SongCurator, parse_song_list
from songquiz.errors import CurationError


def test_parse_plain_array():
    songs = parse_song_list('[{"title": "Kesariya", "artist": "Arijit Singh"}]')
    assert [(s.title, s.artist) for s in songs] == [("Kesariya", "Arijit Singh")]


def test_parse_markdown_fence_and_prose():
    text = """Sure! Here are some songs:
```json
[
  {"Title": "Song A", "Artist": "Artist A"},
  {"TITLE": "Song B", "artist": "Artist B"}
]
```
Enjoy!"""
    songs = parse_song_list(text)
    assert [s.title for s in songs] == ["Song A", "Song B"]
    assert songs[1].artist == "Artist B"


def test_parse_wrapped_object():
    songs = parse_song_list('{"songs": [{"title": "One", "artist": "X"}]}')
    assert songs[0].title == "One"


def test_entries_without_title_are_dropped():
    text = '[{"artist": "Nobody"}, {"title": "", "artist": "Y"}, "junk", {"title": "Kept"}]'
    songs = parse_song_list(text)
    assert [s.title for s in songs] == ["Kept"]
    assert songs[0].artist == ""


@pytest.mark.parametrize("text", [
    "",
    "no json here",
    "[not valid json]",
    '[{"artist": "only artists"}]',
    '"just a string"',
])
def test_unusable_responses_raise(text):
    with pytest.raises(CurationError):
        parse_song_list(text)


class _FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_craft_song_list_uses_language_and_timeout():
    completions = _FakeCompletions('[{"title": "Vaathi Coming", "artist": "Anirudh"}]')
    curator = SongCurator(client=_client(completions), list_timeout=20)
    songs = curator.craft_song_list("tamil")
    assert songs[0].title == "Vaathi Coming"
    assert "tamil" in completions.kwargs["messages"][-1]["content"]
    assert completions.kwargs["timeout"] == 20


def test_craft_search_query_takes_first_line():
    completions = _FakeCompletions('"latest hindi songs 2024"\nextra explanation')
    curator = SongCurator(client=_client(completions))
    assert curator.craft_search_query("hindi") == "latest hindi songs 2024"


def test_service_errors_become_curation_errors():
    curator = SongCurator(client=_client(_FakeCompletions(error=OpenAIError("boom"))))
    with pytest.raises(CurationError):
        curator.craft_song_list("english")


def test_missing_key_is_a_curation_error():
    curator = SongCurator(api_key="")
    assert not curator.is_enabled()
    with pytest.raises(CurationError):
        curator.craft_song_list("english")
