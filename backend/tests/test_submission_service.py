"""
Submission collector: normalization, duplicate and phase checks.
"""

import pytest

from music_madness.core.errors import DuplicatePlaylist, ValidationError, WrongPhase
from music_madness.schemas.message_schemas import SongInput
from music_madness.services.state_machine import Trigger
from music_madness.services.submission_service import SubmissionCollector, normalize_song
from tests.helpers import make_session


@pytest.fixture
def session():
    session = make_session(["A", "B"])
    session.playlists.clear()
    session.machine.fire(Trigger.START)
    return session


class TestNormalizeSong:

    def test_bare_string_becomes_title(self):
        song = normalize_song("  Bohemian Rhapsody ")
        assert song.title == "Bohemian Rhapsody"
        assert song.artist == ""
        assert song.eliminated is False

    def test_object_fields(self):
        song = normalize_song(SongInput(title="Hey Ya!", artist="OutKast", link="https://example.com/heyya"))
        assert (song.title, song.artist, song.link) == ("Hey Ya!", "OutKast", "https://example.com/heyya")

    def test_mapping_with_name_fallback(self):
        assert normalize_song({"name": "Heroes", "artist": "Bowie"}).title == "Heroes"

    def test_ids_are_unique(self):
        ids = {normalize_song("x").id for _ in range(100)}
        assert len(ids) == 100

    @pytest.mark.parametrize("entry", ["", "   ", {"artist": "Nobody"}])
    def test_empty_title_rejected(self, entry):
        with pytest.raises(ValidationError):
            normalize_song(entry)


class TestSubmissionCollector:

    def test_submit_and_complete(self, session):
        collector = SubmissionCollector()
        a, b = session.players

        collector.submit(session, a, ["one", "two"])
        assert not collector.is_complete(session)
        assert collector.would_complete(session)
        collector.submit(session, b, ["three"])

        assert collector.is_complete(session)
        assert [p.owner_alias for p in session.playlists] == ["A", "B"]
        assert [s.title for s in session.playlists[0].songs] == ["one", "two"]

    def test_duplicate_submission(self, session):
        collector = SubmissionCollector()
        collector.submit(session, session.players[0], ["one"])
        with pytest.raises(DuplicatePlaylist):
            collector.submit(session, session.players[0], ["two"])
        assert len(session.playlists) == 1

    def test_wrong_phase(self):
        session = make_session(["A"])
        session.playlists.clear()
        with pytest.raises(WrongPhase):
            SubmissionCollector().submit(session, session.players[0], ["one"])

    def test_invalid_entry_rejects_whole_playlist(self, session):
        with pytest.raises(ValidationError):
            SubmissionCollector().submit(session, session.players[0], ["ok", ""])
        assert session.playlists == []

    def test_length_limit(self, session):
        with pytest.raises(ValidationError):
            SubmissionCollector(max_playlist_length=2).submit(session, session.players[0], ["a", "b", "c"])
        with pytest.raises(ValidationError):
            SubmissionCollector().submit(session, session.players[0], [])
