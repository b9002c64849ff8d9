"""
Round barrier: per-round elimination validation, stamping and completion.
"""

import copy
import random

import pytest

from music_madness.core.errors import (
    AlreadyEliminated,
    AlreadySubmitted,
    InvalidSongIndex,
    LastSongStanding,
    NotAssigned,
    OwnPlaylist,
    StateConflictError,
    WrongPhase,
)
from music_madness.services.assignment_service import AssignmentScheduler
from music_madness.services.round_barrier import RoundBarrier
from music_madness.services.state_machine import Trigger
from tests.helpers import make_session


@pytest.fixture
def session():
    session = make_session(["A", "B", "C"], songs_per_playlist=5)
    session.machine.fire(Trigger.START)
    session.machine.fire(Trigger.PLAYLISTS_COMPLETE)
    AssignmentScheduler(random.Random(4)).assign(session)
    return session


@pytest.fixture
def barrier():
    return RoundBarrier()


def _player(session, alias):
    return next(p for p in session.players if p.alias == alias)


class TestRecordElimination:

    def test_success_stamps_song_and_log(self, session, barrier):
        player = _player(session, "A")
        index = session.assignment["A"]

        song = barrier.record_elimination(session, player, index, 2, "too slow")

        assert song.eliminated is True
        assert song.eliminated_round == 1
        assert song.eliminated_by_alias == "A"
        assert song.comment == "too slow"
        log = session.playlists[index].elimination_log
        assert len(log) == 1
        assert log[0].song_id == song.id
        assert log[0].eliminated_by == "A"
        assert player.has_submitted_this_round is True

    def test_wrong_phase(self, session, barrier):
        session.machine.begin_advance(1)
        with pytest.raises(WrongPhase):
            barrier.record_elimination(session, _player(session, "A"), session.assignment["A"], 0)

    def test_not_assigned(self, session, barrier):
        other = next(i for i in range(3) if i != session.assignment["A"])
        with pytest.raises(NotAssigned):
            barrier.record_elimination(session, _player(session, "A"), other, 0)

    def test_out_of_range_playlist_is_not_assigned(self, session, barrier):
        with pytest.raises(NotAssigned):
            barrier.record_elimination(session, _player(session, "A"), 42, 0)

    def test_own_playlist(self, session, barrier):
        # force an illegal assignment to reach the owner check
        session.assignment["A"] = 0
        with pytest.raises(OwnPlaylist):
            barrier.record_elimination(session, _player(session, "A"), 0, 0)

    def test_own_playlist_allowed_for_fallback_assignment(self, session, barrier):
        session.assignment["A"] = 0
        session.self_assigned = {"A"}
        song = barrier.record_elimination(session, _player(session, "A"), 0, 0)
        assert song.eliminated is True

    @pytest.mark.parametrize("song_index", [-1, 5, 99])
    def test_invalid_song_index(self, session, barrier, song_index):
        with pytest.raises(InvalidSongIndex):
            barrier.record_elimination(session, _player(session, "A"), session.assignment["A"], song_index)

    def test_already_eliminated_leaves_playlist_unchanged(self, session, barrier):
        index = session.assignment["A"]
        session.playlists[index].songs[1].eliminated = True
        before = copy.deepcopy(session.playlists[index])

        with pytest.raises(AlreadyEliminated) as excinfo:
            barrier.record_elimination(session, _player(session, "A"), index, 1)

        assert isinstance(excinfo.value, StateConflictError)
        assert session.playlists[index] == before
        assert _player(session, "A").has_submitted_this_round is False

    def test_second_submission_in_same_round(self, session, barrier):
        index = session.assignment["A"]
        barrier.record_elimination(session, _player(session, "A"), index, 0)
        with pytest.raises(AlreadySubmitted):
            barrier.record_elimination(session, _player(session, "A"), index, 1)
        assert session.playlists[index].remaining_count == 4

    def test_last_song_cannot_be_eliminated(self, session, barrier):
        index = session.assignment["A"]
        for song in session.playlists[index].songs[:4]:
            song.eliminated = True
        with pytest.raises(LastSongStanding):
            barrier.record_elimination(session, _player(session, "A"), index, 4)
        assert session.playlists[index].songs[4].eliminated is False


class TestCompletion:

    def test_complete_only_when_everyone_submitted(self, session, barrier):
        for alias in ("A", "B"):
            barrier.record_elimination(session, _player(session, alias), session.assignment[alias], 0)
            assert barrier.is_complete(session) is False
        barrier.record_elimination(session, _player(session, "C"), session.assignment["C"], 0)
        assert barrier.is_complete(session) is True
        assert barrier.submitted_count(session) == 3

    def test_reset_clears_flags(self, session, barrier):
        for alias in ("A", "B", "C"):
            barrier.record_elimination(session, _player(session, alias), session.assignment[alias], 0)
        barrier.reset(session)
        assert all(not p.has_submitted_this_round for p in session.players)
        assert barrier.is_complete(session) is False

    def test_sitting_out_when_assigned_playlist_has_one_song(self, session, barrier):
        index = session.assignment["B"]
        for song in session.playlists[index].songs[:4]:
            song.eliminated = True

        assert barrier.mark_sitting_out(session) == ["B"]
        assert _player(session, "B").has_submitted_this_round is True
        assert _player(session, "A").has_submitted_this_round is False
