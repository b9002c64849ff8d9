"""
Session repository: CRUD, injectable store, TTL reaping.
"""

import pytest

from music_madness.core.errors import GameAlreadyExists, GameNotFound
from music_madness.services.session_repository import SessionRepository
from music_madness.services.state_machine import SessionState


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository(clock):
    return SessionRepository(active_ttl=100, finished_ttl=10, clock=clock)


def test_create_get_remove(repository):
    session = repository.create("g1", "pw")
    assert repository.get("g1") is session
    assert "g1" in repository
    assert len(repository) == 1

    assert repository.remove("g1") is session
    assert repository.find("g1") is None
    with pytest.raises(GameNotFound):
        repository.get("g1")
    assert repository.remove("g1") is None


def test_duplicate_game_id(repository):
    repository.create("g1")
    with pytest.raises(GameAlreadyExists):
        repository.create("g1")


def test_injected_store_is_used(clock):
    store = {}
    repository = SessionRepository(store=store, clock=clock)
    session = repository.create("g1")
    assert store == {"g1": session}


def test_reaps_idle_sessions(repository, clock):
    idle = repository.create("idle")
    busy = repository.create("busy")
    clock.now += 60
    repository.touch(busy)
    clock.now += 50

    assert repository.reap_expired() == ["idle"]
    assert repository.find("idle") is None
    assert repository.find("busy") is busy
    assert idle.game_id == "idle"


def test_finished_sessions_expire_sooner(repository, clock):
    session = repository.create("done")
    session.machine.state = SessionState.FINISHED
    clock.now += 10
    assert repository.reap_expired() == ["done"]


def test_remove_cancels_pending_advance(repository):
    class Pending:
        cancelled = False

        def cancel(self):
            self.cancelled = True

    session = repository.create("g1")
    pending = Pending()
    session.pending_advance = pending

    repository.remove("g1")

    assert pending.cancelled is True
    assert session.pending_advance is None
