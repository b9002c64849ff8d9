import random

import pytest
from fastapi.testclient import TestClient

from music_madness.api.websocket_routes import get_game_service
from music_madness.main import app
from music_madness.services.assignment_service import AssignmentScheduler
from music_madness.services.game_service import GameService
from music_madness.services.session_repository import SessionRepository
from music_madness.services.websocket_service import WebSocketManager
from tests.helpers import make_service


@pytest.fixture
def service_and_manager():
    """协调器 + 记录出站消息的管理器，阶段变更不延迟"""
    return make_service()


@pytest.fixture
def service(service_and_manager):
    return service_and_manager[0]


@pytest.fixture
def manager(service_and_manager):
    return service_and_manager[1]


@pytest.fixture(name="game_service")
def game_service_fixture():
    """供 API 测试使用的真实 WebSocket 管理器"""
    return GameService(
        SessionRepository(),
        WebSocketManager(),
        scheduler=AssignmentScheduler(random.Random(3)),
        phase_change_delay=0,
    )


@pytest.fixture(name="client")
def client_fixture(game_service: GameService):
    """Provide a test client with the game service overridden

    Override MUST be set BEFORE TestClient() so the app never builds its global service.
    """
    app.dependency_overrides[get_game_service] = lambda: game_service

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
