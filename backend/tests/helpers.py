"""
测试辅助工具
"""

import random
from typing import List, Optional, Sequence, Tuple

from music_madness.models import GameSession, Player, Playlist, Song
from music_madness.schemas.message_schemas import (
    CreateGameRequest,
    JoinGameRequest,
    StartGameRequest,
    SubmitEliminationRequest,
    SubmitPlaylistRequest,
)
from music_madness.services.assignment_service import AssignmentScheduler
from music_madness.services.game_service import GameService
from music_madness.services.session_repository import SessionRepository
from music_madness.services.websocket_service import WebSocketManager


class RecordingWebSocketManager(WebSocketManager):
    """记录所有出站消息而不真正发送"""

    def __init__(self):
        super().__init__()
        self.broadcasts: List[Tuple[str, dict]] = []
        self.personal: List[Tuple[str, dict]] = []

    async def broadcast_to_game(self, message: dict, game_id: str) -> None:
        self.broadcasts.append((game_id, message))

    async def send_personal_message(self, message: dict, connection_id: str) -> None:
        self.personal.append((connection_id, message))

    def events(self, event_type: str) -> List[dict]:
        return [message for _, message in self.broadcasts if message["type"] == event_type]

    def phase_changes(self) -> List[str]:
        return [message["phase"] for message in self.events("gamePhaseChanged")]


def make_service(
    delay: float = 0.0,
    seed: int = 7,
    allow_degenerate: bool = True,
) -> Tuple[GameService, RecordingWebSocketManager]:
    manager = RecordingWebSocketManager()
    service = GameService(
        SessionRepository(),
        manager,
        scheduler=AssignmentScheduler(random.Random(seed)),
        phase_change_delay=delay,
        allow_degenerate_sessions=allow_degenerate,
    )
    return service, manager


def connection_for(alias: str) -> str:
    return f"conn-{alias}"


def songs_for(alias: str, count: int) -> List[str]:
    return [f"{alias} song {i}" for i in range(count)]


async def setup_game(
    service: GameService,
    aliases: Sequence[str],
    songs_per_playlist=5,
    game_id: str = "g1",
    password: str = "secret",
) -> GameSession:
    """创建游戏、加入所有玩家、开始并提交歌单

    songs_per_playlist 可以是整数，也可以是与 aliases 等长的列表。
    """
    if isinstance(songs_per_playlist, int):
        counts = [songs_per_playlist] * len(aliases)
    else:
        counts = list(songs_per_playlist)

    host = aliases[0]
    await service.create_game(connection_for(host), CreateGameRequest(
        game_id=game_id, password=password, alias=host))
    for alias in aliases[1:]:
        await service.join_game(connection_for(alias), JoinGameRequest(
            game_id=game_id, password=password, alias=alias))
    await service.start_game(connection_for(host), StartGameRequest(game_id=game_id, alias=host))
    for alias, count in zip(aliases, counts):
        await service.submit_playlist(connection_for(alias), SubmitPlaylistRequest(
            game_id=game_id, alias=alias, playlist=songs_for(alias, count)))
    return service.repository.get(game_id)


def first_live_song(playlist: Playlist) -> int:
    for index, song in enumerate(playlist.songs):
        if not song.eliminated:
            return index
    raise AssertionError("歌单中没有剩余歌曲")


def elimination_request(session: GameSession, player: Player, comment: str = "not my vibe") -> SubmitEliminationRequest:
    index = session.assignment[player.alias]
    return SubmitEliminationRequest(
        game_id=session.game_id,
        alias=player.alias,
        playlist_index=index,
        eliminated_song_index=first_live_song(session.playlists[index]),
        comment=comment,
    )


async def play_round(service: GameService, session: GameSession, skip: Optional[Sequence[str]] = None) -> None:
    """让所有尚未提交的玩家淘汰所分配歌单中的第一首剩余歌曲"""
    skip = set(skip or ())
    for player in list(session.players):
        if player.has_submitted_this_round or player.alias in skip:
            continue
        await service.submit_elimination(player.connection_ref, elimination_request(session, player))


def make_session(aliases: Sequence[str], songs_per_playlist: int = 5, game_id: str = "g1") -> GameSession:
    """直接构造一个已提交歌单的会话（不经过协调器）"""
    session = GameSession(game_id=game_id)
    for alias in aliases:
        session.players.append(Player(alias=alias, connection_ref=connection_for(alias)))
        session.playlists.append(Playlist(
            owner_alias=alias,
            songs=[Song(id=f"{alias}-{i}", title=f"{alias} song {i}") for i in range(songs_per_playlist)],
        ))
    return session


def assert_valid_assignment(session: GameSession) -> None:
    """每位玩家一个歌单、每个歌单一位玩家，且不审阅自己的歌单"""
    assignment = session.assignment
    assert sorted(assignment) == sorted(session.player_aliases())
    assert sorted(assignment.values()) == list(range(len(session.playlists)))
    for alias, index in assignment.items():
        assert session.playlists[index].owner_alias != alias
