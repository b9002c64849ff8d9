"""
游戏管理服务

协调一个游戏会话的完整流程：加入、提交歌单、逐轮淘汰、最终混音与投票。

所有处理函数在第一个 await 之前完成对会话的全部修改，之后才进行广播。
轮次完成时同步获取推进保护（状态机进入 ADVANCING），再调度延迟推进任务，
因此同一轮即使多次检测到“全部提交”，也只会推进一次。
"""

import logging
import secrets
from typing import Dict, List, Optional

from music_madness.core.config import settings
from music_madness.core.errors import (
    AccessDenied,
    AliasTaken,
    InvalidSongIndex,
    NotAssigned,
    PlayerNotFound,
    ValidationError,
    WrongPhase,
)
from music_madness.models import GameSession, Player
from music_madness.schemas.game_schemas import (
    GameSnapshot,
    GameSummary,
    final_mix_views,
    playlist_views,
    results_view,
)
from music_madness.schemas.message_schemas import (
    CreateGameRequest,
    GameStateRequest,
    JoinGameRequest,
    RejoinGameRequest,
    StartGameRequest,
    SubmitEliminationRequest,
    SubmitPlaylistRequest,
    SubmitVoteRequest,
)
from music_madness.services.assignment_service import AssignmentScheduler
from music_madness.services.delayed_task import DelayedTask
from music_madness.services.final_mix_service import FinalMixBuilder
from music_madness.services.identity_service import IdentityBinder
from music_madness.services.round_barrier import RoundBarrier
from music_madness.services.session_repository import SessionRepository
from music_madness.services.state_machine import SessionState, Trigger
from music_madness.services.submission_service import SubmissionCollector
from music_madness.services.vote_service import VoteTally
from music_madness.services.websocket_service import WebSocketManager

logger = logging.getLogger(__name__)


class GameService:
    """游戏管理服务"""

    def __init__(
        self,
        repository: SessionRepository,
        websocket_manager: WebSocketManager,
        scheduler: Optional[AssignmentScheduler] = None,
        phase_change_delay: Optional[float] = None,
        allow_degenerate_sessions: Optional[bool] = None,
    ):
        self.repository = repository
        self.websocket_manager = websocket_manager
        self.identity = IdentityBinder()
        self.collector = SubmissionCollector(settings.MAX_PLAYLIST_LENGTH)
        self.scheduler = scheduler or AssignmentScheduler()
        self.barrier = RoundBarrier()
        self.final_mix_builder = FinalMixBuilder()
        self.vote_tally = VoteTally()
        self.phase_change_delay = (
            settings.PHASE_CHANGE_DELAY if phase_change_delay is None else phase_change_delay
        )
        self.allow_degenerate_sessions = (
            settings.ALLOW_DEGENERATE_SESSIONS if allow_degenerate_sessions is None else allow_degenerate_sessions
        )

    # ------------------------------------------------------------------
    # 加入与身份
    # ------------------------------------------------------------------

    async def create_game(self, connection_id: str, request: CreateGameRequest) -> GameSession:
        """创建新游戏，创建者自动成为第一位玩家"""
        session = self.repository.create(request.game_id, request.password)
        self.identity.bind(session, connection_id, request.alias, allow_create=True)
        self.websocket_manager.join_room(session.game_id, connection_id)

        await self.websocket_manager.broadcast_to_game({
            "type": "gameCreated",
            "gameId": session.game_id,
            "players": session.player_aliases(),
            "phase": session.phase,
        }, session.game_id)
        return session

    async def join_game(self, connection_id: str, request: JoinGameRequest) -> Player:
        """加入游戏

        别名已存在且对应的连接仍在线时拒绝；对应的玩家已离线时视为重连。
        """
        session = self.repository.get(request.game_id)
        if not secrets.compare_digest(session.password.encode(), request.password.encode()):
            raise AccessDenied("游戏密码错误")

        existing = self.identity.find_by_alias(session, request.alias)
        if existing is not None:
            if existing.connected and existing.connection_ref != connection_id:
                raise AliasTaken(f"别名 {existing.alias} 已被使用")
        elif session.state is not SessionState.LOBBY:
            raise WrongPhase("游戏已经开始，只能使用已有别名重新加入")

        player = self.identity.bind(session, connection_id, request.alias, allow_create=existing is None)
        self.repository.touch(session)
        self.websocket_manager.join_room(session.game_id, connection_id)

        await self.websocket_manager.broadcast_to_game({
            "type": "playerJoined",
            "alias": player.alias,
            "players": session.player_aliases(),
            "phase": session.phase,
        }, session.game_id)
        if existing is not None:
            await self._send_state(session, connection_id, player)
        return player

    async def rejoin_game(self, connection_id: str, request: RejoinGameRequest) -> Player:
        """断线重连：重新绑定连接，保留分配与提交状态"""
        session = self.repository.get(request.game_id)
        player = self.identity.find_by_alias(session, request.alias)
        if player is None:
            raise PlayerNotFound(f"游戏 {session.game_id} 中不存在玩家 {request.alias}")
        self.identity.rebind(session, player, connection_id)
        self.repository.touch(session)
        self.websocket_manager.join_room(session.game_id, connection_id)

        await self.websocket_manager.broadcast_to_game({
            "type": "playerRejoined",
            "alias": player.alias,
            "players": session.player_aliases(),
            "phase": session.phase,
        }, session.game_id)
        await self._send_state(session, connection_id, player)
        return player

    async def handle_disconnect(self, connection_id: str) -> List[str]:
        """连接断开时把对应玩家标记为离线，返回受影响的游戏代码"""
        affected = []
        for session in self.repository.list_sessions():
            if self.identity.mark_disconnected(session, connection_id) is not None:
                affected.append(session.game_id)
        self.websocket_manager.disconnect(connection_id)
        return affected

    # ------------------------------------------------------------------
    # 阶段推进
    # ------------------------------------------------------------------

    async def start_game(self, connection_id: str, request: StartGameRequest) -> GameSession:
        """lobby → submission"""
        session = self.repository.get(request.game_id)
        self.identity.bind(session, connection_id, request.alias, allow_create=False)
        session.machine.fire(Trigger.START)
        self.repository.touch(session)

        await self.websocket_manager.broadcast_to_game({
            "type": "gamePhaseChanged",
            "phase": session.phase,
        }, session.game_id)
        return session

    async def submit_playlist(self, connection_id: str, request: SubmitPlaylistRequest) -> GameSession:
        """提交歌单；全部提交后进入第一轮淘汰"""
        session = self.repository.get(request.game_id)
        player = self.identity.bind(session, connection_id, request.alias, allow_create=False)

        if (session.state is SessionState.SUBMISSION and self.collector.would_complete(session)
                and len(session.players) < 2 and not self.allow_degenerate_sessions):
            raise ValidationError("至少需要2个歌单才能开始淘汰")

        self.collector.submit(session, player, request.playlist)
        self.repository.touch(session)

        events = [{"type": "playlistSubmitted", "alias": player.alias}]
        if self.collector.is_complete(session):
            events.extend(self._begin_elimination(session))

        await self._broadcast(session, events)
        return session

    def _begin_elimination(self, session: GameSession) -> List[dict]:
        """submission → elimination_round_1（或歌单都只有一首歌时直接进入最终混音）"""
        session.max_rounds = max(len(playlist.songs) for playlist in session.playlists) - 1
        logger.info("游戏 %s 所有歌单已提交，最大轮数: %d", session.game_id, session.max_rounds)

        if self._is_converged(session):
            session.machine.fire(Trigger.CONVERGED)
            return self._enter_final_mix(session)

        session.machine.fire(Trigger.PLAYLISTS_COMPLETE)
        return self._open_round(session)

    def _open_round(self, session: GameSession) -> List[dict]:
        """计算本轮分配并生成阶段变更通知"""
        self.barrier.reset(session)
        self.scheduler.assign(session)
        self.barrier.mark_sitting_out(session)

        playlists = [view.dump() for view in playlist_views(session)]
        return [
            {
                "type": "gamePhaseChanged",
                "phase": session.phase,
                "round": session.current_round,
                "assignment": dict(session.assignment),
                "playlists": playlists,
            },
            {"type": "playlistsUpdated", "playlists": playlists},
            {"type": "assignmentsUpdated", "assignment": dict(session.assignment)},
        ]

    def _enter_final_mix(self, session: GameSession) -> List[dict]:
        session.final_mix = self.final_mix_builder.build(session)
        session.assignment = {}
        session.self_assigned = set()
        return [{
            "type": "gamePhaseChanged",
            "phase": session.phase,
            "round": session.current_round,
            "finalMix": [view.dump() for view in final_mix_views(session)],
            "playlists": [view.dump() for view in playlist_views(session)],
        }]

    def _is_converged(self, session: GameSession) -> bool:
        return all(playlist.remaining_count <= 1 for playlist in session.playlists)

    async def submit_elimination(self, connection_id: str, request: SubmitEliminationRequest) -> GameSession:
        """提交本轮淘汰"""
        session = self.repository.get(request.game_id)
        player = self.identity.bind(session, connection_id, request.alias, allow_create=False)

        if not session.machine.accepting_eliminations:
            raise WrongPhase(f"当前阶段 {session.phase} 不接受淘汰提交")

        playlist_index = request.playlist_index
        if playlist_index is None:
            playlist_index = session.assignment.get(player.alias)
            if playlist_index is None:
                raise NotAssigned(f"{player.alias} 本轮没有被分配歌单")
        song_index = self._resolve_song_index(session, player, playlist_index, request)

        self.barrier.record_elimination(session, player, playlist_index, song_index, request.comment)
        self.repository.touch(session)

        round_number = session.current_round
        # 在任何 await 之前获取推进保护
        completed = self.barrier.is_complete(session) and session.machine.begin_advance(round_number)

        await self._broadcast(session, [
            {"type": "playerEliminationSubmitted", "alias": player.alias, "round": round_number},
            {"type": "playlistsUpdated", "playlists": [view.dump() for view in playlist_views(session)]},
        ])

        if completed:
            await self._schedule_advance(session, round_number)
        return session

    def _resolve_song_index(
        self,
        session: GameSession,
        player: Player,
        playlist_index: int,
        request: SubmitEliminationRequest,
    ) -> int:
        if request.eliminated_song_index is not None:
            return request.eliminated_song_index
        if (player.has_submitted_this_round or session.assignment.get(player.alias) != playlist_index
                or playlist_index >= len(session.playlists)):
            # 交给屏障给出 AlreadySubmitted / NotAssigned
            return -1
        song_index = session.playlists[playlist_index].index_of_song(request.eliminated_song_id)
        if song_index is None:
            raise InvalidSongIndex(f"歌单中没有歌曲 {request.eliminated_song_id}")
        return song_index

    async def _schedule_advance(self, session: GameSession, round_number: int) -> None:
        session.cancel_pending_advance()
        if self.phase_change_delay <= 0:
            await self.advance_round(session.game_id, round_number)
            return
        session.pending_advance = DelayedTask(
            self.phase_change_delay, self.advance_round, session.game_id, round_number,
            name=f"advance:{session.game_id}:{round_number}",
        )

    async def advance_round(self, game_id: str, round_number: int) -> bool:
        """推进例程：提交下一轮或最终混音，并释放推进保护

        会话已被移除或已经推进过该轮时不做任何事，返回 False。
        """
        session = self.repository.find(game_id)
        if session is None:
            logger.info("游戏 %s 已不存在，忽略第 %d 轮的推进", game_id, round_number)
            return False
        if not session.machine.is_advancing(round_number):
            logger.debug("游戏 %s 第 %d 轮已推进过，忽略重复推进", game_id, round_number)
            return False

        session.pending_advance = None
        converged = self._is_converged(session) or session.current_round >= session.max_rounds
        if converged:
            session.machine.complete_advance(round_number, converged=True)
            events = self._enter_final_mix(session)
        else:
            self.barrier.reset(session)
            session.machine.complete_advance(round_number, converged=False)
            events = self._open_round(session)

        next_round = session.current_round
        reopened = (session.machine.accepting_eliminations and self.barrier.is_complete(session)
                    and session.machine.begin_advance(next_round))

        await self._broadcast(session, events)
        if reopened:
            await self._schedule_advance(session, next_round)
        return True

    # ------------------------------------------------------------------
    # 投票
    # ------------------------------------------------------------------

    async def submit_vote(self, connection_id: str, request: SubmitVoteRequest) -> GameSession:
        """最终投票；全部投票后公布结果并结束游戏"""
        session = self.repository.get(request.game_id)
        player = self.identity.bind(session, connection_id, request.alias, allow_create=False)
        self.vote_tally.record_vote(session, player, request.choice)
        self.repository.touch(session)

        events = [{"type": "voteSubmitted", "alias": player.alias}]
        if self.vote_tally.is_complete(session):
            winners, vote_counts = self.vote_tally.tally(session)
            session.results = {"winners": winners, "vote_counts": vote_counts}
            session.machine.fire(Trigger.VOTES_COMPLETE)
            logger.info("游戏 %s 结束，获胜: %s，票数: %s", session.game_id,
                        [entry.song.title for entry in winners], vote_counts)

            results = results_view(session).dump()
            events.append({
                "type": "finalResults",
                "results": results["winners"],
                "tally": results["tally"],
            })
            events.append({"type": "gamePhaseChanged", "phase": session.phase})

        await self._broadcast(session, events)
        return session

    # ------------------------------------------------------------------
    # 查询与生命周期
    # ------------------------------------------------------------------

    async def send_game_state(self, connection_id: str, request: GameStateRequest) -> None:
        session = self.repository.get(request.game_id)
        player = self.identity.find_by_connection(session, connection_id)
        await self._send_state(session, connection_id, player)

    def snapshot(self, game_id: str) -> GameSnapshot:
        return GameSnapshot.from_session(self.repository.get(game_id))

    def list_games(self) -> List[GameSummary]:
        return [GameSummary.from_session(session) for session in self.repository.list_sessions()]

    def remove_game(self, game_id: str) -> Optional[GameSession]:
        session = self.repository.remove(game_id)
        if session is not None:
            self.websocket_manager.close_room(game_id)
        return session

    def reap_expired(self) -> List[str]:
        expired = self.repository.reap_expired()
        for game_id in expired:
            self.websocket_manager.close_room(game_id)
        return expired

    async def _send_state(self, session: GameSession, connection_id: str, player: Optional[Player]) -> None:
        message: Dict = {"type": "gameState", "state": GameSnapshot.from_session(session).dump()}
        if player is not None:
            message["alias"] = player.alias
            message["assignedPlaylistIndex"] = session.assignment.get(player.alias)
            message["hasSubmittedThisRound"] = player.has_submitted_this_round
        await self.websocket_manager.send_personal_message(message, connection_id)

    async def _broadcast(self, session: GameSession, events: List[dict]) -> None:
        for event in events:
            await self.websocket_manager.broadcast_to_game(event, session.game_id)
