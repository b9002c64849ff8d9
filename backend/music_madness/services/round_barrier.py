"""
淘汰轮屏障

记录每位玩家每轮一次的淘汰提交；所有玩家提交后由协调器推进到下一阶段。
"""

import logging
from typing import List

from music_madness.core.errors import (
    AlreadyEliminated,
    AlreadySubmitted,
    InvalidSongIndex,
    LastSongStanding,
    NotAssigned,
    OwnPlaylist,
    WrongPhase,
)
from music_madness.models import EliminationRecord, GameSession, Player, Song

logger = logging.getLogger(__name__)


class RoundBarrier:
    """淘汰轮屏障"""

    def record_elimination(
        self,
        session: GameSession,
        player: Player,
        playlist_index: int,
        song_index: int,
        comment: str = "",
    ) -> Song:
        """记录一次淘汰；任何校验失败都不会修改歌单"""
        if not session.machine.accepting_eliminations:
            raise WrongPhase(f"当前阶段 {session.phase} 不接受淘汰提交")

        alias = player.alias
        if player.has_submitted_this_round:
            raise AlreadySubmitted(f"{alias} 本轮已经提交过淘汰")

        if session.assignment.get(alias) != playlist_index:
            raise NotAssigned(f"{alias} 本轮没有被分配到歌单 {playlist_index}")

        playlist = session.playlists[playlist_index]
        if playlist.owner_alias == alias and alias not in session.self_assigned:
            raise OwnPlaylist("不能淘汰自己歌单中的歌曲")

        if not 0 <= song_index < len(playlist.songs):
            raise InvalidSongIndex(f"歌曲序号 {song_index} 超出范围")

        song = playlist.songs[song_index]
        if song.eliminated:
            raise AlreadyEliminated(f"《{song.title}》已经被淘汰")

        if playlist.remaining_count <= 1:
            raise LastSongStanding(f"《{song.title}》是该歌单最后一首歌曲")

        round_number = session.current_round
        song.eliminated = True
        song.eliminated_round = round_number
        song.eliminated_by_alias = alias
        song.comment = comment
        playlist.elimination_log.append(EliminationRecord(
            song_id=song.id,
            song_title=song.title,
            eliminated_round=round_number,
            eliminated_by=alias,
            comment=comment,
        ))
        player.has_submitted_this_round = True

        logger.info("游戏 %s 第 %d 轮: %s 淘汰了 %s 歌单中的《%s》 (%d/%d)",
                    session.game_id, round_number, alias, playlist.owner_alias, song.title,
                    self.submitted_count(session), len(session.players))
        return song

    def submitted_count(self, session: GameSession) -> int:
        return sum(1 for player in session.players if player.has_submitted_this_round)

    def is_complete(self, session: GameSession) -> bool:
        return bool(session.players) and self.submitted_count(session) == len(session.players)

    def reset(self, session: GameSession) -> None:
        """进入下一轮之前清空本轮提交标记"""
        for player in session.players:
            player.has_submitted_this_round = False

    def mark_sitting_out(self, session: GameSession) -> List[str]:
        """分配到的歌单只剩一首歌时，该玩家本轮自动视为已提交"""
        sitting_out = []
        for player in session.players:
            index = session.assignment.get(player.alias)
            if index is None or session.playlists[index].remaining_count <= 1:
                player.has_submitted_this_round = True
                sitting_out.append(player.alias)
        if sitting_out:
            logger.info("游戏 %s 第 %d 轮: %s 无需淘汰", session.game_id, session.current_round, sitting_out)
        return sitting_out
