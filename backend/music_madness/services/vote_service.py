"""
最终投票统计服务
"""

import logging
from collections import Counter
from typing import Dict, List, Tuple

from music_madness.core.errors import ValidationError, WrongPhase
from music_madness.models import ByPlaylistIndex, BySongId, Choice, FinalMixEntry, GameSession, Player
from music_madness.services.state_machine import SessionState

logger = logging.getLogger(__name__)


class VoteTally:
    """收集每位玩家一票并计算最高票"""

    def resolve_choice(self, session: GameSession, choice: Choice) -> int:
        """把投票选择解析为歌单序号（统计使用的唯一键）"""
        entries = session.final_mix or []
        if isinstance(choice, ByPlaylistIndex):
            for entry in entries:
                if entry.playlist_index == choice.index:
                    return entry.playlist_index
            raise ValidationError(f"最终混音中没有歌单 {choice.index}")
        if isinstance(choice, BySongId):
            for entry in entries:
                if entry.song.id == choice.song_id:
                    return entry.playlist_index
            raise ValidationError(f"最终混音中没有歌曲 {choice.song_id}")
        raise ValidationError("无法识别的投票选择")

    def record_vote(self, session: GameSession, player: Player, choice: Choice) -> int:
        """记录投票；同一玩家再次投票会覆盖之前的选择"""
        if session.state is not SessionState.FINAL_MIX:
            raise WrongPhase(f"当前阶段 {session.phase} 不接受投票")

        key = self.resolve_choice(session, choice)
        previous = session.votes.get(player.alias)
        session.votes[player.alias] = key

        if previous is not None and previous != key:
            logger.info("游戏 %s: %s 改投 %d -> %d", session.game_id, player.alias, previous, key)
        else:
            logger.info("游戏 %s: %s 投票给 %d (%d/%d)",
                        session.game_id, player.alias, key, len(session.votes), len(session.players))
        return key

    def is_complete(self, session: GameSession) -> bool:
        return bool(session.players) and len(session.votes) == len(session.players)

    def tally(self, session: GameSession) -> Tuple[List[FinalMixEntry], Dict[int, int]]:
        """统计票数；并列最高票全部作为获胜者，不做额外的决胜"""
        vote_counts = dict(Counter(session.votes.values()))
        if not vote_counts:
            return [], {}

        max_count = max(vote_counts.values())
        winners = [
            entry for entry in (session.final_mix or [])
            if vote_counts.get(entry.playlist_index) == max_count
        ]
        return winners, vote_counts
