"""
最终混音服务
"""

import logging
from typing import Dict, List

from music_madness.models import FinalMixEntry, GameSession

logger = logging.getLogger(__name__)

STILL_IN_PLAY = "still_in_play"
ELIMINATED_IN_ROUND = "eliminated_in_round"
ELIMINATED_IN_FINAL_VOTE = "eliminated_in_final_vote"
WINNER = "winner"


class FinalMixBuilder:
    """收集每个歌单唯一幸存的歌曲"""

    def build(self, session: GameSession) -> List[FinalMixEntry]:
        entries = []
        for index, playlist in enumerate(session.playlists):
            remaining = playlist.remaining_songs()
            if len(remaining) == 1:
                song = remaining[0]
            else:
                # 正常的轮次计算下不应出现，取歌单最后一首
                song = playlist.songs[-1]
                message = (f"{playlist.owner_alias} 的歌单剩余 {len(remaining)} 首歌曲，"
                           f"使用最后一首《{song.title}》")
                logger.warning("游戏 %s: 最终混音兜底 - %s", session.game_id, message)
                session.record_anomaly(f"最终混音兜底: {message}")

            entries.append(FinalMixEntry(playlist_index=index, origin_alias=playlist.owner_alias, song=song))

        logger.info("游戏 %s 最终混音: %s", session.game_id,
                    [f"{entry.origin_alias}:{entry.song.title}" for entry in entries])
        return entries


def build_elimination_history(session: GameSession) -> List[Dict]:
    """每个歌单的淘汰历史，标注每首歌曲的状态"""
    winning = set()
    if session.results:
        winning = {entry.song.id for entry in session.results.get("winners", [])}
    finished = session.results is not None

    history = []
    for index, playlist in enumerate(session.playlists):
        songs = []
        for song in playlist.songs:
            if song.eliminated:
                status = ELIMINATED_IN_ROUND
                label = f"Eliminated by {song.eliminated_by_alias} (Round {song.eliminated_round})"
            elif finished and song.id not in winning:
                status = ELIMINATED_IN_FINAL_VOTE
                label = "Eliminated in Final Vote"
            elif finished:
                status = WINNER
                label = "Winner"
            else:
                status = STILL_IN_PLAY
                label = "Still in play"

            songs.append({
                "id": song.id,
                "title": song.title,
                "artist": song.artist,
                "link": song.link,
                "status": status,
                "label": label,
                "eliminatedRound": song.eliminated_round,
                "eliminatedBy": song.eliminated_by_alias,
                "comment": song.comment,
            })

        history.append({
            "playlistIndex": index,
            "alias": playlist.owner_alias,
            "songs": songs,
        })
    return history
