"""
歌单提交服务
"""

import logging
import uuid
from typing import Any, List, Mapping, Sequence

from music_madness.core.errors import DuplicatePlaylist, ValidationError, WrongPhase
from music_madness.models import GameSession, Player, Playlist, Song
from music_madness.services.state_machine import SessionState

logger = logging.getLogger(__name__)


def _entry_field(entry: Any, name: str) -> str:
    if isinstance(entry, Mapping):
        value = entry.get(name)
    else:
        value = getattr(entry, name, None)
    return str(value).strip() if value is not None else ""


def normalize_song(entry: Any) -> Song:
    """把歌单条目规范化为歌曲

    条目可以是纯字符串（作为歌名），也可以是包含 artist/title/link 的对象。
    """
    if isinstance(entry, str):
        title, artist, link = entry.strip(), "", ""
    else:
        title = _entry_field(entry, "title") or _entry_field(entry, "name")
        artist = _entry_field(entry, "artist")
        link = _entry_field(entry, "link")

    if not title:
        raise ValidationError("歌曲名称不能为空")

    return Song(id=uuid.uuid4().hex, title=title, artist=artist, link=link)


class SubmissionCollector:
    """收集每位玩家的歌单"""

    def __init__(self, max_playlist_length: int = 50):
        self.max_playlist_length = max_playlist_length

    def submit(self, session: GameSession, player: Player, entries: Sequence[Any]) -> Playlist:
        """接收一份歌单；所有校验都在修改会话之前完成"""
        if session.state is not SessionState.SUBMISSION:
            raise WrongPhase(f"当前阶段 {session.phase} 不接受歌单提交")

        if session.playlist_owner_index(player.alias) is not None:
            raise DuplicatePlaylist(f"{player.alias} 已经提交过歌单")

        if not entries:
            raise ValidationError("歌单不能为空")
        if len(entries) > self.max_playlist_length:
            raise ValidationError(f"歌单最多 {self.max_playlist_length} 首歌曲")

        songs: List[Song] = [normalize_song(entry) for entry in entries]
        playlist = Playlist(owner_alias=player.alias, songs=songs)
        session.playlists.append(playlist)

        logger.info("游戏 %s: %s 提交了 %d 首歌曲 (%d/%d)",
                    session.game_id, player.alias, len(songs), len(session.playlists), len(session.players))
        return playlist

    def is_complete(self, session: GameSession) -> bool:
        return bool(session.players) and len(session.playlists) == len(session.players)

    def would_complete(self, session: GameSession) -> bool:
        """再提交一份歌单是否会完成提交阶段"""
        return len(session.playlists) + 1 == len(session.players)
