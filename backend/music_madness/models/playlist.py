"""
歌单与歌曲数据模型
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Song:
    """歌曲，只会被标记淘汰，不会从歌单中删除"""
    id: str
    title: str
    artist: str = ""
    link: str = ""
    eliminated: bool = False
    eliminated_round: Optional[int] = None
    eliminated_by_alias: Optional[str] = None
    comment: str = ""


@dataclass
class EliminationRecord:
    """淘汰记录"""
    song_id: str
    song_title: str
    eliminated_round: int
    eliminated_by: str
    comment: str = ""


@dataclass
class Playlist:
    """玩家提交的歌单，创建后长度不变"""
    owner_alias: str
    songs: List[Song] = field(default_factory=list)
    elimination_log: List[EliminationRecord] = field(default_factory=list)

    def remaining_songs(self) -> List[Song]:
        return [song for song in self.songs if not song.eliminated]

    @property
    def remaining_count(self) -> int:
        return len(self.remaining_songs())

    def index_of_song(self, song_id: str) -> Optional[int]:
        for index, song in enumerate(self.songs):
            if song.id == song_id:
                return index
        return None
