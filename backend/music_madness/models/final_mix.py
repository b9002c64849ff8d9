"""
最终混音数据模型
"""

from dataclasses import dataclass

from music_madness.models.playlist import Song


@dataclass
class FinalMixEntry:
    """最终混音条目：每个歌单唯一幸存的歌曲"""
    playlist_index: int
    origin_alias: str   # 歌单所有者，便于前端展示来源
    song: Song
