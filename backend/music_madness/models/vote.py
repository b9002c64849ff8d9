"""
投票选择模型

客户端的投票选择在边界处解析为以下两种之一，内部逻辑不再判断原始类型。
统计时统一以歌单序号作为键。
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class ByPlaylistIndex:
    index: int


@dataclass(frozen=True)
class BySongId:
    song_id: str


Choice = Union[ByPlaylistIndex, BySongId]
