# 游戏内存数据模型
from .player import Player
from .playlist import Song, Playlist, EliminationRecord
from .final_mix import FinalMixEntry
from .vote import ByPlaylistIndex, BySongId, Choice
from .session import GameSession

__all__ = [
    "Player", "Song", "Playlist", "EliminationRecord", "FinalMixEntry",
    "ByPlaylistIndex", "BySongId", "Choice", "GameSession",
]
