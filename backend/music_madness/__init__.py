"""
Music Madness：歌单淘汰游戏后端
"""

__version__ = "1.0.0"
