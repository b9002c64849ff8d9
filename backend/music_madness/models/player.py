"""
玩家数据模型
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Player:
    """游戏玩家

    connection_ref 在重连时会被重新绑定，但玩家记录本身永远不会被移除。
    """
    alias: str                                  # 首次出现时的显示别名
    connection_ref: Optional[str] = None        # 当前绑定的连接
    connected: bool = True
    has_submitted_this_round: bool = False
