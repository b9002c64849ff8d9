"""
身份绑定服务

把入站连接 + 声明的别名解析为持久的玩家记录，支持断线重连。
"""

import logging
from typing import Optional

from music_madness.core.errors import PlayerNotFound, ValidationError
from music_madness.core.utils import alias_key, same_alias
from music_madness.models import GameSession, Player

logger = logging.getLogger(__name__)


class IdentityBinder:
    """身份绑定器"""

    def find_by_connection(self, session: GameSession, connection_id: Optional[str]) -> Optional[Player]:
        if not connection_id:
            return None
        for player in session.players:
            if player.connection_ref == connection_id:
                return player
        return None

    def find_by_alias(self, session: GameSession, alias: Optional[str]) -> Optional[Player]:
        if not alias_key(alias):
            return None
        for player in session.players:
            if same_alias(player.alias, alias):
                return player
        return None

    def bind(
        self,
        session: GameSession,
        connection_id: Optional[str],
        alias: Optional[str],
        allow_create: bool = False,
    ) -> Player:
        """解析玩家

        查找顺序：
        1. 已绑定到该连接的玩家（允许创建且声明了不同别名时跳过）
        2. 别名匹配的玩家（重连路径，重新绑定连接）
        3. 允许创建且提供了别名时创建新玩家
        """
        player = self.find_by_connection(session, connection_id)
        # 加入时声明了另一个别名，则不沿用该连接上的旧玩家
        if player is not None and (not allow_create or not alias_key(alias) or same_alias(player.alias, alias)):
            player.connected = True
            return player

        player = self.find_by_alias(session, alias)
        if player is not None:
            return self.rebind(session, player, connection_id)

        if allow_create and alias_key(alias):
            self.release_connection(session, connection_id)
            player = Player(alias=alias.strip(), connection_ref=connection_id)
            session.players.append(player)
            logger.info("玩家 %s 加入游戏 %s，当前人数: %d", player.alias, session.game_id, len(session.players))
            return player

        if allow_create:
            raise ValidationError("缺少玩家别名")
        raise PlayerNotFound(f"游戏 {session.game_id} 中不存在玩家 {alias or '(未知)'}")

    def rebind(self, session: GameSession, player: Player, connection_id: Optional[str]) -> Player:
        """重新绑定连接：新连接直接取代旧连接，旧连接不做显式驱逐"""
        self.release_connection(session, connection_id, keep=player)
        if player.connection_ref != connection_id:
            logger.info("玩家 %s 在游戏 %s 中重新绑定连接 %s -> %s",
                        player.alias, session.game_id, player.connection_ref, connection_id)
            player.connection_ref = connection_id
        player.connected = True
        return player

    def release_connection(self, session: GameSession, connection_id: Optional[str], keep: Optional[Player] = None) -> None:
        """一个连接只绑定一位玩家：解除其他玩家与该连接的绑定"""
        if not connection_id:
            return
        for other in session.players:
            if other is not keep and other.connection_ref == connection_id:
                logger.info("玩家 %s 在游戏 %s 中的连接 %s 已转给其他玩家",
                            other.alias, session.game_id, connection_id)
                other.connection_ref = None
                other.connected = False

    def mark_disconnected(self, session: GameSession, connection_id: str) -> Optional[Player]:
        """连接断开：保留绑定，只标记为离线"""
        player = self.find_by_connection(session, connection_id)
        if player is not None:
            player.connected = False
            logger.info("玩家 %s 与游戏 %s 断开连接", player.alias, session.game_id)
        return player
