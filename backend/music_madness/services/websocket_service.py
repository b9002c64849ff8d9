"""
WebSocket连接管理服务
"""

import json
import logging
import uuid
from typing import Dict, List, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """WebSocket连接管理器

    每个连接分配一个连接ID；游戏房间保存连接ID集合，广播时发送给房间内的所有连接。
    """

    def __init__(self):
        # 连接ID → WebSocket
        self.connections: Dict[str, WebSocket] = {}
        # 游戏代码 → 连接ID集合
        self.game_connections: Dict[str, Set[str]] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """接受连接并返回连接ID"""
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.connections[connection_id] = websocket
        logger.info("新连接 %s，当前连接数: %d", connection_id, len(self.connections))
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        """断开连接并从所有房间中移除"""
        self.connections.pop(connection_id, None)
        for connection_ids in self.game_connections.values():
            connection_ids.discard(connection_id)
        logger.info("连接 %s 断开，当前连接数: %d", connection_id, len(self.connections))

    def join_room(self, game_id: str, connection_id: str) -> None:
        self.game_connections.setdefault(game_id, set()).add(connection_id)

    def close_room(self, game_id: str) -> None:
        self.game_connections.pop(game_id, None)

    def room_members(self, game_id: str) -> List[str]:
        return sorted(self.game_connections.get(game_id, set()))

    async def send_personal_message(self, message: dict, connection_id: str) -> None:
        """发送个人消息"""
        websocket = self.connections.get(connection_id)
        if websocket is None:
            logger.debug("连接 %s 不存在，跳过消息 %s", connection_id, message.get("type"))
            return
        try:
            await websocket.send_text(json.dumps(message, ensure_ascii=False))
        except Exception as e:
            logger.warning("发送个人消息失败: %s", e)
            self.disconnect(connection_id)

    async def broadcast_to_game(self, message: dict, game_id: str) -> None:
        """向游戏中的所有连接广播消息"""
        connection_ids = list(self.game_connections.get(game_id, ()))
        if not connection_ids:
            logger.debug("游戏 %s 没有活跃连接，跳过广播", game_id)
            return

        logger.debug("向游戏 %s 的 %d 个连接广播消息类型: %s",
                     game_id, len(connection_ids), message.get("type", "unknown"))

        message_text = json.dumps(message, ensure_ascii=False)
        failed_connections = []

        for connection_id in connection_ids:
            websocket = self.connections.get(connection_id)
            if websocket is None:
                failed_connections.append(connection_id)
                continue
            try:
                await websocket.send_text(message_text)
            except Exception as e:
                logger.warning("广播消息失败: %s", e)
                failed_connections.append(connection_id)

        # 移除失败的连接
        for connection_id in failed_connections:
            self.game_connections.get(game_id, set()).discard(connection_id)

        if failed_connections:
            logger.info("游戏 %s 移除 %d 个失效连接", game_id, len(failed_connections))
