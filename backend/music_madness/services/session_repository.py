"""
游戏会话仓库

所有会话保存在可注入的存储中，并按不活跃时间回收。
"""

import logging
import time
from typing import Callable, List, MutableMapping, Optional

from music_madness.core.errors import GameAlreadyExists, GameNotFound
from music_madness.models import GameSession

logger = logging.getLogger(__name__)


class SessionRepository:
    """会话仓库

    active_ttl: 未结束会话在无活动多久后回收（秒）
    finished_ttl: 已结束会话保留多久（秒）
    """

    def __init__(
        self,
        store: Optional[MutableMapping[str, GameSession]] = None,
        active_ttl: float = 6 * 60 * 60,
        finished_ttl: float = 30 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store if store is not None else {}
        self.active_ttl = active_ttl
        self.finished_ttl = finished_ttl
        self.clock = clock

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, game_id: str) -> bool:
        return game_id in self._store

    def find(self, game_id: str) -> Optional[GameSession]:
        return self._store.get(game_id)

    def get(self, game_id: str) -> GameSession:
        session = self._store.get(game_id)
        if session is None:
            raise GameNotFound(f"游戏 {game_id} 不存在")
        return session

    def create(self, game_id: str, password: str = "") -> GameSession:
        if game_id in self._store:
            raise GameAlreadyExists(f"游戏 {game_id} 已存在")
        now = self.clock()
        session = GameSession(game_id=game_id, password=password, created_at=now, last_activity=now)
        self._store[game_id] = session
        logger.info("创建游戏 %s，当前游戏数: %d", game_id, len(self._store))
        return session

    def remove(self, game_id: str) -> Optional[GameSession]:
        session = self._store.pop(game_id, None)
        if session is not None:
            session.cancel_pending_advance()
            logger.info("移除游戏 %s，当前游戏数: %d", game_id, len(self._store))
        return session

    def touch(self, session: GameSession) -> None:
        session.last_activity = self.clock()

    def list_sessions(self) -> List[GameSession]:
        return list(self._store.values())

    def is_expired(self, session: GameSession, now: Optional[float] = None) -> bool:
        now = self.clock() if now is None else now
        ttl = self.finished_ttl if session.is_finished else self.active_ttl
        return now - session.last_activity >= ttl

    def reap_expired(self, now: Optional[float] = None) -> List[str]:
        """回收过期会话，返回被回收的游戏代码"""
        now = self.clock() if now is None else now
        expired = [game_id for game_id, session in self._store.items() if self.is_expired(session, now)]
        for game_id in expired:
            self.remove(game_id)
        if expired:
            logger.info("回收了 %d 个过期游戏: %s", len(expired), expired)
        return expired
