"""
歌单分配服务

每轮为每位玩家分配一个需要审阅的歌单：
- 不分配自己的歌单
- 尽量避免分配以前审阅过的歌单
- 每个歌单恰好分配给一位玩家
"""

import logging
import random
from typing import Dict, List, Optional, Set

from music_madness.models import GameSession

logger = logging.getLogger(__name__)


class AssignmentScheduler:
    """歌单分配调度器"""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def assign(self, session: GameSession) -> Dict[str, int]:
        """计算本轮的分配，写回会话并返回 别名 → 歌单序号"""
        pool: List[int] = list(range(len(session.playlists)))
        owners = [playlist.owner_alias for playlist in session.playlists]

        # 随机顺序，避免固定玩家总是先选
        players = list(session.players)
        self.rng.shuffle(players)

        assignment: Dict[str, int] = {}
        fallbacks: Set[str] = set()

        for player in players:
            if not pool:
                logger.warning("游戏 %s: 歌单数量少于玩家数量，%s 本轮没有分配", session.game_id, player.alias)
                break

            alias = player.alias
            history = session.assignment_history.get(alias, set())

            candidates = [i for i in pool if owners[i] != alias and i not in history]
            if not candidates:
                # 放宽：允许重复审阅，但仍然不能是自己的歌单
                candidates = [i for i in pool if owners[i] != alias]
                if candidates:
                    logger.debug("游戏 %s: %s 没有未审阅过的歌单，允许重复分配", session.game_id, alias)

            if not candidates and self._swap_with_assigned(session, alias, pool, owners, assignment):
                continue

            if not candidates:
                candidates = list(pool)
                fallbacks.add(alias)
                message = f"{alias} 只能分配到自己的歌单 (歌单序号 {candidates})"
                logger.warning("游戏 %s: 分配兜底 - %s", session.game_id, message)
                session.record_anomaly(f"分配兜底: {message}")

            choice = self.rng.choice(candidates)
            pool.remove(choice)
            assignment[alias] = choice

        for alias, index in assignment.items():
            session.assignment_history.setdefault(alias, set()).add(index)

        session.assignment = assignment
        session.self_assigned = fallbacks
        logger.info("游戏 %s 第 %d 轮分配: %s", session.game_id, session.current_round, assignment)
        return assignment

    def _swap_with_assigned(
        self,
        session: GameSession,
        alias: str,
        pool: List[int],
        owners: List[str],
        assignment: Dict[str, int],
    ) -> bool:
        """剩下的只有自己的歌单时，与已分配的玩家交换

        已分配玩家拿到的歌单不可能属于当前玩家（当前玩家的歌单还在池中），
        而当前玩家的歌单也不属于对方，所以交换后双方都不会审阅自己的歌单。
        """
        own = [i for i in pool if owners[i] == alias]
        if not own or not assignment:
            return False

        own_index = own[0]
        partners = list(assignment.items())
        fresh = [
            (other, index) for other, index in partners
            if index not in session.assignment_history.get(alias, set())
            and own_index not in session.assignment_history.get(other, set())
        ]
        other, index = self.rng.choice(fresh or partners)

        assignment[other] = own_index
        assignment[alias] = index
        pool.remove(own_index)
        logger.debug("游戏 %s: %s 与 %s 交换分配以避免自审", session.game_id, alias, other)
        return True
