"""
游戏阶段状态机

lobby → submission → elimination_round_1 … elimination_round_K → final_mix → finished

淘汰轮结束后先进入 ADVANCING 状态：在该状态下任何新的淘汰提交或重复的完成检查都会被拒绝，
直到推进例程提交新阶段为止。推进例程通过轮次号校验（fencing）避免过期的延迟回调重复推进。
"""

import enum
import logging
from typing import Dict, Tuple

from music_madness.core.errors import WrongPhase

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    """会话状态"""
    LOBBY = "lobby"
    SUBMISSION = "submission"
    ELIMINATION = "elimination"
    ADVANCING = "advancing"
    FINAL_MIX = "final_mix"
    FINISHED = "finished"


class Trigger(str, enum.Enum):
    """状态转换触发器"""
    START = "start"
    PLAYLISTS_COMPLETE = "playlists_complete"
    ROUND_COMPLETE = "round_complete"
    NEXT_ROUND = "next_round"
    CONVERGED = "converged"
    VOTES_COMPLETE = "votes_complete"


TRANSITIONS: Dict[Tuple[SessionState, Trigger], SessionState] = {
    (SessionState.LOBBY, Trigger.START): SessionState.SUBMISSION,
    (SessionState.SUBMISSION, Trigger.PLAYLISTS_COMPLETE): SessionState.ELIMINATION,
    (SessionState.SUBMISSION, Trigger.CONVERGED): SessionState.FINAL_MIX,
    (SessionState.ELIMINATION, Trigger.ROUND_COMPLETE): SessionState.ADVANCING,
    (SessionState.ADVANCING, Trigger.NEXT_ROUND): SessionState.ELIMINATION,
    (SessionState.ADVANCING, Trigger.CONVERGED): SessionState.FINAL_MIX,
    (SessionState.FINAL_MIX, Trigger.VOTES_COMPLETE): SessionState.FINISHED,
}

# 进入新淘汰轮的触发器
_ROUND_OPENERS = (Trigger.PLAYLISTS_COMPLETE, Trigger.NEXT_ROUND)


class SessionStateMachine:
    """单个游戏会话的状态机"""

    def __init__(self):
        self.state = SessionState.LOBBY
        self.round = 0

    @property
    def phase(self) -> str:
        """对外公布的阶段名称"""
        if self.state in (SessionState.ELIMINATION, SessionState.ADVANCING):
            return f"elimination_round_{self.round}"
        return self.state.value

    @property
    def accepting_eliminations(self) -> bool:
        return self.state is SessionState.ELIMINATION

    def fire(self, trigger: Trigger) -> SessionState:
        """执行状态转换；非法转换抛出 WrongPhase，不修改任何状态"""
        target = TRANSITIONS.get((self.state, trigger))
        if target is None:
            raise WrongPhase(f"当前阶段 {self.phase} 不允许该操作")

        previous = self.phase
        if trigger in _ROUND_OPENERS:
            self.round += 1
        self.state = target
        logger.info("阶段转换 %s -(%s)-> %s", previous, trigger.value, self.phase)
        return target

    def begin_advance(self, round_number: int) -> bool:
        """获取推进保护：仅当仍处于该轮淘汰阶段时成功，重复调用返回 False"""
        if self.state is not SessionState.ELIMINATION or self.round != round_number:
            return False
        self.fire(Trigger.ROUND_COMPLETE)
        return True

    def is_advancing(self, round_number: int) -> bool:
        return self.state is SessionState.ADVANCING and self.round == round_number

    def complete_advance(self, round_number: int, converged: bool) -> bool:
        """提交推进结果并释放保护；轮次不匹配时视为过期回调，不做任何事"""
        if not self.is_advancing(round_number):
            return False
        self.fire(Trigger.CONVERGED if converged else Trigger.NEXT_ROUND)
        return True
